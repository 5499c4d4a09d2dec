"""
Shared fakes for the sniper pipeline tests.
"""

import asyncio
from typing import Dict, List, Optional

import pytest

from models import (
    AutoSnipeUser,
    PairInfo,
    PairPage,
    PoolInfo,
    TokenInfo,
    TxResult,
    UserSettings,
    Wallet,
    WalletNotFoundError,
)

TOKEN_ADDR = "zig1" + "qpzry9x8gf2tvdw0s3jn54khce6mua7l" * 2
TOKEN_DENOM = f"coin.{TOKEN_ADDR}.pepe"
PAIR_ADDR = "zig1" + "pzry9x8gf2tvdw0s3jn54khce6mua7lq" * 2
WALLET_ADDR = "zig1" + "zry9x8gf2tvdw0s3jn54khce6mua7lqp"


class FakeChainQuery:
    def __init__(self):
        self.tokens: List[TokenInfo] = []
        self.pools: List[PoolInfo] = []
        self.balances: Dict[str, str] = {}
        self.fail_tokens = False
        self.fail_pools = False
        self.token_calls = 0
        self.pool_calls = 0
        self.balance_calls = 0

    async def list_new_tokens(self):
        self.token_calls += 1
        if self.fail_tokens:
            raise ConnectionError("lcd timeout")
        return list(self.tokens)

    async def list_pools(self):
        self.pool_calls += 1
        if self.fail_pools:
            raise ConnectionError("lcd timeout")
        return list(self.pools)

    async def get_balance(self, address, denom):
        self.balance_calls += 1
        return self.balances.get(address, "0")


class FakeChainTx:
    def __init__(self):
        self.curve_result: Optional[TxResult] = TxResult(code=0, tx_hash="ABC123")
        self.curve_error: Optional[Exception] = None
        self.dex_result: Optional[TxResult] = TxResult(code=0, tx_hash="DEX456")
        self.dex_error: Optional[Exception] = None
        self.curve_calls = []
        self.dex_calls = []
        self.gate: Optional[asyncio.Event] = None

    async def submit_bonding_curve_buy(self, secret, contract_address, funds):
        self.curve_calls.append((secret, contract_address, funds))
        if self.gate is not None:
            await self.gate.wait()
        if self.curve_error is not None:
            raise self.curve_error
        return self.curve_result

    async def submit_dex_swap(self, secret, pair_contract, offer_denom, offer_amount, ask_denom, max_spread):
        self.dex_calls.append((secret, pair_contract, offer_denom, offer_amount, ask_denom, max_spread))
        if self.dex_error is not None:
            raise self.dex_error
        return self.dex_result


class FakePairRegistry:
    def __init__(self, pages: Optional[List[List[PairInfo]]] = None):
        self.pages = pages or []
        self.calls = []

    async def list_pairs_page(self, page_token=None):
        self.calls.append(page_token)
        index = page_token or 0
        if index >= len(self.pages):
            return PairPage(pairs=[], next_page_token=None)
        next_token = index + 1 if index + 1 < len(self.pages) else None
        return PairPage(pairs=self.pages[index], next_page_token=next_token)


class FakeUsers:
    def __init__(self):
        self.users: Dict[int, AutoSnipeUser] = {}
        self.settings: Dict[int, UserSettings] = {}
        self.wallets: Dict[int, Wallet] = {}
        self.missing_wallets = set()

    def add(self, user_id, buy_amount="1000000", new=True, graduated=True, address=WALLET_ADDR):
        self.users[user_id] = AutoSnipeUser(user_id=user_id, active_wallet_id=user_id)
        self.settings[user_id] = UserSettings(buy_amount=buy_amount, auto_buy_new_tokens=new,
                                              auto_buy_graduated=graduated)
        self.wallets[user_id] = Wallet(wallet_id=user_id, address=address, secret=f"key-{user_id}")

    def get_auto_snipe_users(self):
        return list(self.users.values())

    def get_settings(self, user_id):
        return self.settings.get(user_id)

    def get_active_wallet(self, user_id):
        if user_id in self.missing_wallets:
            raise WalletNotFoundError(str(user_id))
        return self.wallets.get(user_id)


class RecordingNotifier:
    def __init__(self):
        self.results = []
        self.new_tokens = []
        self.graduations = []

    def report_execution_result(self, user_id, result):
        self.results.append((user_id, result))

    def report_new_token(self, token):
        self.new_tokens.append(token)

    def report_graduation(self, token, pool):
        self.graduations.append((token, pool))


@pytest.fixture
def chain_query():
    return FakeChainQuery()


@pytest.fixture
def chain_tx():
    return FakeChainTx()


@pytest.fixture
def users():
    return FakeUsers()


@pytest.fixture
def notifier():
    return RecordingNotifier()
