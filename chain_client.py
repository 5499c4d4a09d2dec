# Filename: chain_client.py

import asyncio
import base64
import hashlib
import json
import re
from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger

from models import Coin, PairInfo, PairPage, PoolInfo, TokenInfo, TxResult, TRACKED_DENOM_PREFIX

SUPPLY_PATH = "/cosmos/bank/v1beta1/supply?pagination.limit=5000"
MAX_POOL_PAGES = 100
CLI_TIMEOUT_SECONDS = 30


class ChainQueryError(Exception):
    """An LCD query failed (transport, timeout or non-200 answer)."""


class ChainTxError(Exception):
    """The CLI refused or failed to broadcast a transaction."""


def parse_supply_tokens(supply: List[Dict[str, Any]]) -> List[TokenInfo]:
    tokens = []
    for coin in supply or []:
        denom = coin.get("denom") or ""
        if not denom.startswith(TRACKED_DENOM_PREFIX):
            continue
        token = TokenInfo.from_denom(denom, coin.get("amount") or "0")
        if token:
            tokens.append(token)
    return tokens


def asset_denom(asset_info: Dict[str, Any]) -> Optional[str]:
    if "native_token" in asset_info:
        return asset_info["native_token"].get("denom")
    if "token" in asset_info:
        return asset_info["token"].get("contract_addr")
    return None


def parse_pairs(pairs: List[Dict[str, Any]]) -> List[PairInfo]:
    result = []
    for pair in pairs or []:
        denoms = [d for d in (asset_denom(a) for a in pair.get("asset_infos", [])) if d]
        result.append(PairInfo(contract_address=pair.get("contract_addr", ""), asset_denoms=denoms))
    return result


class ZigChainClient:
    """
    Read side of ZigChain over the LCD REST API: token supply, factory pairs
    and balances. Implements the monitor's query interface and the router's
    pair registry interface.
    """

    def __init__(self, config: Dict[str, Any]):
        self.api_url = config.get("ZIGCHAIN_API_URL", "https://public-zigchain-lcd.numia.xyz").rstrip("/")
        self.factory = config.get("OROSWAP_FACTORY", "")
        self.page_limit = int(config.get("PAIR_PAGE_LIMIT", 30))
        self.timeout = aiohttp.ClientTimeout(total=float(config.get("REQUEST_TIMEOUT_SECONDS", 10)))

    async def _get_json(self, url: str) -> Dict[str, Any]:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        text = await response.text()
                        raise ChainQueryError(f"API request failed: {response.status} {text[:200]}")
                    return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ChainQueryError(f"API request failed: {e!r}") from e

    async def list_new_tokens(self) -> List[TokenInfo]:
        data = await self._get_json(f"{self.api_url}{SUPPLY_PATH}")
        return parse_supply_tokens(data.get("supply", []))

    async def get_balance(self, address: str, denom: str) -> str:
        url = f"{self.api_url}/cosmos/bank/v1beta1/balances/{address}/by_denom?denom={denom}"
        data = await self._get_json(url)
        return (data.get("balance") or {}).get("amount") or "0"

    async def list_pairs_page(self, page_token=None) -> PairPage:
        query = {"pairs": {"limit": self.page_limit}}
        if page_token:
            query["pairs"]["start_after"] = page_token
        encoded = base64.b64encode(json.dumps(query).encode()).decode()
        url = f"{self.api_url}/cosmwasm/wasm/v1/contract/{self.factory}/smart/{encoded}"

        data = await self._get_json(url)
        raw_pairs = (data.get("data") or {}).get("pairs") or []
        next_token = raw_pairs[-1].get("asset_infos") if len(raw_pairs) >= self.page_limit else None
        return PairPage(pairs=parse_pairs(raw_pairs), next_page_token=next_token)

    async def list_pools(self) -> List[PoolInfo]:
        """Full snapshot of factory pairs, one PoolInfo per two-asset pair."""
        pools = []
        page_token = None
        for _ in range(MAX_POOL_PAGES):
            page = await self.list_pairs_page(page_token)
            for pair in page.pairs:
                if len(pair.asset_denoms) < 2:
                    continue
                pools.append(PoolInfo(
                    pool_id=pair.contract_address,
                    base_denom=pair.asset_denoms[0],
                    quote_denom=pair.asset_denoms[1],
                ))
            if page.next_page_token is None:
                break
            page_token = page.next_page_token
        else:
            logger.warning(f"[CHAIN] Pool listing truncated at {MAX_POOL_PAGES} pages")
        return pools


class ZigChainCLI:
    """
    Write side: signs and broadcasts MsgExecuteContract through ``zigchaind``.

    The wallet secret is either a keyring key name, a mnemonic or a hex
    private key; the latter two are imported into the keyring on first use.
    """

    def __init__(self, config: Dict[str, Any]):
        self.binary = config.get("ZIGCHAIND_BINARY", "zigchaind")
        self.node = config.get("ZIGCHAIN_RPC_URL", "https://public-zigchain-rpc.numia.xyz:443")
        self.chain_id = config.get("CHAIN_ID", "zigchain-1")
        self.gas_prices = config.get("GAS_PRICE", "0.0025uzig")
        self.gas_adjustment = str(config.get("GAS_ADJUSTMENT", 1.5))
        self.keyring_backend = config.get("KEYRING_BACKEND", "test")
        self._imported_keys = set()

    async def _run(self, args: List[str], stdin: Optional[str] = None) -> str:
        logger.debug(f"[CLI] {self.binary} {' '.join(args[:3])} ...")
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary, *args,
                stdin=asyncio.subprocess.PIPE if stdin is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ChainTxError(f"Could not run {self.binary}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(stdin.encode() if stdin is not None else None),
                timeout=CLI_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            raise ChainTxError(f"{self.binary} timed out after {CLI_TIMEOUT_SECONDS}s")
        finally:
            # Timed out or cancelled by the caller: the broadcast must not outlive us
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()
                logger.warning(f"[CLI] Killed {self.binary} (pid {proc.pid}) before it finished")

        if proc.returncode != 0:
            raise ChainTxError((stderr or stdout).decode(errors="replace").strip())
        return stdout.decode(errors="replace")

    async def _key_name(self, secret: str) -> str:
        secret = secret.strip()
        is_mnemonic = " " in secret
        is_hex = bool(re.fullmatch(r"(0x)?[0-9a-fA-F]{64}", secret))
        if not is_mnemonic and not is_hex:
            return secret

        name = "sniper-" + hashlib.sha256(secret.encode()).hexdigest()[:12]
        if name in self._imported_keys:
            return name

        if is_mnemonic:
            args = ["keys", "add", name, "--recover", "--keyring-backend", self.keyring_backend]
            stdin = secret + "\n"
        else:
            key_hex = secret[2:] if secret.startswith("0x") else secret
            args = ["keys", "import-hex", name, key_hex, "--keyring-backend", self.keyring_backend]
            stdin = None

        try:
            await self._run(args, stdin=stdin)
        except ChainTxError as e:
            if "already exists" not in str(e):
                raise
        self._imported_keys.add(name)
        return name

    async def _execute(self, secret: str, contract: str, msg: Dict[str, Any], funds: Coin) -> TxResult:
        key_name = await self._key_name(secret)
        output = await self._run([
            "tx", "wasm", "execute", contract, json.dumps(msg),
            "--amount", f"{funds.amount}{funds.denom}",
            "--from", key_name,
            "--keyring-backend", self.keyring_backend,
            "--gas", "auto",
            "--gas-adjustment", self.gas_adjustment,
            "--gas-prices", self.gas_prices,
            "--chain-id", self.chain_id,
            "--node", self.node,
            "-y", "--output", "json",
        ])
        return parse_tx_output(output)

    async def submit_bonding_curve_buy(self, secret: str, contract_address: str, funds: Coin) -> TxResult:
        logger.info(f"[CLI] Broadcasting bonding curve buy on {contract_address}")
        return await self._execute(secret, contract_address, {"buy_token": {}}, funds)

    async def submit_dex_swap(self, secret: str, pair_contract: str, offer_denom: str, offer_amount: str,
                              ask_denom: str, max_spread: str) -> TxResult:
        msg = {
            "swap": {
                "offer_asset": {
                    "info": {"native_token": {"denom": offer_denom}},
                    "amount": str(offer_amount),
                },
                "ask_asset_info": {"native_token": {"denom": ask_denom}},
                "max_spread": str(max_spread),
            }
        }
        logger.info(f"[CLI] Broadcasting DEX swap on {pair_contract} for {ask_denom}")
        return await self._execute(secret, pair_contract, msg, Coin(denom=offer_denom, amount=str(offer_amount)))


def parse_tx_output(output: str) -> TxResult:
    # gas estimation lines may precede the JSON body
    start = output.find("{")
    if start < 0:
        raise ChainTxError(f"Unexpected CLI output: {output.strip()[:200]}")
    try:
        data = json.loads(output[start:])
    except ValueError as e:
        raise ChainTxError(f"Unexpected CLI output: {output.strip()[:200]}") from e
    return TxResult(
        code=int(data.get("code", 0) or 0),
        tx_hash=data.get("txhash", ""),
        raw_log=data.get("raw_log", ""),
    )
