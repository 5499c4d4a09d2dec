# Filename: models.py

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

TRACKED_DENOM_PREFIX = "coin."

BONDING_CURVE = "bonding_curve"
DEX_PAIR = "dex_pair"


class WalletNotFoundError(LookupError):
    """Raised by a wallet store when the user's active wallet id points nowhere."""


@dataclass
class TokenInfo:
    """
    TokenInfo represents a factory token as listed in the chain supply.
    Denoms look like ``coin.<creator>.<subdenom>``.
    """
    denom: str                       # Unique chain-wide identifier
    creator: str                     # Creator (or contract) address
    name: Optional[str] = None
    symbol: Optional[str] = None
    minting_cap: str = "0"

    @classmethod
    def from_denom(cls, denom: str, amount: str = "0") -> Optional["TokenInfo"]:
        if not denom or not denom.startswith(TRACKED_DENOM_PREFIX):
            return None
        parts = denom.split(".")
        if len(parts) < 3:
            return None
        subdenom = ".".join(parts[2:])
        return cls(
            denom=denom,
            creator=parts[1],
            name=subdenom,
            symbol=subdenom.upper()[:10],
            minting_cap=amount or "0",
        )


@dataclass
class PoolInfo:
    pool_id: str
    base_denom: str
    quote_denom: str
    base_reserve: str = "0"
    quote_reserve: str = "0"


@dataclass
class PairInfo:
    """A pair contract as returned by the DEX factory registry."""
    contract_address: str
    asset_denoms: List[str] = field(default_factory=list)


@dataclass
class PairPage:
    pairs: List[PairInfo] = field(default_factory=list)
    next_page_token: Optional[object] = None


@dataclass
class Coin:
    denom: str
    amount: str


@dataclass
class TxResult:
    """Broadcast outcome. ``code`` 0 means the chain accepted the transaction."""
    code: int
    tx_hash: str = ""
    raw_log: str = ""


@dataclass
class SwapRoute:
    kind: str                        # BONDING_CURVE or DEX_PAIR
    contract_address: str
    native_denom: Optional[str] = None


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    token_denom: str
    amount_spent: str = "0"
    tx_hash: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PendingExecution:
    user_id: int
    token_denom: str
    status: str = "pending"          # pending | executing | completed | failed
    result: Optional[ExecutionResult] = None


@dataclass
class AutoSnipeUser:
    user_id: int
    active_wallet_id: Optional[int] = None


@dataclass
class UserSettings:
    buy_amount: str
    auto_buy_new_tokens: bool = True
    auto_buy_graduated: bool = True
    slippage_tolerance: float = 5.0


@dataclass
class Wallet:
    wallet_id: int
    address: str
    secret: str                      # Key name or mnemonic, already decrypted


@dataclass
class NewTokenDetected:
    token: TokenInfo
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class TokenGraduated:
    token: TokenInfo
    pool: PoolInfo
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
