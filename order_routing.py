"""
Module de routage des ordres pour ZigSniperBot
Choisit entre la bonding curve du token et une paire OroSwap pour exécuter un achat
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple

from models import (
    BONDING_CURVE,
    DEX_PAIR,
    Coin,
    SwapRoute,
    TxResult,
    TRACKED_DENOM_PREFIX,
)

logger = logging.getLogger("order_routing")

# Bech32 data characters
BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
MIN_ADDRESS_DATA_LENGTH = 38

FALLBACK_SIGNATURES = ("Trading is paused", "no such contract")


class InvalidDenomError(ValueError):
    """The denom cannot be reduced to a contract address."""


class SwapError(Exception):
    """A swap was rejected, either by the client or by the chain (non-zero code)."""

    def __init__(self, message: str, code: Optional[int] = None, raw_log: str = ""):
        super().__init__(message)
        self.code = code
        self.raw_log = raw_log


def canonical_token_address(denom: str, prefix: str = "zig") -> str:
    """
    Reduces ``coin.<address>.<symbol>`` to ``<address>`` and checks that the
    result looks like a bech32 address for ``prefix``. Plain addresses pass
    through unchanged.
    """
    denom = (denom or "").strip()
    if not denom:
        raise InvalidDenomError("Token denom is empty")

    address = denom
    if denom.startswith(TRACKED_DENOM_PREFIX):
        parts = denom.split(".")
        if len(parts) < 3 or not parts[1]:
            raise InvalidDenomError(f"Malformed factory denom: {denom}")
        address = parts[1]

    pattern = rf"^{re.escape(prefix)}1[{BECH32_CHARSET}]{{{MIN_ADDRESS_DATA_LENGTH},}}$"
    if not re.match(pattern, address):
        raise InvalidDenomError(f"Not a valid {prefix} address: {address}")
    return address


def is_fallback_error(message: str) -> bool:
    return any(signature in message for signature in FALLBACK_SIGNATURES)


class OrderRouter:
    """
    Routeur d'ordres
    Tente d'abord la bonding curve, puis une paire DEX si le token a gradué
    """

    def __init__(self, chain_tx, pair_registry, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.chain_tx = chain_tx
        self.pair_registry = pair_registry

        # Paramètres configurables
        self.prefix = config.get("BECH32_PREFIX", "zig")
        self.max_pages = int(config.get("MAX_PAIR_PAGES", 10))
        self.max_spread = str(config.get("DEX_MAX_SPREAD", "0.5"))

        # Statistiques d'exécution
        self.execution_stats = {
            "bonding_curve": 0,
            "dex_pair": 0,
            "fallbacks": 0,
            "failures": 0,
        }

    def bonding_curve_route(self, token_denom: str) -> SwapRoute:
        return SwapRoute(kind=BONDING_CURVE, contract_address=canonical_token_address(token_denom, self.prefix))

    async def find_dex_route(self, token_denom: str) -> Optional[SwapRoute]:
        """
        Recherche une paire dont un actif natif contient l'adresse du token

        Args:
            token_denom: Denom ou adresse du token

        Returns:
            SwapRoute vers la paire, ou None si aucune paire dans les pages parcourues
        """
        search_key = canonical_token_address(token_denom, self.prefix)
        page_token = None

        # Bounded scan: pairs beyond max_pages are reported as untradeable
        for page_number in range(self.max_pages):
            page = await self.pair_registry.list_pairs_page(page_token)
            if not page.pairs:
                break

            for pair in page.pairs:
                for denom in pair.asset_denoms:
                    if search_key in denom:
                        logger.info(
                            f"[ROUTER] Found pair {pair.contract_address} for {search_key} "
                            f"(denom {denom}, page {page_number + 1})"
                        )
                        return SwapRoute(kind=DEX_PAIR, contract_address=pair.contract_address, native_denom=denom)

            if page.next_page_token is None:
                break
            page_token = page.next_page_token

        return None

    async def swap(self, secret: str, token_denom: str, offer_denom: str, amount: str) -> Tuple[SwapRoute, TxResult]:
        """
        Achète ``token_denom`` en dépensant ``amount`` de ``offer_denom``

        Returns:
            La route utilisée et le résultat de la transaction (code 0)

        Raises:
            InvalidDenomError: denom inutilisable, aucun appel réseau effectué
            SwapError: les deux venues ont échoué, ou erreur non liée à la venue
        """
        route = self.bonding_curve_route(token_denom)
        funds = Coin(denom=offer_denom, amount=str(amount))

        try:
            logger.info(f"[ROUTER] Bonding curve buy on {route.contract_address} for {amount}{offer_denom}")
            result = await self.chain_tx.submit_bonding_curve_buy(secret, route.contract_address, funds)
            _raise_for_code(result, "Transaction failed")
            self.execution_stats["bonding_curve"] += 1
            return route, result
        except Exception as e:
            curve_error = str(e)
            if not is_fallback_error(curve_error):
                self.execution_stats["failures"] += 1
                raise

        reason = "graduated" if "Trading is paused" in curve_error else "not a bonding curve token"
        logger.info(f"[ROUTER] Bonding curve unavailable ({reason}), trying DEX swap")
        self.execution_stats["fallbacks"] += 1

        try:
            dex_route = await self.find_dex_route(token_denom)
            if dex_route is None:
                raise SwapError("Could not find DEX pair for graduated token")

            result = await self.chain_tx.submit_dex_swap(
                secret,
                dex_route.contract_address,
                offer_denom,
                str(amount),
                dex_route.native_denom,
                self.max_spread,
            )
            _raise_for_code(result, "DEX swap failed")
            self.execution_stats["dex_pair"] += 1
            return dex_route, result
        except Exception as dex_exc:
            self.execution_stats["failures"] += 1
            logger.error(f"[ROUTER] DEX swap also failed for {token_denom}: {dex_exc}")
            raise SwapError(
                "Both bonding curve and DEX swap failed. Token may not be tradable. "
                f"Bonding curve error: {curve_error}. DEX error: {dex_exc}",
                raw_log=getattr(dex_exc, "raw_log", ""),
            ) from dex_exc

    def get_execution_stats(self) -> Dict[str, int]:
        return dict(self.execution_stats)


def _raise_for_code(result: TxResult, label: str):
    if result.code != 0:
        raise SwapError(f"{label} with code {result.code}: {result.raw_log}", code=result.code, raw_log=result.raw_log)
