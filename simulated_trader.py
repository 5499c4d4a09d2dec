# Filename: simulated_trader.py

import hashlib
import json
import logging
import time
from typing import Any, Dict, List, Optional

from config import load_config
from models import Coin, TxResult

logger = logging.getLogger("SimulatedTrader")


class SimulatedChainTx:
    """
    Paper-trading stand-in for the CLI broadcaster. Every submission succeeds
    with a synthetic hash and is recorded in the positions file, unless the
    venue has been marked paused with ``pause_contract``.
    """

    def __init__(self, config_data=None):
        self.config = config_data or load_config()
        self.positions_file = self.config.get("POSITIONS_FILE", "simulated_positions.json")
        self.positions: List[Dict[str, Any]] = []
        self.paused_contracts = set()
        self.load_positions()

    def load_positions(self):
        try:
            with open(self.positions_file, "r") as f:
                self.positions = json.load(f)
            logger.info(f"[SIM] Loaded {len(self.positions)} simulated positions.")
        except (OSError, ValueError):
            self.positions = []

    def save_positions(self):
        try:
            with open(self.positions_file, "w") as f:
                json.dump(self.positions, f, indent=2)
        except OSError as e:
            logger.error(f"[SIM] Failed to save positions: {e}")

    def pause_contract(self, contract_address: str):
        self.paused_contracts.add(contract_address)

    def _record(self, venue: str, contract: str, offer: Coin, ask_denom: Optional[str]) -> TxResult:
        now = time.time()
        tx_hash = hashlib.sha256(f"{venue}:{contract}:{offer.amount}:{now}".encode()).hexdigest().upper()
        self.positions.append({
            "venue": venue,
            "contract": contract,
            "offer_denom": offer.denom,
            "offer_amount": offer.amount,
            "ask_denom": ask_denom,
            "tx_hash": tx_hash,
            "timestamp": now,
        })
        self.save_positions()
        logger.info(f"[SIM ✅] {venue} buy on {contract} for {offer.amount}{offer.denom} ({tx_hash[:12]}…)")
        return TxResult(code=0, tx_hash=tx_hash, raw_log="")

    async def submit_bonding_curve_buy(self, secret: str, contract_address: str, funds: Coin) -> TxResult:
        if contract_address in self.paused_contracts:
            return TxResult(code=5, raw_log="execute wasm contract failed: Trading is paused")
        return self._record("bonding_curve", contract_address, funds, None)

    async def submit_dex_swap(self, secret: str, pair_contract: str, offer_denom: str, offer_amount: str,
                              ask_denom: str, max_spread: str) -> TxResult:
        return self._record("dex_pair", pair_contract, Coin(denom=offer_denom, amount=str(offer_amount)), ask_denom)

    def get_position_performance_summary(self) -> Dict[str, Any]:
        spent = sum(int(p["offer_amount"]) for p in self.positions)
        return {
            "total_trades": len(self.positions),
            "bonding_curve_trades": sum(1 for p in self.positions if p["venue"] == "bonding_curve"),
            "dex_trades": sum(1 for p in self.positions if p["venue"] == "dex_pair"),
            "total_spent": spent,
        }
