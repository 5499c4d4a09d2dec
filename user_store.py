# Filename: user_store.py

import json
import logging
import os
import threading
from typing import Any, Dict, List, Optional

from models import AutoSnipeUser, UserSettings, Wallet, WalletNotFoundError

logger = logging.getLogger("UserStore")

DEFAULT_BUY_AMOUNT = "5000000000"


class JsonUserStore:
    """
    Users, snipe settings and wallets read from a JSON file:

        {"users": [{"user_id": 1, "active_wallet_id": 7, "auto_snipe_enabled": true,
                    "settings": {"buy_amount": "1000000", "auto_buy_new_tokens": true,
                                 "auto_buy_graduated": false}}],
         "wallets": [{"wallet_id": 7, "user_id": 1, "address": "zig1...", "secret": "my-key"}]}

    Secrets are stored as given; encrypting them is the deployer's business.
    """

    def __init__(self, users_file: str = "users.json"):
        self.users_file = users_file
        self._lock = threading.Lock()
        self.users: Dict[int, Dict[str, Any]] = {}
        self.wallets: Dict[int, Dict[str, Any]] = {}
        self.load()

    def load(self):
        if not os.path.exists(self.users_file):
            logger.warning(f"[USERS] {self.users_file} not found, no users loaded.")
            return
        try:
            with open(self.users_file, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"[USERS] Failed to load {self.users_file}: {e}")
            return
        self.load_data(data)

    def load_data(self, data: Dict[str, Any]):
        with self._lock:
            self.users = {int(u["user_id"]): u for u in data.get("users", [])}
            self.wallets = {int(w["wallet_id"]): w for w in data.get("wallets", [])}
        logger.info(f"[USERS] Loaded {len(self.users)} users and {len(self.wallets)} wallets.")

    # UserPolicy

    def get_auto_snipe_users(self) -> List[AutoSnipeUser]:
        with self._lock:
            return [
                AutoSnipeUser(user_id=uid, active_wallet_id=u.get("active_wallet_id"))
                for uid, u in self.users.items()
                if u.get("auto_snipe_enabled", True) and u.get("active_wallet_id") is not None
            ]

    def get_settings(self, user_id: int) -> Optional[UserSettings]:
        with self._lock:
            user = self.users.get(user_id)
            if user is None:
                return None
            settings = user.get("settings") or {}
        return UserSettings(
            buy_amount=str(settings.get("buy_amount", DEFAULT_BUY_AMOUNT)),
            auto_buy_new_tokens=bool(settings.get("auto_buy_new_tokens", True)),
            auto_buy_graduated=bool(settings.get("auto_buy_graduated", True)),
            slippage_tolerance=float(settings.get("slippage_tolerance", 5)),
        )

    # WalletStore

    def get_active_wallet(self, user_id: int) -> Optional[Wallet]:
        with self._lock:
            user = self.users.get(user_id)
            wallet_id = user.get("active_wallet_id") if user else None
            if wallet_id is None:
                return None
            wallet = self.wallets.get(int(wallet_id))
        if wallet is None:
            raise WalletNotFoundError(f"Wallet {wallet_id} for user {user_id} does not exist")
        return Wallet(wallet_id=int(wallet_id), address=wallet["address"], secret=wallet["secret"])
