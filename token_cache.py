# Filename: token_cache.py

import json
import logging
import os
import threading
from typing import Iterable, Optional

logger = logging.getLogger("TokenCache")

POOL_KEY_PREFIX = "token:"


def pool_key(denom: str) -> str:
    return f"{POOL_KEY_PREFIX}{denom}"


class KnownEntitySet:
    """
    Denoms and pool-membership keys the monitor has already seen.

    Entries are only ever added. The optional snapshot file lets a restart
    skip re-learning, but the monitor still seeds silently from the chain.
    """

    def __init__(self, cache_file: Optional[str] = None):
        self.cache_file = cache_file
        self.tokens = set()
        self.pool_keys = set()
        self._lock = threading.Lock()
        if self.cache_file:
            self.load()

    def load(self):
        if not self.cache_file or not os.path.exists(self.cache_file):
            return
        try:
            with open(self.cache_file, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"[CACHE] Failed to load known entities: {e}")
            return
        with self._lock:
            self.tokens.update(data.get("tokens", []))
            self.pool_keys.update(data.get("pool_keys", []))
        logger.info(f"[CACHE] Loaded {len(self.tokens)} tokens and {len(self.pool_keys)} pool keys from disk.")

    def save(self):
        if not self.cache_file:
            return
        with self._lock:
            data = {"tokens": sorted(self.tokens), "pool_keys": sorted(self.pool_keys)}
        try:
            with open(self.cache_file, "w") as f:
                json.dump(data, f)
        except OSError as e:
            logger.error(f"[CACHE] Failed to save known entities: {e}")

    def add_token_if_new(self, denom: str) -> bool:
        """Returns True only for the call that first records ``denom``."""
        with self._lock:
            if denom in self.tokens:
                return False
            self.tokens.add(denom)
            return True

    def add_pool_key_if_new(self, denom: str) -> bool:
        key = pool_key(denom)
        with self._lock:
            if key in self.pool_keys:
                return False
            self.pool_keys.add(key)
            return True

    def seed_tokens(self, denoms: Iterable[str]):
        with self._lock:
            self.tokens.update(denoms)

    def seed_pool_keys(self, denoms: Iterable[str]):
        with self._lock:
            self.pool_keys.update(pool_key(d) for d in denoms)

    def get_cache_statistics(self):
        return {
            "tokens": len(self.tokens),
            "pool_keys": len(self.pool_keys),
        }
