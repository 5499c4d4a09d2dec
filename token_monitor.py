# token_monitor.py

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from models import NewTokenDetected, TokenGraduated, TokenInfo, TRACKED_DENOM_PREFIX
from token_cache import KnownEntitySet

logger = logging.getLogger("TokenMonitor")


class TokenMonitor:
    """
    Polls the chain for new factory tokens and for tokens that graduated
    into a DEX pool, emitting each transition exactly once.

    Two asyncio loops run independently: one over the token supply listing,
    one over the pool listing. Anything present at start-up is learned
    silently so a restart does not replay old listings.
    """

    def __init__(self, chain_query, known: Optional[KnownEntitySet] = None, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.chain_query = chain_query
        self.known = known if known is not None else KnownEntitySet()
        self.new_token_interval = float(config.get("NEW_TOKEN_POLL_INTERVAL", 1.0))
        self.graduation_interval = float(config.get("GRADUATION_POLL_INTERVAL", 2.0))

        self.is_running = False
        self._generation = 0
        self._tasks: List[asyncio.Task] = []
        self._handlers: List[Callable] = []
        self._handler_tasks = set()
        self._tokens_seeded = False
        self._pools_seeded = False

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, handler: Callable) -> Callable[[], None]:
        """
        Registers ``handler`` for NewTokenDetected and TokenGraduated events.
        Returns a function that removes it again (safe to call twice).
        """
        self._handlers.append(handler)

        def unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def _emit(self, event, generation: int) -> bool:
        if not self._is_current(generation):
            return False
        for handler in list(self._handlers):
            try:
                outcome = handler(event)
                if asyncio.iscoroutine(outcome):
                    task = asyncio.ensure_future(outcome)
                    self._handler_tasks.add(task)
                    task.add_done_callback(self._handler_tasks.discard)
            except Exception as e:
                logger.error(f"[MONITOR] Event handler {handler!r} failed: {e}")
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        if self.is_running:
            return

        logger.info("🚀 Starting token monitor...")
        self.is_running = True
        self._generation += 1
        generation = self._generation

        await self._seed_known_state()

        if not self._is_current(generation):
            return

        self._tasks = [
            asyncio.create_task(self._run_loop(self.poll_new_tokens, self.new_token_interval, generation)),
            asyncio.create_task(self._run_loop(self.poll_graduations, self.graduation_interval, generation)),
        ]
        logger.info(
            f"✅ Token monitor started (tokens every {self.new_token_interval}s, "
            f"pools every {self.graduation_interval}s)"
        )

    def stop(self):
        if not self.is_running:
            return

        logger.info("🛑 Stopping token monitor...")
        self.is_running = False
        self._generation += 1
        for task in self._tasks:
            task.cancel()
        self._tasks = []

    def _is_current(self, generation: int) -> bool:
        return self.is_running and generation == self._generation

    async def _run_loop(self, poll: Callable, interval: float, generation: int):
        while self._is_current(generation):
            await asyncio.sleep(interval)
            if not self._is_current(generation):
                break
            try:
                await poll(generation)
            except Exception as e:
                logger.error(f"[MONITOR] {poll.__name__} cycle failed: {e}")

    async def _seed_known_state(self):
        try:
            tokens = await self.chain_query.list_new_tokens()
            self.known.seed_tokens(t.denom for t in tokens)
            self._tokens_seeded = True
        except Exception as e:
            logger.error(f"[MONITOR] Failed to seed known tokens, first successful poll will seed: {e}")

        try:
            pools = await self.chain_query.list_pools()
            self.known.seed_pool_keys(
                denom
                for pool in pools
                for denom in (pool.base_denom, pool.quote_denom)
                if _is_tracked(denom)
            )
            self._pools_seeded = True
        except Exception as e:
            logger.error(f"[MONITOR] Failed to seed known pools, first successful poll will seed: {e}")

        stats = self.known.get_cache_statistics()
        logger.info(f"[MONITOR] Initialized with {stats['tokens']} tokens and {stats['pool_keys']} pool keys")

    # ------------------------------------------------------------------
    # Poll cycles
    # ------------------------------------------------------------------

    async def poll_new_tokens(self, generation: Optional[int] = None):
        generation = self._generation if generation is None else generation
        try:
            tokens = await self.chain_query.list_new_tokens()
        except Exception as e:
            logger.error(f"[MONITOR] Error polling for new tokens: {e}")
            return

        if not self._is_current(generation):
            return

        if not self._tokens_seeded:
            self.known.seed_tokens(t.denom for t in tokens)
            self._tokens_seeded = True
            return

        for token in tokens:
            if not self.known.add_token_if_new(token.denom):
                continue
            logger.info(f"🆕 New token detected: {token.denom} ({token.symbol}) by {token.creator}")
            self._emit(NewTokenDetected(token=token), generation)

    async def poll_graduations(self, generation: Optional[int] = None):
        generation = self._generation if generation is None else generation
        try:
            pools = await self.chain_query.list_pools()
        except Exception as e:
            logger.error(f"[MONITOR] Error polling for graduations: {e}")
            return

        if not self._is_current(generation):
            return

        if not self._pools_seeded:
            self.known.seed_pool_keys(
                denom
                for pool in pools
                for denom in (pool.base_denom, pool.quote_denom)
                if _is_tracked(denom)
            )
            self._pools_seeded = True
            return

        for pool in pools:
            for denom in (pool.base_denom, pool.quote_denom):
                if not _is_tracked(denom):
                    continue
                if not self.known.add_pool_key_if_new(denom):
                    continue
                token = TokenInfo.from_denom(denom) or TokenInfo(denom=denom, creator="")
                logger.info(f"🎓 Token graduation detected: {denom} in pool {pool.pool_id}")
                self._emit(TokenGraduated(token=token, pool=pool), generation)

    def get_stats(self) -> Dict[str, Any]:
        stats = self.known.get_cache_statistics()
        return {
            "known_tokens": stats["tokens"],
            "known_pool_keys": stats["pool_keys"],
            "is_running": self.is_running,
        }


def _is_tracked(denom: str) -> bool:
    return bool(denom) and denom.startswith(TRACKED_DENOM_PREFIX)
