# Filename: trader.py

import asyncio
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from models import (
    ExecutionResult,
    NewTokenDetected,
    PendingExecution,
    TokenGraduated,
    WalletNotFoundError,
)
from order_routing import InvalidDenomError, canonical_token_address

logger = logging.getLogger("trader")

ALREADY_IN_PROGRESS = "Snipe already in progress for this token"


class PreconditionError(Exception):
    """Attempt aborted before anything was submitted to the chain."""


class SnipeTrader:
    """
    Turns detection events and manual buy requests into trade attempts.

    At most one attempt runs per (user, token); a second request for the same
    pair is answered immediately with ALREADY_IN_PROGRESS. Every attempt that
    gets past that guard ends with exactly one report to the notifier.
    """

    def __init__(self, router, chain_query, user_policy, wallet_store, notifier=None,
                 config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.router = router
        self.chain_query = chain_query
        self.user_policy = user_policy
        self.wallet_store = wallet_store
        self.notifier = notifier

        self.native_denom = config.get("NATIVE_DENOM", "uzig")
        self.prefix = config.get("BECH32_PREFIX", "zig")
        # Fixed approximation, not a simulated gas price
        self.estimated_gas = int(config.get("ESTIMATED_GAS_UZIG", 5000))
        timeout = config.get("EXECUTION_TIMEOUT_SECONDS", 60)
        self.execution_timeout = float(timeout) if timeout else None

        self._pending: Dict[Tuple[int, str], PendingExecution] = {}
        self._pending_lock = threading.Lock()
        self._tasks = set()
        self._unsubscribe = None

        self.stats = {
            "attempts": 0,
            "successes": 0,
            "failures": 0,
            "conflicts": 0,
        }

    # ------------------------------------------------------------------
    # Event wiring
    # ------------------------------------------------------------------

    def attach(self, monitor):
        """Subscribes to a TokenMonitor. Replaces any previous subscription."""
        self.detach()
        self._unsubscribe = monitor.subscribe(self.handle_event)
        logger.info("✅ Snipe trader attached to token monitor")

    def detach(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.info("Snipe trader detached from token monitor")

    def handle_event(self, event):
        """Monitor callback. Never blocks: fan-out runs as its own task."""
        self._spawn(self._fan_out(event))

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fan_out(self, event):
        if isinstance(event, NewTokenDetected):
            policy_flag = "auto_buy_new_tokens"
        elif isinstance(event, TokenGraduated):
            policy_flag = "auto_buy_graduated"
        else:
            logger.warning(f"[SNIPE] Ignoring unknown event {event!r}")
            return

        denom = event.token.denom
        logger.info(f"[SNIPE] Processing {type(event).__name__} for {denom}")

        try:
            users = self.user_policy.get_auto_snipe_users()
        except Exception as e:
            logger.error(f"[SNIPE] Could not load auto-snipe users: {e}")
            return

        attempts = []
        for user in users:
            if not user.active_wallet_id:
                continue
            try:
                settings = self.user_policy.get_settings(user.user_id)
            except Exception as e:
                logger.error(f"[SNIPE] Could not load settings for user {user.user_id}: {e}")
                continue
            if settings is None or not getattr(settings, policy_flag):
                continue

            logger.info(f"[SNIPE] User {user.user_id} auto-buys {denom} for {settings.buy_amount}")
            attempts.append(self._spawn(self.execute_snipe(user.user_id, denom, settings.buy_amount)))

        if attempts:
            await asyncio.gather(*attempts, return_exceptions=True)

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    async def manual_buy(self, user_id: int, token_denom: str, amount) -> ExecutionResult:
        logger.info(f"[Manual Buy] User {user_id} buying {token_denom} for {amount}")
        return await self.execute_snipe(user_id, token_denom, amount)

    async def execute_snipe(self, user_id: int, token_denom: str, buy_amount) -> ExecutionResult:
        buy_amount, input_error = _validate_inputs(token_denom, buy_amount, self.prefix)
        if input_error:
            logger.warning(f"[SNIPE] Rejected request from user {user_id}: {input_error}")
            return ExecutionResult(success=False, token_denom=token_denom or "", amount_spent="0", error=input_error)

        key = (user_id, token_denom)
        pending = PendingExecution(user_id=user_id, token_denom=token_denom)
        with self._pending_lock:
            if key in self._pending:
                self.stats["conflicts"] += 1
                logger.info(f"[SNIPE] {token_denom} already in progress for user {user_id}")
                return ExecutionResult(success=False, token_denom=token_denom, amount_spent="0",
                                       error=ALREADY_IN_PROGRESS)
            self._pending[key] = pending
            self.stats["attempts"] += 1

        try:
            pending.status = "executing"
            result = await self._attempt(user_id, token_denom, buy_amount)
        except Exception as e:
            logger.error(f"[SNIPE] Snipe failed for user {user_id} on {token_denom}: {e}")
            result = ExecutionResult(success=False, token_denom=token_denom, amount_spent="0", error=str(e) or type(e).__name__)
        finally:
            with self._pending_lock:
                self._pending.pop(key, None)

        pending.status = "completed" if result.success else "failed"
        pending.result = result
        self.stats["successes" if result.success else "failures"] += 1
        await self._report(user_id, result)
        return result

    async def _attempt(self, user_id: int, token_denom: str, buy_amount: str) -> ExecutionResult:
        try:
            wallet = self.wallet_store.get_active_wallet(user_id)
        except WalletNotFoundError:
            raise PreconditionError("Active wallet not found")
        if wallet is None:
            raise PreconditionError("No active wallet configured")

        balance = int(await self.chain_query.get_balance(wallet.address, self.native_denom) or 0)
        if balance == 0:
            raise PreconditionError("Insufficient balance: Wallet is empty")

        required = int(buy_amount) + self.estimated_gas
        if balance < required:
            raise PreconditionError(
                f"Insufficient balance. Have: {balance} {self.native_denom}, "
                f"Need: {required} {self.native_denom} (Buy: {buy_amount} + Gas: {self.estimated_gas})"
            )

        logger.info(f"[SNIPE] Executing {token_denom} for user {user_id} from {wallet.address} ({buy_amount}{self.native_denom})")

        swap = self.router.swap(wallet.secret, token_denom, self.native_denom, buy_amount)
        if self.execution_timeout:
            try:
                route, tx = await asyncio.wait_for(swap, timeout=self.execution_timeout)
            except asyncio.TimeoutError:
                raise TimeoutError(f"Swap timed out after {self.execution_timeout:g}s")
        else:
            route, tx = await swap

        if tx.code != 0:
            return ExecutionResult(success=False, token_denom=token_denom, amount_spent="0",
                                   tx_hash=tx.tx_hash or None,
                                   error=f"Transaction failed with code {tx.code}: {tx.raw_log}")

        logger.info(f"[SNIPE ✅] {token_denom} bought for user {user_id} via {route.kind} ({tx.tx_hash})")
        return ExecutionResult(success=True, token_denom=token_denom, amount_spent=buy_amount, tx_hash=tx.tx_hash)

    async def _report(self, user_id: int, result: ExecutionResult):
        if self.notifier is None:
            return
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.notifier.report_execution_result, user_id, result)
        except Exception as e:
            logger.error(f"[SNIPE] Failed to report result to user {user_id}: {e}")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_pending(self) -> List[PendingExecution]:
        with self._pending_lock:
            return list(self._pending.values())

    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    async def drain(self):
        """Waits for every fan-out and attempt task started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def get_stats(self) -> Dict[str, int]:
        return dict(self.stats)


def _validate_inputs(token_denom, buy_amount, prefix: str = "zig") -> Tuple[Optional[str], Optional[str]]:
    if not isinstance(token_denom, str) or not token_denom.strip():
        return None, "Invalid token denom"
    try:
        canonical_token_address(token_denom, prefix)
    except InvalidDenomError as e:
        return None, str(e)
    try:
        amount = int(str(buy_amount).strip())
    except (TypeError, ValueError):
        return None, f"Invalid buy amount: {buy_amount}"
    if amount <= 0:
        return None, f"Invalid buy amount: {buy_amount}"
    return str(amount), None
