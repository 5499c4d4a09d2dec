# Filename: telegram_alert.py

import logging
import threading
from collections import OrderedDict
from typing import List, Optional

import requests

from models import ExecutionResult, PoolInfo, TokenInfo

logger = logging.getLogger("TelegramNotifier")

EXPLORER_TX_URL = "https://explorer.zigchain.com/tx/"


def escape_md(text: str) -> str:
    return text.replace('_', '\\_').replace('*', '\\*').replace('[', '\\[').replace('`', '\\`')


class TokenIdMap:
    """
    Short numeric ids for denoms so chat commands stay compact
    (``/buy_17`` instead of the full factory denom). Alerts hand the ids
    out; the chat layer resolves incoming commands through
    ``TelegramNotifier.resolve_token_id`` and calls ``SnipeTrader.manual_buy``.
    Least recently used entries are dropped once ``max_size`` is reached.
    """

    def __init__(self, max_size: int = 10000):
        self.max_size = max_size
        self._next_id = 1
        self._by_denom = OrderedDict()
        self._by_id = {}
        self._lock = threading.Lock()

    def get_id(self, denom: str) -> int:
        with self._lock:
            if denom in self._by_denom:
                self._by_denom.move_to_end(denom)
                return self._by_denom[denom]

            token_id = self._next_id
            self._next_id += 1
            self._by_denom[denom] = token_id
            self._by_id[token_id] = denom

            while len(self._by_denom) > self.max_size:
                _, old_id = self._by_denom.popitem(last=False)
                del self._by_id[old_id]
            return token_id

    def get_denom(self, token_id: int) -> Optional[str]:
        with self._lock:
            return self._by_id.get(token_id)

    def __len__(self):
        return len(self._by_denom)


class TelegramNotifier:
    """
    Detection alerts go to the channel (if configured) and to every
    auto-snipe user who opted in to that kind of buy. Execution results go
    to the user who made the attempt.
    """

    def __init__(self, bot_token: str = None, chat_id: str = None, id_map_size: int = 10000,
                 user_policy=None):
        self.bot_token = bot_token or ""
        self.chat_id = chat_id or ""
        self.token_ids = TokenIdMap(id_map_size)
        self.user_policy = user_policy

        if not self.bot_token:
            logger.error("[Telegram] Missing bot token!")

    def report_new_token(self, token: TokenInfo):
        token_id = self.token_ids.get_id(token.denom)
        msg = f"""
🆕 *New Token Detected!*

*Name:* {escape_md(token.name or "Unknown")}
*Symbol:* `{escape_md(token.symbol or "N/A")}`
*Contract:* `{token.creator}`
*Supply:* {token.minting_cap}

🛒 Buy now: /buy\\_{token_id}
        """.strip()
        self._broadcast(msg, "auto_buy_new_tokens")

    def report_graduation(self, token: TokenInfo, pool: PoolInfo):
        token_id = self.token_ids.get_id(token.denom)
        msg = f"""
🎓 *Token Graduated to DEX!*

*Token:* {escape_md(token.name or token.denom[:20])}
*Pool:* `{pool.pool_id}`

The token is now available for trading on OroSwap.
🛒 Buy now: /buy\\_{token_id}
        """.strip()
        self._broadcast(msg, "auto_buy_graduated")

    def report_execution_result(self, user_id: int, result: ExecutionResult):
        if result.success:
            msg = f"""
✅ *Snipe Successful!*

*Token:* `{result.token_denom[:30]}...`
*Spent:* {result.amount_spent} uZIG
*TX:* `{(result.tx_hash or "")[:20]}...`

[View Transaction]({EXPLORER_TX_URL}{result.tx_hash})
            """.strip()
        else:
            msg = f"""
❌ *Snipe Failed*

*Token:* `{result.token_denom[:30]}...`
*Error:* {escape_md(result.error or "Unknown error")}
            """.strip()
        self.send_markdown(msg, chat_id=str(user_id))

    def resolve_token_id(self, token_id: int) -> Optional[str]:
        """Chat layer hook: maps the id of a ``/buy_<id>`` command back to its denom."""
        return self.token_ids.get_denom(token_id)

    def _alert_recipients(self, policy_flag: str) -> List[str]:
        recipients = [self.chat_id] if self.chat_id else []
        if self.user_policy is None:
            return recipients
        try:
            users = self.user_policy.get_auto_snipe_users()
        except Exception as e:
            logger.error(f"[Telegram] Could not load alert recipients: {e}")
            return recipients

        for user in users:
            settings = self.user_policy.get_settings(user.user_id)
            if settings is not None and getattr(settings, policy_flag):
                recipients.append(str(user.user_id))
        return recipients

    def _broadcast(self, text: str, policy_flag: str):
        for chat_id in self._alert_recipients(policy_flag):
            self.send_markdown(text, chat_id=chat_id)

    def send_markdown(self, text: str, chat_id: str = None):
        """
        Sends a raw Markdown message.
        """
        chat_id = chat_id or self.chat_id
        if not self.bot_token or not chat_id:
            return

        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": True
        }

        try:
            response = requests.post(url, data=payload, timeout=10)
            if response.status_code != 200:
                logger.error(f"[Telegram] Failed: {response.status_code} - {response.text}")
            else:
                logger.info("[Telegram] ✅ Message sent successfully.")
        except requests.RequestException as e:
            logger.error(f"[Telegram] Request exception: {e}")


class LogNotifier:
    """Notifier used when Telegram is disabled: everything goes to the log."""

    def report_new_token(self, token: TokenInfo):
        logger.info(f"🆕 New token {token.denom} ({token.symbol})")

    def report_graduation(self, token: TokenInfo, pool: PoolInfo):
        logger.info(f"🎓 {token.denom} graduated to pool {pool.pool_id}")

    def report_execution_result(self, user_id: int, result: ExecutionResult):
        if result.success:
            logger.info(f"✅ User {user_id}: bought {result.token_denom} for {result.amount_spent} ({result.tx_hash})")
        else:
            logger.info(f"❌ User {user_id}: snipe of {result.token_denom} failed: {result.error}")
