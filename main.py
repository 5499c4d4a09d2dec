# Filename: main.py

import asyncio
import logging

from chain_client import ZigChainCLI, ZigChainClient
from config import load_config
from models import NewTokenDetected, TokenGraduated
from order_routing import OrderRouter
from performance_reporter import PerformanceReporter
from simulated_trader import SimulatedChainTx
from telegram_alert import LogNotifier, TelegramNotifier
from token_cache import KnownEntitySet
from token_monitor import TokenMonitor
from trader import SnipeTrader
from user_store import JsonUserStore

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("Main")


def build_notifier(config, user_policy=None):
    if config.get("ENABLE_TELEGRAM") and config.get("TELEGRAM_BOT_TOKEN"):
        return TelegramNotifier(
            config["TELEGRAM_BOT_TOKEN"],
            config.get("TELEGRAM_CHAT_ID"),
            id_map_size=config.get("TOKEN_ID_MAP_SIZE", 10000),
            user_policy=user_policy,
        )
    return LogNotifier()


def alert_forwarder(notifier):
    """Monitor handler relaying detections to the notifier off the event loop."""
    loop = asyncio.get_running_loop()

    def forward(event):
        if isinstance(event, NewTokenDetected):
            loop.run_in_executor(None, notifier.report_new_token, event.token)
        elif isinstance(event, TokenGraduated):
            loop.run_in_executor(None, notifier.report_graduation, event.token, event.pool)

    return forward


async def run(config):
    chain = ZigChainClient(config)
    users = JsonUserStore(config.get("USERS_FILE", "users.json"))
    notifier = build_notifier(config, users)

    if config.get("SIMULATION_MODE", True):
        logger.info("🧪 Running in SIMULATION mode")
        chain_tx = SimulatedChainTx(config_data=config)
    else:
        logger.info("💰 Running in REAL TRADING mode")
        chain_tx = ZigChainCLI(config)

    known = KnownEntitySet(config.get("KNOWN_ENTITIES_FILE") or None)

    monitor = TokenMonitor(chain, known=known, config=config)
    router = OrderRouter(chain_tx, chain, config=config)
    trader = SnipeTrader(router, chain, users, users, notifier=notifier, config=config)

    unsubscribe_alerts = monitor.subscribe(alert_forwarder(notifier))
    trader.attach(monitor)
    await monitor.start()

    reporter = PerformanceReporter(
        monitor, trader, router,
        notifier=notifier,
        chain_tx=chain_tx,
        interval=config.get("PERFORMANCE_REPORT_INTERVAL_SECONDS", 1800),
    )
    reporter_task = asyncio.create_task(reporter.run_loop())

    try:
        await asyncio.Event().wait()
    finally:
        reporter_task.cancel()
        monitor.stop()
        trader.detach()
        unsubscribe_alerts()
        await trader.drain()
        logger.info("🛑 Saving known entities before shutdown...")
        known.save()


def main():
    logger.info("🚀 Starting ZigSniperBot...")
    config = load_config()
    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("❌ Bot stopped by user.")


if __name__ == "__main__":
    main()
