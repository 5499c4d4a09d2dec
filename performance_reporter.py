# Filename: performance_reporter.py

import asyncio
import logging

logger = logging.getLogger("PerformanceReporter")


class PerformanceReporter:
    def __init__(self, monitor, trader, router, notifier=None, interval: float = 1800, chain_tx=None):
        self.monitor = monitor
        self.trader = trader
        self.router = router
        self.notifier = notifier
        self.interval = interval
        self.chain_tx = chain_tx

    def format_report(self) -> str:
        monitor_stats = self.monitor.get_stats()
        trade_stats = self.trader.get_stats()
        route_stats = self.router.get_execution_stats()

        report = f"""
📊 *Bot Visibility Report*

*Monitor running:* {"yes" if monitor_stats["is_running"] else "no"}
*Known tokens:* {monitor_stats["known_tokens"]}
*Known pool keys:* {monitor_stats["known_pool_keys"]}

*Snipe attempts:* {trade_stats["attempts"]}
*Successful:* {trade_stats["successes"]}
*Failed:* {trade_stats["failures"]}
*Rejected (in progress):* {trade_stats["conflicts"]}
*In flight:* {self.trader.pending_count()}

*Bonding curve buys:* {route_stats["bonding_curve"]}
*DEX buys:* {route_stats["dex_pair"]}
*DEX fallbacks tried:* {route_stats["fallbacks"]}
        """
        # Paper trading only: the real broadcaster keeps no positions
        if hasattr(self.chain_tx, "get_position_performance_summary"):
            summary = self.chain_tx.get_position_performance_summary()
            report += f"""
*Simulated trades:* {summary["total_trades"]} ({summary["bonding_curve_trades"]} curve, {summary["dex_trades"]} DEX)
*Simulated spend:* {summary["total_spent"]} uzig
            """
        return report.strip()

    def send_report(self):
        try:
            message = self.format_report()
            if self.notifier is not None and hasattr(self.notifier, "send_markdown"):
                self.notifier.send_markdown(message)
                logger.info("[PERF REPORT] Report sent to Telegram.")
            else:
                logger.info("[PERF REPORT] \n" + message)
        except Exception as e:
            logger.error(f"[Reporter Error] Failed to send report: {e}")

    async def run_loop(self):
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self.interval)
            await loop.run_in_executor(None, self.send_report)
