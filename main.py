"""
Trade Log Monitor
Polls the trading bot's log endpoint, detects new BUY/SELL trades and serves
the live dashboard view.
"""

import asyncio
from typing import Optional

import uvicorn

from config import MonitorConfig
from log_client import LogClient
from logger import setup_logger
from poller import LogPoller
from server import create_app
from session import MonitorSession

config = MonitorConfig()
logger = setup_logger("main", log_file=config.LOG_FILE, level=config.LOG_LEVEL)


class TradeLogMonitor:
    def __init__(self, config: MonitorConfig):
        self.config = config
        self.client = LogClient(config.LOG_ENDPOINT_URL, timeout_seconds=config.FETCH_TIMEOUT_SECONDS)
        self.session = MonitorSession(banner_seconds=config.BANNER_SECONDS, currency=config.CURRENCY_SYMBOL)
        self.poller = LogPoller(self.client)
        self.app = create_app(self.session, config=config, poller=self.poller)
        self._server: Optional[uvicorn.Server] = None

    async def run(self):
        logger.info("=" * 60)
        logger.info("  Trade Log Monitor — STARTING")
        logger.info(f"  Log endpoint:   {self.config.LOG_ENDPOINT_URL}")
        logger.info(f"  Poll interval:  {self.config.POLL_INTERVAL_SECONDS:g}s")
        logger.info(f"  Dashboard:      http://{self.config.DASHBOARD_HOST}:{self.config.DASHBOARD_PORT}")
        logger.info("=" * 60)

        self._server = uvicorn.Server(uvicorn.Config(
            self.app,
            host=self.config.DASHBOARD_HOST,
            port=self.config.DASHBOARD_PORT,
            log_config=None,  # Keep our root handlers
        ))
        try:
            await self.client.start()
            self.poller.start(
                self.config.POLL_INTERVAL_SECONDS,
                on_snapshot=self.session.handle_snapshot,
                on_failure=self.session.handle_failure,
            )
            # uvicorn owns SIGINT/SIGTERM; serve() returns once it decides to exit
            await self._server.serve()
        finally:
            await self._cleanup()

    async def _cleanup(self):
        await self.poller.shutdown()
        await self.client.close()
        logger.info("Trade Log Monitor stopped")

    def shutdown(self):
        logger.info("Shutdown signal received — stopping poller and dashboard...")
        self.poller.stop()
        if self._server is not None:
            self._server.should_exit = True


if __name__ == "__main__":
    monitor = TradeLogMonitor(config)
    try:
        asyncio.run(monitor.run())
    except KeyboardInterrupt:
        monitor.shutdown()
