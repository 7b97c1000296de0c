"""
poller.py — Periodic retrieval of the bot's trade log.

Each tick starts its own fetch task and the schedule never waits for it, so a
slow endpoint can leave several fetches in flight; results are applied in the
order they arrive. A failed fetch only skips its own tick.
"""

import asyncio
import logging
from typing import Callable, Optional, Set

from log_client import LogClient
from models import FetchFailure, LogSnapshot

logger = logging.getLogger("poller")


class LogPoller:
    def __init__(self, client: LogClient):
        self.client = client
        self.tick_count = 0
        self.failure_count = 0
        self._running = False
        self._schedule_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._on_snapshot: Optional[Callable[[LogSnapshot], None]] = None
        self._on_failure: Optional[Callable[[Exception], None]] = None

    @property
    def running(self) -> bool:
        return self._running

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(
        self,
        interval_seconds: float,
        on_snapshot: Callable[[LogSnapshot], None],
        on_failure: Optional[Callable[[Exception], None]] = None,
    ):
        """Fetch now, then every interval_seconds until stop(). Must be called inside a running loop."""
        if self._running:
            raise RuntimeError("LogPoller already running")
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self._on_snapshot = on_snapshot
        self._on_failure = on_failure
        self._running = True
        self._schedule_task = asyncio.get_running_loop().create_task(self._schedule_loop(interval_seconds))
        logger.info(f"Polling {self.client.endpoint_url} every {interval_seconds:g}s")

    def stop(self):
        """Cancel the schedule and drop in-flight fetches. Idempotent; no callback fires after return."""
        if not self._running:
            return
        self._running = False
        if self._schedule_task is not None:
            self._schedule_task.cancel()
        for task in list(self._inflight):
            task.cancel()
        logger.info(f"Polling stopped after {self.tick_count} ticks ({self.failure_count} failed)")

    async def shutdown(self):
        """stop() and wait for cancelled tasks to unwind (for clean exit)."""
        self.stop()
        pending = [t for t in [self._schedule_task, *self._inflight] if t is not None]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._schedule_task = None
        self._inflight.clear()

    # ── Schedule ──────────────────────────────────────────────────────────────

    async def _schedule_loop(self, interval_seconds: float):
        while self._running:
            self._spawn_tick()
            await asyncio.sleep(interval_seconds)

    def _spawn_tick(self):
        self.tick_count += 1
        task = asyncio.create_task(self._run_tick(self.tick_count))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run_tick(self, tick: int):
        try:
            snapshot = await self.client.fetch_logs()
        except FetchFailure as e:
            self._report_failure(tick, e)
            return
        except Exception as e:
            logger.error(f"Tick {tick}: unexpected fetch error: {e}", exc_info=True)
            self._report_failure(tick, e)
            return

        if not self._running:
            logger.debug(f"Tick {tick}: poller stopped — dropping result")
            return
        try:
            self._on_snapshot(snapshot)
        except Exception as e:
            logger.error(f"Tick {tick}: snapshot handler failed: {e}", exc_info=True)

    def _report_failure(self, tick: int, exc: Exception):
        if not self._running:
            return
        self.failure_count += 1
        logger.warning(f"Tick {tick}: fetch failed — keeping previous snapshot ({exc})")
        if self._on_failure is None:
            return
        try:
            self._on_failure(exc)
        except Exception as e:
            logger.error(f"Tick {tick}: failure handler raised: {e}", exc_info=True)
