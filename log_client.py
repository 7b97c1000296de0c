"""
log_client.py — Async wrapper around the trading bot's log endpoint.
One shared aiohttp session; every transport, HTTP or payload problem is
reported as FetchFailure so the poller can skip the tick.
"""

import asyncio
import json
import logging
from typing import Optional

import aiohttp

from models import FetchFailure, LogSnapshot, snapshot_from_wire

logger = logging.getLogger("log_client")


class LogClient:
    def __init__(self, endpoint_url: str, timeout_seconds: float = 4.0):
        self.endpoint_url = endpoint_url
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None
        self._closed = False

    async def start(self):
        """Call once at startup — creates the shared session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            logger.info(f"LogClient session opened ({self.endpoint_url})")

    async def close(self):
        """Close the underlying aiohttp session. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
            logger.info("LogClient session closed")

    def _get_session(self) -> aiohttp.ClientSession:
        if self._closed:
            raise FetchFailure("LogClient is closed")
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def fetch_logs(self) -> LogSnapshot:
        """GET the full log. Returns the parsed snapshot or raises FetchFailure."""
        session = self._get_session()
        try:
            async with session.get(
                self.endpoint_url,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as resp:
                resp.raise_for_status()
                payload = await resp.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise FetchFailure(f"GET {self.endpoint_url} timed out after {self.timeout_seconds}s") from e
        except aiohttp.ClientResponseError as e:
            raise FetchFailure(f"GET {self.endpoint_url} returned HTTP {e.status}") from e
        except aiohttp.ClientError as e:
            raise FetchFailure(f"GET {self.endpoint_url} failed: {e}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise FetchFailure(f"GET {self.endpoint_url} returned invalid JSON: {e}") from e

        snapshot = snapshot_from_wire(payload)
        malformed = sum(1 for e in snapshot if e.malformed)
        if malformed:
            logger.debug(f"{malformed} malformed log entr{'y' if malformed == 1 else 'ies'} — using defaults")
        return snapshot
