"""
config.py — All tunable parameters in one place.
Edit this file (or set the matching env vars / .env entries) to control the monitor.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass
class MonitorConfig:
    # ── Log Source (trading bot API) ─────────────────────────────────────────
    LOG_ENDPOINT_URL: str = os.getenv("LOG_ENDPOINT_URL", "http://localhost:5000/api/logs")
    POLL_INTERVAL_SECONDS: float = float(os.getenv("POLL_INTERVAL_SECONDS", "5.0"))  # Observed 3-5s
    FETCH_TIMEOUT_SECONDS: float = float(os.getenv("FETCH_TIMEOUT_SECONDS", "4.0"))  # Timeout = skipped tick

    # ── Notifications ────────────────────────────────────────────────────────
    BANNER_SECONDS: float = float(os.getenv("BANNER_SECONDS", "4.0"))  # How long the new-trade banner stays up
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "₹")

    # ── Dashboard (FastAPI) ──────────────────────────────────────────────────
    DASHBOARD_HOST: str = os.getenv("DASHBOARD_HOST", "0.0.0.0")
    DASHBOARD_PORT: int = int(os.getenv("DASHBOARD_PORT", "8000"))
    WS_PUSH_INTERVAL_SECONDS: float = float(os.getenv("WS_PUSH_INTERVAL_SECONDS", "3.0"))

    # ── Logging ──────────────────────────────────────────────────────────────
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[str] = os.getenv("LOG_FILE", "monitor.log")
