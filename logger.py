"""
logger.py — Logging setup shared by the poller, session and dashboard.
Handlers live on the root logger; the dashboard's /api/monitor-log tails the file.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-18s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_ROOT_CONFIGURED = False


def _file_handler(log_file: str, formatter: logging.Formatter) -> Optional[logging.Handler]:
    try:
        handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        logging.getLogger().warning(f"Could not open log file {log_file}: {e}")
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logger(name: str, log_file: Optional[str] = "monitor.log", level: str = "INFO") -> logging.Logger:
    """Return `name`'s logger, attaching console + file handlers to root on first call.

    `level` applies to the console only; the file always gets DEBUG so the
    dashboard shows per-tick detail.
    """
    global _ROOT_CONFIGURED
    if not _ROOT_CONFIGURED:
        root = logging.getLogger()
        root.setLevel(logging.DEBUG)
        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))
        console.setFormatter(formatter)
        root.addHandler(console)

        handler = _file_handler(log_file, formatter) if log_file else None
        if handler is not None:
            root.addHandler(handler)
        _ROOT_CONFIGURED = True

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    return logger
