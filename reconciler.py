"""
reconciler.py — Client-side change detection over the bot's trade log.

The upstream log is append-only, so a length change is the only signal we act on:
  - same length          → nothing new (content differences are ignored)
  - longer, last BUY/SELL → one new-trade event for the last entry
  - held state is always replaced by the latest fetch
"""

import logging
from typing import Optional

from models import EntryIdentity, LogSnapshot, ReconcileResult

logger = logging.getLogger("reconciler")


class Reconciler:
    """Holds the last fetched snapshot for the session. Not thread-safe; driven from one event loop."""

    def __init__(self):
        self.held: LogSnapshot = ()
        self.last_notified: Optional[EntryIdentity] = None

    def reconcile(self, new_snapshot) -> ReconcileResult:
        new_snapshot = tuple(new_snapshot)
        old = self.held
        event = None
        changed = len(new_snapshot) != len(old)

        if changed:
            if len(new_snapshot) < len(old):
                logger.warning(
                    f"Log shrank from {len(old)} to {len(new_snapshot)} entries — "
                    "upstream history rewritten, no notification"
                )
            else:
                if new_snapshot[:len(old)] != old:
                    logger.warning("Fetched log is not an extension of the held log — earlier entries changed")
                latest_pos = len(new_snapshot) - 1
                latest = new_snapshot[latest_pos]
                identity = EntryIdentity.of(new_snapshot, latest_pos)
                if latest.is_trade and identity != self.last_notified:
                    event = latest
                    self.last_notified = identity
                logger.info(
                    f"Log grew {len(old)} → {len(new_snapshot)} entries "
                    f"(latest: {latest.action_label or '?'})"
                )

        self.held = new_snapshot
        return ReconcileResult(snapshot=new_snapshot, new_trade_event=event, changed=changed)
