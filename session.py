"""
session.py — Process-wide monitor state for one client session.

Owns the Reconciler (held snapshot), the dashboard's filter selection, the
"last updated" marker and the new-trade banner. The poller feeds it through
handle_snapshot()/handle_failure(); the dashboard reads it through view().
Nothing here survives a restart.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import aggregation
from models import LogSnapshot, PnlFilter, SessionState, TradeNotification
from reconciler import Reconciler

logger = logging.getLogger("session")

NotificationListener = Callable[[TradeNotification], None]
ViewListener = Callable[[], None]

NOTIFICATION_HISTORY = 50


class MonitorSession:
    def __init__(self, banner_seconds: float = 4.0, currency: str = "₹"):
        self.reconciler = Reconciler()
        self.banner_seconds = banner_seconds
        self.currency = currency
        self.selected_date: Optional[str] = None  # None = most recent date
        self.pnl_filter: PnlFilter = PnlFilter.ALL
        self.last_updated: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.failure_count = 0
        self.notifications: List[TradeNotification] = []
        self._banner: Optional[TradeNotification] = None
        self._listeners: List[NotificationListener] = []
        self._view_listeners: List[ViewListener] = []
        self._has_data = False

    # ── Poller callbacks ──────────────────────────────────────────────────────

    def handle_snapshot(self, snapshot: LogSnapshot) -> Optional[TradeNotification]:
        """Reconcile one fetch. View listeners fire whenever the held log changed length."""
        result = self.reconciler.reconcile(snapshot)
        if result.snapshot:
            self._has_data = True
        if result.changed:
            self.last_updated = datetime.now(timezone.utc)
        self.last_error = None

        notification = None
        if result.new_trade_event is not None:
            entry = result.new_trade_event
            notification = TradeNotification(
                entry=entry,
                position=len(result.snapshot) - 1,
                detected_at=datetime.now(timezone.utc),
                text=f"New {entry.action_label.upper()} trade: {aggregation.format_entry(entry, self.currency)}",
            )
            self.notifications.append(notification)
            self.notifications = self.notifications[-NOTIFICATION_HISTORY:]
            self._banner = notification
            logger.info(notification.text)

        # View first so the pushed view already carries the banner
        if result.changed:
            self._dispatch_view()
        if notification is not None:
            self._dispatch(notification)
        return notification

    def handle_failure(self, exc: Exception):
        """Stale data stays on screen; only the error marker changes."""
        self.failure_count += 1
        self.last_error = str(exc)

    # ── Listeners (sound / banner consumers) ──────────────────────────────────

    def add_listener(self, listener: NotificationListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: NotificationListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _dispatch(self, notification: TradeNotification):
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception as e:
                logger.error(f"Notification listener failed: {e}", exc_info=True)

    def add_view_listener(self, listener: ViewListener):
        """Called with no arguments after each reconcile that changed the held log."""
        self._view_listeners.append(listener)

    def remove_view_listener(self, listener: ViewListener):
        if listener in self._view_listeners:
            self._view_listeners.remove(listener)

    def _dispatch_view(self):
        for listener in list(self._view_listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"View listener failed: {e}", exc_info=True)

    # ── Filter selection ──────────────────────────────────────────────────────

    def select_date(self, date: Optional[str]):
        self.selected_date = date or None

    def select_pnl_filter(self, mode):
        self.pnl_filter = PnlFilter.parse(mode)

    # ── Read side ─────────────────────────────────────────────────────────────

    @property
    def snapshot(self) -> LogSnapshot:
        return self.reconciler.held

    @property
    def state(self) -> SessionState:
        return SessionState.HAS_DATA if self._has_data else SessionState.NO_DATA

    def active_banner(self, now: Optional[datetime] = None) -> Optional[TradeNotification]:
        if self._banner is None:
            return None
        now = now or datetime.now(timezone.utc)
        if now - self._banner.detected_at > timedelta(seconds=self.banner_seconds):
            return None
        return self._banner

    def view(self, date: Optional[str] = None, pnl_filter=None) -> dict:
        """Everything the dashboard renders: table rows, pie, P/L bars, cumulative line, totals."""
        snapshot = self.snapshot
        dates = aggregation.distinct_dates(snapshot)
        effective_date = date or self.selected_date or aggregation.default_date(dates)
        mode = PnlFilter.parse(pnl_filter) if pnl_filter is not None else self.pnl_filter
        rows = aggregation.apply_view_filters(snapshot, effective_date, mode)
        total = aggregation.total_pnl(rows)
        banner = self.active_banner()

        return {
            "state": self.state.value,
            "snapshot": [e.to_wire() for e in snapshot],
            "count": len(snapshot),
            "selected_date": effective_date,
            "pnl_filter": mode.value,
            "rows": [_row(e) for e in rows],
            "action_counts": aggregation.action_counts(rows),
            "pnl_series": [{"index": i, "pnl": p} for i, p in aggregation.pnl_series(rows)],
            "cumulative_pnl": [
                {"index": i, "cumulative": c} for i, c in aggregation.cumulative_pnl_series(rows)
            ],
            "total_pnl": total,
            "total_pnl_display": aggregation.format_money(total),
            "distinct_dates": dates,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "banner": banner.to_dict() if banner else None,
        }


def _row(entry) -> dict:
    """Wire fields as received plus the coerced numbers the charts and table use."""
    return {
        **entry.to_wire(),
        "css_class": entry.css_class,
        "pnl_value": entry.pnl_value,
        "unrealized_value": entry.unrealized_value,
        "net_worth_value": entry.net_worth_value,
    }
