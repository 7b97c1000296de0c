"""
aggregation.py — Pure views over a log snapshot for the dashboard.

Everything here is stateless: functions take a snapshot (tuple of LogEntry)
and return new values without touching the input. Unparseable P/L counts as 0.
Rounding happens only in format_money(); totals keep full precision.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models import LogEntry, LogSnapshot, PnlFilter


def filter_by_date(snapshot: Sequence[LogEntry], date: Optional[str]) -> LogSnapshot:
    """Keep entries whose Time starts with `date`. Empty/None date → unfiltered."""
    if not date:
        return tuple(snapshot)
    return tuple(e for e in snapshot if e.time is not None and str(e.time).startswith(date))


def filter_by_pnl_sign(snapshot: Sequence[LogEntry], mode) -> LogSnapshot:
    """PROFIT keeps P/L > 0, LOSS keeps P/L < 0, ALL is identity. Zero P/L only appears in ALL."""
    mode = PnlFilter.parse(mode)
    if mode == PnlFilter.PROFIT:
        return tuple(e for e in snapshot if e.pnl_value > 0)
    if mode == PnlFilter.LOSS:
        return tuple(e for e in snapshot if e.pnl_value < 0)
    return tuple(snapshot)


def apply_view_filters(snapshot: Sequence[LogEntry], date: Optional[str], mode) -> LogSnapshot:
    return filter_by_pnl_sign(filter_by_date(snapshot, date), mode)


def action_counts(snapshot: Iterable[LogEntry]) -> Dict[str, int]:
    """Pie totals: one count per distinct action label."""
    counts: Dict[str, int] = {}
    for e in snapshot:
        label = e.action_label
        counts[label] = counts.get(label, 0) + 1
    return counts


def pnl_series(snapshot: Iterable[LogEntry]) -> List[Tuple[int, float]]:
    """(1-based index, P/L) per entry, in snapshot order."""
    return [(i, e.pnl_value) for i, e in enumerate(snapshot, start=1)]


def cumulative_pnl_series(snapshot: Iterable[LogEntry]) -> List[Tuple[int, float]]:
    cumulative = 0.0
    series = []
    for i, e in enumerate(snapshot, start=1):
        cumulative += e.pnl_value
        series.append((i, cumulative))
    return series


def total_pnl(snapshot: Iterable[LogEntry]) -> float:
    return sum((e.pnl_value for e in snapshot), 0.0)


def distinct_dates(snapshot: Iterable[LogEntry]) -> List[str]:
    """Unique date prefixes in encounter order (chronological for a time-ordered log)."""
    seen: Dict[str, None] = {}
    for e in snapshot:
        if e.date:
            seen.setdefault(e.date, None)
    return list(seen)


def default_date(dates: Sequence[str]) -> Optional[str]:
    """Most recent date, assuming the upstream log is chronologically ordered."""
    return dates[-1] if dates else None


def format_money(value: float) -> str:
    return f"{value:.2f}"


def format_entry(entry: LogEntry, currency: str = "₹") -> str:
    """One-line rendering used for log messages and the new-trade banner."""
    return (
        f"{entry.time} — {entry.action_label} {currency}{entry.price} Qty: {entry.qty} | "
        f"P/L: {currency}{entry.pnl} | Unrealized: {currency}{entry.unrealized} | "
        f"Net Worth: {currency}{entry.net_worth}"
    )
