"""
models.py — Shared data structures used across all modules.
Wire field names ("Time", "P/L", "Net Worth", ...) are part of the bot's API
contract and are preserved exactly when entries are handed to the dashboard.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Tuple


WIRE_FIELDS = ("Time", "Action", "Price", "Qty", "P/L", "Unrealized", "Net Worth")
DATE_PREFIX_LEN = 10  # "YYYY-MM-DD" out of "YYYY-MM-DD HH:MM:SS"


class MonitorError(Exception):
    """Base class for monitor errors."""


class FetchFailure(MonitorError):
    """Log endpoint unreachable, timed out, non-2xx, or returned a non-array payload."""


class Action(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


TRADE_ACTIONS = frozenset({Action.BUY.value, Action.SELL.value})


class PnlFilter(str, Enum):
    ALL = "ALL"
    PROFIT = "PROFIT"
    LOSS = "LOSS"

    @classmethod
    def parse(cls, value: Any) -> "PnlFilter":
        """Accept a PnlFilter or a case-insensitive name; empty means ALL."""
        if isinstance(value, cls):
            return value
        if value is None or str(value).strip() == "":
            return cls.ALL
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown P/L filter: {value!r} (expected ALL, PROFIT or LOSS)") from None


class SessionState(str, Enum):
    NO_DATA = "NO_DATA"
    HAS_DATA = "HAS_DATA"


def to_float(value: Any) -> float:
    """Coerce a wire numeric to float. Missing or unparseable values become 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


@dataclass(frozen=True)
class LogEntry:
    """One trading event as reported by the bot. Values are kept exactly as received."""
    time: Any = None
    action: Any = None
    price: Any = None
    qty: Any = None
    pnl: Any = None
    unrealized: Any = None
    net_worth: Any = None
    extra: Dict[str, Any] = field(default_factory=dict, hash=False)  # Unknown wire fields, passed through
    malformed: bool = field(default=False, compare=False)

    @classmethod
    def from_wire(cls, obj: Any) -> "LogEntry":
        if not isinstance(obj, dict):
            # Keep a placeholder so snapshot length still mirrors the upstream array
            return cls(malformed=True)
        return cls(
            time=obj.get("Time"),
            action=obj.get("Action"),
            price=obj.get("Price"),
            qty=obj.get("Qty"),
            pnl=obj.get("P/L"),
            unrealized=obj.get("Unrealized"),
            net_worth=obj.get("Net Worth"),
            extra={k: v for k, v in obj.items() if k not in WIRE_FIELDS},
            malformed=any(k not in obj for k in WIRE_FIELDS),
        )

    def to_wire(self) -> Dict[str, Any]:
        return {
            "Time": self.time,
            "Action": self.action,
            "Price": self.price,
            "Qty": self.qty,
            "P/L": self.pnl,
            "Unrealized": self.unrealized,
            "Net Worth": self.net_worth,
            **self.extra,
        }

    @property
    def action_label(self) -> str:
        return "" if self.action is None else str(self.action).strip()

    @property
    def is_trade(self) -> bool:
        """BUY or SELL (case-insensitive). HOLD and other labels are not trades."""
        return self.action_label.upper() in TRADE_ACTIONS

    @property
    def css_class(self) -> str:
        """Row style hook used by the dashboard (buy / sell / hold / ...)."""
        return self.action_label.lower()

    @property
    def date(self) -> str:
        if self.time is None:
            return ""
        return str(self.time)[:DATE_PREFIX_LEN]

    @property
    def pnl_value(self) -> float:
        return to_float(self.pnl)

    @property
    def unrealized_value(self) -> float:
        return to_float(self.unrealized)

    @property
    def net_worth_value(self) -> float:
        return to_float(self.net_worth)


LogSnapshot = Tuple[LogEntry, ...]


def snapshot_from_wire(payload: Any) -> LogSnapshot:
    """Parse the endpoint's JSON array. Anything but an array is a FetchFailure."""
    if not isinstance(payload, list):
        raise FetchFailure(f"Expected a JSON array of log entries, got {type(payload).__name__}")
    return tuple(LogEntry.from_wire(item) for item in payload)


class EntryIdentity(NamedTuple):
    position: int  # 0-based index within the snapshot
    time: Any
    action: Any

    @classmethod
    def of(cls, snapshot: LogSnapshot, position: int) -> "EntryIdentity":
        entry = snapshot[position]
        return cls(position, entry.time, entry.action)


@dataclass(frozen=True)
class ReconcileResult:
    snapshot: LogSnapshot
    new_trade_event: Optional[LogEntry] = None
    changed: bool = False  # Length differed from the previously held snapshot


@dataclass
class TradeNotification:
    entry: LogEntry
    position: int
    detected_at: datetime
    text: str = ""  # Banner text

    def to_dict(self) -> dict:
        return {
            "entry": self.entry.to_wire(),
            "position": self.position,
            "action": self.entry.action_label.upper(),
            "detected_at": self.detected_at.isoformat(),
            "text": self.text,
        }
