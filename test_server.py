"""
test_server.py — Dashboard REST/WebSocket endpoints.
"""

import asyncio
import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from starlette.testclient import TestClient

from config import MonitorConfig
from models import LogEntry, TradeNotification
from server import ConnectionManager, create_app
from session import MonitorSession

WIRE = [
    {"Time": "2024-01-01 10:00:00", "Action": "BUY", "Price": 100, "Qty": 1,
     "P/L": 0, "Unrealized": 0, "Net Worth": 1000},
    {"Time": "2024-01-01 10:05:00", "Action": "SELL", "Price": 110, "Qty": 1,
     "P/L": 10, "Unrealized": 0, "Net Worth": 1010},
    {"Time": "2024-01-02 09:00:00", "Action": "SELL", "Price": 90, "Qty": 1,
     "P/L": -20, "Unrealized": 0, "Net Worth": 990},
]


def _make_client(with_data: bool = True):
    config = MonitorConfig()
    config.LOG_FILE = "does-not-exist.log"
    config.WS_PUSH_INTERVAL_SECONDS = 30
    session = MonitorSession()
    if with_data:
        session.handle_snapshot(tuple(LogEntry.from_wire(x) for x in WIRE))
    return TestClient(create_app(session, config=config)), session


class TestRestEndpoints(unittest.TestCase):

    def test_logs_keep_wire_field_names(self):
        client, _ = _make_client()
        body = client.get("/api/logs").json()
        self.assertEqual(body["count"], 3)
        self.assertEqual(body["logs"], WIRE)

    def test_view_defaults_to_latest_date(self):
        client, _ = _make_client()
        view = client.get("/api/view").json()
        self.assertEqual(view["state"], "HAS_DATA")
        self.assertEqual(view["selected_date"], "2024-01-02")
        self.assertEqual(view["action_counts"], {"SELL": 1})
        self.assertEqual(view["total_pnl_display"], "-20.00")

    def test_view_query_override(self):
        client, session = _make_client()
        view = client.get("/api/view", params={"date": "2024-01-01", "pnl": "profit"}).json()
        self.assertEqual(view["pnl_filter"], "PROFIT")
        self.assertEqual(view["pnl_series"], [{"index": 1, "pnl": 10.0}])
        self.assertEqual(session.pnl_filter.value, "ALL")

    def test_bad_pnl_filter_is_400(self):
        client, _ = _make_client()
        self.assertEqual(client.get("/api/view", params={"pnl": "huge"}).status_code, 400)
        resp = client.post("/api/view/filters", json={"pnl": "huge"})
        self.assertEqual(resp.status_code, 400)

    def test_set_filters(self):
        client, session = _make_client()
        view = client.post("/api/view/filters", json={"date": "2024-01-01", "pnl": "LOSS"}).json()
        self.assertEqual(session.selected_date, "2024-01-01")
        self.assertEqual(view["rows"], [])
        self.assertEqual(view["total_pnl"], 0.0)

    def test_status_without_data(self):
        client, _ = _make_client(with_data=False)
        status = client.get("/api/status").json()
        self.assertEqual(status["state"], "NO_DATA")
        self.assertFalse(status["polling"])
        self.assertIsNone(status["last_updated"])

    def test_status_lists_notifications(self):
        client, _ = _make_client()
        notifications = client.get("/api/status").json()["notifications"]
        self.assertEqual(len(notifications), 1)
        self.assertEqual(notifications[0]["action"], "SELL")
        self.assertEqual(notifications[0]["entry"]["P/L"], -20)

    def test_monitor_log_missing_file(self):
        client, _ = _make_client()
        lines = client.get("/api/monitor-log").json()["lines"]
        self.assertEqual(len(lines), 1)
        self.assertIn("No log file", lines[0])


class TestWebSocket(unittest.TestCase):

    def test_initial_view_and_refilter(self):
        client, session = _make_client()
        with client.websocket_connect("/ws") as ws:
            first = ws.receive_json()
            self.assertEqual(first["type"], "view")
            self.assertEqual(first["count"], 3)
            ws.send_json({"date": "2024-01-01", "pnl": "PROFIT"})
            second = ws.receive_json()
            self.assertEqual(second["pnl_filter"], "PROFIT")
            self.assertEqual(second["action_counts"], {"SELL": 1})
            ws.send_json({"pnl": "nope"})
            error = ws.receive_json()
            self.assertEqual(error["type"], "error")
        self.assertEqual(session.selected_date, "2024-01-01")


class TestLivePush(unittest.TestCase):
    """Session changes reach connected sockets without waiting for the /ws timer."""

    def setUp(self):
        config = MonitorConfig()
        config.LOG_FILE = "does-not-exist.log"
        self.session = MonitorSession(currency="$")
        self.app = create_app(self.session, config=config)
        self.ws = MagicMock()
        self.ws.accept = AsyncMock()
        self.ws.send_json = AsyncMock()
        self.buy, self.sell = (LogEntry.from_wire(x) for x in WIRE[:2])
        self.hold = LogEntry.from_wire({
            "Time": "2024-01-01 10:10:00", "Action": "HOLD", "Price": 110, "Qty": 0,
            "P/L": 0, "Unrealized": 0, "Net Worth": 1010,
        })

    def _feed(self, *snapshots):
        async def run():
            await self.app.state.manager.connect(self.ws)
            for snapshot in snapshots:
                self.session.handle_snapshot(snapshot)
            # Let the scheduled broadcasts run
            for _ in range(5):
                await asyncio.sleep(0)
        asyncio.run(run())
        return [c.args[0] for c in self.ws.send_json.call_args_list]

    def test_new_trade_reaches_socket(self):
        sent = self._feed((self.buy, self.sell))
        self.assertEqual([m["type"] for m in sent], ["view", "new_trade"])
        notification = sent[1]["notification"]
        self.assertEqual(notification["action"], "SELL")
        self.assertEqual(notification["position"], 1)
        self.assertEqual(notification["entry"]["P/L"], 10)
        # The view pushed in the same cycle already shows the banner
        self.assertEqual(sent[0]["banner"]["entry"]["P/L"], 10)

    def test_appended_hold_pushes_view_only(self):
        sent = self._feed((self.buy, self.sell), (self.buy, self.sell, self.hold))
        self.assertEqual([m["type"] for m in sent], ["view", "new_trade", "view"])
        self.assertEqual(sent[-1]["count"], 3)
        self.assertEqual(sent[-1]["action_counts"], {"BUY": 1, "SELL": 1, "HOLD": 1})

    def test_unchanged_snapshot_pushes_nothing(self):
        sent = self._feed((self.buy,), (self.buy,))
        self.assertEqual([m["type"] for m in sent], ["view", "new_trade"])

    def test_no_sockets_no_broadcast(self):
        # Outside a running loop: must not try to schedule anything
        self.session.handle_snapshot((self.buy, self.sell))
        self.ws.send_json.assert_not_called()


class TestConnectionManager(unittest.TestCase):

    def test_broadcast_drops_broken_sockets(self):
        good, broken = MagicMock(), MagicMock()
        good.send_json = AsyncMock()
        broken.send_json = AsyncMock(side_effect=RuntimeError("closed"))
        manager = ConnectionManager()
        manager.active = [good, broken]
        notification = TradeNotification(
            entry=LogEntry.from_wire(WIRE[1]), position=1, detected_at=datetime.now(timezone.utc),
        )
        payload = {"type": "new_trade", "notification": notification.to_dict()}
        asyncio.run(manager.broadcast(payload))
        good.send_json.assert_awaited_once_with(payload)
        self.assertEqual(manager.active, [good])


if __name__ == "__main__":
    unittest.main()
