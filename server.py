"""
server.py — FastAPI backend for the live trade-log dashboard.
Serves the session's view (table rows, pie totals, P/L series, totals) over REST
and pushes view updates plus new-trade events over a WebSocket. The browser
side plays the sound and shows the banner.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Set

import aiofiles
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from config import MonitorConfig
from models import TradeNotification
from poller import LogPoller
from session import MonitorSession

logger = logging.getLogger("server")


class FilterSelection(BaseModel):
    date: Optional[str] = None
    pnl: Optional[str] = None


class ConnectionManager:
    def __init__(self):
        self.active: List[WebSocket] = []

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.active.append(ws)

    def disconnect(self, ws: WebSocket):
        if ws in self.active:
            self.active.remove(ws)

    async def broadcast(self, data: dict):
        for ws in list(self.active):
            try:
                await ws.send_json(data)
            except Exception as e:
                logger.debug(f"Dropping websocket after send failure: {e}")
                self.disconnect(ws)


def _log_path(config: MonitorConfig) -> Path:
    # Same resolution as logging.FileHandler (relative to the working directory)
    return Path(config.LOG_FILE or "monitor.log")


async def tail_log(path: Path, n: int = 100) -> List[str]:
    if not path.exists():
        return ["[No log file found — monitor not yet started]"]
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
    except OSError as e:
        logger.warning(f"Could not read {path}: {e}")
        return []
    lines = content.strip().split("\n")
    return lines[-n:]


def create_app(
    session: MonitorSession,
    config: Optional[MonitorConfig] = None,
    poller: Optional[LogPoller] = None,
) -> FastAPI:
    config = config or MonitorConfig()
    app = FastAPI(title="Trade Log Monitor")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    manager = ConnectionManager()
    app.state.session = session
    app.state.manager = manager
    pending: Set[asyncio.Task] = set()

    def _broadcast_soon(payload: dict):
        # Listeners run inside the poller's tick on the event loop
        if not manager.active:
            return
        task = asyncio.get_running_loop().create_task(manager.broadcast(payload))
        pending.add(task)
        task.add_done_callback(pending.discard)

    def _on_view_changed():
        _broadcast_soon({"type": "view", **session.view()})

    def _on_new_trade(notification: TradeNotification):
        _broadcast_soon({"type": "new_trade", "notification": notification.to_dict()})

    session.add_view_listener(_on_view_changed)
    session.add_listener(_on_new_trade)

    def _view(date: Optional[str] = None, pnl: Optional[str] = None) -> dict:
        try:
            return session.view(date=date, pnl_filter=pnl)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    # ── REST Endpoints ─────────────────────────────────────────────────────────

    @app.get("/api/view")
    async def get_view(date: Optional[str] = None, pnl: Optional[str] = None):
        """Dashboard view. Query params override the session selection for this request only."""
        return _view(date, pnl)

    @app.post("/api/view/filters")
    async def set_filters(selection: FilterSelection):
        """Omitted fields keep their selection; date "" goes back to the most recent date."""
        try:
            if selection.pnl is not None:
                session.select_pnl_filter(selection.pnl)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if selection.date is not None:
            session.select_date(selection.date)
        return _view()

    @app.get("/api/logs")
    async def get_logs():
        logs = [e.to_wire() for e in session.snapshot]
        return {"logs": logs, "count": len(logs)}

    @app.get("/api/status")
    async def get_status():
        return {
            "state": session.state.value,
            "polling": poller.running if poller else False,
            "ticks": poller.tick_count if poller else 0,
            "failed_ticks": session.failure_count,
            "last_updated": session.last_updated.isoformat() if session.last_updated else None,
            "last_error": session.last_error,
            "notifications": [n.to_dict() for n in session.notifications],
            "endpoint": config.LOG_ENDPOINT_URL,
            "poll_interval_seconds": config.POLL_INTERVAL_SECONDS,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/api/monitor-log")
    async def get_monitor_log(n: int = 200):
        lines = await tail_log(_log_path(config), n)
        return {"lines": lines}

    # ── WebSocket ──────────────────────────────────────────────────────────────

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Push the view every WS_PUSH_INTERVAL_SECONDS; clients may send {"date", "pnl"} to refilter."""
        await manager.connect(websocket)
        try:
            await websocket.send_json({"type": "view", **session.view()})
            while True:
                try:
                    msg = await asyncio.wait_for(
                        websocket.receive_json(), timeout=config.WS_PUSH_INTERVAL_SECONDS
                    )
                except asyncio.TimeoutError:
                    msg = None
                except ValueError:
                    await websocket.send_json({"type": "error", "detail": "Expected a JSON object"})
                    continue
                if isinstance(msg, dict):
                    try:
                        if "pnl" in msg:
                            session.select_pnl_filter(msg.get("pnl"))
                        if "date" in msg:
                            session.select_date(msg.get("date"))
                    except ValueError as e:
                        await websocket.send_json({"type": "error", "detail": str(e)})
                        continue
                await websocket.send_json({"type": "view", **session.view()})
        except WebSocketDisconnect:
            pass
        finally:
            manager.disconnect(websocket)

    return app
