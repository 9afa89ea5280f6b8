"""Live dashboard WebSocket router"""

import asyncio
from datetime import date
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from typing import Optional
import logging

from apptracker.analytics import DateRange
from apptracker.errors import AuthenticationError
from ..config import get_settings
from ..dependencies import get_store
from ..database.record_store import RecordStore
from ..services.auth_service import AuthService
from ..services.dashboard_session import DashboardSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/applications", tags=["live"])

# Close code sent when the token is missing or unknown
WS_UNAUTHORIZED = 4401


async def _send(websocket: WebSocket, dashboard: DashboardSession, lock: asyncio.Lock):
    message = dashboard.to_live_update().model_dump(mode="json")
    async with lock:
        await websocket.send_json(message)


async def _push_snapshots(websocket: WebSocket, dashboard: DashboardSession, lock: asyncio.Lock):
    async for _ in dashboard.updates():
        await _send(websocket, dashboard, lock)


async def _receive_ranges(websocket: WebSocket, dashboard: DashboardSession, lock: asyncio.Lock):
    """
    Apply range changes sent by the client.

    Messages look like {"table_range": {"start": "2026-01-01", "end": null}}
    and/or {"insights_range": {...}}; the current view is re-sent after each.
    """
    while True:
        message = await websocket.receive_json()
        if not isinstance(message, dict):
            continue

        if isinstance(message.get("table_range"), dict):
            bounds = message["table_range"]
            dashboard.set_table_range(DateRange.parse(bounds.get("start"), bounds.get("end")))
        if isinstance(message.get("insights_range"), dict):
            bounds = message["insights_range"]
            dashboard.set_insights_range(DateRange.parse(bounds.get("start"), bounds.get("end")))

        await _send(websocket, dashboard, lock)


@router.websocket("/live")
async def live_dashboard(
    websocket: WebSocket,
    token: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    insights_start: Optional[date] = None,
    insights_end: Optional[date] = None,
    store: RecordStore = Depends(get_store),
):
    """
    Push the dashboard (table applications + funnel) on every change.

    One subscription per connection; it ends when the client disconnects or
    the session logs out.
    """
    auth = AuthService(store, reauth_window_minutes=get_settings().reauth_window_minutes)
    try:
        session = auth.resolve(token)
    except AuthenticationError as e:
        logger.info(f"Rejected live connection: {e}")
        await websocket.close(code=WS_UNAUTHORIZED)
        return

    await websocket.accept()

    dashboard = DashboardSession(
        store,
        session["user_id"],
        label=token,
        table_range=DateRange(start=start, end=end),
        insights_range=DateRange(start=insights_start, end=insights_end),
    )
    lock = asyncio.Lock()

    async with dashboard:
        pusher = asyncio.create_task(_push_snapshots(websocket, dashboard, lock))
        receiver = asyncio.create_task(_receive_ranges(websocket, dashboard, lock))

        done, pending = await asyncio.wait({pusher, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            error = task.exception()
            if error and not isinstance(error, WebSocketDisconnect):
                logger.error(f"Live dashboard for {session['user_id']} failed: {error}")

    if pusher in done:
        # Subscription ended (logout); the client is still connected
        try:
            await websocket.close()
        except RuntimeError as e:
            logger.debug(f"Live socket already closed: {e}")

    logger.info(f"Live dashboard closed for {session['user_id']}")
