# app/routers/live.py
"""
WebSocket push channel. A new client gets the current snapshot and today's
hourly stats, then whatever the gateway broadcasts. No backlog is replayed.
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from starlette.concurrency import run_in_threadpool

from app.errors import OccupancyError
from app.services.broadcast import DASHBOARD_UPDATE, STATS_HOURLY
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.websocket("/ws")
async def live_updates(websocket: WebSocket):
    ledger = websocket.app.state.ledger
    gateway = websocket.app.state.gateway

    async def load_initial():
        return [
            (DASHBOARD_UPDATE, await run_in_threadpool(ledger.get_current_status)),
            (STATS_HOURLY, await run_in_threadpool(ledger.query_today_hourly_aggregates)),
        ]

    try:
        await gateway.subscribe(websocket, load_initial)
    except OccupancyError as e:
        logger.error(f"[WS] Cannot build initial snapshot: {e.detail}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    try:
        while True:
            # Clients never send anything meaningful; this just waits for disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        gateway.unsubscribe(websocket)
