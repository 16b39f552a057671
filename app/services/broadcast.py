# app/services/broadcast.py
"""
Live-update fan-out to dashboard browsers over WebSocket.

Subscribers are kept in an explicit registry owned by BroadcastGateway.
Every message is a JSON envelope:  {"event": "<name>", "data": <payload>}

Event names:
  dashboard:update   full DashboardSnapshot
  stats:hourly       24 HourlyStats for today
  visitor:event      RealtimeEvent for one sensor crossing
  capacity:updated   {"capacity": n}
  status:updated     {"isOpen": bool}

A broadcast holds an asyncio lock so the messages of one logical update
reach every subscriber in order. Delivery is best-effort: a failed send
drops that subscriber and the broadcast carries on.
"""

import asyncio
from concurrent.futures import Future
from typing import Any, Awaitable, Callable, Iterable, Optional

from fastapi import WebSocket
from pydantic import BaseModel

from app.utils.logger import get_logger

logger = get_logger(__name__)

DASHBOARD_UPDATE = "dashboard:update"
STATS_HOURLY = "stats:hourly"
VISITOR_EVENT = "visitor:event"
CAPACITY_UPDATED = "capacity:updated"
STATUS_UPDATED = "status:updated"

Message = tuple[str, Any]


def _to_jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, (list, tuple)):
        return [_to_jsonable(item) for item in data]
    return data


def envelope(event: str, data: Any) -> dict:
    return {"event": event, "data": _to_jsonable(data)}


class BroadcastGateway:
    def __init__(self):
        self._subscribers: set[WebSocket] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._send_lock: Optional[asyncio.Lock] = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop):
        """Remember the server loop so other threads can hand us messages."""
        self._loop = loop
        self._send_lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _lock(self) -> asyncio.Lock:
        if self._send_lock is None:
            self._send_lock = asyncio.Lock()
        return self._send_lock

    async def subscribe(
        self,
        websocket: WebSocket,
        load_initial: Optional[Callable[[], Awaitable[Iterable[Message]]]] = None,
    ):
        """
        Accept a connection, send it a point-in-time snapshot and register it.

        The snapshot is loaded and sent while broadcasts are held back, so any
        update committed after the load reaches this client once it is
        registered. Errors from `load_initial` propagate and the socket is
        left unregistered.
        """
        await websocket.accept()
        async with self._lock():
            initial = await load_initial() if load_initial is not None else ()
            for event, data in initial:
                await websocket.send_json(envelope(event, data))
            self._subscribers.add(websocket)
        logger.info(f"[WS] Client connected: {websocket.client} ({self.subscriber_count} total)")

    def unsubscribe(self, websocket: WebSocket):
        if websocket in self._subscribers:
            self._subscribers.discard(websocket)
            logger.info(f"[WS] Client disconnected: {websocket.client} ({self.subscriber_count} total)")

    async def broadcast(self, messages: Iterable[Message]):
        payloads = [envelope(event, data) for event, data in messages]
        async with self._lock():
            for websocket in list(self._subscribers):
                for payload in payloads:
                    try:
                        await websocket.send_json(payload)
                    except Exception as e:
                        logger.warning(f"[WS] Dropping subscriber {websocket.client}: {e}")
                        self.unsubscribe(websocket)
                        break

    def publish(self, messages: Iterable[Message]) -> Optional[Future]:
        """
        Thread-safe fire-and-forget broadcast. Used by the MQTT thread and by
        sync request handlers running in the threadpool.
        """
        if self._loop is None or self._loop.is_closed():
            logger.debug("[WS] No event loop bound — broadcast skipped")
            return None
        return asyncio.run_coroutine_threadsafe(self.broadcast(list(messages)), self._loop)

    async def close(self):
        for websocket in list(self._subscribers):
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"[WS] Close failed for {websocket.client}: {e}")
        self._subscribers.clear()
