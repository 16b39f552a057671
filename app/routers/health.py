# app/routers/health.py
"""
Liveness probe.
Returns status of backend + DB + MQTT feed. Always HTTP 200; problems show
up as status "degraded".
"""

from typing import Optional

from fastapi import APIRouter, Depends

from app.dependencies import get_gateway, get_ingestor, get_ledger
from app.errors import StorageUnavailable
from app.services.broadcast import BroadcastGateway
from app.services.ledger import OccupancyLedger
from app.services.sensor_ingestor import SensorIngestor
from app.utils.timezone import isoformat_in_zone, utc_now

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(
    ledger: OccupancyLedger = Depends(get_ledger),
    ingestor: Optional[SensorIngestor] = Depends(get_ingestor),
    gateway: BroadcastGateway = Depends(get_gateway),
):
    result = {
        "status": "ok",
        "timestamp": isoformat_in_zone(utc_now(), ledger.tz_name),
        "database": "unknown",
        "mqtt": "disabled",
        "subscribers": gateway.subscriber_count,
    }

    try:
        ledger.ping()
        result["database"] = "ok"
    except StorageUnavailable as e:
        result["database"] = f"error: {e.detail}"
        result["status"] = "degraded"

    if ingestor is not None:
        result["mqtt"] = "connected" if ingestor.is_connected else "disconnected"
        result["lastMessageSecondsAgo"] = round(ingestor.seconds_since_last_message(), 1)
        if not ingestor.is_connected:
            result["status"] = "degraded"

    return result
