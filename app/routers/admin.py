# app/routers/admin.py
"""
Administrative endpoints: change capacity, open/close the restaurant.
Every successful change is pushed to all connected dashboards.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from app.config import Settings
from app.dependencies import get_gateway, get_ingestor, get_ledger, get_settings
from app.errors import FeedUnreachable, Unauthorized
from app.schemas.dashboard import CapacityUpdate, CapacityUpdatedOut, DashboardSnapshot, StatusToggle
from app.services.broadcast import BroadcastGateway, CAPACITY_UPDATED, DASHBOARD_UPDATE, STATUS_UPDATED
from app.services.ledger import OccupancyLedger
from app.services.sensor_ingestor import SensorIngestor
from app.utils.logger import get_logger
from app.utils.security import verify_admin_password

router = APIRouter()
logger = get_logger(__name__)


@router.post("/capacity", response_model=CapacityUpdatedOut, summary="Set max capacity (admin password)")
def update_capacity(
    body: CapacityUpdate,
    ledger: OccupancyLedger = Depends(get_ledger),
    gateway: BroadcastGateway = Depends(get_gateway),
    ingestor: Optional[SensorIngestor] = Depends(get_ingestor),
    settings: Settings = Depends(get_settings),
):
    """
    Requires the admin password. On success the new limit is also published
    to the sensor's capacity topic so the door controller stays in sync.
    """
    if not verify_admin_password(body.password, settings.ADMIN_PASSWORD_HASH):
        logger.warning("[Admin] Capacity change rejected — invalid or missing password")
        raise Unauthorized("Invalid admin password")

    capacity = ledger.update_max_capacity(body.capacity)

    if ingestor is not None:
        try:
            ingestor.publish_capacity(capacity)
        except FeedUnreachable as e:
            logger.warning(f"[Admin] Capacity saved but not sent to sensor: {e.detail}")

    gateway.publish([
        (DASHBOARD_UPDATE, ledger.get_current_status()),
        (CAPACITY_UPDATED, {"capacity": capacity}),
    ])
    return CapacityUpdatedOut(capacity=capacity)


@router.post("/status/toggle", response_model=DashboardSnapshot, summary="Open or close the restaurant")
def toggle_status(
    body: StatusToggle,
    ledger: OccupancyLedger = Depends(get_ledger),
    gateway: BroadcastGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    """Password is only checked when TOGGLE_REQUIRES_PASSWORD is enabled."""
    if settings.TOGGLE_REQUIRES_PASSWORD and not verify_admin_password(body.password, settings.ADMIN_PASSWORD_HASH):
        logger.warning("[Admin] Status toggle rejected — invalid or missing password")
        raise Unauthorized("Invalid admin password")

    is_open = ledger.set_open(body.is_open)
    snapshot = ledger.get_current_status()
    gateway.publish([
        (DASHBOARD_UPDATE, snapshot),
        (STATUS_UPDATED, {"isOpen": is_open}),
    ])
    return snapshot
