# app/routers/dashboard.py
"""Read-only dashboard endpoints: current snapshot, hourly chart, recent events."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_ledger
from app.schemas.dashboard import DashboardSnapshot
from app.schemas.hourly_stats import HourlyStatsOut
from app.schemas.visitor_event import VisitorLogOut
from app.services.ledger import OccupancyLedger

router = APIRouter()


@router.get("/dashboard", response_model=DashboardSnapshot, summary="Current occupancy snapshot")
def get_dashboard(ledger: OccupancyLedger = Depends(get_ledger)):
    """Visitors, capacity, available seats, occupancy rate and open/full/closed status."""
    return ledger.get_current_status()


@router.get("/stats/hourly", response_model=list[HourlyStatsOut], summary="24-hour histogram")
def get_hourly_stats(
    target_date: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    ledger: OccupancyLedger = Depends(get_ledger),
):
    """Always 24 rows (hour 0-23); quiet hours are zero-filled."""
    if target_date is None:
        return ledger.query_today_hourly_aggregates()
    return ledger.query_hourly_aggregates(target_date)


@router.get("/events/recent", response_model=list[VisitorLogOut], summary="Latest visitor events")
def get_recent_events(limit: int = Query(20, ge=1, le=500), ledger: OccupancyLedger = Depends(get_ledger)):
    """Most recent first."""
    return ledger.query_recent_events(limit)
