# app/dependencies.py
"""
FastAPI dependencies that hand the long-lived service objects to routes.
Everything lives on app.state; nothing is a module-level global.
"""

from typing import Optional

from fastapi import Request

from app.config import Settings
from app.services.broadcast import BroadcastGateway
from app.services.ledger import OccupancyLedger
from app.services.sensor_ingestor import SensorIngestor


def get_ledger(request: Request) -> OccupancyLedger:
    return request.app.state.ledger


def get_gateway(request: Request) -> BroadcastGateway:
    return request.app.state.gateway


def get_ingestor(request: Request) -> Optional[SensorIngestor]:
    """None when MQTT is disabled."""
    return request.app.state.ingestor


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
