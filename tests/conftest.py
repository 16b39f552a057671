# tests/conftest.py
"""Shared fixtures: an in-memory SQLite database and a bootstrapped ledger."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before anything imports app.config
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("MQTT_ENABLED", "false")

import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.database import create_tables
from app.services.ledger import OccupancyLedger

TZ = "Asia/Jakarta"
# 12:00 in Jakarta (UTC+7); local midnight is 2026-10-18 17:00 UTC
NOW = datetime(2026, 10, 19, 5, 0, 0)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def ledger(session_factory):
    ledger = OccupancyLedger(session_factory, TZ)
    ledger.bootstrap(10)
    return ledger
