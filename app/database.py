# app/database.py
"""
Database engine, session factory, and table creation.
Uses SQLAlchemy with PostgreSQL in production; SQLite URLs are accepted for
local runs and tests. All models are auto-imported in create_tables() so one
call creates every table.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from app.config import settings


def build_engine(url: str) -> Engine:
    """Create an engine with pool settings that suit the backend in use."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool   # One shared in-memory database
        return create_engine(url, **kwargs)

    return create_engine(
        url,
        pool_pre_ping=True,          # Auto-reconnect if DB connection drops
        pool_size=10,
        max_overflow=20,
        pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
        connect_args={"connect_timeout": settings.DB_POOL_TIMEOUT_SECONDS},
        echo=False,                  # Set True to log all SQL queries (debug only)
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def create_tables(bind: Engine = None):
    """
    Creates all DB tables. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from app.models.visitor_log import VisitorLog              # noqa
    from app.models.current_status import CurrentStatus        # noqa
    from app.models.hourly_statistic import HourlyStatistic    # noqa

    Base.metadata.create_all(bind=bind or engine)
