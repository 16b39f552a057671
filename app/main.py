# app/main.py
"""
FastAPI application entry point.
Wires the ledger, broadcast gateway and MQTT ingestor together, registers
error handlers and routers, and runs startup reconciliation before any
traffic is accepted.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from app.routers import admin, dashboard, health, live
from app.database import create_tables, engine as default_engine
from app.config import Settings, settings as default_settings
from app.errors import InvalidInput, OccupancyError
from app.services.broadcast import BroadcastGateway
from app.services.ledger import OccupancyLedger
from app.services.reconciler import reconcile
from app.services.sensor_ingestor import SensorIngestor
from app.utils.logger import get_logger
import time
import asyncio
import contextlib

logger = get_logger(__name__)


def create_app(
    settings: Settings = default_settings,
    engine: Engine = None,
    gateway: BroadcastGateway = None,
) -> FastAPI:
    engine = engine or default_engine

    app = FastAPI(
        title="Restaurant Occupancy Dashboard API",
        description="Live visitor counts from the door sensor, hourly stats and admin controls.",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    ledger = OccupancyLedger(
        sessionmaker(autocommit=False, autoflush=False, bind=engine),
        tz_name=settings.TIMEZONE,
        keep_min_visitor_while_open=settings.KEEP_MIN_VISITOR_WHILE_OPEN,
        lock_timeout=settings.LEDGER_LOCK_TIMEOUT_SECONDS,
    )
    gateway = gateway or BroadcastGateway()
    ingestor = SensorIngestor(ledger, gateway, settings) if settings.MQTT_ENABLED else None

    app.state.settings = settings
    app.state.ledger = ledger
    app.state.gateway = gateway
    app.state.ingestor = ingestor
    app.state.liveness_task = None

    # ── CORS (dashboard is served from another origin) ───────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Request Timing Middleware ────────────────────────────────────────────
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration = round((time.time() - start) * 1000, 2)
        logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
        return response

    # ── Error Handlers ───────────────────────────────────────────────────────
    @app.exception_handler(OccupancyError)
    async def occupancy_error_handler(request: Request, exc: OccupancyError):
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.kind} — {exc.detail}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        err = InvalidInput(f"Invalid request: {fields}")
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "internal_error", "detail": "Internal server error"},
        )

    # ── Routers ──────────────────────────────────────────────────────────────
    app.include_router(dashboard.router, prefix="/api", tags=["📊 Dashboard"])
    app.include_router(admin.router,     prefix="/api", tags=["🔐 Admin"])
    app.include_router(health.router,    tags=["💚 Health"])
    app.include_router(live.router,      tags=["📡 Live"])

    # ── Startup ───────────────────────────────────────────────────────────────
    @app.on_event("startup")
    async def startup():
        logger.info("🚀 Occupancy backend starting up...")
        create_tables(engine)
        logger.info("✅ Database tables ready")

        # Must finish before the ingestor starts writing
        reconcile(ledger, settings.DEFAULT_MAX_CAPACITY)
        gateway.bind_loop(asyncio.get_running_loop())

        if not settings.ADMIN_PASSWORD_HASH:
            logger.warning("⚠️  ADMIN_PASSWORD_HASH not set — capacity changes will be rejected")

        if ingestor is not None:
            ingestor.start()
            app.state.liveness_task = asyncio.create_task(ingestor.watch_liveness(), name="feed-liveness")
            logger.info(f"📡 Sensor topic: {settings.MQTT_TOPIC_SENSOR} | capacity topic: {settings.MQTT_TOPIC_CAPACITY}")
        else:
            logger.info("📡 MQTT disabled — no sensor input")

        logger.info(f"🌐 Listening on http://{settings.BACKEND_HOST}:{settings.BACKEND_PORT}")
        logger.info("📖 API docs at /docs")

    @app.on_event("shutdown")
    async def shutdown():
        logger.info("🛑 Occupancy backend shutting down...")
        if ingestor is not None:
            ingestor.stop_accepting()
        ledger.close()
        if ingestor is not None:
            ingestor.stop()
        if app.state.liveness_task is not None:
            app.state.liveness_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await app.state.liveness_task
            app.state.liveness_task = None
        await gateway.close()
        engine.dispose()

    return app


app = create_app()
