"""
Fleet Management API.

REST endpoints over the vehicle collection plus a WebSocket channel that
pushes every store change to connected clients.

Run with ``python main.py`` or ``uvicorn main:create_app --factory``.
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config.settings import ConfigurationError, Settings, get_settings, validate_startup
from errors.handlers import register_exception_handlers
from health.router import router as health_router
from health.service import HealthCheckService
from middleware.rate_limiter import setup_rate_limiting
from middleware.request_id import RequestIDMiddleware
from middleware.security_headers import setup_security_headers
from realtime.notifier import ChangeNotifier
from realtime.registry import SubscriberRegistry
from realtime.router import router as realtime_router
from resilience.retry import RetryConfig
from store import create_record_store
from store.record_store import RecordStore
from telemetry.service import initialize_telemetry
from vehicles.router import reseed_router
from vehicles.router import router as vehicles_router
from vehicles.service import VehicleService

logger = logging.getLogger(__name__)

APP_TITLE = "Fleet Management API"
APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect the store and open the change feed; undo both on shutdown."""
    state = app.state
    logger.info(
        "Starting Fleet Management API...",
        extra={"extra_data": {
            "environment": state.settings.environment.value,
            "store_backend": state.settings.store_backend.value,
        }}
    )

    # A failed initial connection aborts startup
    await state.store.connect()

    subscribed = await state.change_notifier.start(timeout=state.settings.change_feed_start_timeout)

    heartbeat_task = None
    if state.settings.heartbeat_interval > 0:
        heartbeat_task = asyncio.create_task(
            state.subscriber_registry.run_heartbeats(state.settings.heartbeat_interval),
            name="subscriber-heartbeat",
        )

    logger.info(
        "Fleet Management API ready",
        extra={"extra_data": {"change_feed_open": subscribed}}
    )

    yield

    logger.info("Shutting down Fleet Management API...")
    if heartbeat_task is not None:
        heartbeat_task.cancel()
        try:
            await heartbeat_task
        except asyncio.CancelledError:
            pass
    await state.change_notifier.stop()
    await state.store.close()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use; loaded from the environment when omitted
        store: Record store to use; built from ``settings`` when omitted

    Raises:
        ConfigurationError: If the configuration is missing or invalid
    """
    settings = settings or get_settings()
    validate_startup(settings)

    telemetry = initialize_telemetry(settings)
    store = store or create_record_store(settings)
    registry = SubscriberRegistry(
        send_timeout=settings.broadcast_send_timeout,
        telemetry=telemetry,
    )
    notifier = ChangeNotifier(
        store,
        registry,
        retry_config=RetryConfig(
            max_attempts=None,
            initial_delay=settings.change_feed_initial_delay,
            exponential_base=settings.change_feed_backoff_base,
            max_delay=settings.change_feed_max_delay,
        ),
        telemetry=telemetry,
    )

    app = FastAPI(title=APP_TITLE, version=APP_VERSION, lifespan=lifespan)

    app.state.settings = settings
    app.state.telemetry = telemetry
    app.state.store = store
    app.state.subscriber_registry = registry
    app.state.change_notifier = notifier
    app.state.vehicle_service = VehicleService(store, telemetry)
    app.state.health_check_service = HealthCheckService(
        store,
        notifier,
        check_timeout=settings.health_check_timeout,
    )

    register_exception_handlers(app)

    # Middleware added later wraps earlier additions
    setup_rate_limiting(
        app,
        requests_per_minute=settings.rate_limit_requests_per_minute,
        enabled=settings.rate_limit_enabled,
    )
    app.add_middleware(RequestIDMiddleware)
    setup_security_headers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=[
            "Accept",
            "Accept-Language",
            "Content-Language",
            "Content-Type",
            "Authorization",
            "X-Request-ID",
        ],
        expose_headers=["X-Request-ID", "Retry-After"],
        max_age=600,
    )

    app.include_router(vehicles_router, prefix="/vehicles")
    app.include_router(vehicles_router, prefix="/api/vehicles")
    app.include_router(reseed_router)
    app.include_router(realtime_router)
    app.include_router(health_router)

    @app.get("/")
    async def root(request: Request):
        return {
            "status": "ok",
            "environment": request.app.state.settings.environment.value,
            "version": APP_VERSION,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }

    return app


def main() -> None:
    try:
        settings = get_settings()
        app = create_app(settings)
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error(str(e))
        sys.exit(1)

    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
