"""
FastAPI application.

``create_app`` builds the services (record store, sessions, ledger, event
feed), registers routers and error handlers, and ties the event feed's
keep-alive task and shutdown drain to the app lifespan.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from carmarket import __version__
from carmarket.auth.directory import UserDirectory
from carmarket.auth.service import SessionService
from carmarket.auth.tokens import TokenService
from carmarket.cars.service import CarService
from carmarket.core.config import Settings, load_settings
from carmarket.events.feed import EventFeed
from carmarket.ledger.audit import AuditLog
from carmarket.ledger.service import LedgerService
from carmarket.stores.record_store import RecordStore
from carmarket.utils.exceptions import CarMarketError, StorageError
from carmarket.utils.logger import configure_logging, get_logger

from . import admin_routes, auth_routes, car_routes, faucet_routes, sse_routes, user_routes
from .auth_middleware import Services

logger = get_logger(__name__)


def build_services(settings: Settings) -> Services:
    store = RecordStore(settings.data_dir)
    feed = EventFeed()
    audit = AuditLog(store)
    tokens = TokenService(settings.jwt_secret)
    sessions = SessionService(store, tokens, bcrypt_rounds=settings.bcrypt_rounds)
    return Services(
        settings=settings,
        store=store,
        sessions=sessions,
        users=UserDirectory(store, bcrypt_rounds=settings.bcrypt_rounds),
        cars=CarService(store),
        ledger=LedgerService(store, feed, audit),
        audit=audit,
        feed=feed,
    )


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CarMarketError)
    async def carmarket_error_handler(request: Request, exc: CarMarketError) -> JSONResponse:
        if isinstance(exc, StorageError) or exc.status_code >= 500:
            logger.error("Request failed", path=request.url.path, error=exc.message)
            return _error(exc.status_code, "Internal server error")
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        return _error(400, "Invalid data", details=details)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", path=request.url.path)
        return _error(500, "Internal server error")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(json_output=settings.log_json, log_level=settings.log_level)

    services = build_services(settings)
    services.sessions.ensure_seed_admin(
        settings.admin_username,
        settings.admin_password,
        balance=settings.admin_seed_balance,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        keepalive = asyncio.create_task(services.feed.run_keepalive(settings.sse_ping_seconds))
        logger.info("Car market started", environment=settings.environment, data_dir=str(settings.data_dir))
        try:
            yield
        finally:
            keepalive.cancel()
            try:
                await keepalive
            except asyncio.CancelledError:
                pass
            services.feed.close()
            logger.info("Car market stopped")

    app = FastAPI(
        title="Car Market API",
        description="Car marketplace with balances, purchases and a live event feed",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(auth_routes.router)
    app.include_router(user_routes.router)
    app.include_router(car_routes.router)
    app.include_router(admin_routes.router)
    app.include_router(faucet_routes.router)
    app.include_router(sse_routes.router)

    @app.get("/health", tags=["health"])
    async def health() -> Dict[str, Any]:
        return {"status": "ok", "subscribers": services.feed.subscriber_count}

    return app
