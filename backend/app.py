"""FastAPI application entry point for the disaster coordination API."""

import asyncio
import contextlib
import logging
import sys

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from capabilities import Capability
from config import Settings, settings as default_settings
from dependencies import build_services
from errors import register_error_handlers
from services.cache import run_sweeper

# Structured logging: JSON for production, human-readable for local
if default_settings.is_production:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
        stream=sys.stdout,
    )
else:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(title="Disaster Coordination API", version="1.0.0")
    app.state.services = build_services(settings, transport)
    app.state.sweeper = None

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Per-IP rate limit shared by every HTTP route
    app.state.limiter = Limiter(
        key_func=get_remote_address,
        application_limits=[settings.rate_limit],
        enabled=settings.rate_limit_enabled,
    )
    app.add_middleware(SlowAPIMiddleware)

    # Security headers
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        client = request.client.host if request.client else "-"
        logger.info("%s %s from %s", request.method, request.url.path, client)
        return await call_next(request)

    # Centralized error handlers
    register_error_handlers(app)

    from routes.health import router as health_router
    from routes.disasters import router as disasters_router
    from routes.resources import router as resources_router
    from routes.geocode import router as geocode_router
    from routes.social_media import router as social_media_router

    app.include_router(health_router)
    app.include_router(disasters_router)
    app.include_router(resources_router)
    app.include_router(geocode_router)
    app.include_router(social_media_router)

    @app.on_event("startup")
    async def _start() -> None:
        missing = settings.validate()
        if missing:
            logger.warning("Missing env vars (mock data will be served): %s", ", ".join(missing))

        services = app.state.services
        logger.info("Capabilities: %s", services.capabilities.as_dict())
        if services.capabilities.is_live(Capability.DATASTORE):
            app.state.sweeper = asyncio.create_task(
                run_sweeper(services.cache_store, settings.cache_sweep_interval_seconds)
            )

    @app.on_event("shutdown")
    async def _stop() -> None:
        sweeper = app.state.sweeper
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper

    return app


app = create_app()
