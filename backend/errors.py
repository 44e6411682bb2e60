"""Custom exceptions and centralized FastAPI error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

logger = logging.getLogger(__name__)


class DisasterAPIError(Exception):
    """Base exception with HTTP status code."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class StorageError(DisasterAPIError):
    """Datastore unreachable or query failed."""

    def __init__(self, message: str):
        super().__init__(message, status_code=503)


class UpstreamError(DisasterAPIError):
    """A live third-party call failed. Adapters turn this into mock data."""

    def __init__(self, message: str):
        super().__init__(message, status_code=502)


class ValidationError(DisasterAPIError):
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class NotFoundError(DisasterAPIError):
    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}", status_code=404)


class PermissionDeniedError(DisasterAPIError):
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(DisasterAPIError)
    async def handle_api_error(_request: Request, exc: DisasterAPIError):
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc)
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            {"error": "Validation failed", "details": details},
            status_code=400,
        )

    @app.exception_handler(RateLimitExceeded)
    def handle_rate_limited(request: Request, exc: RateLimitExceeded):
        client = request.client.host if request.client else "-"
        logger.warning("Rate limit hit by %s on %s", client, request.url.path)
        return JSONResponse(
            {"error": "Too many requests from this IP, please try again later."},
            status_code=429,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            {"error": "Internal server error"},
            status_code=500,
        )
