"""API middleware for authentication and logging."""

import hmac
import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({"/health", "/health/ready", "/health/live", "/docs", "/openapi.json"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging all requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        client = request.client.host if request.client else "unknown"

        logger.info(f"Request: {request.method} {request.url.path} client={client}")

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(
            f"Response: {request.method} {request.url.path} "
            f"status={response.status_code} duration={duration:.3f}s"
        )
        response.headers["X-Process-Time"] = f"{duration:.3f}"

        return response


def extract_api_key(request: Request) -> str | None:
    """API key from ``Authorization: Bearer`` or ``X-API-Key``."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.headers.get("X-API-Key")


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Middleware for API key authentication."""

    def __init__(self, app, api_key: str):
        super().__init__(app)
        self.api_key = api_key

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in PUBLIC_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        provided_key = extract_api_key(request)
        if not provided_key or not hmac.compare_digest(provided_key, self.api_key):
            logger.warning(
                f"Unauthorized request: {request.method} {request.url.path} "
                f"client={request.client.host if request.client else 'unknown'}"
            )
            return Response(
                content='{"error": "Unauthorized", "detail": "Invalid or missing API key"}',
                status_code=401,
                media_type="application/json",
            )

        return await call_next(request)
