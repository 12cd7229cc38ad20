"""
Merkle Airdrop Claim Service - Gateway Authentication Middleware

The service sits behind a signing gateway that authenticates end users and
forwards the identity it verified in the X-Caller-Address header. Claims,
root rotation and withdrawals all act on that identity, so when API auth is
enabled every write request must also carry the gateway's X-API-Key.

Every request gets a request id and its caller bound to the structlog
context, so registry log lines can be traced back to the request.
"""

import secrets
import time
from collections.abc import Awaitable, Callable
from uuid import uuid4

import structlog
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from merkle_airdrop.core.config import settings

logger = structlog.get_logger(__name__)

API_KEY_HEADER = "X-API-Key"
CALLER_HEADER = "X-Caller-Address"
REQUEST_ID_HEADER = "X-Request-ID"

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# Never gated, whatever the method
OPEN_PATHS = frozenset({"/health", "/ready", "/live", "/status", "/docs", "/redoc", "/openapi.json"})
OPEN_PREFIXES = ("/metrics",)


def api_key_error(provided: str | None) -> tuple[str, str] | None:
    """
    Check a gateway key against the configured one.

    Returns:
        (code, detail) describing the failure, or None if the key is accepted
    """
    if not provided:
        return "missing_api_key", f"Missing {API_KEY_HEADER} header"
    if not secrets.compare_digest(provided.encode(), settings.API_KEY.encode()):
        return "invalid_api_key", "Invalid API key"
    return None


def is_gated(method: str, path: str) -> bool:
    """Whether a request needs the gateway key under current settings."""
    if not (settings.API_AUTH_ENABLED and settings.API_KEY):
        return False
    if method not in WRITE_METHODS:
        return False
    return path not in OPEN_PATHS and not path.startswith(OPEN_PREFIXES)


class GatewayAuthMiddleware(BaseHTTPMiddleware):
    """Gates write requests on the gateway key and binds request log context."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            caller=request.headers.get(CALLER_HEADER),
        )

        if is_gated(request.method, request.url.path):
            failure = api_key_error(request.headers.get(API_KEY_HEADER))
            if failure is not None:
                code, detail = failure
                logger.warning(
                    "Gateway key rejected",
                    code=code,
                    client=request.client.host if request.client else "unknown",
                )
                return JSONResponse(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    content={"detail": detail, "code": code},
                    headers={REQUEST_ID_HEADER: request_id},
                )

        started = time.perf_counter()
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.debug(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response
