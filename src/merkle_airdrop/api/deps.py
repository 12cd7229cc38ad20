"""
Merkle Airdrop Claim Service - API Dependencies

Resolves the registry, its operation lock and the calling identity for
route handlers, and maps registry errors to HTTP responses.
"""

import asyncio

from fastapi import Header, HTTPException, Request, status

from merkle_airdrop.core.auth import CALLER_HEADER
from merkle_airdrop.crypto.leaf import normalize_identity
from merkle_airdrop.services.claim_registry import ClaimRegistry, ClaimRegistryError

ERROR_STATUS = {
    "already_claimed": status.HTTP_409_CONFLICT,
    "invalid_proof": status.HTTP_400_BAD_REQUEST,
    "unauthorized": status.HTTP_403_FORBIDDEN,
    "insufficient_funds": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def get_registry(request: Request) -> ClaimRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "not_configured", "message": "Claim registry not configured"},
        )
    return registry


def get_registry_lock(request: Request) -> asyncio.Lock:
    """
    Lock serialising registry operations.

    Every mutating request runs its registry call under this lock, giving
    the registry the one-at-a-time execution it assumes.
    """
    lock = getattr(request.app.state, "registry_lock", None)
    if lock is None:
        lock = asyncio.Lock()
        request.app.state.registry_lock = lock
    return lock


def get_caller(
    caller: str | None = Header(default=None, alias=CALLER_HEADER),
) -> str:
    """Identity the gateway authenticated for this request."""
    if not caller:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "missing_caller", "message": f"Missing {CALLER_HEADER} header"},
        )
    try:
        return normalize_identity(caller)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_caller", "message": str(e)},
        )


def registry_http_error(error: ClaimRegistryError) -> HTTPException:
    """Translate a registry failure, keeping its code for clients."""
    return HTTPException(
        status_code=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": error.code, "message": str(error)},
    )
