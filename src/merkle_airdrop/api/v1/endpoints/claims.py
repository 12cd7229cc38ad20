"""
Merkle Airdrop Claim API - Claim Endpoints

- POST /claims: Redeem the caller's entitlement
- GET /claims/{identity}: Claim status of an identity
"""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from merkle_airdrop.api.deps import (
    get_caller,
    get_registry,
    get_registry_lock,
    registry_http_error,
)
from merkle_airdrop.crypto.leaf import MAX_AMOUNT, normalize_identity
from merkle_airdrop.services.claim_registry import ClaimRegistry, ClaimRegistryError

logger = structlog.get_logger(__name__)
router = APIRouter()


class ClaimRequest(BaseModel):
    """Request to redeem an entitlement."""

    amount: int = Field(
        ...,
        ge=0,
        le=MAX_AMOUNT,
        description="Entitled amount; decimal strings are accepted",
    )
    proof: list[str] = Field(
        default_factory=list,
        description="Sibling hashes from the caller's leaf to the root",
    )


class ClaimResponse(BaseModel):
    """Successful claim."""

    identity: str
    amount: str
    root: str
    status: str = "claimed"


class ClaimStatusResponse(BaseModel):
    """Claim state of one identity."""

    identity: str
    claimed: bool
    amount: str | None = None
    root: str | None = None
    claimed_at: datetime | None = None


@router.post(
    "",
    response_model=ClaimResponse,
    status_code=status.HTTP_200_OK,
    summary="Claim airdrop",
    description="Redeem the caller's entitlement against the current Merkle root.",
    responses={
        400: {"description": "Invalid proof"},
        409: {"description": "Already claimed"},
        422: {"description": "Custody cannot cover the payout"},
    },
)
async def claim(
    request: ClaimRequest,
    req: Request,
    caller: str = Depends(get_caller),
    registry: ClaimRegistry = Depends(get_registry),
) -> ClaimResponse:
    """Verify the caller's proof and pay out the entitlement once."""
    logger.info("Claim requested", identity=caller, amount=request.amount)

    try:
        async with get_registry_lock(req):
            receipt = registry.claim(request.amount, request.proof, caller)
    except ClaimRegistryError as e:
        raise registry_http_error(e)

    return ClaimResponse(
        identity=receipt.identity,
        amount=str(receipt.amount),
        root=receipt.root,
    )


@router.get(
    "/{identity}",
    response_model=ClaimStatusResponse,
    summary="Get claim status",
    responses={400: {"description": "Invalid identity"}},
)
async def get_claim_status(
    identity: str,
    registry: ClaimRegistry = Depends(get_registry),
) -> ClaimStatusResponse:
    try:
        identity = normalize_identity(identity)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_identity", "message": str(e)},
        )

    record = registry.get_claim(identity)
    if record is None or not registry.is_claimed(identity):
        return ClaimStatusResponse(identity=identity, claimed=False)

    return ClaimStatusResponse(
        identity=identity,
        claimed=True,
        amount=str(record.amount),
        root=record.root,
        claimed_at=record.claimed_at,
    )
