"""
Merkle Airdrop Claim API - Distribution Endpoints

- POST /distributions: Build a tree and proofs from an entitlement list
- POST /verify: Check a proof without touching claim state
"""

import structlog
from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field

from merkle_airdrop.crypto.leaf import MAX_AMOUNT
from merkle_airdrop.crypto.merkle import DistributionError, verify_proof
from merkle_airdrop.metrics import get_claim_metrics
from merkle_airdrop.services.distribution import build_tree

logger = structlog.get_logger(__name__)
router = APIRouter()


class EntitlementItem(BaseModel):
    identity: str
    amount: int = Field(..., ge=0, le=MAX_AMOUNT)


class DistributionRequest(BaseModel):
    """Entitlement list for one campaign."""

    entitlements: list[EntitlementItem] = Field(..., min_length=1)


class RecipientClaim(BaseModel):
    amount: str
    proof: list[str]


class DistributionResponse(BaseModel):
    root: str
    depth: int
    recipients: int
    total_amount: str
    claims: dict[str, RecipientClaim]


class VerifyRequest(BaseModel):
    """Proof to check; the registry's current root is used when root is omitted."""

    identity: str
    amount: int = Field(..., ge=0, le=MAX_AMOUNT)
    proof: list[str] = Field(default_factory=list)
    root: str | None = Field(default=None, description="Root to verify against")


class VerifyResponse(BaseModel):
    verified: bool
    root: str
    message: str


@router.post(
    "/distributions",
    response_model=DistributionResponse,
    summary="Build distribution",
    description="Build the Merkle root and per-recipient proofs for an entitlement list.",
    responses={422: {"description": "Empty list, invalid entry or duplicate identity"}},
)
async def create_distribution(request: DistributionRequest) -> DistributionResponse:
    logger.info("Distribution build requested", recipients=len(request.entitlements))

    try:
        distribution = build_tree(
            (item.identity, item.amount) for item in request.entitlements
        )
    except DistributionError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "invalid_distribution", "message": str(e)},
        )

    return DistributionResponse(
        root=distribution.root,
        depth=distribution.depth,
        recipients=len(distribution.proofs),
        total_amount=str(distribution.total_amount),
        claims={
            identity: RecipientClaim(amount=str(proof.amount), proof=proof.proof)
            for identity, proof in distribution.proofs.items()
        },
    )


@router.post(
    "/verify",
    response_model=VerifyResponse,
    summary="Verify entitlement proof",
    responses={503: {"description": "No root given and no registry configured"}},
)
async def verify_entitlement(request: VerifyRequest, req: Request) -> VerifyResponse:
    root = request.root
    max_length = None
    if root is None:
        registry = getattr(req.app.state, "registry", None)
        if registry is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail={"code": "not_configured", "message": "Claim registry not configured"},
            )
        root = registry.current_root
        max_length = registry.max_proof_length

    verified = verify_proof(root, request.identity, request.amount, request.proof, max_length)
    get_claim_metrics().record_merkle_verification(verified)

    return VerifyResponse(
        verified=verified,
        root=root,
        message="Proof valid" if verified else "Proof does not match root",
    )
