"""
Merkle Airdrop Claim API - Administration Endpoints

- GET /root: Current Merkle root
- PUT /root: Rotate the Merkle root (owner only)
- POST /withdrawals: Withdraw custody funds to the owner (owner only)
- GET /balances/{account}: Ledger balance of an account
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


class RootChangeResponse(BaseModel):
    previous: str
    current: str
    max_proof_length: int
    changed_at: datetime


class RootResponse(BaseModel):
    """Active root and rotation history."""

    root: str
    owner: str
    max_proof_length: int
    proof_length_ceiling: int
    history: list[RootChangeResponse] = Field(default_factory=list)


class RootUpdateRequest(BaseModel):
    root: str = Field(
        ...,
        description="New 32-byte Merkle root, 0x-prefixed hex",
        min_length=66,
        max_length=66,
    )
    max_proof_length: int | None = Field(
        default=None,
        ge=0,
        description="Depth of the new tree; defaults to the service's proof length ceiling",
    )


class WithdrawRequest(BaseModel):
    amount: int = Field(..., ge=0, le=MAX_AMOUNT)


class WithdrawResponse(BaseModel):
    owner: str
    amount: str
    custody_balance: str


class BalanceResponse(BaseModel):
    account: str
    balance: str


def _root_response(registry: ClaimRegistry) -> RootResponse:
    return RootResponse(
        root=registry.current_root,
        owner=registry.owner,
        max_proof_length=registry.max_proof_length,
        proof_length_ceiling=registry.proof_length_ceiling,
        history=[
            RootChangeResponse(
                previous=change.previous,
                current=change.current,
                max_proof_length=change.max_proof_length,
                changed_at=change.changed_at,
            )
            for change in registry.root_history
        ],
    )


@router.get("/root", response_model=RootResponse, summary="Get current Merkle root")
async def get_root(registry: ClaimRegistry = Depends(get_registry)) -> RootResponse:
    return _root_response(registry)


@router.put(
    "/root",
    response_model=RootResponse,
    summary="Rotate Merkle root",
    description=(
        "Replace the active root. Existing claim records are kept. "
        "Send the new tree's depth as max_proof_length when it is deeper than the old one."
    ),
    responses={
        400: {"description": "Malformed root or proof bound above the ceiling"},
        403: {"description": "Caller is not the owner"},
    },
)
async def update_root(
    request: RootUpdateRequest,
    req: Request,
    caller: str = Depends(get_caller),
    registry: ClaimRegistry = Depends(get_registry),
) -> RootResponse:
    logger.info(
        "Root update requested",
        new_root=request.root,
        max_proof_length=request.max_proof_length,
    )

    try:
        async with get_registry_lock(req):
            registry.update_root(request.root, caller, request.max_proof_length)
    except ClaimRegistryError as e:
        raise registry_http_error(e)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_root", "message": str(e)},
        )

    return _root_response(registry)


@router.post(
    "/withdrawals",
    response_model=WithdrawResponse,
    summary="Withdraw custody funds",
    responses={
        403: {"description": "Caller is not the owner"},
        422: {"description": "Custody balance too low"},
    },
)
async def withdraw(
    request: WithdrawRequest,
    req: Request,
    caller: str = Depends(get_caller),
    registry: ClaimRegistry = Depends(get_registry),
) -> WithdrawResponse:
    logger.info("Withdrawal requested", amount=request.amount)

    try:
        async with get_registry_lock(req):
            registry.withdraw(request.amount, caller)
            custody = registry.custody_balance()
    except ClaimRegistryError as e:
        raise registry_http_error(e)

    return WithdrawResponse(
        owner=registry.owner,
        amount=str(request.amount),
        custody_balance=str(custody),
    )


@router.get(
    "/balances/{account}",
    response_model=BalanceResponse,
    summary="Get ledger balance",
    responses={400: {"description": "Invalid account"}},
)
async def get_balance(
    account: str,
    registry: ClaimRegistry = Depends(get_registry),
) -> BalanceResponse:
    try:
        account = normalize_identity(account)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_identity", "message": str(e)},
        )
    return BalanceResponse(account=account, balance=str(registry.ledger.balance_of(account)))
