"""
Merkle Airdrop Claim API v1

Endpoints:
- POST /claims - Claim airdrop
- GET /claims/{identity} - Claim status
- GET /root, PUT /root - Read and rotate the Merkle root
- POST /withdrawals - Withdraw custody funds
- GET /balances/{account} - Ledger balance
- POST /distributions - Build tree and proofs
- POST /verify - Verify a proof
"""

from fastapi import APIRouter

from merkle_airdrop.api.v1.endpoints import admin, claims, distributions

router = APIRouter()
router.include_router(claims.router, prefix="/claims", tags=["Claims"])
router.include_router(admin.router, tags=["Administration"])
router.include_router(distributions.router, tags=["Distributions"])
