"""
Merkle Airdrop Claim Service - Metrics Module

Exports:
- Claim and payout counters
- Root rotation and withdrawal counters
- Merkle tree build times
"""

from merkle_airdrop.metrics.claim_metrics import (
    ClaimMetrics,
    get_claim_metrics,
)

__all__ = [
    "ClaimMetrics",
    "get_claim_metrics",
]
