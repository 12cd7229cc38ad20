"""
Merkle Airdrop Claim Service - Services Package

Provides the claim registry state machine, the ledger capability and the
off-line distribution builder.

Use direct imports from submodules:
    from merkle_airdrop.services.claim_registry import ClaimRegistry
    from merkle_airdrop.services.ledger import InMemoryLedger
    from merkle_airdrop.services.distribution import build_tree
"""
