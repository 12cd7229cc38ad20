"""
Merkle Airdrop Claim Service - Cryptographic Utilities

Provides the entitlement leaf codec, Merkle tree construction, proof
generation, and verification.
"""

from merkle_airdrop.crypto.leaf import (
    Entitlement,
    encode_entitlement,
    leaf_hash,
    normalize_identity,
)
from merkle_airdrop.crypto.merkle import (
    DistributionError,
    MerkleProof,
    MerkleTree,
    hash_pair,
    verify_proof,
)

__all__ = [
    "Entitlement",
    "encode_entitlement",
    "leaf_hash",
    "normalize_identity",
    "DistributionError",
    "MerkleProof",
    "MerkleTree",
    "hash_pair",
    "verify_proof",
]
