"""
Merkle Airdrop Claim Service

Merkle-committed allow-list airdrops: off-line tree building and proof
distribution, proof verification, and an exactly-once claim registry.
"""

__version__ = "1.0.0"
