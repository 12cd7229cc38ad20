"""
Merkle Airdrop Claim API v1 - Endpoint modules.
"""
