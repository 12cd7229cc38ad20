"""
Merkle Airdrop Claim Service - HTTP API.
"""
