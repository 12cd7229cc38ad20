"""
Merkle Airdrop Claim Service - Core settings, logging and gateway auth.
"""
