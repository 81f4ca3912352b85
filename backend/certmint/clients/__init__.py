"""
External service clients — IPFS pinning, chain gateway and email.
"""
