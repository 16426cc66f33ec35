"""
Noema API: Python services for the SPL-8004 agent identity protocol.

Stateless HTTP handlers (health, checkout, Solana RPC proxy, API keys,
payment links), a read-only view over on-chain identity/reputation accounts,
and file-backed preview ledgers used for demos.
"""

__version__ = "0.1.0"
