"""
Preview services: small demo APIs that persist to local JSON files instead of
the chain (staking ledger on :4010, X404 mint log on :4004).
"""
