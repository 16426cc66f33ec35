"""
Pytest fixtures for Noema API tests. Every test starts from a clean environment
(no Stripe, no KEY_SECRET, no Upstash) and a temporary preview data dir.
"""

from __future__ import annotations

import pytest

NOEMA_ENV_VARS = (
    "UPSTREAM_SOLANA_RPC",
    "PROGRAM_ID",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "STRIPE_PRICE_STARTER",
    "STRIPE_PRICE_PRO",
    "STRIPE_PRICE_ENTERPRISE",
    "KEY_SECRET",
    "KEY_TTL_HOURS",
    "RATE_LIMIT_RPM",
    "USAGE_PRICE_PER_CALL",
    "UPSTASH_REDIS_REST_URL",
    "UPSTASH_REDIS_REST_TOKEN",
    "RECEIVING_SOLANA_ADDRESS",
    "USDC_MINT_MAINNET",
    "VERCEL_GIT_COMMIT_SHA",
    "VERCEL_GIT_COMMIT_REF",
    "VERCEL_URL",
    "X404_PROGRAM_ID",
)


@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch):
    """Unset all Noema settings and point PREVIEW_DATA_DIR at tmp_path."""
    for name in NOEMA_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PREVIEW_DATA_DIR", str(tmp_path / "data"))
    return tmp_path


@pytest.fixture
def client():
    """TestClient for the /api app."""
    from fastapi.testclient import TestClient

    from noema_api.api_server.server import app

    return TestClient(app)


@pytest.fixture
def key_secret(monkeypatch):
    secret = "test-key-secret-0123456789abcdef"
    monkeypatch.setenv("KEY_SECRET", secret)
    return secret


class FakeRedis:
    """In-memory stand-in for UpstashRedis with the same helper methods."""

    def __init__(self):
        self.values: dict[str, int] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.expires: dict[str, int] = {}

    def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update({k: str(v) for k, v in mapping.items()})

    def incr_expire(self, key, expire_seconds):
        self.values[key] = self.values.get(key, 0) + 1
        self.expires[key] = expire_seconds
        return self.values[key]

    def incrby_many(self, pairs):
        out = []
        for key, amount in pairs:
            self.values[key] = self.values.get(key, 0) + amount
            out.append(self.values[key])
        return out

    def get_many(self, keys):
        return [None if k not in self.values else str(self.values[k]) for k in keys]


@pytest.fixture
def fake_redis(monkeypatch):
    """Patch get_redis everywhere it is imported."""
    redis = FakeRedis()
    for target in (
        "noema_api.api_server.auth.get_redis",
        "noema_api.api_server.keys.get_redis",
        "noema_api.api_server.billing.get_redis",
    ):
        monkeypatch.setattr(target, lambda: redis)
    return redis
