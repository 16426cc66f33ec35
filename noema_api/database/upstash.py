"""
Minimal Upstash Redis REST client.

Commands are sent as one pipeline request: POST <url>/pipeline with a JSON
array of command arrays and a bearer token. When UPSTASH_REDIS_REST_URL or
UPSTASH_REDIS_REST_TOKEN is unset, get_redis() returns None and callers run in
dev mode (no key metadata, no usage counters, no rate limiting).
"""

from __future__ import annotations

from typing import Any, Sequence

import httpx

from noema_api.config.env import get_env
from noema_api.core.exceptions import UpstreamError
from noema_api.noema_logging import get_logger

logger = get_logger(__name__)

REQUEST_TIMEOUT = 10.0


class UpstashRedis:
    def __init__(self, url: str, token: str, *, timeout: float = REQUEST_TIMEOUT, transport: httpx.BaseTransport | None = None):
        self.url = url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_env(cls) -> "UpstashRedis | None":
        url = get_env("UPSTASH_REDIS_REST_URL")
        token = get_env("UPSTASH_REDIS_REST_TOKEN")
        if not url or not token:
            return None
        return cls(url, token)

    def pipeline(self, commands: Sequence[Sequence[Any]]) -> list[Any]:
        """Run commands in order; returns each command's result."""
        body = [[str(part) for part in cmd] for cmd in commands]
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                r = client.post(
                    f"{self.url}/pipeline",
                    json=body,
                    headers={"authorization": f"Bearer {self.token}"},
                )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Upstash request failed: {e}") from e
        if r.status_code >= 300:
            raise UpstreamError(f"Upstash error: {r.status_code}")
        results = []
        for item in r.json():
            if isinstance(item, dict) and item.get("error"):
                raise UpstreamError(f"Upstash command error: {item['error']}")
            results.append(item.get("result") if isinstance(item, dict) else None)
        return results

    def hset(self, key: str, mapping: dict[str, Any]) -> None:
        flat: list[Any] = []
        for field, value in mapping.items():
            flat.extend([field, value])
        self.pipeline([["HSET", key, *flat]])

    def incr_expire(self, key: str, expire_seconds: int) -> int:
        """INCR then EXPIRE; returns the incremented value."""
        value, _ = self.pipeline([["INCR", key], ["EXPIRE", key, expire_seconds]])
        return int(value or 0)

    def incrby_many(self, pairs: Sequence[tuple[str, int]]) -> list[int]:
        return [int(v or 0) for v in self.pipeline([["INCRBY", k, a] for k, a in pairs])]

    def get_many(self, keys: Sequence[str]) -> list[str | None]:
        return self.pipeline([["GET", k] for k in keys])


def get_redis() -> UpstashRedis | None:
    """Client for the current environment, or None in dev mode."""
    return UpstashRedis.from_env()
