"""
API key authentication, per-minute rate limiting and usage accounting.

API keys are HS256 JWTs signed with KEY_SECRET. A key's identity for counters
is sha256(token), so raw tokens never reach Redis. Without KEY_SECRET every
caller is accepted as "dev"; without Upstash there is no rate limiting and no
usage counters.
"""

from __future__ import annotations

import hashlib
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import jwt
from fastapi import Request, Response

from noema_api.config.env import get_env, get_rate_limit_rpm
from noema_api.core.exceptions import AuthenticationError, RateLimitError
from noema_api.database.upstash import UpstashRedis, get_redis
from noema_api.noema_logging import get_logger

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
DEV_KEY_HASH = "dev"
RATE_WINDOW_SEC = 60
RATE_BUCKET_TTL_SEC = 65


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def yyyymmdd(now: datetime | None = None) -> str:
    return (now or datetime.now(timezone.utc)).strftime("%Y%m%d")


def bearer_token(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    if auth.startswith("Bearer "):
        return auth[len("Bearer "):].strip() or None
    return None


def decode_api_key(token: str, secret: str) -> dict[str, Any]:
    """Verify signature and expiry. Raises jwt.InvalidTokenError."""
    return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])


@dataclass
class ApiKeyAuth:
    api_key_hash: str
    decoded: dict[str, Any] | None = None


@dataclass
class RateLimitStatus:
    ok: bool
    limit: int
    remaining: int
    reset: float

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, math.floor(self.remaining))),
            "X-RateLimit-Reset": str(math.ceil(self.reset)),
        }


def verify_api_key(request: Request) -> ApiKeyAuth:
    secret = get_env("KEY_SECRET")
    if not secret:
        return ApiKeyAuth(api_key_hash=DEV_KEY_HASH)
    token = bearer_token(request)
    if not token:
        raise AuthenticationError("Missing Authorization: Bearer <token>")
    try:
        decoded = decode_api_key(token, secret)
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(str(e) or "Invalid token") from e
    return ApiKeyAuth(api_key_hash=sha256_hex(token), decoded=decoded)


def check_rate_limit(api_key_hash: str, redis: UpstashRedis | None = None, *, now: float | None = None) -> RateLimitStatus:
    """Fixed one-minute window per key hash."""
    rpm = get_rate_limit_rpm()
    now = time.time() if now is None else now
    reset = RATE_WINDOW_SEC - (now % RATE_WINDOW_SEC)
    if redis is None:
        return RateLimitStatus(ok=True, limit=rpm, remaining=rpm, reset=RATE_WINDOW_SEC)
    bucket = f"rl:{api_key_hash}:{int(now // RATE_WINDOW_SEC)}"
    count = redis.incr_expire(bucket, RATE_BUCKET_TTL_SEC)
    if count > rpm:
        return RateLimitStatus(ok=False, limit=rpm, remaining=0, reset=reset)
    return RateLimitStatus(ok=True, limit=rpm, remaining=max(0, rpm - count), reset=reset)


def track_usage(auth: ApiKeyAuth, redis: UpstashRedis | None, amount: int = 1) -> None:
    """Bump per-day and total counters. Failures are logged, never raised."""
    if redis is None or amount <= 0:
        return
    day_key = f"usage:day:{auth.api_key_hash}:{yyyymmdd()}"
    total_key = f"usage:total:{auth.api_key_hash}"
    try:
        redis.incrby_many([(day_key, amount), (total_key, amount)])
    except Exception as e:
        logger.warning("usage_tracking_failed", api_key_hash=auth.api_key_hash[:12], error=str(e))


def get_usage_summary(api_key_hash: str, redis: UpstashRedis | None) -> dict[str, Any]:
    if redis is None:
        return {"mode": "dev", "today": None, "total": None}
    today, total = redis.get_many(
        [f"usage:day:{api_key_hash}:{yyyymmdd()}", f"usage:total:{api_key_hash}"]
    )
    return {"mode": "prod", "today": int(today or 0), "total": int(total or 0)}


@dataclass
class AuthorizedCaller:
    """Result of require_api_key: identity plus the Redis client used for it."""

    auth: ApiKeyAuth
    redis: UpstashRedis | None
    rate_limit: RateLimitStatus | None = None

    def track_usage(self, amount: int = 1) -> None:
        track_usage(self.auth, self.redis, amount)


def require_api_key(request: Request, response: Response) -> AuthorizedCaller:
    """FastAPI dependency: authenticate, apply the rate limit, set X-RateLimit-* headers."""
    auth = verify_api_key(request)
    redis = get_redis()
    rl = check_rate_limit(auth.api_key_hash, redis)
    if not rl.ok:
        logger.info("rate_limit_exceeded", api_key_hash=auth.api_key_hash[:12], limit=rl.limit)
        raise RateLimitError("Rate limit exceeded", headers=rl.headers())
    response.headers.update(rl.headers())
    return AuthorizedCaller(auth=auth, redis=redis, rate_limit=rl)
