"""
FastAPI router: POST /api/keys/new, GET|POST /api/keys/verify.

Keys are self-contained signed tokens (plan, org, iat, exp). Verification
checks signature and expiry only; there is no revocation list. Key metadata is
written to Upstash when configured so usage can be attributed to plan/org.
"""

from __future__ import annotations

import json
import time
from typing import Any

import jwt
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from noema_api.api_server.auth import JWT_ALGORITHM, bearer_token, decode_api_key, sha256_hex
from noema_api.config.env import get_env, get_key_ttl_hours
from noema_api.core.exceptions import ConfigurationError, InvalidRequestError
from noema_api.database.upstash import get_redis
from noema_api.noema_logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/keys", tags=["keys"])

DEFAULT_PLAN = "rest-api"
DEFAULT_ORG = "default"


class NewKeyRequest(BaseModel):
    """POST /api/keys/new body. Both fields optional."""

    plan: str | None = Field(None, max_length=64)
    org: str | None = Field(None, max_length=128)


class NewKeyResponse(BaseModel):
    apiKey: str
    plan: str
    expiresAt: int


def _key_secret() -> str:
    secret = get_env("KEY_SECRET")
    if not secret:
        raise ConfigurationError("KEY_SECRET not configured")
    return secret


def issue_api_key(secret: str, plan: str, org: str, ttl_hours: float, *, now: int | None = None) -> tuple[str, dict[str, Any]]:
    """Sign a key; returns (token, claims)."""
    iat = int(time.time()) if now is None else now
    claims = {"plan": plan, "org": org, "iat": iat, "exp": iat + int(ttl_hours * 3600)}
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM), claims


def _store_key_metadata(token: str, plan: str, org: str, created_at: int) -> None:
    redis = get_redis()
    if redis is None:
        return
    try:
        redis.hset(f"keymeta:{sha256_hex(token)}", {"plan": plan, "org": org, "createdAt": created_at})
    except Exception as e:
        logger.warning("api_key_metadata_store_failed", plan=plan, org=org, error=str(e))


@router.post("/new", response_model=NewKeyResponse)
def new_key(body: NewKeyRequest | None = None) -> NewKeyResponse:
    secret = _key_secret()
    body = body or NewKeyRequest()
    plan = body.plan or DEFAULT_PLAN
    org = body.org or DEFAULT_ORG
    token, claims = issue_api_key(secret, plan, org, get_key_ttl_hours())
    _store_key_metadata(token, plan, org, claims["iat"])
    logger.info("api_key_issued", plan=plan, org=org, expires_at=claims["exp"])
    return NewKeyResponse(apiKey=token, plan=plan, expiresAt=claims["exp"])


async def _token_from_request(request: Request) -> str | None:
    """Bearer header, then ?token=, then JSON body {"token": ...}."""
    token = bearer_token(request) or request.query_params.get("token")
    if token:
        return token
    if request.method != "POST":
        return None
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidRequestError("Invalid JSON body") from e
    if isinstance(payload, dict) and isinstance(payload.get("token"), str):
        return payload["token"].strip() or None
    return None


@router.api_route("/verify", methods=["GET", "POST"])
async def verify_key(request: Request) -> JSONResponse:
    secret = _key_secret()
    token = await _token_from_request(request)
    if not token:
        raise InvalidRequestError("Missing token")
    try:
        decoded = decode_api_key(token, secret)
    except jwt.InvalidTokenError as e:
        logger.info("api_key_rejected", reason=type(e).__name__)
        return JSONResponse(status_code=401, content={"valid": False, "error": str(e) or "Invalid token"})
    return JSONResponse(status_code=200, content={"valid": True, "decoded": decoded})
