"""
FastAPI server: the serverless API surface under /api.

Each endpoint is stateless: it validates input, makes at most one call to an
external service (Stripe, Solana RPC, Upstash) and maps the outcome to a JSON
body. Errors are always {"error": message}. Config comes from env on every
request.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from noema_api import __version__
from noema_api.api_server.agents import router as agents_router
from noema_api.api_server.billing import router as billing_router
from noema_api.api_server.crypto_pay import router as crypto_router
from noema_api.api_server.keys import router as keys_router
from noema_api.chain.rpc import forward_rpc
from noema_api.config.env import get_branch, get_commit, get_upstream_rpc_url
from noema_api.core.handlers import install_error_handlers
from noema_api.noema_logging import get_logger

logger = get_logger(__name__)

CORS_MAX_AGE_SEC = 86400

ENDPOINTS = {
    "health": "/api/health",
    "buildInfo": "/api/build-info",
    "solana": "/api/solana",
    "checkout": "/api/checkout/session",
    "solanaPay": "/api/crypto/solana-pay",
    "keys": "/api/keys/new",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# -----------------------------------------------------------------------------
# Platform endpoints: health, build info, Solana RPC proxy
# -----------------------------------------------------------------------------

platform_router = APIRouter(tags=["platform"])


@platform_router.get("/health")
def health() -> dict[str, Any]:
    """Liveness check with deployment identification."""
    return {
        "status": "ok",
        "time": _now_iso(),
        "commit": get_commit(),
        "branch": get_branch(),
        "endpoints": ENDPOINTS,
    }


@platform_router.get("/build-info")
def build_info() -> JSONResponse:
    return JSONResponse(
        {"commit": get_commit(), "branch": get_branch(), "builtAt": _now_iso()},
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )


@platform_router.post("/solana")
async def solana_proxy(request: Request) -> Response:
    """
    JSON-RPC passthrough to UPSTREAM_SOLANA_RPC. The upstream status and body are
    returned unchanged; only transport failures become 500. The upstream call
    runs in the threadpool.
    """
    upstream = get_upstream_rpc_url()
    body = await request.body()
    try:
        status, text = await run_in_threadpool(forward_rpc, upstream, body)
    except httpx.HTTPError as e:
        logger.error("solana_proxy_failed", upstream=upstream, error=str(e))
        return JSONResponse(status_code=500, content={"error": str(e) or type(e).__name__})
    return Response(content=text, status_code=status, media_type="application/json")


# -----------------------------------------------------------------------------
# App
# -----------------------------------------------------------------------------


def create_app() -> FastAPI:
    app = FastAPI(
        title="Noema API",
        description="Serverless endpoints for SPL-8004: health, billing, Solana RPC proxy, API keys.",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Stripe-Signature"],
        max_age=CORS_MAX_AGE_SEC,
    )

    app.include_router(platform_router, prefix="/api")
    app.include_router(billing_router, prefix="/api")
    app.include_router(crypto_router, prefix="/api")
    app.include_router(keys_router, prefix="/api")
    app.include_router(agents_router, prefix="/api")

    install_error_handlers(app)
    return app


app = create_app()
