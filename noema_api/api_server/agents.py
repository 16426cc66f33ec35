"""
FastAPI router: read-only agent views and usage for API-key holders.

GET /api/agents              IdentityRegistry accounts of the program
GET /api/agents/{agent_id}   identity + reputation for one agent
GET /api/usage/summary       call counters and cost for the calling key

Identity/reputation data is decoded from accounts owned by the external
SPL-8004 program; nothing here writes on-chain.
"""

from __future__ import annotations

import functools
from typing import Any

from fastapi import APIRouter, Depends, Query

from noema_api.api_server.auth import AuthorizedCaller, get_usage_summary, require_api_key
from noema_api.chain.agent_wallets import AgentWallets
from noema_api.chain.pda import identity_pda
from noema_api.chain.rpc import ChainReader
from noema_api.config.env import get_program_id, get_upstream_rpc_url, get_usage_price_per_call
from noema_api.core.exceptions import InvalidRequestError, NotFoundError
from noema_api.noema_logging import bind_agent, get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["agents"])

DEFAULT_AGENT_LIST = 100
MAX_AGENT_LIST = 500


def get_chain_reader() -> ChainReader:
    """Dependency: reader for UPSTREAM_SOLANA_RPC and PROGRAM_ID."""
    return ChainReader(get_upstream_rpc_url(), get_program_id())


@functools.lru_cache(maxsize=1)
def get_agent_wallets() -> AgentWallets:
    """Dependency: agent keypair table, built on first use and kept for the process."""
    return AgentWallets.from_env()


def _parse_limit(raw: str | None) -> int:
    """?limit as an int; missing, non-numeric or non-positive values fall back to the default."""
    try:
        value = int((raw or "").strip())
    except ValueError:
        return DEFAULT_AGENT_LIST
    if value <= 0:
        return DEFAULT_AGENT_LIST
    return min(value, MAX_AGENT_LIST)


@router.get("/agents")
def list_agents(
    limit: str | None = Query(None),
    caller: AuthorizedCaller = Depends(require_api_key),
    reader: ChainReader = Depends(get_chain_reader),
) -> dict[str, Any]:
    agents = reader.list_identities(_parse_limit(limit))
    caller.track_usage()
    return {"count": len(agents), "agents": agents}


@router.get("/agents/{agent_id}")
def get_agent(
    agent_id: str,
    caller: AuthorizedCaller = Depends(require_api_key),
    reader: ChainReader = Depends(get_chain_reader),
) -> dict[str, Any]:
    agent_id = agent_id.strip()
    if not agent_id:
        raise InvalidRequestError("Invalid agentId")
    log = bind_agent(agent_id)

    identity = reader.fetch_identity(agent_id)
    if identity is None:
        log.info("agent_not_found")
        raise NotFoundError("Agent not found")
    reputation = reader.fetch_reputation(agent_id)

    caller.track_usage()
    return {
        "address": str(identity_pda(agent_id, reader.program_id)),
        **identity.to_dict(),
        "reputation": reputation.to_dict() if reputation else None,
    }


@router.get("/usage/summary")
def usage_summary(caller: AuthorizedCaller = Depends(require_api_key)) -> dict[str, Any]:
    usage = get_usage_summary(caller.auth.api_key_hash, caller.redis)
    price = get_usage_price_per_call()
    today_cost = None if usage["today"] is None else round(usage["today"] * price, 6)
    total_cost = None if usage["total"] is None else round(usage["total"] * price, 6)
    return {**usage, "unitPrice": price, "todayCost": today_cost, "totalCost": total_cost}


@router.get("/agent-wallets")
def list_agent_wallets(wallets: AgentWallets = Depends(get_agent_wallets)) -> dict[str, Any]:
    """Agents with a loaded keypair (public keys only)."""
    agents = wallets.describe()
    return {"count": len(agents), "agents": agents}
