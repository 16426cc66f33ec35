"""
Agent keypairs loaded once from the environment.

Format: AGENT_<NAME>_KEY=<secret key> where the secret is base58 or a JSON
array of 64 bytes (solana-keygen output). The agent id is <NAME> lower-cased.
The table is built at startup and never changes afterwards.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

import base58
from solders.keypair import Keypair

from noema_api.noema_logging import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "AGENT_"
ENV_SUFFIX = "_KEY"


def load_keypair(secret: str) -> Keypair:
    """Keypair from a base58 string or JSON byte array. Raises ValueError."""
    raw = secret.strip()
    if raw.startswith("["):
        try:
            arr = json.loads(raw)
            return Keypair.from_bytes(bytes(arr[:64]))
        except Exception as e:
            raise ValueError("Invalid keypair JSON array") from e
    try:
        return Keypair.from_bytes(base58.b58decode(raw))
    except Exception as e:
        raise ValueError("Invalid base58 secret key") from e


class AgentWallets:
    """Immutable agent_id -> Keypair lookup."""

    def __init__(self, keypairs: Mapping[str, Keypair]):
        self._keypairs = MappingProxyType({k.lower(): v for k, v in keypairs.items()})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AgentWallets":
        env = os.environ if environ is None else environ
        keypairs: dict[str, Keypair] = {}
        for name, value in env.items():
            if not (name.startswith(ENV_PREFIX) and name.endswith(ENV_SUFFIX)):
                continue
            agent_id = name[len(ENV_PREFIX):-len(ENV_SUFFIX)].lower()
            if not agent_id or not (value or "").strip():
                continue
            try:
                keypairs[agent_id] = load_keypair(value)
            except ValueError as e:
                logger.error("agent_keypair_load_failed", agent_id=agent_id, error=str(e))
                continue
            logger.info("agent_keypair_loaded", agent_id=agent_id, pubkey=str(keypairs[agent_id].pubkey()))
        if not keypairs:
            logger.warning("agent_keypairs_empty", hint="set AGENT_<NAME>_KEY")
        return cls(keypairs)

    def get_keypair(self, agent_id: str) -> Keypair | None:
        return self._keypairs.get(agent_id.lower())

    def has_keypair(self, agent_id: str) -> bool:
        return agent_id.lower() in self._keypairs

    def list_agents(self) -> list[str]:
        return list(self._keypairs)

    def get_public_key(self, agent_id: str) -> str | None:
        kp = self.get_keypair(agent_id)
        return str(kp.pubkey()) if kp else None

    def describe(self) -> list[dict[str, Any]]:
        return [{"agentId": a, "publicKey": self.get_public_key(a)} for a in self.list_agents()]
