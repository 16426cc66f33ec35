"""
Solana RPC access: raw JSON-RPC helpers (httpx) and a read-only account reader
(solana-py Client) for SPL-8004 identity and reputation accounts.

Every call is single-shot: no retries, no backoff. Callers map failures to an
HTTP status.
"""

from __future__ import annotations

from typing import Any

import base58
import httpx

from noema_api.chain.decoder import (
    IDENTITY_ACCOUNT_NAME,
    IdentityAccount,
    ReputationAccount,
    account_discriminator,
    decode_identity,
    decode_reputation,
    raw_bytes_from_account_data,
)
from noema_api.chain.pda import identity_pda, reputation_pda
from noema_api.core.exceptions import AccountDecodeError, UpstreamError
from noema_api.noema_logging import get_logger

logger = get_logger(__name__)

REQUEST_TIMEOUT = 20.0


def rpc_call(url: str, method: str, params: list[Any] | None = None, *, timeout: float = REQUEST_TIMEOUT) -> Any:
    """POST one JSON-RPC request and return its result. JSON-RPC errors raise UpstreamError."""
    body = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params or []}
    try:
        r = httpx.post(url, json=body, timeout=timeout)
        r.raise_for_status()
        data = r.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("rpc_call_failed", method=method, error=str(e))
        raise UpstreamError(f"RPC {method} failed: {e}") from e
    if data.get("error"):
        err = data["error"]
        message = err.get("message") if isinstance(err, dict) else str(err)
        raise UpstreamError(message or "RPC error")
    return data.get("result")


def forward_rpc(url: str, body: bytes, *, timeout: float = REQUEST_TIMEOUT) -> tuple[int, str]:
    """Pass a JSON-RPC body through unchanged. Returns (status, response text)."""
    r = httpx.post(url, content=body, headers={"content-type": "application/json"}, timeout=timeout)
    return r.status_code, r.text


class ChainReader:
    """Read-only view of SPL-8004 accounts for one RPC endpoint and program."""

    def __init__(self, rpc_url: str, program_id: str, client: Any | None = None):
        self.rpc_url = rpc_url
        self.program_id = program_id
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            from solana.rpc.api import Client
            self._client = Client(self.rpc_url)
        return self._client

    def get_account_bytes(self, pubkey: Any) -> bytes | None:
        """Raw account data, or None when the account does not exist."""
        resp = self.client.get_account_info(pubkey, encoding="base64")
        value = getattr(resp, "value", None)
        if value is None:
            return None
        return raw_bytes_from_account_data(getattr(value, "data", None))

    def fetch_identity(self, agent_id: str) -> IdentityAccount | None:
        raw = self.get_account_bytes(identity_pda(agent_id, self.program_id))
        if raw is None:
            return None
        return decode_identity(raw)

    def fetch_reputation(self, agent_id: str) -> ReputationAccount | None:
        raw = self.get_account_bytes(reputation_pda(agent_id, self.program_id))
        if raw is None:
            return None
        return decode_reputation(raw)

    def list_identities(self, limit: int = 100) -> list[dict[str, Any]]:
        """All IdentityRegistry accounts of the program (address + decoded fields)."""
        disc = base58.b58encode(account_discriminator(IDENTITY_ACCOUNT_NAME)).decode("ascii")
        params = [
            self.program_id,
            {"encoding": "base64", "filters": [{"memcmp": {"offset": 0, "bytes": disc}}]},
        ]
        result = rpc_call(self.rpc_url, "getProgramAccounts", params)
        accounts = result if isinstance(result, list) else []
        agents: list[dict[str, Any]] = []
        for acc in accounts[:limit]:
            raw = raw_bytes_from_account_data((acc.get("account") or {}).get("data"))
            if raw is None:
                continue
            try:
                identity = decode_identity(raw)
            except AccountDecodeError as e:
                logger.debug("identity_decode_skipped", address=acc.get("pubkey"), error=str(e))
                continue
            agents.append({"address": acc.get("pubkey"), **identity.to_dict()})
        return agents
