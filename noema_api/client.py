"""
Python client for the Noema API and the preview services.

This is what the dashboard does over HTTP: health checks, checkout, Solana Pay
links, API key issuance, agent lookups, staking/mint previews.

Usage:
    from noema_api.client import NoemaClient
    client = NoemaClient("http://localhost:8000")
    key = client.new_key(plan="pro", org="acme")["apiKey"]
    print(client.verify_key(key))
"""

from __future__ import annotations

from typing import Any

import requests

DEFAULT_TIMEOUT = 30.0
MINT_HISTORY_LIMIT = 100


class NoemaClientError(Exception):
    """Raised when an endpoint answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None, response: requests.Response | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class _BaseClient:
    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        resp = self._session.request(method, url, params=params, json=json, headers=headers, timeout=self.timeout)
        if not resp.ok:
            detail = resp.text
            if resp.headers.get("content-type", "").startswith("application/json"):
                try:
                    payload = resp.json()
                except ValueError:
                    payload = None
                if isinstance(payload, dict):
                    detail = payload.get("error", resp.text)
            raise NoemaClientError(f"API error: {detail}", status_code=resp.status_code, response=resp)
        return resp


class NoemaClient(_BaseClient):
    """Client for the /api endpoints."""

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/api/health").json()

    def build_info(self) -> dict[str, Any]:
        return self._request("GET", "/api/build-info").json()

    def solana_rpc(self, method: str, params: list[Any] | None = None) -> dict[str, Any]:
        """Raw JSON-RPC response through the /api/solana proxy."""
        body: dict[str, Any] = {"jsonrpc": "2.0", "id": 1, "method": method}
        if params is not None:
            body["params"] = params
        return self._request("POST", "/api/solana", json=body).json()

    def create_checkout(self, plan: str) -> str:
        return self._request("POST", "/api/checkout/session", json={"plan": plan}).json()["url"]

    def solana_pay(self, amount: float | str, **fields: str) -> str:
        """Solana Pay URI; fields may set label, message, memo."""
        return self._request("POST", "/api/crypto/solana-pay", json={"amount": amount, **fields}).json()["url"]

    def verify_payment(self, amount: float | str, memo: str, within_seconds: int = 3600) -> dict[str, Any]:
        body = {"amount": amount, "memo": memo, "withinSeconds": within_seconds}
        return self._request("POST", "/api/crypto/verify-payment", json=body).json()

    def new_key(self, plan: str | None = None, org: str | None = None) -> dict[str, Any]:
        body = {k: v for k, v in {"plan": plan, "org": org}.items() if v is not None}
        return self._request("POST", "/api/keys/new", json=body).json()

    def verify_key(self, token: str) -> dict[str, Any]:
        """{"valid": bool, ...}. An invalid key is a normal answer, not an exception."""
        try:
            return self._request("GET", "/api/keys/verify", params={"token": token}).json()
        except NoemaClientError as e:
            if e.status_code == 401 and e.response is not None:
                return e.response.json()
            raise

    def _auth(self, api_key: str | None) -> dict[str, str] | None:
        return {"Authorization": f"Bearer {api_key}"} if api_key else None

    def list_agents(self, api_key: str | None = None, limit: int = 100) -> dict[str, Any]:
        return self._request("GET", "/api/agents", params={"limit": limit}, headers=self._auth(api_key)).json()

    def get_agent(self, agent_id: str, api_key: str | None = None) -> dict[str, Any]:
        return self._request("GET", f"/api/agents/{agent_id}", headers=self._auth(api_key)).json()

    def usage_summary(self, api_key: str | None = None) -> dict[str, Any]:
        return self._request("GET", "/api/usage/summary", headers=self._auth(api_key)).json()


class PreviewClient(_BaseClient):
    """Client for the staking and X404 preview services."""

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/health").json()

    def stake(self, amount: float, wallet: str, signature: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"amount": amount, "wallet": wallet}
        if signature:
            body["signature"] = signature
        return self._request("POST", "/stake", json=body).json()

    def unstake(self, amount: float, wallet: str) -> dict[str, Any]:
        return self._request("POST", "/unstake", json={"amount": amount, "wallet": wallet}).json()

    def claim(self, amount: float, wallet: str) -> dict[str, Any]:
        return self._request("POST", "/claim", json={"amount": amount, "wallet": wallet}).json()

    def stakes(self) -> list[dict[str, Any]]:
        return self._request("GET", "/stakes").json().get("stakes", [])

    def mint(self, agent_id: str) -> dict[str, Any]:
        return self._request("POST", "/mint", json={"agentId": agent_id}).json()

    def mints(self) -> list[dict[str, Any]]:
        return self._request("GET", "/mints").json().get("items", [])


class MintHistory:
    """
    Local list of mint records, newest first.

    A record is skipped when its txSignature or nftMint is already present.
    """

    def __init__(self, records: list[dict[str, Any]] | None = None, limit: int = MINT_HISTORY_LIMIT):
        self.limit = limit
        self._records: list[dict[str, Any]] = []
        for record in reversed(records or []):
            self.add(record)

    def add(self, record: dict[str, Any]) -> bool:
        """Prepend record; False when it duplicates an existing one."""
        if not isinstance(record, dict) or "agentId" not in record or "nftMint" not in record:
            return False
        sig = record.get("txSignature")
        for existing in self._records:
            if (sig and existing.get("txSignature") == sig) or existing.get("nftMint") == record["nftMint"]:
                return False
        self._records.insert(0, record)
        del self._records[self.limit:]
        return True

    def list(self) -> list[dict[str, Any]]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()
