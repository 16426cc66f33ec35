"""
Pytest tests for Solana Pay URL building and USDC payment verification.

rpc_call is patched with canned getSignaturesForAddress / getTransaction results.
"""

from __future__ import annotations

import time
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest

TREASURY = "3oxg7wVtdp9T3sx773SMmws8zrGyAJecqTruaXfiw3mN"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def _parse(url: str):
    assert url.startswith("solana:")
    parsed = urlparse(url)
    return parsed.path, {k: v[0] for k, v in parse_qs(parsed.query).items()}


def test_solana_pay_defaults(client):
    r = client.post("/api/crypto/solana-pay", json={"amount": 29})
    assert r.status_code == 200
    recipient, query = _parse(r.json()["url"])
    assert recipient == TREASURY
    assert query == {
        "amount": "29",
        "spl-token": USDC,
        "label": "Noema Subscription",
        "message": "Subscription Payment",
        "memo": "noema",
    }


def test_solana_pay_custom_fields(client, monkeypatch):
    monkeypatch.setenv("RECEIVING_SOLANA_ADDRESS", "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka")
    r = client.post(
        "/api/crypto/solana-pay",
        json={"amount": "12.5", "label": "Pro plan", "message": "Monthly & more", "memo": "inv-42"},
    )
    recipient, query = _parse(r.json()["url"])
    assert recipient == "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
    assert query["amount"] == "12.5"
    assert query["label"] == "Pro plan"
    assert query["message"] == "Monthly & more"
    assert query["memo"] == "inv-42"


@pytest.mark.parametrize("amount", [None, "", "abc", 0, True])
def test_solana_pay_invalid_amount(client, amount):
    body = {} if amount is None else {"amount": amount}
    r = client.post("/api/crypto/solana-pay", json=body)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid amount"}


def test_build_solana_pay_url_integral_float():
    from noema_api.api_server.crypto_pay import build_solana_pay_url

    url = build_solana_pay_url(TREASURY, 10.0, USDC, "L", "M", "m")
    assert "amount=10&" in url


# --- verify-payment ---


def _tx(memo: str, pre: int, post: int, owner: str = TREASURY, mint: str = USDC) -> dict:
    return {
        "transaction": {
            "message": {
                "instructions": [
                    {"program": "spl-memo", "programId": "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr", "parsed": memo},
                ]
            }
        },
        "meta": {
            "preTokenBalances": [{"accountIndex": 1, "mint": mint, "owner": owner, "uiTokenAmount": {"amount": str(pre)}}],
            "postTokenBalances": [{"accountIndex": 1, "mint": mint, "owner": owner, "uiTokenAmount": {"amount": str(post)}}],
        },
    }


def _fake_rpc(signatures: list[dict], txs: dict[str, dict]):
    def call(url, method, params=None, **kwargs):
        if method == "getSignaturesForAddress":
            return signatures
        if method == "getTransaction":
            return txs.get(params[0])
        raise AssertionError(method)
    return call


def test_verify_payment_confirmed(client):
    now = int(time.time())
    sigs = [{"signature": "sigA", "blockTime": now - 30}, {"signature": "sigB", "blockTime": now - 60}]
    txs = {"sigA": _tx("other", 0, 5_000_000), "sigB": _tx("inv-42", 1_000_000, 30_000_000)}
    with patch("noema_api.api_server.crypto_pay.rpc_call", side_effect=_fake_rpc(sigs, txs)):
        r = client.post("/api/crypto/verify-payment", json={"amount": 29, "memo": "inv-42"})
    assert r.status_code == 200
    assert r.json() == {"confirmed": True, "signature": "sigB", "blockTime": now - 60, "amount": 29.0}


def test_verify_payment_amount_too_small(client):
    now = int(time.time())
    sigs = [{"signature": "sigA", "blockTime": now}]
    txs = {"sigA": _tx("inv-42", 0, 1_000_000)}
    with patch("noema_api.api_server.crypto_pay.rpc_call", side_effect=_fake_rpc(sigs, txs)):
        r = client.post("/api/crypto/verify-payment", json={"amount": 29, "memo": "inv-42"})
    assert r.json() == {"confirmed": False}


def test_verify_payment_outside_window(client):
    sigs = [{"signature": "sigA", "blockTime": int(time.time()) - 7200}]
    txs = {"sigA": _tx("inv-42", 0, 29_000_000)}
    with patch("noema_api.api_server.crypto_pay.rpc_call", side_effect=_fake_rpc(sigs, txs)):
        r = client.post("/api/crypto/verify-payment", json={"amount": 29, "memo": "inv-42", "withinSeconds": 3600})
    assert r.json() == {"confirmed": False}


def test_verify_payment_bad_input(client):
    assert client.post("/api/crypto/verify-payment", json={"memo": "x"}).status_code == 400
    assert client.post("/api/crypto/verify-payment", json={"amount": 1}).status_code == 400


def test_verify_payment_rpc_failure(client):
    from noema_api.core.exceptions import UpstreamError

    with patch("noema_api.api_server.crypto_pay.rpc_call", side_effect=UpstreamError("RPC down")):
        r = client.post("/api/crypto/verify-payment", json={"amount": 1, "memo": "x"})
    assert r.status_code == 500
    assert r.json() == {"error": "RPC down"}
