"""
Pytest tests for Stripe checkout and the signed webhook.

stripe.checkout.Session.create is patched; webhook signatures are computed with
the real Stripe scheme (t=<ts>,v1=HMAC-SHA256(secret, "<ts>.<payload>")).
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import time
from types import SimpleNamespace
from unittest.mock import patch

import httpx
import pytest
import stripe

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def stripe_env(monkeypatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setenv("STRIPE_PRICE_STARTER", "price_starter")
    monkeypatch.setenv("STRIPE_PRICE_PRO", "price_pro")


def _sign(payload: str | bytes, secret: str = WEBHOOK_SECRET, ts: int | None = None) -> str:
    ts = int(time.time()) if ts is None else ts
    raw = payload if isinstance(payload, bytes) else payload.encode("utf-8")
    mac = hmac.new(secret.encode("utf-8"), f"{ts}.".encode("utf-8") + raw, hashlib.sha256).hexdigest()
    return f"t={ts},v1={mac}"


# --- Checkout ---


def test_checkout_not_configured(client):
    r = client.post("/api/checkout/session", json={"plan": "pro"})
    assert r.status_code == 501
    assert "STRIPE_SECRET_KEY" in r.json()["error"]


def test_checkout_unknown_plan(client, stripe_env):
    with patch("stripe.checkout.Session.create") as create:
        r = client.post("/api/checkout/session", json={"plan": "gold"})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid or missing plan."}
    create.assert_not_called()


def test_checkout_unpriced_plan(client, stripe_env):
    """enterprise has no STRIPE_PRICE_ENTERPRISE -> treated as unknown."""
    r = client.post("/api/checkout/session", json={"plan": "enterprise"})
    assert r.status_code == 400


def test_checkout_missing_plan(client, stripe_env):
    r = client.post("/api/checkout/session", json={})
    assert r.status_code == 400


def test_checkout_creates_subscription_session(client, stripe_env, monkeypatch):
    monkeypatch.setenv("VERCEL_URL", "noema-preview.vercel.app")
    session = SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.com/c/pay/cs_test_1")
    with patch("stripe.checkout.Session.create", return_value=session) as create:
        r = client.post("/api/checkout/session", json={"plan": "professional"})
    assert r.status_code == 200
    assert r.json() == {"url": session.url}
    kwargs = create.call_args.kwargs
    assert kwargs["api_key"] == "sk_test_123"
    assert kwargs["mode"] == "subscription"
    assert kwargs["line_items"] == [{"price": "price_pro", "quantity": 1}]
    assert kwargs["success_url"] == "https://noema-preview.vercel.app/?checkout=success"
    assert kwargs["cancel_url"] == "https://noema-preview.vercel.app/pricing?checkout=cancel"
    assert kwargs["allow_promotion_codes"] is True
    assert kwargs["metadata"] == {"plan": "professional"}


def test_checkout_stripe_error(client, stripe_env):
    err = stripe.InvalidRequestError("No such price: 'price_starter'", param="line_items")
    with patch("stripe.checkout.Session.create", side_effect=err):
        r = client.post("/api/checkout/session", json={"plan": "starter"})
    assert r.status_code == 500
    assert "error" in r.json()


# --- Webhook ---


@pytest.fixture
def webhook_env(stripe_env, monkeypatch):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)


def test_webhook_not_configured(client, stripe_env):
    r = client.post("/api/webhooks/stripe", content=b"{}")
    assert r.status_code == 501


def test_webhook_missing_signature(client, webhook_env):
    r = client.post("/api/webhooks/stripe", content=b'{"type":"invoice.paid"}')
    assert r.status_code == 400
    assert r.text.startswith("Webhook Error:")


def test_webhook_bad_signature(client, webhook_env):
    payload = json.dumps({"id": "evt_1", "type": "invoice.paid"})
    r = client.post(
        "/api/webhooks/stripe",
        content=payload.encode("utf-8"),
        headers={"Stripe-Signature": _sign(payload, secret="whsec_wrong")},
    )
    assert r.status_code == 400
    assert r.text.startswith("Webhook Error:")


def test_webhook_tampered_body(client, webhook_env):
    payload = json.dumps({"id": "evt_1", "type": "invoice.paid"})
    sig = _sign(payload)
    r = client.post(
        "/api/webhooks/stripe",
        content=payload.replace("invoice", "invoicX").encode("utf-8"),
        headers={"Stripe-Signature": sig},
    )
    assert r.status_code == 400


def test_webhook_valid_event_recorded(client, webhook_env, fake_redis):
    payload = json.dumps(
        {
            "id": "evt_2",
            "type": "checkout.session.completed",
            "data": {"object": {"customer": "cus_123", "subscription": "sub_9", "metadata": {"plan": "pro"}}},
        }
    )
    r = client.post(
        "/api/webhooks/stripe",
        content=payload.encode("utf-8"),
        headers={"Stripe-Signature": _sign(payload)},
    )
    assert r.status_code == 200
    assert r.json() == {"received": True}
    stored = fake_redis.hashes["subscription:cus_123"]
    assert stored["status"] == "active"
    assert stored["plan"] == "pro"
    assert stored["subscription"] == "sub_9"


def test_webhook_subscription_deleted(client, webhook_env, fake_redis):
    payload = json.dumps(
        {"id": "evt_3", "type": "customer.subscription.deleted", "data": {"object": {"customer": "cus_123"}}}
    )
    r = client.post(
        "/api/webhooks/stripe",
        content=payload.encode("utf-8"),
        headers={"Stripe-Signature": _sign(payload)},
    )
    assert r.status_code == 200
    assert fake_redis.hashes["subscription:cus_123"]["status"] == "canceled"


def test_webhook_unhandled_type_acknowledged(client, webhook_env, fake_redis):
    payload = json.dumps({"id": "evt_4", "type": "charge.refunded", "data": {"object": {"customer": "cus_1"}}})
    r = client.post(
        "/api/webhooks/stripe",
        content=payload.encode("utf-8"),
        headers={"Stripe-Signature": _sign(payload)},
    )
    assert r.status_code == 200
    assert r.json() == {"received": True}
    assert fake_redis.hashes == {}


def test_webhook_invalid_utf8_body(client, webhook_env):
    payload = b'{"type":"invoice.paid","x":"\xff\xfe"}'
    r = client.post("/api/webhooks/stripe", content=payload, headers={"Stripe-Signature": _sign(payload)})
    assert r.status_code == 400
    assert r.text.startswith("Webhook Error:")


@pytest.mark.parametrize("payload", ["[]", '"invoice.paid"', "42", "{not json"])
def test_webhook_signed_non_object_body(client, webhook_env, payload):
    r = client.post(
        "/api/webhooks/stripe",
        content=payload.encode("utf-8"),
        headers={"Stripe-Signature": _sign(payload)},
    )
    assert r.status_code == 400
    assert r.text.startswith("Webhook Error:")


def test_webhook_event_with_malformed_data_acknowledged(client, webhook_env, fake_redis):
    payload = json.dumps({"id": "evt_5", "type": "invoice.paid", "data": ["not", "an", "object"]})
    r = client.post(
        "/api/webhooks/stripe",
        content=payload.encode("utf-8"),
        headers={"Stripe-Signature": _sign(payload)},
    )
    assert r.status_code == 200
    assert fake_redis.hashes == {}


def test_webhook_store_does_not_block_other_requests(webhook_env, monkeypatch):
    """Recording the subscription runs off the event loop."""
    from noema_api.api_server.server import app

    class SlowRedis:
        def hset(self, key, mapping):
            time.sleep(1.0)

    monkeypatch.setattr("noema_api.api_server.billing.get_redis", lambda: SlowRedis())
    payload = json.dumps({"id": "evt_6", "type": "invoice.paid", "data": {"object": {"customer": "cus_1"}}})

    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            hook = asyncio.create_task(
                ac.post("/api/webhooks/stripe", content=payload.encode("utf-8"), headers={"Stripe-Signature": _sign(payload)})
            )
            await asyncio.sleep(0.05)
            started = time.perf_counter()
            health = await ac.get("/api/health")
            latency = time.perf_counter() - started
            return health, latency, await hook

    health, latency, hook = asyncio.run(scenario())
    assert health.status_code == 200
    assert latency < 0.5
    assert hook.json() == {"received": True}
