"""
Stripe billing: subscription checkout sessions and the signed webhook.

POST /api/checkout/session  {plan} -> {url}
POST /api/webhooks/stripe   raw body + Stripe-Signature -> {received: true}

Subscription status from webhook events is kept in Upstash as
subscription:<customer> when Redis is configured.
"""

from __future__ import annotations

import json
import time
from typing import Any

import stripe
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from noema_api.config.env import get_env, get_public_base_url, get_stripe_price_map
from noema_api.core.exceptions import ConfigurationError, InvalidRequestError, UpstreamError
from noema_api.database.upstash import get_redis
from noema_api.noema_logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["billing"])

HANDLED_EVENTS = (
    "checkout.session.completed",
    "invoice.paid",
    "customer.subscription.deleted",
)


class CheckoutRequest(BaseModel):
    plan: str | None = None


class CheckoutResponse(BaseModel):
    url: str


@router.post("/checkout/session", response_model=CheckoutResponse)
def create_checkout_session(body: CheckoutRequest | None = None) -> CheckoutResponse:
    secret = get_env("STRIPE_SECRET_KEY")
    if not secret:
        raise ConfigurationError("Stripe is not configured (STRIPE_SECRET_KEY missing).")
    plan = (body.plan if body else None) or ""
    price = get_stripe_price_map().get(plan)
    if not price:
        raise InvalidRequestError("Invalid or missing plan.")

    base_url = get_public_base_url()
    try:
        session = stripe.checkout.Session.create(
            api_key=secret,
            mode="subscription",
            line_items=[{"price": price, "quantity": 1}],
            success_url=f"{base_url}/?checkout=success",
            cancel_url=f"{base_url}/pricing?checkout=cancel",
            allow_promotion_codes=True,
            metadata={"plan": plan},
        )
    except stripe.StripeError as e:
        logger.error("checkout_session_failed", plan=plan, error=str(e))
        raise UpstreamError(e.user_message or str(e)) from e
    logger.info("checkout_session_created", plan=plan, session_id=getattr(session, "id", None))
    return CheckoutResponse(url=session.url)


def _record_subscription_event(event_type: str, obj: dict[str, Any]) -> None:
    customer = obj.get("customer")
    if not customer:
        return
    now = int(time.time())
    if event_type == "checkout.session.completed":
        fields = {
            "status": "active",
            "plan": (obj.get("metadata") or {}).get("plan") or "",
            "subscription": obj.get("subscription") or "",
            "updatedAt": now,
        }
    elif event_type == "invoice.paid":
        fields = {"status": "active", "lastInvoicePaidAt": now, "updatedAt": now}
    else:
        fields = {"status": "canceled", "updatedAt": now}

    redis = get_redis()
    if redis is None:
        return
    try:
        redis.hset(f"subscription:{customer}", fields)
    except Exception as e:
        logger.warning("subscription_status_store_failed", customer=customer, error=str(e))


@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request):
    if not get_env("STRIPE_SECRET_KEY") or not get_env("STRIPE_WEBHOOK_SECRET"):
        raise ConfigurationError("Stripe webhook not configured")
    webhook_secret = get_env("STRIPE_WEBHOOK_SECRET")

    raw = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        if not signature:
            raise ValueError("missing Stripe-Signature header")
        payload = raw.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            payload, signature, webhook_secret, stripe.Webhook.DEFAULT_TOLERANCE
        )
        event = json.loads(payload)
        if not isinstance(event, dict):
            raise ValueError("event payload is not a JSON object")
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("stripe_webhook_rejected", error=str(e))
        return PlainTextResponse(f"Webhook Error: {e}", status_code=400)

    event_type = event.get("type", "")
    logger.info("stripe_webhook_received", event_type_name=event_type, event_id=event.get("id"))
    if event_type in HANDLED_EVENTS:
        data = event.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        # Upstash is a blocking HTTP call
        await run_in_threadpool(_record_subscription_event, event_type, obj if isinstance(obj, dict) else {})
    return JSONResponse({"received": True})
