"""
Solana Pay subscription payments in USDC.

POST /api/crypto/solana-pay      build a solana: transfer-request URI for the treasury
POST /api/crypto/verify-payment  look for a matching USDC transfer to the treasury ATA
"""

from __future__ import annotations

import math
import time
from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter
from pydantic import BaseModel
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from noema_api.chain.rpc import rpc_call
from noema_api.config.env import (
    MAINNET_RPC_URL,
    get_receiving_address,
    get_upstream_rpc_url,
    get_usdc_mint,
)
from noema_api.core.exceptions import ConfigurationError, InvalidRequestError
from noema_api.noema_logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/crypto", tags=["crypto"])

MEMO_PROGRAM_ID = "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr"
USDC_DECIMALS = 6
SIGNATURE_SCAN_LIMIT = 50
DEFAULT_WITHIN_SECONDS = 3600


class SolanaPayRequest(BaseModel):
    amount: Any = None
    label: str = "Noema Subscription"
    message: str = "Subscription Payment"
    memo: str = "noema"


class VerifyPaymentRequest(BaseModel):
    amount: Any = None
    memo: Any = None
    withinSeconds: Any = DEFAULT_WITHIN_SECONDS
    recipient: str | None = None
    usdcMint: str | None = None


def parse_amount(raw: Any) -> float:
    """Numeric amount from a JSON number or numeric string. Zero, empty and non-numeric values are rejected."""
    if raw is None or raw == "" or isinstance(raw, bool):
        raise InvalidRequestError("Invalid amount")
    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise InvalidRequestError("Invalid amount") from e
    if math.isnan(value) or value == 0:
        raise InvalidRequestError("Invalid amount")
    return value


def _amount_text(raw: Any) -> str:
    if isinstance(raw, float) and raw.is_integer():
        return str(int(raw))
    return str(raw).strip()


def build_solana_pay_url(recipient: str, amount: Any, spl_token: str, label: str, message: str, memo: str) -> str:
    query = urlencode(
        {
            "amount": _amount_text(amount),
            "spl-token": spl_token,
            "label": label,
            "message": message,
            "memo": memo,
        }
    )
    return f"solana:{recipient}?{query}"


@router.post("/solana-pay")
def solana_pay(body: SolanaPayRequest) -> dict[str, str]:
    recipient = get_receiving_address()
    if not recipient:
        raise ConfigurationError("RECEIVING_SOLANA_ADDRESS not configured")
    parse_amount(body.amount)
    url = build_solana_pay_url(recipient, body.amount, get_usdc_mint(), body.label, body.message, body.memo)
    logger.info("treasury_payment_requested", amount=_amount_text(body.amount), recipient=recipient, memo=body.memo)
    return {"url": url}


def _has_memo(tx: dict[str, Any], memo: str) -> bool:
    instructions = (((tx.get("transaction") or {}).get("message") or {}).get("instructions")) or []
    for ix in instructions:
        if ix.get("programId") != MEMO_PROGRAM_ID and ix.get("program") != "spl-memo":
            continue
        parsed = ix.get("parsed")
        if isinstance(parsed, str) and memo in parsed:
            return True
    return False


def _token_amount(balances: list[dict[str, Any]], mint: str, owner: str) -> int | None:
    for b in balances:
        if b.get("mint") == mint and b.get("owner") == owner and b.get("accountIndex") is not None:
            return int((b.get("uiTokenAmount") or {}).get("amount") or 0)
    return None


def received_amount(tx: dict[str, Any], mint: str, owner: str) -> int | None:
    """Base-unit delta of owner's mint balance in tx, or None when owner has no post balance."""
    meta = tx.get("meta") or {}
    post = _token_amount(meta.get("postTokenBalances") or [], mint, owner)
    if post is None:
        return None
    pre = _token_amount(meta.get("preTokenBalances") or [], mint, owner) or 0
    return post - pre


@router.post("/verify-payment")
def verify_payment(body: VerifyPaymentRequest) -> dict[str, Any]:
    recipient = body.recipient or get_receiving_address()
    mint = body.usdcMint or get_usdc_mint()
    if not recipient:
        raise ConfigurationError("RECEIVING_SOLANA_ADDRESS not configured")
    amount = parse_amount(body.amount)
    if not body.memo or not isinstance(body.memo, str):
        raise InvalidRequestError("Invalid memo")
    try:
        within = float(body.withinSeconds)
    except (TypeError, ValueError):
        within = float(DEFAULT_WITHIN_SECONDS)
    try:
        ata = get_associated_token_address(Pubkey.from_string(recipient), Pubkey.from_string(mint))
    except Exception as e:
        raise InvalidRequestError("Invalid recipient or mint address") from e

    expected = round(amount * 10**USDC_DECIMALS)
    rpc_url = get_upstream_rpc_url(MAINNET_RPC_URL)
    now = int(time.time())

    signatures = rpc_call(rpc_url, "getSignaturesForAddress", [str(ata), {"limit": SIGNATURE_SCAN_LIMIT}]) or []
    for entry in signatures:
        sig = entry.get("signature")
        if not sig:
            continue
        block_time = entry.get("blockTime")
        if isinstance(block_time, int) and now - block_time > within:
            continue
        tx = rpc_call(
            rpc_url,
            "getTransaction",
            [sig, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0, "commitment": "confirmed"}],
        )
        if not tx or not _has_memo(tx, body.memo):
            continue
        delta = received_amount(tx, mint, recipient)
        if delta is not None and delta >= expected:
            logger.info("payment_confirmed", signature=sig, memo=body.memo, amount=delta / 10**USDC_DECIMALS)
            return {
                "confirmed": True,
                "signature": sig,
                "blockTime": block_time,
                "amount": delta / 10**USDC_DECIMALS,
            }
    return {"confirmed": False}
