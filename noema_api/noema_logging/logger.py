"""
Structured JSON logging for the API handlers, preview ledgers and scripts.

One JSON line per event on stdout with timestamp, level, logger and event_type.
The events are the handler outcomes (api_key_issued, checkout_session_created,
stripe_webhook_received, payment_confirmed, rate_limit_exceeded,
solana_proxy_failed), upstream failures (rpc_call_failed,
usage_tracking_failed), and preview ledger writes (staking_record_appended,
preview_mint_recorded). Agent lookups bind agent_id via bind_agent(). Values
under credential keys (api_key, token, secret...) are replaced before rendering.

No noema_api imports here so any module can import it first.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# json in deployments; LOG_FORMAT=console for local runs
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Expose structlog's positional event as event_type."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


# Context keys whose values must never reach the logs
REDACTED_KEYS = frozenset({"api_key", "token", "apiKey", "secret", "signature_header", "authorization"})


def _redact_secrets(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "[redacted]"
    return event_dict


def configure_structlog() -> None:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _normalize_event,
        _redact_secrets,
    ]
    if LOG_FORMAT == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL_VALUE),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger bound to the module name.

        logger = get_logger(__name__)
        logger.info("api_key_issued", plan="pro", org="acme")
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_agent(agent_id: str) -> structlog.BoundLogger:
    """Logger with agent_id attached to every call (scripts and agent lookups)."""
    return get_logger("noema_api").bind(agent_id=agent_id)
