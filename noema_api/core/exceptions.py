"""
Application-level exceptions.

Each NoemaError carries the HTTP status the API boundary maps it to; the
message becomes the JSON {"error": ...} body and headers (rate-limit info) are
copied onto the response.
"""

from __future__ import annotations


class NoemaError(Exception):
    """Base error. status_code is used by the API exception handler."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None, headers: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.headers = headers or {}
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(NoemaError):
    """A required secret or address is not configured (501)."""

    status_code = 501


class InvalidRequestError(NoemaError):
    status_code = 400


class AuthenticationError(NoemaError):
    status_code = 401


class NotFoundError(NoemaError):
    status_code = 404


class RateLimitError(NoemaError):
    status_code = 429


class UpstreamError(NoemaError):
    """Solana RPC / Upstash / Stripe returned an error or was unreachable."""

    status_code = 500


class AccountDecodeError(ValueError):
    """Account data is shorter than the layout being decoded."""
