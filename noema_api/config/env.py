"""
Environment variable loading for Noema API.

Values are read on every call (serverless handlers must see the env of the
current invocation, and tests monkeypatch it). A .env file at the project root
is loaded when present.

- UPSTREAM_SOLANA_RPC: JSON-RPC endpoint used by the proxy and chain reads
- PROGRAM_ID: SPL-8004 identity/reputation program
- STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, STRIPE_PRICE_*: billing
- KEY_SECRET, KEY_TTL_HOURS: API key signing
- UPSTASH_REDIS_REST_URL / UPSTASH_REDIS_REST_TOKEN: usage + key metadata
- RECEIVING_SOLANA_ADDRESS, USDC_MINT_MAINNET: Solana Pay treasury
- VERCEL_GIT_COMMIT_SHA / VERCEL_GIT_COMMIT_REF: build identification
"""

from __future__ import annotations

import os
from pathlib import Path

_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEVNET_RPC_URL = "https://api.devnet.solana.com"
MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_PROGRAM_ID = "G8iYmvncvWsfHRrxZvKuPU6B2kcMj82Lpcf6og6SyMkW"
DEFAULT_PUBLIC_BASE_URL = "https://noemaprotocol.xyz"

# Treasury: subscription payments land here unless overridden
DEFAULT_RECEIVING_ADDRESS = "3oxg7wVtdp9T3sx773SMmws8zrGyAJecqTruaXfiw3mN"
USDC_MINT_MAINNET = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDC_MINT_DEVNET = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"

DEFAULT_KEY_TTL_HOURS = 24 * 365
DEFAULT_RATE_LIMIT_RPM = 120
DEFAULT_USAGE_PRICE_PER_CALL = 0.001


def load_noema_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    try:
        from dotenv import load_dotenv
        load_dotenv(_ENV_PATH)
    except Exception:
        pass


def get_env(name: str, default: str = "") -> str:
    """Stripped env value; default when unset or blank."""
    load_noema_env()
    value = (os.getenv(name) or "").strip()
    return value or default


def _float_env(name: str, default: float) -> float:
    raw = get_env(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def get_upstream_rpc_url(default: str = DEVNET_RPC_URL) -> str:
    return get_env("UPSTREAM_SOLANA_RPC", default)


def get_program_id() -> str:
    return get_env("PROGRAM_ID", DEFAULT_PROGRAM_ID)


def get_commit() -> str:
    """Short commit sha of the deployment, 'local' outside Vercel."""
    sha = get_env("VERCEL_GIT_COMMIT_SHA")
    return sha[:9] if sha else "local"


def get_branch() -> str:
    return get_env("VERCEL_GIT_COMMIT_REF", "unknown")


def get_public_base_url() -> str:
    host = get_env("VERCEL_URL")
    return f"https://{host}" if host else DEFAULT_PUBLIC_BASE_URL


def get_stripe_price_map() -> dict[str, str]:
    """Plan name -> Stripe price id. Plans without a configured price are omitted."""
    pro = get_env("STRIPE_PRICE_PRO")
    prices = {
        "starter": get_env("STRIPE_PRICE_STARTER"),
        "pro": pro,
        "professional": pro,
        "enterprise": get_env("STRIPE_PRICE_ENTERPRISE"),
    }
    return {plan: price for plan, price in prices.items() if price}


def get_key_ttl_hours() -> float:
    return _float_env("KEY_TTL_HOURS", float(DEFAULT_KEY_TTL_HOURS))


def get_rate_limit_rpm() -> int:
    return int(_float_env("RATE_LIMIT_RPM", float(DEFAULT_RATE_LIMIT_RPM)))


def get_usage_price_per_call() -> float:
    return _float_env("USAGE_PRICE_PER_CALL", DEFAULT_USAGE_PRICE_PER_CALL)


def get_receiving_address() -> str:
    return get_env("RECEIVING_SOLANA_ADDRESS", DEFAULT_RECEIVING_ADDRESS)


def get_usdc_mint() -> str:
    return get_env("USDC_MINT_MAINNET", USDC_MINT_MAINNET)


def get_preview_data_dir() -> Path:
    """Directory holding staking.json / mints.json for the preview services."""
    return Path(get_env("PREVIEW_DATA_DIR", "data"))
