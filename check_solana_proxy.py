#!/usr/bin/env python3
"""
Smoke test for the deployed Solana RPC proxy: POST getHealth to <base>/api/solana.

Exit codes: 0 = upstream answered 200, 2 = non-200, 1 = transport failure.
"""

import argparse
import os
import sys
import time

import httpx
from dotenv import load_dotenv

parser = argparse.ArgumentParser(description="Check /api/solana proxy")
parser.add_argument("base_url", nargs="?", help="Deployment base URL (default: API_BASE_URL env or localhost:8000)")
parser.add_argument("--timeout", type=float, default=10.0, help="Client-side timeout in seconds")
args = parser.parse_args()

load_dotenv()


def main() -> int:
    base = (args.base_url or os.getenv("API_BASE_URL") or "http://localhost:8000").rstrip("/")
    url = f"{base}/api/solana"
    body = {"jsonrpc": "2.0", "id": 1, "method": "getHealth"}
    print("POST", url)

    started = time.perf_counter()
    try:
        r = httpx.post(url, json=body, timeout=args.timeout)
    except httpx.HTTPError as e:
        print(f"ERROR: {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    elapsed_ms = (time.perf_counter() - started) * 1000

    print("status:", r.status_code)
    print(f"latency: {elapsed_ms:.0f} ms")
    print("body:", r.text[:500])
    return 0 if r.status_code == 200 else 2


if __name__ == "__main__":
    sys.exit(main())
