"""
X404 mint preview service: simulates agent NFT mints for the dashboard.

Nothing touches the chain. Each mint gets a random "NF..." mint address and a
"demo_..." signature, newest first in mints.json, capped at 500 records.

Run: uvicorn noema_api.preview.x404:app --port 4004
"""

from __future__ import annotations

import secrets
import time
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from noema_api.config.env import get_env, get_preview_data_dir
from noema_api.core.exceptions import InvalidRequestError
from noema_api.core.handlers import install_error_handlers
from noema_api.database.json_ledger import JsonFileLedger
from noema_api.noema_logging import bind_agent, get_logger

logger = get_logger(__name__)

DEFAULT_PORT = 4004
MINTS_FILE = "mints.json"
MAX_MINT_RECORDS = 500

# nanoid's URL-safe alphabet
NANOID_ALPHABET = "useandom-26T198340PX75pxJACKVERYMINDBUSHWOLF_GQZbfghjklqvwyzrict"


def nanoid(size: int = 21) -> str:
    return "".join(secrets.choice(NANOID_ALPHABET) for _ in range(size))


class MintRequest(BaseModel):
    agentId: Any = None


def get_mint_ledger() -> JsonFileLedger:
    """Dependency: mints.json under PREVIEW_DATA_DIR (compact JSON array)."""
    return JsonFileLedger(Path(get_preview_data_dir()) / MINTS_FILE, [], indent=None)


def new_mint_record(agent_id: str, *, now_ms: int | None = None) -> dict[str, Any]:
    return {
        "agentId": agent_id,
        "nftMint": "NF" + nanoid(40),
        "txSignature": "demo_" + nanoid(64),
        "programId": get_env("X404_PROGRAM_ID", "preview"),
        "previewMode": True,
        "createdAt": int(time.time() * 1000) if now_ms is None else now_ms,
    }


def _prepend_capped(record: dict[str, Any]):
    def apply(items: Any) -> list[dict[str, Any]]:
        current = items if isinstance(items, list) else []
        return [record, *current][:MAX_MINT_RECORDS]
    return apply


app = FastAPI(title="X404 Preview API", version="0.1.0")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
install_error_handlers(app)


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


@app.get("/mints")
def list_mints(ledger: JsonFileLedger = Depends(get_mint_ledger)) -> dict[str, Any]:
    items = ledger.read()
    return {"items": items if isinstance(items, list) else []}


@app.post("/mint")
def mint(body: MintRequest, ledger: JsonFileLedger = Depends(get_mint_ledger)) -> dict[str, Any]:
    if not body.agentId or not isinstance(body.agentId, str):
        raise InvalidRequestError("agentId is required")
    record = new_mint_record(body.agentId)
    ledger.update(_prepend_capped(record))
    bind_agent(body.agentId).info("preview_mint_recorded", nft_mint=record["nftMint"])
    return {"success": True, **record}


def run() -> None:
    import uvicorn

    port = int(get_env("X404_PREVIEW_PORT", str(DEFAULT_PORT)))
    logger.info("x404_preview_starting", port=port, data_dir=str(get_preview_data_dir()))
    uvicorn.run(app, host=get_env("API_HOST", "0.0.0.0"), port=port)


if __name__ == "__main__":
    run()
