"""
Staking preview service: records stake/unstake/claim requests in a JSON file.

Demo bookkeeping only; amounts are not checked against any balance. The file is
{"stakes": [...]} in insertion order.

Run: uvicorn noema_api.preview.staking:app --port 4010
"""

from __future__ import annotations

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
from noema_api.noema_logging import get_logger

logger = get_logger(__name__)

DEFAULT_PORT = 4010
STAKING_FILE = "staking.json"


class StakeRequest(BaseModel):
    amount: Any = None
    wallet: Any = None
    signature: str | None = None


def get_staking_ledger() -> JsonFileLedger:
    """Dependency: staking.json under PREVIEW_DATA_DIR."""
    return JsonFileLedger(Path(get_preview_data_dir()) / STAKING_FILE, {"stakes": []})


def build_record(record_type: str, body: StakeRequest, *, now_ms: int | None = None) -> dict[str, Any]:
    if not body.amount or not body.wallet:
        raise InvalidRequestError("amount and wallet required")
    try:
        amount = float(body.amount)
    except (TypeError, ValueError) as e:
        raise InvalidRequestError("amount must be a number") from e
    return {
        "type": record_type,
        "amount": amount,
        "wallet": str(body.wallet),
        "signature": body.signature or None,
        "createdAt": int(time.time() * 1000) if now_ms is None else now_ms,
    }


def append_record(ledger: JsonFileLedger, record: dict[str, Any]) -> None:
    with ledger.transaction() as doc:
        stakes = doc.get("stakes")
        if not isinstance(stakes, list):
            stakes = doc["stakes"] = []
        stakes.append(record)
    logger.info(
        "staking_record_appended",
        record_type=record["type"],
        wallet=record["wallet"],
        amount=record["amount"],
    )


app = FastAPI(title="Noema Staking Preview", version="0.1.0")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
install_error_handlers(app)


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


@app.get("/stakes")
def list_stakes(ledger: JsonFileLedger = Depends(get_staking_ledger)) -> dict[str, Any]:
    stakes = ledger.read().get("stakes")
    return {"stakes": stakes if isinstance(stakes, list) else []}


@app.post("/stake")
def stake(body: StakeRequest, ledger: JsonFileLedger = Depends(get_staking_ledger)) -> dict[str, bool]:
    append_record(ledger, build_record("stake", body))
    return {"ok": True}


@app.post("/unstake")
def unstake(body: StakeRequest, ledger: JsonFileLedger = Depends(get_staking_ledger)) -> dict[str, bool]:
    append_record(ledger, build_record("unstake", body))
    return {"ok": True}


@app.post("/claim")
def claim(body: StakeRequest, ledger: JsonFileLedger = Depends(get_staking_ledger)) -> dict[str, bool]:
    append_record(ledger, build_record("claim", body))
    return {"ok": True}


def run() -> None:
    import uvicorn

    port = int(get_env("STAKING_PREVIEW_PORT", str(DEFAULT_PORT)))
    logger.info("staking_preview_starting", port=port, data_dir=str(get_preview_data_dir()))
    uvicorn.run(app, host=get_env("API_HOST", "0.0.0.0"), port=port)


if __name__ == "__main__":
    run()
