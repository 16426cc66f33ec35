"""
Decoders for SPL-8004 program accounts.

Accounts are Anchor-serialised: an 8-byte discriminator followed by the struct
fields, little-endian. Layouts are fixed offsets; there is no version tag in the
account, so a layout change on-chain shows up as wrong numbers, not an error.

IdentityRegistry:
    8 disc | 32 owner | u32 len + agent_id | u32 len + metadata_uri
    | i64 created_at | i64 updated_at | u8 is_active
ReputationAccount (offsets from the start of the account):
    40 score u64 | 48 total_tasks u64 | 56 successful_tasks u64 | 64 failed_tasks u64
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import struct
from dataclasses import dataclass
from typing import Any

import base58

from noema_api.core.exceptions import AccountDecodeError

DISCRIMINATOR_LEN = 8
PUBKEY_LEN = 32

REPUTATION_SCORE_OFFSET = 40
REPUTATION_TOTAL_TASKS_OFFSET = 48
REPUTATION_SUCCESSFUL_TASKS_OFFSET = 56
REPUTATION_FAILED_TASKS_OFFSET = 64
REPUTATION_MIN_LEN = REPUTATION_FAILED_TASKS_OFFSET + 8  # 72

IDENTITY_ACCOUNT_NAME = "IdentityRegistry"


def account_discriminator(name: str) -> bytes:
    """Anchor account discriminator: sha256("account:<Name>")[:8]."""
    return hashlib.sha256(f"account:{name}".encode("utf-8")).digest()[:DISCRIMINATOR_LEN]


@dataclass(frozen=True)
class ReputationAccount:
    score: int
    total_tasks: int
    successful_tasks: int
    failed_tasks: int

    def to_dict(self) -> dict[str, int]:
        return {
            "score": self.score,
            "totalTasks": self.total_tasks,
            "successfulTasks": self.successful_tasks,
            "failedTasks": self.failed_tasks,
        }


@dataclass(frozen=True)
class IdentityAccount:
    owner: str
    agent_id: str
    metadata_uri: str
    created_at: int
    updated_at: int
    is_active: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "agentId": self.agent_id,
            "metadataUri": self.metadata_uri,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "isActive": self.is_active,
        }


def _b64(value: str) -> bytes | None:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None


def raw_bytes_from_account_data(data: object) -> bytes | None:
    """
    Normalise account data from any RPC client shape to bytes.

    solders responses already hold bytes; raw JSON-RPC returns
    ["<base64>", "base64"]; some callers pass a list of ints or an object with
    a .data attribute.
    """
    if data is None:
        return None
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str):
        return _b64(data)
    if isinstance(data, (list, tuple)):
        if not data:
            return None
        first = data[0]
        if isinstance(first, str):
            return _b64(first)
        if isinstance(first, int):
            return bytes(data)
        return None
    if hasattr(data, "data"):
        return raw_bytes_from_account_data(getattr(data, "data"))
    return None


def _u64(buf: bytes, offset: int) -> int:
    return struct.unpack_from("<Q", buf, offset)[0]


def decode_reputation(buf: bytes) -> ReputationAccount:
    """Read the four reputation counters. Raises AccountDecodeError on short data."""
    if buf is None or len(buf) < REPUTATION_MIN_LEN:
        got = 0 if buf is None else len(buf)
        raise AccountDecodeError(
            f"reputation account too short: need {REPUTATION_MIN_LEN} bytes, got {got}"
        )
    return ReputationAccount(
        score=_u64(buf, REPUTATION_SCORE_OFFSET),
        total_tasks=_u64(buf, REPUTATION_TOTAL_TASKS_OFFSET),
        successful_tasks=_u64(buf, REPUTATION_SUCCESSFUL_TASKS_OFFSET),
        failed_tasks=_u64(buf, REPUTATION_FAILED_TASKS_OFFSET),
    )


class _Cursor:
    """Sequential little-endian reader over account bytes."""

    def __init__(self, buf: bytes, offset: int = 0):
        self.buf = buf
        self.offset = offset

    def take(self, n: int) -> bytes:
        end = self.offset + n
        if n < 0 or end > len(self.buf):
            raise AccountDecodeError(
                f"identity account truncated at offset {self.offset} (wanted {n} bytes of {len(self.buf)})"
            )
        chunk = self.buf[self.offset:end]
        self.offset = end
        return chunk

    def u32(self) -> int:
        return struct.unpack("<I", self.take(4))[0]

    def i64(self) -> int:
        return struct.unpack("<q", self.take(8))[0]

    def string(self) -> str:
        return self.take(self.u32()).decode("utf-8", errors="replace")


def decode_identity(buf: bytes) -> IdentityAccount:
    """Decode an IdentityRegistry account (Borsh strings are u32-length prefixed)."""
    if buf is None:
        raise AccountDecodeError("identity account is empty")
    cur = _Cursor(buf, DISCRIMINATOR_LEN)
    owner = base58.b58encode(cur.take(PUBKEY_LEN)).decode("ascii")
    agent_id = cur.string()
    metadata_uri = cur.string()
    created_at = cur.i64()
    updated_at = cur.i64()
    is_active = cur.take(1)[0] == 1
    return IdentityAccount(
        owner=owner,
        agent_id=agent_id,
        metadata_uri=metadata_uri,
        created_at=created_at,
        updated_at=updated_at,
        is_active=is_active,
    )
