"""
Program-derived addresses for SPL-8004 accounts.

Seeds: identity = [b"identity", agent_id], reputation = [b"reputation", agent_id].
"""

from __future__ import annotations

import functools
from typing import Union

from solders.pubkey import Pubkey

Seed = Union[str, bytes]


def _seed_bytes(seed: Seed) -> bytes:
    return seed.encode("utf-8") if isinstance(seed, str) else bytes(seed)


def _as_pubkey(program_id: Pubkey | str) -> Pubkey:
    return program_id if isinstance(program_id, Pubkey) else Pubkey.from_string(program_id)


def find_pda(program_id: Pubkey | str, *seeds: Seed) -> tuple[Pubkey, int]:
    """Derive (address, bump) for the given seed strings/bytes."""
    return Pubkey.find_program_address([_seed_bytes(s) for s in seeds], _as_pubkey(program_id))


@functools.lru_cache(maxsize=2048)
def identity_pda(agent_id: str, program_id: str) -> Pubkey:
    pda, _ = find_pda(program_id, "identity", agent_id)
    return pda


@functools.lru_cache(maxsize=2048)
def reputation_pda(agent_id: str, program_id: str) -> Pubkey:
    pda, _ = find_pda(program_id, "reputation", agent_id)
    return pda


def is_valid_pubkey(value: str) -> bool:
    try:
        Pubkey.from_string((value or "").strip())
        return True
    except Exception:
        return False
