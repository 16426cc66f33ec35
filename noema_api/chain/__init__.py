"""
Solana chain access: PDA derivation, account decoding, RPC reads.
"""

from noema_api.chain.decoder import (  # noqa: F401
    IdentityAccount,
    ReputationAccount,
    decode_identity,
    decode_reputation,
)
from noema_api.chain.pda import find_pda, identity_pda, reputation_pda  # noqa: F401
from noema_api.chain.rpc import ChainReader  # noqa: F401
