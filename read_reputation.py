#!/usr/bin/env python3
"""
SPL-8004 on-chain reader. Derives the identity and reputation PDAs of an agent
and decodes both accounts from Solana (devnet by default) using solana-py + solders.
"""

import argparse
import os
import sys

from dotenv import load_dotenv

parser = argparse.ArgumentParser(description="Read SPL-8004 identity + reputation PDAs")
parser.add_argument("agent_id", nargs="?", help="Agent id (default: AGENT_ID env or trading-bot-001)")
parser.add_argument("--rpc", help="RPC URL (default: RPC env or devnet)")
parser.add_argument("--program-id", help="Program id (default: PROGRAM_ID env)")
args = parser.parse_args()

load_dotenv()


def main() -> int:
    from noema_api.chain import ChainReader, identity_pda, reputation_pda
    from noema_api.config.env import DEFAULT_PROGRAM_ID, DEVNET_RPC_URL
    from noema_api.core.exceptions import AccountDecodeError

    agent_id = (args.agent_id or os.getenv("AGENT_ID") or "trading-bot-001").strip()
    rpc = (args.rpc or os.getenv("RPC") or "").strip() or DEVNET_RPC_URL
    program_id = (args.program_id or os.getenv("PROGRAM_ID") or "").strip() or DEFAULT_PROGRAM_ID
    print("agent:", agent_id)
    print("rpc:", rpc)
    print("program:", program_id)

    reader = ChainReader(rpc, program_id)
    try:
        print("identity PDA:", identity_pda(agent_id, program_id))
        identity = reader.fetch_identity(agent_id)
        if identity is None:
            print("Identity account not found")
            return 0
        print("owner:", identity.owner)
        print("metadata:", identity.metadata_uri)
        print("active:", identity.is_active)

        print("reputation PDA:", reputation_pda(agent_id, program_id))
        reputation = reader.fetch_reputation(agent_id)
        if reputation is None:
            print("Reputation account not found")
            return 0
        print("score:", reputation.score)
        print("total_tasks:", reputation.total_tasks)
        print("successful_tasks:", reputation.successful_tasks)
        print("failed_tasks:", reputation.failed_tasks)
    except (AccountDecodeError, ValueError) as e:
        print("ERROR:", e, file=sys.stderr)
        return 1
    except Exception as e:
        print("ERROR: RPC failure:", e, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
