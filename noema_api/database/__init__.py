"""
Storage backends: Upstash Redis over HTTP (key metadata, usage counters,
subscription status) and JSON-file ledgers for the preview services.
"""

from noema_api.database.json_ledger import JsonFileLedger
from noema_api.database.upstash import UpstashRedis, get_redis

__all__ = [
    "JsonFileLedger",
    "UpstashRedis",
    "get_redis",
]
