"""
ASGI application entrypoint.

Run with: uvicorn noema_api.api_server.app:app --host 0.0.0.0 --port 8000
"""

from noema_api.api_server.server import app

__all__ = ["app"]
