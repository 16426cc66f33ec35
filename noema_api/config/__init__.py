"""
Configuration for Noema API.

Settings come from environment variables (optionally a .env file); there is no
settings object, each accessor reads the current environment.
"""

from noema_api.config.env import get_env, load_noema_env  # noqa: F401

__all__ = ["get_env", "load_noema_env"]
