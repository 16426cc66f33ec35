"""
Structured logging for Noema API.

JSON logs with timestamp, level, logger name and event_type.
"""

from noema_api.noema_logging.logger import bind_agent, get_logger

__all__ = ["bind_agent", "get_logger"]
