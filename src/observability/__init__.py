"""Structured logging for the cart pricing core."""

from .logging import configure_logging, get_logger, log_activity

__all__ = ["configure_logging", "get_logger", "log_activity"]
