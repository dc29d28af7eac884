"""Structlog-based logging configuration with stdlib bridge.

Provides:
- configure_logging(): one-shot structlog + stdlib setup
- get_logger(): returns logger bound with component name
- log_activity(): cart event subscriber writing the activity log
"""

from __future__ import annotations

import dataclasses
import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from src.config.settings import PricingSettings

_CONFIGURED = False


def configure_logging(settings: PricingSettings | None = None) -> None:
    """One-shot structlog + stdlib bridge configuration.

    Safe to call multiple times; only the first invocation takes effect.
    Renderer is selected by settings.log_format (json|console).
    """
    global _CONFIGURED  # noqa: PLW0603
    if _CONFIGURED:
        return
    _CONFIGURED = True

    log_format = settings.log_format if settings is not None else "console"
    log_level = settings.log_level if settings is not None else "INFO"

    renderer = _select_renderer(log_format)
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Stdlib bridge: route logging.getLogger() output through structlog pipeline
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(log_level)


def get_logger(component: str) -> Any:
    """Return a structlog logger pre-bound with component."""
    return structlog.get_logger().bind(component=component)


def _select_renderer(log_format: str) -> Any:
    if log_format.lower() == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


_activity_logger = get_logger("cart_activity")


def log_activity(event: Any) -> None:
    """Cart event subscriber: one activity log record per event."""
    fields = dataclasses.asdict(event) if dataclasses.is_dataclass(event) else {}
    _activity_logger.info(type(event).__name__, **fields)
