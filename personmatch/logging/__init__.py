"""Structured logging helpers for the matching engine."""

import logging
from typing import Optional

from .config import configure_logging
from .context import get_log_context, log_context


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that tags records with a component, keeping call-site extras."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, component: Optional[str] = None):
    """Return a module logger, wrapped to inject ``component`` when given.

    Example:
        >>> logger = get_logger(__name__, component="composer")
        >>> logger.info("Plan composed", extra={"event": "match.composed"})
    """
    logger = logging.getLogger(name)
    if component:
        return ComponentLoggerAdapter(logger, {"component": component})
    return logger


__all__ = [
    "ComponentLoggerAdapter",
    "configure_logging",
    "get_log_context",
    "get_logger",
    "log_context",
]
