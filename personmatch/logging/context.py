"""Scoped logging context.

Fields pushed here (``match_id``, ``source_a``, ``source_b`` and so on) are
attached to every record emitted inside the scope by ``ContextualFilter``.
Context lives in a ContextVar, so separate threads and tasks never see each
other's fields.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

_log_context: ContextVar[Dict[str, Any]] = ContextVar("personmatch_log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the active context fields."""
    return dict(_log_context.get())


def push_log_context(**fields) -> Token:
    """Merge ``fields`` into the active context and return a reset token."""
    return _log_context.set({**_log_context.get(), **fields})


def pop_log_context(token: Token) -> None:
    """Restore the context captured by ``push_log_context``."""
    _log_context.reset(token)


def clear_log_context() -> None:
    """Drop every context field. Mostly used by tests."""
    _log_context.set({})


class log_context:
    """Context manager form of push/pop.

    Example:
        >>> with log_context(match_id="3f9c", source_a="patients"):
        ...     logger.info("Materializing")
    """

    def __init__(self, **fields):
        self.fields = fields
        self._token: Optional[Token] = None

    def __enter__(self):
        self._token = push_log_context(**self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            pop_log_context(self._token)
            self._token = None
        return False
