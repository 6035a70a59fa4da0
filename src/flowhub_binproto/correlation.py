"""
Correlation ID tracking for log lines emitted while handling one message.

Uses contextvars so that concurrent encode/decode calls in different threads
or tasks each see their own correlation ID. The message facade binds the
frame's msg_id here, which ties codec log lines to a request/response pair.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "format_msg_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Returns:
        New UUID-based correlation ID (format: UUID4 hex without dashes)
    """
    return uuid.uuid4().hex


def format_msg_id(msg_id: int) -> str:
    """Render a 64-bit msg_id as a fixed-width correlation ID (16 hex digits)."""
    return f"{msg_id & 0xFFFF_FFFF_FFFF_FFFF:016x}"


def get_correlation_id() -> str | None:
    """
    Get current correlation ID from context.

    Returns:
        Current correlation ID or None if not set
    """
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """
    Set correlation ID in current context.

    Args:
        correlation_id: Correlation ID to set (or None to clear)
    """
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
    auto_generate: bool = True,
) -> Generator[str | None]:
    """
    Context manager for correlation ID scope.

    Automatically generates correlation ID if not provided and auto_generate=True.
    Restores previous correlation ID on exit.

    Args:
        correlation_id: Specific correlation ID to use (None to auto-generate)
        auto_generate: Generate new ID if correlation_id is None

    Yields:
        The correlation ID used in this context

    Example:
        with correlation_context(format_msg_id(header.msg_id)):
            logger.debug("Decoding payload")  # tagged with the msg_id
    """
    previous_id = get_correlation_id()

    if correlation_id is None and auto_generate:
        correlation_id = generate_correlation_id()

    set_correlation_id(correlation_id)

    try:
        yield correlation_id
    finally:
        set_correlation_id(previous_id)
