"""Message identifier generation.

A message ID is the wall-clock millisecond shifted left by 8 bits with 8
random bits in the low byte, truncated to 64 bits. IDs from different
milliseconds sort by time; two IDs from the same millisecond collide with
probability 1/256. No shared counter, so generators need no coordination.
"""

from __future__ import annotations

import random
import threading
from collections.abc import Callable

from flowhub_binproto.protocol.frame_codec import now_ms

MSG_ID_MASK = 0xFFFF_FFFF_FFFF_FFFF
RANDOM_BITS = 8


class MessageIdGenerator:
    """Produces 64-bit message identifiers.

    Args:
        clock: Returns the current time in milliseconds since the epoch
        randbits: Returns k random bits (``random.getrandbits`` signature)

    """

    def __init__(
        self,
        clock: Callable[[], int] = now_ms,
        randbits: Callable[[int], int] | None = None,
    ) -> None:
        self._clock = clock
        self._randbits = randbits if randbits is not None else random.SystemRandom().getrandbits

    def next(self) -> int:
        ms = self._clock()
        rnd = self._randbits(RANDOM_BITS) & 0xFF
        return ((ms << RANDOM_BITS) | rnd) & MSG_ID_MASK

    @staticmethod
    def timestamp_of(msg_id: int) -> int:
        """Recover the millisecond component of a message ID (low 56 bits of the clock)."""
        return (msg_id & MSG_ID_MASK) >> RANDOM_BITS


_default_generator: MessageIdGenerator | None = None
_default_lock = threading.Lock()


def default_generator() -> MessageIdGenerator:
    global _default_generator  # noqa: PLW0603
    with _default_lock:
        if _default_generator is None:
            _default_generator = MessageIdGenerator()
        return _default_generator


def next_msg_id() -> int:
    """Next message ID from the process-wide generator."""
    return default_generator().next()
