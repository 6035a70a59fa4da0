"""Unit tests for MessageIdGenerator."""

from __future__ import annotations

import random
from collections.abc import Iterator

import pytest

from flowhub_binproto.protocol.frame_codec import now_ms
from flowhub_binproto.protocol.message_id import MSG_ID_MASK, MessageIdGenerator, next_msg_id

# Test constants
FIXED_MS = 1_700_000_000_000
FIXED_RANDOM = 0xAB
SAME_MS_SAMPLES = 512
MIN_DISTINCT_LOW_BYTES = 180  # ~221 expected for 512 draws over 256 values
CLOCK_TOLERANCE_MS = 60_000


@pytest.mark.unit
def test_next_combines_clock_and_random_bits() -> None:
    """Test next() is (ms << 8) | random byte."""
    gen = MessageIdGenerator(clock=lambda: FIXED_MS, randbits=lambda _k: FIXED_RANDOM)

    assert gen.next() == (FIXED_MS << 8) | FIXED_RANDOM


@pytest.mark.unit
def test_next_requests_eight_random_bits() -> None:
    """Test the generator asks the random source for exactly 8 bits."""
    requested: list[int] = []

    def randbits(k: int) -> int:
        requested.append(k)
        return 0

    MessageIdGenerator(clock=lambda: FIXED_MS, randbits=randbits).next()

    assert requested == [8]


@pytest.mark.unit
def test_next_truncates_to_64_bits() -> None:
    """Test ids are masked to 64 bits even for clocks beyond 56 bits."""
    gen = MessageIdGenerator(clock=lambda: (1 << 60) + 5, randbits=lambda _k: 1)

    msg_id = gen.next()

    assert msg_id <= MSG_ID_MASK
    assert msg_id == (((1 << 60) + 5) << 8 | 1) & MSG_ID_MASK


@pytest.mark.unit
def test_timestamp_of_recovers_clock() -> None:
    """Test timestamp_of() returns the millisecond component."""
    gen = MessageIdGenerator(clock=lambda: FIXED_MS, randbits=lambda _k: FIXED_RANDOM)

    assert MessageIdGenerator.timestamp_of(gen.next()) == FIXED_MS


@pytest.mark.unit
def test_high_bits_non_decreasing_across_milliseconds() -> None:
    """Test the high 56 bits follow the clock."""
    ticks: Iterator[int] = iter([1, 1, 2, 3, 3, 3, 10, 11])
    rng = random.Random(1234)
    gen = MessageIdGenerator(clock=lambda: next(ticks), randbits=rng.getrandbits)

    ids = [gen.next() for _ in range(8)]
    high = [msg_id >> 8 for msg_id in ids]

    assert high == sorted(high)


@pytest.mark.unit
def test_same_millisecond_ids_mostly_distinct() -> None:
    """Test ids generated in one millisecond differ in the random byte."""
    gen = MessageIdGenerator(clock=lambda: FIXED_MS)

    ids = {gen.next() for _ in range(SAME_MS_SAMPLES)}

    assert len(ids) >= MIN_DISTINCT_LOW_BYTES
    assert {MessageIdGenerator.timestamp_of(i) for i in ids} == {FIXED_MS}


@pytest.mark.unit
def test_next_msg_id_uses_wall_clock() -> None:
    """Test the module-level helper stamps the current time."""
    before = now_ms()
    msg_id = next_msg_id()

    assert 0 <= msg_id <= MSG_ID_MASK
    assert abs(MessageIdGenerator.timestamp_of(msg_id) - before) < CLOCK_TOLERANCE_MS
