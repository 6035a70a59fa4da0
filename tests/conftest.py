"""Shared fixtures for flowhub-binproto tests."""

from __future__ import annotations

from collections.abc import Generator

import pytest

from flowhub_binproto.correlation import set_correlation_id
from flowhub_binproto.protocol.codec import MessageCodec
from flowhub_binproto.protocol.message_id import MessageIdGenerator
from flowhub_binproto.protocol.payload_codec import PayloadCodec
from flowhub_binproto.protocol.registry import TypeRegistry, reset_default_registry
from flowhub_binproto.protocol.schema import SchemaSet, load_schema_set
from tests.fixtures.frames import FIXED_CLOCK_MS, FIXED_RANDOM_BITS


@pytest.fixture(scope="session")
def schema_set() -> SchemaSet:
    """The packaged schema descriptor."""
    from flowhub_binproto.const import PACKAGED_SCHEMA_FILE

    return load_schema_set(PACKAGED_SCHEMA_FILE)

@pytest.fixture(scope="session")
def registry(schema_set: SchemaSet) -> TypeRegistry:
    """Registry built from the packaged descriptor."""
    return TypeRegistry.from_schema_set(schema_set)

@pytest.fixture
def payload_codec(schema_set: SchemaSet) -> PayloadCodec:
    """Payload codec over the packaged descriptor."""
    return PayloadCodec(schema_set)

@pytest.fixture
def fixed_id_generator() -> MessageIdGenerator:
    """Generator that always returns the same message id."""
    return MessageIdGenerator(clock=lambda: FIXED_CLOCK_MS, randbits=lambda _k: FIXED_RANDOM_BITS)

@pytest.fixture
def message_codec(registry: TypeRegistry, fixed_id_generator: MessageIdGenerator) -> MessageCodec:
    """Message codec with a deterministic id generator."""
    return MessageCodec(registry=registry, id_generator=fixed_id_generator)

@pytest.fixture(autouse=True)
def clean_correlation() -> Generator[None]:
    """Each test starts and ends without a correlation id."""
    set_correlation_id(None)
    yield
    set_correlation_id(None)

@pytest.fixture
def fresh_default_registry() -> Generator[None]:
    """Drop the cached process-wide registry before and after the test."""
    reset_default_registry()
    yield
    reset_default_registry()
