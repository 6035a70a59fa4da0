"""Type registry: numeric type identifier to qualified payload schema name.

A registry is an immutable value built from a validated SchemaSet. The
process-wide default registry is built once, lazily, under a lock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from flowhub_binproto.protocol.exceptions import SchemaDefinitionError, UnknownTypeError
from flowhub_binproto.protocol.message_types import MessageType
from flowhub_binproto.protocol.schema import SchemaSet, load_schema_set

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryEntry:
    """One registered message type."""

    type_id: int
    name: str
    schema_name: str | None


class TypeRegistry:
    """Immutable bidirectional map between type identifiers and schema names.

    Type identifiers whose messages carry no schema (opaque payloads or bare
    acks) are listed as entries with ``schema_name=None`` and resolve to None.
    """

    __slots__ = ("_by_id", "_by_schema", "_schema_set")

    def __init__(self, entries: list[RegistryEntry], schema_set: SchemaSet | None = None) -> None:
        by_id: dict[int, RegistryEntry] = {}
        by_schema: dict[str, int] = {}
        for entry in entries:
            if entry.type_id in by_id:
                error_reason = f"duplicate type id {entry.type_id}"
                raise SchemaDefinitionError(error_reason)
            by_id[entry.type_id] = entry
            if entry.schema_name is not None:
                if entry.schema_name in by_schema:
                    error_reason = f"schema {entry.schema_name} registered under several ids"
                    raise SchemaDefinitionError(error_reason)
                by_schema[entry.schema_name] = entry.type_id
        self._by_id = MappingProxyType(by_id)
        self._by_schema = MappingProxyType(by_schema)
        self._schema_set = schema_set

    @classmethod
    def from_schema_set(cls, schema_set: SchemaSet, check_enum: bool = True) -> TypeRegistry:
        """Build a registry from a descriptor's type table.

        Args:
            schema_set: Validated descriptor
            check_enum: Require the type table to match MessageType exactly

        Raises:
            SchemaDefinitionError: If the type table and MessageType disagree

        """
        entries = [RegistryEntry(t.id, t.name, t.payload) for t in schema_set.types]
        if check_enum:
            _check_against_enum(entries)
        registry = cls(entries, schema_set)
        logger.debug("Built type registry with %d entries", len(registry))
        return registry

    @property
    def schema_set(self) -> SchemaSet | None:
        return self._schema_set

    def resolve(self, type_id: int) -> str | None:
        """Return the qualified schema name for type_id, or None if it has none."""
        entry = self._by_id.get(type_id)
        return entry.schema_name if entry is not None else None

    def require(self, type_id: int) -> str:
        """Like resolve() but raises UnknownTypeError when there is no schema."""
        schema_name = self.resolve(type_id)
        if schema_name is None:
            raise UnknownTypeError(type_id)
        return schema_name

    def type_id_of(self, schema_name: str) -> int | None:
        """Reverse lookup: type identifier registered for a qualified schema name."""
        if self._schema_set is not None:
            schema_name = self._schema_set.qualify(schema_name)
        return self._by_schema.get(schema_name)

    def entry(self, type_id: int) -> RegistryEntry | None:
        return self._by_id.get(type_id)

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(sorted(self._by_id.values(), key=lambda e: e.type_id))


def _check_against_enum(entries: list[RegistryEntry]) -> None:
    table = {e.type_id: e.name for e in entries}
    enum_table = {int(m): m.name for m in MessageType}
    problems: list[str] = []
    for type_id, name in sorted(enum_table.items()):
        if type_id not in table:
            problems.append(f"{name}={type_id} missing from descriptor")
        elif table[type_id] != name:
            problems.append(f"id {type_id} is {name} in code but {table[type_id]} in descriptor")
    problems.extend(
        f"{name}={type_id} missing from MessageType" for type_id, name in sorted(table.items()) if type_id not in enum_table
    )
    if problems:
        error_reason = "type table mismatch: " + "; ".join(problems)
        raise SchemaDefinitionError(error_reason)


_default_registry: TypeRegistry | None = None
_default_lock = threading.Lock()


def default_registry(path: str | Path | None = None) -> TypeRegistry:
    """Process-wide registry built from the descriptor file on first use.

    ``path`` only matters on the first call.
    """
    global _default_registry  # noqa: PLW0603
    with _default_lock:
        if _default_registry is None:
            _default_registry = TypeRegistry.from_schema_set(load_schema_set(path))
        return _default_registry


def reset_default_registry() -> None:
    """Drop the cached default registry (used by tests and after FLOWHUB_SCHEMA_FILE changes)."""
    global _default_registry  # noqa: PLW0603
    with _default_lock:
        _default_registry = None
