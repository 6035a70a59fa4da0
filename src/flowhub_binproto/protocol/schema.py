"""Schema descriptor models and the descriptor file loader.

The descriptor file (YAML) is the single source of truth for the type table,
the reflection message schemas and the bitmask record layouts. It is parsed
with ``yaml.safe_load`` and validated into frozen pydantic models once, at
load time; the codecs only ever see validated descriptors.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from flowhub_binproto.protocol.exceptions import SchemaDefinitionError

logger = logging.getLogger(__name__)

SchemaKind = Literal["message", "record"]

# Reflection message scalar types grouped by wire type
VARINT_TYPES = frozenset({"int32", "int64", "uint32", "uint64", "sint32", "sint64", "bool", "enum"})
FIXED64_TYPES = frozenset({"fixed64", "sfixed64", "double"})
FIXED32_TYPES = frozenset({"fixed32", "sfixed32", "float"})
LENGTH_TYPES = frozenset({"string", "bytes"})
MESSAGE_SCALAR_TYPES = VARINT_TYPES | FIXED64_TYPES | FIXED32_TYPES | LENGTH_TYPES

# Bitmask record scalar types
RECORD_SCALAR_TYPES = frozenset({"u8", "u16", "u32", "u64", "i32", "i64", "bool", "str", "bytes"})

MAX_FIELD_TAG = (1 << 29) - 1


class MessageField(BaseModel):
    """One field of a reflection message."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    tag: int = Field(ge=1, le=MAX_FIELD_TAG)
    type: str
    repeated: bool = False
    optional: bool = False

    @model_validator(mode="after")
    def _check_flags(self) -> MessageField:
        if self.repeated and self.optional:
            msg = f"field {self.name!r} cannot be both repeated and optional"
            raise ValueError(msg)
        return self

    @property
    def is_scalar(self) -> bool:
        return self.type in MESSAGE_SCALAR_TYPES


class MessageSchema(BaseModel):
    """Reflection message: fields identified on the wire by tag."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    fields: tuple[MessageField, ...] = ()

    @model_validator(mode="after")
    def _check_unique(self) -> MessageSchema:
        names = [f.name for f in self.fields]
        tags = [f.tag for f in self.fields]
        if len(set(names)) != len(names):
            msg = f"message {self.name!r} has duplicate field names"
            raise ValueError(msg)
        if len(set(tags)) != len(tags):
            msg = f"message {self.name!r} has duplicate field tags"
            raise ValueError(msg)
        return self

    def field_by_tag(self, tag: int) -> MessageField | None:
        for f in self.fields:
            if f.tag == tag:
                return f
        return None

    def field_names(self) -> frozenset[str]:
        return frozenset(f.name for f in self.fields)


class RecordField(BaseModel):
    """One field of a bitmask record. A field with ``bit`` is optional."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    type: str
    repeated: bool = False
    bit: int | None = Field(default=None, ge=0, le=7)

    @property
    def optional(self) -> bool:
        return self.bit is not None

    @property
    def is_scalar(self) -> bool:
        return self.type in RECORD_SCALAR_TYPES


class RecordSchema(BaseModel):
    """Fixed-order record with an optional leading presence bitmask byte.

    Optional bits are unique and ascend in declared order so that the
    bitmask reads the same way the fields are laid out.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    fields: tuple[RecordField, ...] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_layout(self) -> RecordSchema:
        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            msg = f"record {self.name!r} has duplicate field names"
            raise ValueError(msg)
        bits = [f.bit for f in self.fields if f.bit is not None]
        if len(set(bits)) != len(bits):
            msg = f"record {self.name!r} has duplicate presence bits"
            raise ValueError(msg)
        if bits != sorted(bits):
            msg = f"record {self.name!r} presence bits must ascend in field order"
            raise ValueError(msg)
        return self

    @property
    def has_bitmask(self) -> bool:
        return any(f.bit is not None for f in self.fields)

    def field_names(self) -> frozenset[str]:
        return frozenset(f.name for f in self.fields)


class TypeEntry(BaseModel):
    """Type table row: numeric type identifier, code-level name, payload schema."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int = Field(ge=0, le=0xFFFF)
    name: str = Field(min_length=1)
    payload: str | None = None


class SchemaSet(BaseModel):
    """All descriptors from one descriptor file, keyed by qualified name."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    package: str = ""
    types: tuple[TypeEntry, ...] = ()
    messages: dict[str, MessageSchema] = Field(default_factory=dict)
    records: dict[str, RecordSchema] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _qualify_names(cls, data: object) -> object:
        """Attach names to schema bodies and qualify them with the package."""
        if not isinstance(data, Mapping):
            return data
        package = data.get("package") or ""

        def qualify(name: str) -> str:
            return qualify_name(package, name)

        def qualify_field_type(field: object, scalars: frozenset[str]) -> object:
            if isinstance(field, Mapping) and isinstance(field.get("type"), str) and field["type"] not in scalars:
                return {**field, "type": qualify(field["type"])}
            return field

        out = dict(data)
        for section, scalars in (("messages", MESSAGE_SCALAR_TYPES), ("records", RECORD_SCALAR_TYPES)):
            raw = data.get(section) or {}
            if not isinstance(raw, Mapping):
                return data
            qualified: dict[str, object] = {}
            for name, body in raw.items():
                if isinstance(body, Mapping):
                    fields = [qualify_field_type(f, scalars) for f in body.get("fields") or ()]
                    body = {**body, "name": qualify(str(name)), "fields": fields}
                qualified[qualify(str(name))] = body
            out[section] = qualified

        types = data.get("types") or ()
        if isinstance(types, list | tuple):
            out["types"] = [
                {**t, "payload": qualify(t["payload"])} if isinstance(t, Mapping) and t.get("payload") else t
                for t in types
            ]
        return out

    @model_validator(mode="after")
    def _check_references(self) -> SchemaSet:
        overlap = set(self.messages) & set(self.records)
        if overlap:
            msg = f"names declared as both message and record: {sorted(overlap)}"
            raise ValueError(msg)

        for message in self.messages.values():
            for f in message.fields:
                if not f.is_scalar and f.type not in self.messages:
                    msg = f"message {message.name!r} field {f.name!r} has unknown type {f.type!r}"
                    raise ValueError(msg)
        for record in self.records.values():
            for rf in record.fields:
                if not rf.is_scalar and rf.type not in self.records:
                    msg = f"record {record.name!r} field {rf.name!r} has unknown type {rf.type!r}"
                    raise ValueError(msg)

        ids = [t.id for t in self.types]
        if len(set(ids)) != len(ids):
            msg = "type table has duplicate ids"
            raise ValueError(msg)
        names = [t.name for t in self.types]
        if len(set(names)) != len(names):
            msg = "type table has duplicate names"
            raise ValueError(msg)
        payloads = [t.payload for t in self.types if t.payload]
        if len(set(payloads)) != len(payloads):
            msg = "type table maps one payload schema to several ids"
            raise ValueError(msg)
        for t in self.types:
            if t.payload and self.kind_of(t.payload) is None:
                msg = f"type {t.name} ({t.id}) references unknown payload {t.payload!r}"
                raise ValueError(msg)

        self._check_acyclic()
        return self

    def _check_acyclic(self) -> None:
        """Reject schemas that contain themselves; defaults would never terminate."""
        graph: dict[str, list[str]] = {}
        for message in self.messages.values():
            graph[message.name] = [f.type for f in message.fields if not f.is_scalar]
        for record in self.records.values():
            graph[record.name] = [f.type for f in record.fields if not f.is_scalar]

        done: set[str] = set()
        for start in graph:
            if start in done:
                continue
            path: list[str] = []
            on_path: set[str] = set()
            stack: list[tuple[str, Iterator[str]]] = [(start, iter(graph[start]))]
            path.append(start)
            on_path.add(start)
            while stack:
                node, children = stack[-1]
                child = next(children, None)
                if child is None:
                    stack.pop()
                    path.pop()
                    on_path.discard(node)
                    done.add(node)
                    continue
                if child in on_path:
                    msg = f"recursive schema: {' -> '.join([*path, child])}"
                    raise ValueError(msg)
                if child not in done:
                    stack.append((child, iter(graph[child])))
                    path.append(child)
                    on_path.add(child)

    def qualify(self, name: str) -> str:
        return qualify_name(self.package, name)

    def kind_of(self, name: str) -> SchemaKind | None:
        """Return which payload format a schema uses, or None if it is not declared."""
        full = self.qualify(name)
        if full in self.messages:
            return "message"
        if full in self.records:
            return "record"
        return None

    def message(self, name: str) -> MessageSchema | None:
        return self.messages.get(self.qualify(name))

    def record(self, name: str) -> RecordSchema | None:
        return self.records.get(self.qualify(name))

    def schema_names(self) -> list[str]:
        return sorted([*self.messages, *self.records])


def qualify_name(package: str, name: str) -> str:
    """Prefix a bare schema name with the package; dotted names pass through."""
    if not package or "." in name:
        return name
    return f"{package}.{name}"


def parse_schema_set(data: object, source: str = "<memory>") -> SchemaSet:
    """Validate an already-parsed descriptor mapping.

    Raises:
        SchemaDefinitionError: If the descriptor is structurally invalid

    """
    if not isinstance(data, Mapping):
        error_reason = f"{source}: top level must be a mapping"
        raise SchemaDefinitionError(error_reason)
    try:
        return SchemaSet.model_validate(data)
    except ValidationError as e:
        error_reason = f"{source}: {e}"
        raise SchemaDefinitionError(error_reason) from e


def load_schema_set(path: str | Path | None = None) -> SchemaSet:
    """Load and validate a descriptor file.

    Args:
        path: Descriptor file; defaults to FLOWHUB_SCHEMA_FILE

    Returns:
        Validated SchemaSet

    Raises:
        SchemaDefinitionError: If the file cannot be read, parsed or validated

    """
    if path is None:
        from flowhub_binproto.const import FLOWHUB_SCHEMA_FILE

        path = FLOWHUB_SCHEMA_FILE
    schema_path = Path(path)

    try:
        with schema_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        error_reason = f"cannot read {schema_path}: {e}"
        raise SchemaDefinitionError(error_reason) from e
    except yaml.YAMLError as e:
        error_reason = f"cannot parse {schema_path}: {e}"
        raise SchemaDefinitionError(error_reason) from e

    schema_set = parse_schema_set(data, source=str(schema_path))
    logger.debug(
        "Loaded schema descriptor %s: %d types, %d messages, %d records",
        schema_path,
        len(schema_set.types),
        len(schema_set.messages),
        len(schema_set.records),
    )
    return schema_set
