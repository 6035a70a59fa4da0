"""Unit tests for schema descriptor loading and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from flowhub_binproto.protocol.exceptions import SchemaDefinitionError
from flowhub_binproto.protocol.schema import SchemaSet, load_schema_set, parse_schema_set

# Test constants
PACKAGE = "myflowhub.v1"
MESSAGE_COUNT = 6
DEVICE_ITEM_OPTIONAL_COUNT = 3


def _record(*fields: dict[str, Any]) -> dict[str, Any]:
    return {"fields": list(fields)}


@pytest.mark.unit
def test_packaged_descriptor_loads(schema_set: SchemaSet) -> None:
    """Test the packaged descriptor validates and names are qualified."""
    assert schema_set.package == PACKAGE
    assert len(schema_set.messages) == MESSAGE_COUNT
    assert f"{PACKAGE}.OKResp" in schema_set.messages
    assert f"{PACKAGE}.DeviceItem" in schema_set.records


@pytest.mark.unit
def test_kind_of(schema_set: SchemaSet) -> None:
    """Test kind_of() tells reflection messages from bitmask records."""
    assert schema_set.kind_of("OKResp") == "message"
    assert schema_set.kind_of(f"{PACKAGE}.ParentAuthResp") == "message"
    assert schema_set.kind_of("QueryNodesResp") == "record"
    assert schema_set.kind_of("NoSuchThing") is None


@pytest.mark.unit
def test_nested_types_are_qualified(schema_set: SchemaSet) -> None:
    """Test references to other records carry the package prefix."""
    record = schema_set.record("QueryNodesResp")
    assert record is not None

    devices = next(f for f in record.fields if f.name == "devices")
    assert devices.type == f"{PACKAGE}.DeviceItem"
    assert devices.repeated


@pytest.mark.unit
def test_device_item_layout(schema_set: SchemaSet) -> None:
    """Test DeviceItem declares its optional fields with bits 0..2 in order."""
    record = schema_set.record("DeviceItem")
    assert record is not None

    optional = [(f.name, f.bit) for f in record.fields if f.optional]
    assert optional == [("parent_id", 0), ("owner_user_id", 1), ("last_seen_sec", 2)]
    assert len(optional) == DEVICE_ITEM_OPTIONAL_COUNT
    assert record.has_bitmask


@pytest.mark.unit
def test_load_from_file(tmp_path: Path) -> None:
    """Test loading a descriptor from an arbitrary path."""
    path = tmp_path / "custom.yaml"
    path.write_text(
        "package: t.v1\n"
        "types:\n"
        "  - {id: 1, name: PING, payload: Ping}\n"
        "messages:\n"
        "  Ping:\n"
        "    fields:\n"
        "      - {name: seq, tag: 1, type: uint32}\n",
        encoding="utf-8",
    )

    schema_set = load_schema_set(path)

    assert schema_set.kind_of("t.v1.Ping") == "message"
    assert schema_set.types[0].payload == "t.v1.Ping"


@pytest.mark.unit
def test_load_missing_file(tmp_path: Path) -> None:
    """Test an unreadable descriptor raises SchemaDefinitionError."""
    with pytest.raises(SchemaDefinitionError, match="cannot read"):
        load_schema_set(tmp_path / "missing.yaml")


@pytest.mark.unit
def test_load_invalid_yaml(tmp_path: Path) -> None:
    """Test malformed YAML raises SchemaDefinitionError."""
    path = tmp_path / "bad.yaml"
    path.write_text("messages: [unclosed\n", encoding="utf-8")

    with pytest.raises(SchemaDefinitionError, match="cannot parse"):
        load_schema_set(path)


@pytest.mark.unit
def test_top_level_must_be_mapping() -> None:
    """Test a non-mapping descriptor is rejected."""
    with pytest.raises(SchemaDefinitionError, match="mapping"):
        parse_schema_set(["not", "a", "mapping"])


@pytest.mark.unit
@pytest.mark.parametrize(
    ("descriptor", "fragment"),
    [
        pytest.param(
            {"messages": {"M": {"fields": [{"name": "a", "tag": 1, "type": "int32"}, {"name": "b", "tag": 1, "type": "int32"}]}}},
            "duplicate field tags",
            id="duplicate-tags",
        ),
        pytest.param(
            {"messages": {"M": {"fields": [{"name": "a", "tag": 0, "type": "int32"}]}}},
            "tag",
            id="tag-zero",
        ),
        pytest.param(
            {"messages": {"M": {"fields": [{"name": "a", "tag": 1, "type": "int32", "repeated": True, "optional": True}]}}},
            "both repeated and optional",
            id="repeated-optional",
        ),
        pytest.param(
            {"messages": {"M": {"fields": [{"name": "a", "tag": 1, "type": "Missing"}]}}},
            "unknown type",
            id="unknown-message-type",
        ),
        pytest.param(
            {"records": {"R": _record({"name": "a", "type": "u8", "bit": 8})}},
            "bit",
            id="bit-too-large",
        ),
        pytest.param(
            {"records": {"R": _record({"name": "a", "type": "u8", "bit": 1}, {"name": "b", "type": "u8", "bit": 1})}},
            "duplicate presence bits",
            id="duplicate-bits",
        ),
        pytest.param(
            {"records": {"R": _record({"name": "a", "type": "u8", "bit": 1}, {"name": "b", "type": "u8", "bit": 0})}},
            "ascend",
            id="bits-not-ascending",
        ),
        pytest.param(
            {"records": {"R": _record({"name": "a", "type": "u8"}, {"name": "a", "type": "u16"})}},
            "duplicate field names",
            id="duplicate-record-fields",
        ),
        pytest.param(
            {"records": {"R": _record({"name": "a", "type": "int32"})}},
            "unknown type",
            id="message-type-in-record",
        ),
        pytest.param(
            {"records": {"R": {"fields": []}}},
            "fields",
            id="empty-record",
        ),
        pytest.param(
            {"records": {"A": _record({"name": "b", "type": "B"}), "B": _record({"name": "a", "type": "A"})}},
            "recursive schema",
            id="recursive-records",
        ),
        pytest.param(
            {"types": [{"id": 1, "name": "A"}, {"id": 1, "name": "B"}]},
            "duplicate ids",
            id="duplicate-type-ids",
        ),
        pytest.param(
            {"types": [{"id": 1, "name": "A", "payload": "Nope"}]},
            "unknown payload",
            id="unknown-payload",
        ),
        pytest.param(
            {"types": [{"id": 70000, "name": "A"}]},
            "id",
            id="type-id-too-large",
        ),
        pytest.param(
            {
                "messages": {"X": {"fields": [{"name": "a", "tag": 1, "type": "int32"}]}},
                "records": {"X": _record({"name": "a", "type": "u8"})},
            },
            "both message and record",
            id="name-collision",
        ),
        pytest.param(
            {"messages": {"M": {"fields": [{"name": "a", "tag": 1, "type": "int32", "packed": True}]}}},
            "packed",
            id="unknown-attribute",
        ),
    ],
)
def test_invalid_descriptors_are_rejected(descriptor: dict[str, Any], fragment: str) -> None:
    """Test descriptor validation catches structural errors at load time."""
    with pytest.raises(SchemaDefinitionError) as exc_info:
        parse_schema_set({"package": "t.v1", **descriptor})

    assert fragment in exc_info.value.reason


@pytest.mark.unit
def test_schema_set_is_frozen(schema_set: SchemaSet) -> None:
    """Test validated descriptors cannot be reassigned."""
    with pytest.raises(ValidationError):
        schema_set.package = "other"  # type: ignore[misc]
