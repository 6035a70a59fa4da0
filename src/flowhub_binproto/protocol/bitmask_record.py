"""Fixed-order bitmask record encoder/decoder.

Record layout:
- Byte 0: presence bitmask (only when the record declares optional fields);
  bit n set means the optional field declared with ``bit: n`` follows
- Then every field in declared order: required fields always, optional
  fields only when their bit is set

Field encodings:
- u8/u16/u32/u64/i32/i64: little-endian fixed width
- bool: 1 byte (0 or 1)
- str/bytes: u16 length (0xFFFF escapes to a following u32) + data
- another record: inline, with its own bitmask byte if it has one
- repeated: varint count followed by the items

Bytes after the last declared field are ignored on decode so that older
readers accept records with appended fields.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from flowhub_binproto.protocol.byte_cursor import ByteReader, ByteWriter
from flowhub_binproto.protocol.exceptions import DecodeError, SchemaVerifyError
from flowhub_binproto.protocol.schema import RecordField, RecordSchema, SchemaSet

logger = logging.getLogger(__name__)

_INT_WRITERS: dict[str, Callable[[ByteWriter, int], None]] = {
    "u8": ByteWriter.write_u8,
    "u16": ByteWriter.write_u16,
    "u32": ByteWriter.write_u32,
    "u64": ByteWriter.write_u64,
    "i32": ByteWriter.write_i32,
    "i64": ByteWriter.write_i64,
}

_SCALAR_READERS: dict[str, Callable[[ByteReader], Any]] = {
    "u8": ByteReader.read_u8,
    "u16": ByteReader.read_u16,
    "u32": ByteReader.read_u32,
    "u64": ByteReader.read_u64,
    "i32": ByteReader.read_i32,
    "i64": ByteReader.read_i64,
    "bool": ByteReader.read_bool,
    "str": ByteReader.read_str,
    "bytes": ByteReader.read_blob,
}

_SCALAR_DEFAULTS: dict[str, Any] = {
    "u8": 0,
    "u16": 0,
    "u32": 0,
    "u64": 0,
    "i32": 0,
    "i64": 0,
    "bool": False,
    "str": "",
    "bytes": b"",
}


def _path(parent: str, name: str) -> str:
    return f"{parent}.{name}" if parent else name


class RecordCodec:
    """Encodes and decodes bitmask records declared in a SchemaSet."""

    def __init__(self, schema_set: SchemaSet) -> None:
        self._schema_set = schema_set

    def _record(self, name: str) -> RecordSchema:
        record = self._schema_set.record(name)
        if record is None:
            # References are validated at load time; only top-level names can miss
            error_reason = "unknown_schema"
            raise SchemaVerifyError(error_reason, name)
        return record

    def defaults(self, name: str) -> dict[str, Any]:
        """Value map with every required field at its default and optionals absent."""
        record = self._record(name)
        return {f.name: self._field_default(f) for f in record.fields if not f.optional}

    def _field_default(self, field: RecordField) -> Any:
        if field.repeated:
            return []
        if field.is_scalar:
            return _SCALAR_DEFAULTS[field.type]
        return self.defaults(field.type)

    def encode(self, name: str, value: Mapping[str, Any]) -> bytes:
        writer = ByteWriter()
        self.encode_into(writer, name, value)
        return writer.getvalue()

    def encode_into(self, writer: ByteWriter, name: str, value: Mapping[str, Any], path: str = "") -> None:
        record = self._record(name)
        if not isinstance(value, Mapping):
            error_reason = "expected_mapping"
            raise SchemaVerifyError(error_reason, path or record.name)

        unknown = set(value) - record.field_names()
        if unknown:
            error_reason = "unknown_field"
            raise SchemaVerifyError(error_reason, _path(path, sorted(unknown)[0]))

        if record.has_bitmask:
            mask = 0
            for f in record.fields:
                if f.bit is not None and value.get(f.name) is not None:
                    mask |= 1 << f.bit
            writer.write_u8(mask)

        for f in record.fields:
            item = value.get(f.name)
            if f.optional and item is None:
                continue
            if item is None:
                item = self._field_default(f)
            field_path = _path(path, f.name)
            if f.repeated:
                if not isinstance(item, list | tuple):
                    error_reason = "expected_list"
                    raise SchemaVerifyError(error_reason, field_path)
                writer.write_varint(len(item))
                for index, element in enumerate(item):
                    self._encode_one(writer, f, element, f"{field_path}[{index}]")
            else:
                self._encode_one(writer, f, item, field_path)

    def _encode_one(self, writer: ByteWriter, field: RecordField, item: Any, path: str) -> None:
        kind = field.type
        if kind in _INT_WRITERS:
            try:
                _INT_WRITERS[kind](writer, item)
            except TypeError as e:
                error_reason = "invalid_type"
                raise SchemaVerifyError(error_reason, path) from e
            except ValueError as e:
                error_reason = "out_of_range"
                raise SchemaVerifyError(error_reason, path) from e
        elif kind == "bool":
            if not isinstance(item, bool):
                error_reason = "invalid_type"
                raise SchemaVerifyError(error_reason, path)
            writer.write_bool(item)
        elif kind == "str":
            if not isinstance(item, str):
                error_reason = "invalid_type"
                raise SchemaVerifyError(error_reason, path)
            try:
                writer.write_str(item)
            except UnicodeEncodeError as e:
                error_reason = "invalid_utf8"
                raise SchemaVerifyError(error_reason, path) from e
            except ValueError as e:
                error_reason = "too_long"
                raise SchemaVerifyError(error_reason, path) from e
        elif kind == "bytes":
            if not isinstance(item, bytes | bytearray | memoryview):
                error_reason = "invalid_type"
                raise SchemaVerifyError(error_reason, path)
            try:
                writer.write_blob(item)
            except ValueError as e:
                error_reason = "too_long"
                raise SchemaVerifyError(error_reason, path) from e
        else:
            self.encode_into(writer, kind, item, path)

    def decode(self, name: str, data: bytes | bytearray | memoryview) -> dict[str, Any]:
        """Decode a record; bytes after the last field are ignored.

        Raises:
            DecodeError: If the schema is unknown or the data is malformed
            OutOfBoundsError: If the data ends inside a field

        """
        if self._schema_set.record(name) is None:
            error_reason = "unknown_schema"
            raise DecodeError(error_reason, bytes(data[:16]))
        reader = ByteReader(data)
        value = self.decode_from(reader, name)
        if reader.remaining:
            logger.debug("Ignoring %d trailing bytes after %s", reader.remaining, name)
        return value

    def decode_from(self, reader: ByteReader, name: str) -> dict[str, Any]:
        record = self._record(name)
        mask = reader.read_u8() if record.has_bitmask else 0

        value: dict[str, Any] = {}
        for f in record.fields:
            if f.bit is not None and not mask & (1 << f.bit):
                continue
            if f.repeated:
                count = reader.read_varint()
                # Every encoded item takes at least one byte
                if count > reader.remaining:
                    error_reason = "truncated"
                    raise DecodeError(error_reason)
                value[f.name] = [self._decode_one(reader, f) for _ in range(count)]
            else:
                value[f.name] = self._decode_one(reader, f)
        return value

    def _decode_one(self, reader: ByteReader, field: RecordField) -> Any:
        reader_fn = _SCALAR_READERS.get(field.type)
        if reader_fn is not None:
            return reader_fn(reader)
        return self.decode_from(reader, field.type)
