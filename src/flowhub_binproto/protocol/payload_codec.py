"""Payload encoder/decoder.

``PayloadCodec`` dispatches on the schema kind declared in the descriptor:

- reflection messages: tag-based wire format, compatible with proto3 as
  produced by protobuf runtimes (``ReflectionCodec`` below)
- bitmask records: fixed-order layout (``RecordCodec`` in bitmask_record)

Values are plain dicts from field name to value. On decode, unset optional
fields are left out and unset required fields get their defaults.
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Mapping
from typing import Any

from flowhub_binproto.protocol.bitmask_record import RecordCodec
from flowhub_binproto.protocol.byte_cursor import ByteReader, ByteWriter
from flowhub_binproto.protocol.exceptions import DecodeError, OutOfBoundsError, SchemaVerifyError
from flowhub_binproto.protocol.schema import (
    FIXED32_TYPES,
    FIXED64_TYPES,
    VARINT_TYPES,
    MessageField,
    MessageSchema,
    SchemaSet,
)

logger = logging.getLogger(__name__)

# Wire types
WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LEN = 2
WIRE_START_GROUP = 3
WIRE_END_GROUP = 4
WIRE_FIXED32 = 5

_U64_MASK = 0xFFFF_FFFF_FFFF_FFFF

# Accepted integer ranges per scalar type
_INT_RANGES: dict[str, tuple[int, int]] = {
    "int32": (-(1 << 31), (1 << 31) - 1),
    "enum": (-(1 << 31), (1 << 31) - 1),
    "sint32": (-(1 << 31), (1 << 31) - 1),
    "sfixed32": (-(1 << 31), (1 << 31) - 1),
    "int64": (-(1 << 63), (1 << 63) - 1),
    "sint64": (-(1 << 63), (1 << 63) - 1),
    "sfixed64": (-(1 << 63), (1 << 63) - 1),
    "uint32": (0, (1 << 32) - 1),
    "fixed32": (0, (1 << 32) - 1),
    "uint64": (0, _U64_MASK),
    "fixed64": (0, _U64_MASK),
}

_FIXED_STRUCTS: dict[str, struct.Struct] = {
    "fixed64": struct.Struct("<Q"),
    "sfixed64": struct.Struct("<q"),
    "double": struct.Struct("<d"),
    "fixed32": struct.Struct("<I"),
    "sfixed32": struct.Struct("<i"),
    "float": struct.Struct("<f"),
}


def wire_type_of(field_type: str) -> int:
    if field_type in VARINT_TYPES:
        return WIRE_VARINT
    if field_type in FIXED64_TYPES:
        return WIRE_FIXED64
    if field_type in FIXED32_TYPES:
        return WIRE_FIXED32
    return WIRE_LEN


def _is_packable(field_type: str) -> bool:
    return field_type in VARINT_TYPES or field_type in FIXED64_TYPES or field_type in FIXED32_TYPES


def zigzag_encode(value: int) -> int:
    return value << 1 if value >= 0 else ((-value) << 1) - 1


def zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def _to_signed(value: int, bits: int) -> int:
    value &= (1 << bits) - 1
    return value - (1 << bits) if value >= 1 << (bits - 1) else value


def _scalar_default(field_type: str) -> Any:
    if field_type == "bool":
        return False
    if field_type in ("double", "float"):
        return 0.0
    if field_type == "string":
        return ""
    if field_type == "bytes":
        return b""
    return 0


def _path(parent: str, name: str) -> str:
    return f"{parent}.{name}" if parent else name


class ReflectionCodec:
    """Encodes and decodes tag-based reflection messages declared in a SchemaSet.

    Encoding rules follow proto3: required scalars equal to their default are
    not written, repeated numeric fields are packed, nested messages declared
    without ``optional`` are always written. Fields declared ``optional`` are
    written whenever they are set so that presence survives a round trip.
    """

    def __init__(self, schema_set: SchemaSet) -> None:
        self._schema_set = schema_set

    def _message(self, name: str) -> MessageSchema:
        message = self._schema_set.message(name)
        if message is None:
            error_reason = "unknown_schema"
            raise SchemaVerifyError(error_reason, name)
        return message

    def defaults(self, name: str) -> dict[str, Any]:
        """Value map with every non-optional field at its default."""
        message = self._message(name)
        return {f.name: self._field_default(f) for f in message.fields if not f.optional}

    def _field_default(self, field: MessageField) -> Any:
        if field.repeated:
            return []
        if field.is_scalar:
            return _scalar_default(field.type)
        return self.defaults(field.type)

    # Encoding

    def encode(self, name: str, value: Mapping[str, Any]) -> bytes:
        writer = ByteWriter()
        self._encode_into(writer, name, value, "")
        return writer.getvalue()

    def _encode_into(self, writer: ByteWriter, name: str, value: Any, path: str) -> None:
        message = self._message(name)
        if not isinstance(value, Mapping):
            error_reason = "expected_mapping"
            raise SchemaVerifyError(error_reason, path or message.name)

        unknown = set(value) - message.field_names()
        if unknown:
            error_reason = "unknown_field"
            raise SchemaVerifyError(error_reason, _path(path, sorted(unknown)[0]))

        # Fields are written in tag order, as protobuf runtimes do
        for f in sorted(message.fields, key=lambda fld: fld.tag):
            item = value.get(f.name)
            field_path = _path(path, f.name)
            if f.repeated:
                self._encode_repeated(writer, f, [] if item is None else item, field_path)
            elif item is None:
                if not f.optional and not f.is_scalar:
                    self._write_key(writer, f.tag, WIRE_LEN)
                    writer.write_varint(0)
            elif f.optional or not f.is_scalar or not self._is_default(f.type, item, field_path):
                self._encode_single(writer, f, item, field_path)

    def _is_default(self, field_type: str, item: Any, path: str) -> bool:
        self._check_scalar(field_type, item, path)
        if field_type in ("string", "bytes"):
            return len(item) == 0
        return item == 0

    @staticmethod
    def _write_key(writer: ByteWriter, tag: int, wire_type: int) -> None:
        writer.write_varint((tag << 3) | wire_type)

    def _encode_single(self, writer: ByteWriter, field: MessageField, item: Any, path: str) -> None:
        if field.is_scalar:
            self._write_key(writer, field.tag, wire_type_of(field.type))
            self._write_scalar(writer, field.type, item, path)
        else:
            sub = ByteWriter()
            self._encode_into(sub, field.type, item, path)
            self._write_key(writer, field.tag, WIRE_LEN)
            body = sub.getvalue()
            writer.write_varint(len(body))
            writer.write_bytes(body)

    def _encode_repeated(self, writer: ByteWriter, field: MessageField, items: Any, path: str) -> None:
        if not isinstance(items, list | tuple):
            error_reason = "expected_list"
            raise SchemaVerifyError(error_reason, path)
        if not items:
            return
        if _is_packable(field.type):
            packed = ByteWriter()
            for index, item in enumerate(items):
                self._write_scalar(packed, field.type, item, f"{path}[{index}]")
            body = packed.getvalue()
            self._write_key(writer, field.tag, WIRE_LEN)
            writer.write_varint(len(body))
            writer.write_bytes(body)
        else:
            for index, item in enumerate(items):
                self._encode_single(writer, field, item, f"{path}[{index}]")

    @staticmethod
    def _check_scalar(field_type: str, item: Any, path: str) -> None:
        if field_type == "bool":
            ok = isinstance(item, bool)
        elif field_type in ("double", "float"):
            ok = isinstance(item, int | float) and not isinstance(item, bool)
        elif field_type == "string":
            ok = isinstance(item, str)
        elif field_type == "bytes":
            ok = isinstance(item, bytes | bytearray | memoryview)
        else:
            ok = isinstance(item, int) and not isinstance(item, bool)
        if not ok:
            error_reason = "invalid_type"
            raise SchemaVerifyError(error_reason, path)

        limits = _INT_RANGES.get(field_type)
        if limits is not None and not limits[0] <= item <= limits[1]:
            error_reason = "out_of_range"
            raise SchemaVerifyError(error_reason, path)

    def _write_scalar(self, writer: ByteWriter, field_type: str, item: Any, path: str) -> None:
        self._check_scalar(field_type, item, path)
        if field_type in ("sint32", "sint64"):
            writer.write_varint(zigzag_encode(item))
        elif field_type == "bool":
            writer.write_varint(1 if item else 0)
        elif field_type in VARINT_TYPES:
            # Negative int32/int64/enum values are sign-extended to 10 bytes
            writer.write_varint(item & _U64_MASK)
        elif field_type in _FIXED_STRUCTS:
            try:
                writer.write_bytes(_FIXED_STRUCTS[field_type].pack(item))
            except (OverflowError, struct.error) as e:
                error_reason = "out_of_range"
                raise SchemaVerifyError(error_reason, path) from e
        elif field_type == "string":
            try:
                data = item.encode("utf-8")
            except UnicodeEncodeError as e:
                error_reason = "invalid_utf8"
                raise SchemaVerifyError(error_reason, path) from e
            writer.write_varint(len(data))
            writer.write_bytes(data)
        else:
            writer.write_varint(len(item))
            writer.write_bytes(item)

    # Decoding

    def decode(self, name: str, data: bytes | bytearray | memoryview) -> dict[str, Any]:
        """Decode a message; fields with unknown tags are skipped.

        Raises:
            DecodeError: If the data is malformed
            OutOfBoundsError: If the data ends inside a field

        """
        if self._schema_set.message(name) is None:
            error_reason = "unknown_schema"
            raise DecodeError(error_reason, bytes(data[:16]))
        reader = ByteReader(data)
        return self._decode_from(reader, name, len(data))

    def _decode_from(self, reader: ByteReader, name: str, end: int) -> dict[str, Any]:
        message = self._message(name)
        value: dict[str, Any] = {}

        while reader.offset < end:
            key = reader.read_varint()
            tag = key >> 3
            wire_type = key & 0x7
            if tag == 0:
                error_reason = "invalid_tag"
                raise DecodeError(error_reason)
            if wire_type in (WIRE_START_GROUP, WIRE_END_GROUP):
                error_reason = "group_wire_type"
                raise DecodeError(error_reason)
            if wire_type not in (WIRE_VARINT, WIRE_FIXED64, WIRE_LEN, WIRE_FIXED32):
                error_reason = "invalid_wire_type"
                raise DecodeError(error_reason)

            field = message.field_by_tag(tag)
            if field is None:
                self._skip(reader, wire_type, end)
                continue

            expected = wire_type_of(field.type)
            if field.repeated and _is_packable(field.type) and wire_type == WIRE_LEN:
                length = self._read_length(reader, end)
                stop = reader.offset + length
                items = value.setdefault(field.name, [])
                while reader.offset < stop:
                    items.append(self._read_scalar(reader, field.type, stop))
                if reader.offset != stop:
                    error_reason = "truncated"
                    raise DecodeError(error_reason)
                continue

            if wire_type != expected:
                error_reason = "wire_type_mismatch"
                raise DecodeError(error_reason)

            if field.is_scalar:
                item = self._read_scalar(reader, field.type, end)
            else:
                length = self._read_length(reader, end)
                item = self._decode_from(reader, field.type, reader.offset + length)

            if field.repeated:
                value.setdefault(field.name, []).append(item)
            else:
                value[field.name] = item

        if reader.offset != end:
            error_reason = "truncated"
            raise DecodeError(error_reason)

        for f in message.fields:
            if f.name not in value and not f.optional:
                value[f.name] = self._field_default(f)
        return value

    @staticmethod
    def _read_length(reader: ByteReader, end: int) -> int:
        length = reader.read_varint()
        if length > end - reader.offset:
            error_reason = "truncated"
            raise DecodeError(error_reason)
        return length

    def _skip(self, reader: ByteReader, wire_type: int, end: int) -> None:
        if wire_type == WIRE_VARINT:
            reader.read_varint()
        elif wire_type == WIRE_FIXED64:
            reader.skip(8)
        elif wire_type == WIRE_FIXED32:
            reader.skip(4)
        else:
            reader.skip(self._read_length(reader, end))
        if reader.offset > end:
            error_reason = "truncated"
            raise DecodeError(error_reason)

    @staticmethod
    def _read_scalar(reader: ByteReader, field_type: str, end: int) -> Any:
        if field_type in VARINT_TYPES:
            raw = reader.read_varint()
            if reader.offset > end:
                error_reason = "truncated"
                raise DecodeError(error_reason)
            if field_type in ("int32", "enum"):
                return _to_signed(raw, 32)
            if field_type == "int64":
                return _to_signed(raw, 64)
            if field_type == "uint32":
                return raw & 0xFFFF_FFFF
            if field_type == "sint32":
                return _to_signed(zigzag_decode(raw & 0xFFFF_FFFF), 32)
            if field_type == "sint64":
                return zigzag_decode(raw)
            if field_type == "bool":
                return raw != 0
            return raw

        fixed = _FIXED_STRUCTS.get(field_type)
        if fixed is not None:
            if fixed.size > end - reader.offset:
                error_reason = "truncated"
                raise DecodeError(error_reason)
            return fixed.unpack(reader.read_view(fixed.size))[0]

        length = ReflectionCodec._read_length(reader, end)
        raw_bytes = reader.read(length)
        if field_type == "string":
            try:
                return raw_bytes.decode("utf-8")
            except UnicodeDecodeError as e:
                error_reason = "invalid_utf8"
                raise DecodeError(error_reason, raw_bytes) from e
        return raw_bytes


class PayloadCodec:
    """Encodes and decodes payloads by qualified schema name.

    Example:
        >>> codec = PayloadCodec(load_schema_set())
        >>> data = codec.encode("myflowhub.v1.OKResp", {"request_id": 7, "code": 0})
        >>> codec.decode("myflowhub.v1.OKResp", data)
        {'request_id': 7, 'code': 0, 'message': b''}

    """

    def __init__(self, schema_set: SchemaSet) -> None:
        self._schema_set = schema_set
        self._messages = ReflectionCodec(schema_set)
        self._records = RecordCodec(schema_set)

    @property
    def schema_set(self) -> SchemaSet:
        return self._schema_set

    def encode(self, schema_name: str, value: Mapping[str, Any]) -> bytes:
        """Encode a value map with the named schema.

        Raises:
            SchemaVerifyError: If the schema is unknown or the value does not fit it

        """
        kind = self._schema_set.kind_of(schema_name)
        if kind == "message":
            data = self._messages.encode(schema_name, value)
        elif kind == "record":
            data = self._records.encode(schema_name, value)
        else:
            error_reason = "unknown_schema"
            raise SchemaVerifyError(error_reason, schema_name)

        logger.debug("Encoded %s payload (%s): %d bytes", schema_name, kind, len(data))
        return data

    def decode(self, schema_name: str, data: bytes | bytearray | memoryview) -> dict[str, Any]:
        """Decode a payload with the named schema.

        Raises:
            DecodeError: If the schema is unknown or the payload is malformed or truncated

        """
        kind = self._schema_set.kind_of(schema_name)
        if kind is None:
            error_reason = "unknown_schema"
            raise DecodeError(error_reason, bytes(data[:16]))

        try:
            if kind == "message":
                value = self._messages.decode(schema_name, data)
            else:
                value = self._records.decode(schema_name, data)
        except OutOfBoundsError as e:
            error_reason = "truncated"
            raise DecodeError(error_reason, bytes(data[:16])) from e

        logger.debug("Decoded %s payload (%s): %d bytes", schema_name, kind, len(data))
        return value

    def defaults(self, schema_name: str) -> dict[str, Any]:
        """Value map a payload decodes to when every field is unset."""
        kind = self._schema_set.kind_of(schema_name)
        if kind == "message":
            return self._messages.defaults(schema_name)
        if kind == "record":
            return self._records.defaults(schema_name)
        error_reason = "unknown_schema"
        raise SchemaVerifyError(error_reason, schema_name)
