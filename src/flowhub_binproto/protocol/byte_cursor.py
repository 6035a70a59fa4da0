"""Little-endian byte writer and bounds-checked reader.

All multi-byte integers are little-endian. Lengths of strings and blobs use a
16-bit prefix; lengths of 0xFFFF or more are escaped as 0xFFFF followed by a
32-bit length.
"""

from __future__ import annotations

import struct

from flowhub_binproto.protocol.exceptions import DecodeError, OutOfBoundsError

LEN16_ESCAPE = 0xFFFF
MAX_VARINT_BYTES = 10
_INITIAL_CAPACITY = 64

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_I32 = struct.Struct("<i")
_I64 = struct.Struct("<q")


def _check_unsigned(value: int, bits: int) -> int:
    """Return value as an unsigned integer of the given width.

    Negative values down to the signed minimum are wrapped (two's complement).
    """
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"u{bits} value must be int, got {type(value).__name__}"
        raise TypeError(msg)
    if value < -(1 << (bits - 1)) or value > (1 << bits) - 1:
        msg = f"u{bits} value out of range: {value}"
        raise ValueError(msg)
    return value & ((1 << bits) - 1)


def _check_signed(value: int, bits: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"i{bits} value must be int, got {type(value).__name__}"
        raise TypeError(msg)
    if value < -(1 << (bits - 1)) or value > (1 << (bits - 1)) - 1:
        msg = f"i{bits} value out of range: {value}"
        raise ValueError(msg)
    return value


class ByteWriter:
    """Append-only little-endian byte writer.

    The backing buffer grows geometrically; ``getvalue()`` returns exactly
    the bytes written.

    Example:
        >>> w = ByteWriter()
        >>> w.write_u16(0x0102)
        >>> w.write_str("hi")
        >>> w.getvalue().hex()
        '020102006869'

    """

    __slots__ = ("_buf", "_len")

    def __init__(self, capacity: int = _INITIAL_CAPACITY) -> None:
        self._buf = bytearray(max(capacity, 1))
        self._len = 0

    def __len__(self) -> int:
        return self._len

    def _reserve(self, n: int) -> int:
        start = self._len
        needed = start + n
        if needed > len(self._buf):
            new_capacity = max(len(self._buf) * 2, needed)
            self._buf.extend(bytes(new_capacity - len(self._buf)))
        self._len = needed
        return start

    def write_bytes(self, data: bytes | bytearray | memoryview) -> None:
        n = len(data)
        start = self._reserve(n)
        self._buf[start : start + n] = data

    def write_u8(self, value: int) -> None:
        checked = _check_unsigned(value, 8)
        self._buf[self._reserve(1)] = checked

    def write_bool(self, value: bool) -> None:
        self.write_u8(1 if value else 0)

    def write_u16(self, value: int) -> None:
        checked = _check_unsigned(value, 16)
        _U16.pack_into(self._buf, self._reserve(2), checked)

    def write_u32(self, value: int) -> None:
        checked = _check_unsigned(value, 32)
        _U32.pack_into(self._buf, self._reserve(4), checked)

    def write_u64(self, value: int) -> None:
        checked = _check_unsigned(value, 64)
        _U64.pack_into(self._buf, self._reserve(8), checked)

    def write_i32(self, value: int) -> None:
        checked = _check_signed(value, 32)
        _I32.pack_into(self._buf, self._reserve(4), checked)

    def write_i64(self, value: int) -> None:
        checked = _check_signed(value, 64)
        _I64.pack_into(self._buf, self._reserve(8), checked)

    def write_varint(self, value: int) -> None:
        """Write an unsigned LEB128 varint (at most 10 bytes for 64 bits)."""
        remaining = _check_unsigned(value, 64)
        out = bytearray()
        while remaining >= 0x80:
            out.append((remaining & 0x7F) | 0x80)
            remaining >>= 7
        out.append(remaining)
        self.write_bytes(out)

    def write_len16(self, length: int) -> None:
        if length < 0 or length > 0xFFFF_FFFF:
            msg = f"length out of range: {length}"
            raise ValueError(msg)
        if length < LEN16_ESCAPE:
            self.write_u16(length)
        else:
            self.write_u16(LEN16_ESCAPE)
            self.write_u32(length)

    def write_blob(self, data: bytes | bytearray | memoryview) -> None:
        self.write_len16(len(data))
        self.write_bytes(data)

    def write_str(self, value: str) -> None:
        self.write_blob(value.encode("utf-8"))

    def getvalue(self) -> bytes:
        return bytes(self._buf[: self._len])


class ByteReader:
    """Bounds-checked little-endian reader over a bytes-like buffer.

    Every read raises OutOfBoundsError when fewer bytes remain than the read
    needs; the offset is left unchanged on failure.
    """

    __slots__ = ("_data", "_offset")

    def __init__(self, data: bytes | bytearray | memoryview, offset: int = 0) -> None:
        view = memoryview(data)
        if view.format != "B" or view.ndim != 1:
            view = view.cast("B")
        self._data = view
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def _take(self, n: int) -> memoryview:
        if n < 0 or n > self.remaining:
            raise OutOfBoundsError(requested=n, remaining=self.remaining)
        start = self._offset
        self._offset += n
        return self._data[start : start + n]

    def read(self, n: int) -> bytes:
        return bytes(self._take(n))

    def read_view(self, n: int) -> memoryview:
        """Like read() but returns a view into the underlying buffer."""
        return self._take(n)

    def skip(self, n: int) -> None:
        self._take(n)

    def read_u8(self) -> int:
        return self._take(1)[0]

    def read_bool(self) -> bool:
        return self.read_u8() != 0

    def read_u16(self) -> int:
        return _U16.unpack(self._take(2))[0]

    def read_u32(self) -> int:
        return _U32.unpack(self._take(4))[0]

    def read_u64(self) -> int:
        return _U64.unpack(self._take(8))[0]

    def read_i32(self) -> int:
        return _I32.unpack(self._take(4))[0]

    def read_i64(self) -> int:
        return _I64.unpack(self._take(8))[0]

    def read_varint(self) -> int:
        """Read an unsigned LEB128 varint.

        Raises:
            OutOfBoundsError: If the buffer ends before the terminating byte
            DecodeError: If the varint runs past 10 bytes

        """
        result = 0
        shift = 0
        pos = self._offset
        end = len(self._data)
        for count in range(MAX_VARINT_BYTES):
            if pos >= end:
                raise OutOfBoundsError(requested=count + 1, remaining=self.remaining)
            byte = self._data[pos]
            pos += 1
            result |= (byte & 0x7F) << shift
            if byte < 0x80:
                self._offset = pos
                return result & 0xFFFF_FFFF_FFFF_FFFF
            shift += 7
        error_reason = "varint_overflow"
        raise DecodeError(error_reason, bytes(self._data[self._offset : pos]))

    def read_len16(self) -> int:
        start = self._offset
        length = self.read_u16()
        if length == LEN16_ESCAPE:
            try:
                length = self.read_u32()
            except OutOfBoundsError:
                self._offset = start
                raise
        return length

    def read_blob(self) -> bytes:
        start = self._offset
        length = self.read_len16()
        try:
            return self.read(length)
        except OutOfBoundsError:
            self._offset = start
            raise

    def read_str(self) -> str:
        start = self._offset
        raw = self.read_blob()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            self._offset = start
            error_reason = "invalid_utf8"
            raise DecodeError(error_reason, raw) from e
