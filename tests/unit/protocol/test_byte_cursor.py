"""Unit tests for ByteWriter / ByteReader."""

from __future__ import annotations

import pytest

from flowhub_binproto.protocol.byte_cursor import LEN16_ESCAPE, ByteReader, ByteWriter
from flowhub_binproto.protocol.exceptions import DecodeError, OutOfBoundsError
from tests.helpers.expectations import expect_exception

# Test constants
U64_MAX = 0xFFFF_FFFF_FFFF_FFFF
I64_MIN = -(1 << 63)
I64_MAX = (1 << 63) - 1
VARINT_300 = bytes.fromhex("ac02")
MAX_VARINT_LEN = 10
LONG_BLOB_LEN = 70_000
GROWTH_WRITE_COUNT = 1000


# =============================================================================
# Writer Tests
# =============================================================================


@pytest.mark.unit
def test_fixed_width_writes_are_little_endian() -> None:
    """Test every fixed-width writer emits little-endian bytes."""
    w = ByteWriter()
    w.write_u8(0x01)
    w.write_u16(0x0203)
    w.write_u32(0x04050607)
    w.write_u64(0x08090A0B0C0D0E0F)
    w.write_i32(-2)
    w.write_i64(-3)

    assert w.getvalue() == bytes.fromhex(
        "01" "0302" "07060504" "0f0e0d0c0b0a0908" "feffffff" "fdffffffffffffff"
    )


@pytest.mark.unit
def test_unsigned_writer_wraps_negative_values() -> None:
    """Test u64 accepts negatives down to the signed minimum (two's complement)."""
    w = ByteWriter()
    w.write_u64(-1)
    w.write_u64(I64_MIN)

    assert w.getvalue() == b"\xff" * 8 + bytes.fromhex("0000000000000080")


@pytest.mark.unit
@pytest.mark.parametrize(
    ("method", "value"),
    [
        ("write_u8", 256),
        ("write_u16", 1 << 16),
        ("write_u32", 1 << 32),
        ("write_u64", U64_MAX + 1),
        ("write_u64", I64_MIN - 1),
        ("write_i32", 1 << 31),
        ("write_i64", I64_MAX + 1),
        ("write_i64", I64_MIN - 1),
    ],
)
def test_out_of_range_values_raise_value_error(method: str, value: int) -> None:
    """Test writers reject values outside their width."""
    w = ByteWriter()
    with pytest.raises(ValueError, match="out of range"):
        getattr(w, method)(value)
    assert w.getvalue() == b""


@pytest.mark.unit
def test_integer_writers_reject_non_int() -> None:
    """Test writers reject bools and strings."""
    w = ByteWriter()
    with pytest.raises(TypeError):
        w.write_u32(True)
    with pytest.raises(TypeError):
        w.write_i64("1")  # type: ignore[arg-type]


@pytest.mark.unit
def test_getvalue_returns_exactly_bytes_written() -> None:
    """Test geometric growth never leaks spare capacity into getvalue()."""
    w = ByteWriter(capacity=1)
    for i in range(GROWTH_WRITE_COUNT):
        w.write_u8(i & 0xFF)

    data = w.getvalue()
    assert len(data) == GROWTH_WRITE_COUNT
    assert len(w) == GROWTH_WRITE_COUNT
    assert data[:4] == b"\x00\x01\x02\x03"


@pytest.mark.unit
def test_varint_encoding() -> None:
    """Test LEB128 varint encoding for small, multi-byte and 64-bit max values."""
    w = ByteWriter()
    w.write_varint(0)
    w.write_varint(300)
    assert w.getvalue() == b"\x00" + VARINT_300

    w = ByteWriter()
    w.write_varint(U64_MAX)
    assert len(w.getvalue()) == MAX_VARINT_LEN


@pytest.mark.unit
def test_len16_escape() -> None:
    """Test lengths of 0xFFFF and above are escaped to a following u32."""
    w = ByteWriter()
    w.write_len16(LEN16_ESCAPE - 1)
    assert w.getvalue() == b"\xfe\xff"

    w = ByteWriter()
    w.write_len16(LEN16_ESCAPE)
    assert w.getvalue() == b"\xff\xff" + b"\xff\xff\x00\x00"


# =============================================================================
# Reader Tests
# =============================================================================


@pytest.mark.unit
def test_reader_round_trip() -> None:
    """Test values read back in write order."""
    w = ByteWriter()
    w.write_u16(0xBEEF)
    w.write_u64(U64_MAX)
    w.write_i64(I64_MIN)
    w.write_i32(-7)
    w.write_bool(True)
    w.write_varint(300)
    w.write_str("héllo")
    w.write_blob(b"\x00\x01")

    r = ByteReader(w.getvalue())
    assert r.read_u16() == 0xBEEF
    assert r.read_u64() == U64_MAX
    assert r.read_i64() == I64_MIN
    assert r.read_i32() == -7
    assert r.read_bool() is True
    assert r.read_varint() == 300
    assert r.read_str() == "héllo"
    assert r.read_blob() == b"\x00\x01"
    assert r.remaining == 0


@pytest.mark.unit
def test_long_blob_round_trip() -> None:
    """Test a blob longer than 0xFFFF uses the escape and reads back intact."""
    blob = bytes(range(256)) * (LONG_BLOB_LEN // 256)
    w = ByteWriter()
    w.write_blob(blob)
    data = w.getvalue()

    assert data[:2] == b"\xff\xff"
    assert ByteReader(data).read_blob() == blob


@pytest.mark.unit
@pytest.mark.parametrize(
    ("method", "data"),
    [
        ("read_u8", b""),
        ("read_u16", b"\x01"),
        ("read_u32", b"\x01\x02\x03"),
        ("read_u64", b"\x00" * 7),
        ("read_i64", b"\x00" * 7),
        ("read_varint", b"\x80\x80"),
        ("read_blob", b"\x05\x00ab"),
        ("read_blob", b"\xff\xff\x01\x00"),
        ("read_str", b"\x03\x00a"),
    ],
)
def test_short_reads_raise_and_keep_offset(method: str, data: bytes) -> None:
    """Test every read fails with OutOfBoundsError and leaves the offset unchanged."""
    r = ByteReader(data)

    error = expect_exception(getattr(r, method), OutOfBoundsError)

    assert error.reason == "short_buffer"
    assert r.offset == 0
    assert r.remaining == len(data)


@pytest.mark.unit
def test_out_of_bounds_error_reports_sizes() -> None:
    """Test OutOfBoundsError carries requested and remaining counts."""
    r = ByteReader(b"\x01")

    error = expect_exception(r.read_u32, OutOfBoundsError)

    assert error.requested == 4
    assert error.remaining == 1


@pytest.mark.unit
def test_varint_longer_than_ten_bytes_is_rejected() -> None:
    """Test a varint with more than 10 continuation bytes raises DecodeError."""
    r = ByteReader(b"\x80" * MAX_VARINT_LEN + b"\x01")

    error = expect_exception(r.read_varint, DecodeError)

    assert error.reason == "varint_overflow"
    assert r.offset == 0


@pytest.mark.unit
def test_read_str_rejects_invalid_utf8() -> None:
    """Test invalid UTF-8 in a string raises DecodeError."""
    r = ByteReader(b"\x02\x00\xff\xfe")

    error = expect_exception(r.read_str, DecodeError)

    assert error.reason == "invalid_utf8"
    assert r.offset == 0


@pytest.mark.unit
def test_reader_accepts_memoryview_and_bytearray() -> None:
    """Test the reader works over any bytes-like buffer."""
    raw = bytearray(b"\x2a\x00")
    assert ByteReader(raw).read_u16() == 42
    assert ByteReader(memoryview(raw)).read_u16() == 42
    assert ByteReader(b"\x00\x2a\x00", offset=1).read_u16() == 42
