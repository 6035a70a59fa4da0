"""Unit tests for protocol exception types."""

from __future__ import annotations

from flowhub_binproto.protocol.exceptions import (
    DecodeError,
    FlowHubProtocolError,
    OutOfBoundsError,
    SchemaDefinitionError,
    SchemaVerifyError,
    TruncatedFrameError,
    UnknownTypeError,
)

# Test constants
DATA_PREVIEW_TRUNCATE_LENGTH = 16  # Maximum bytes stored in error preview
SHORT_DATA_LENGTH = 3


def test_all_exceptions_inherit_from_protocol_error() -> None:
    """Test every protocol exception can be caught as FlowHubProtocolError."""
    for exc_type in (
        OutOfBoundsError,
        TruncatedFrameError,
        SchemaVerifyError,
        DecodeError,
        UnknownTypeError,
        SchemaDefinitionError,
    ):
        assert issubclass(exc_type, FlowHubProtocolError)


def test_decode_error_truncates_data() -> None:
    """Test DecodeError keeps only the first 16 bytes of the payload."""
    large_data = bytes(range(32))

    error = DecodeError("truncated", large_data)

    assert error.reason == "truncated"
    assert len(error.data_preview) == DATA_PREVIEW_TRUNCATE_LENGTH
    assert error.data_preview == large_data[:DATA_PREVIEW_TRUNCATE_LENGTH]
    assert "truncated" in str(error)


def test_decode_error_short_and_empty_data() -> None:
    """Test DecodeError stores short previews as-is and defaults to empty."""
    assert DecodeError("invalid_tag", b"\x00\x01\x02").data_preview == b"\x00\x01\x02"
    assert len(DecodeError("invalid_tag", b"\x00\x01\x02").data_preview) == SHORT_DATA_LENGTH
    assert DecodeError("invalid_tag").data_preview == b""


def test_out_of_bounds_error_fields() -> None:
    """Test OutOfBoundsError reports requested and remaining sizes."""
    error = OutOfBoundsError(requested=8, remaining=3)

    assert error.reason == "short_buffer"
    assert error.requested == 8
    assert error.remaining == 3
    assert "requested=8" in str(error)


def test_truncated_frame_error() -> None:
    """Test TruncatedFrameError carries the frame length."""
    error = TruncatedFrameError(12)

    assert error.reason == "truncated_frame"
    assert error.length == 12
    assert "12" in str(error)


def test_schema_verify_error_field() -> None:
    """Test SchemaVerifyError names the offending field when known."""
    with_field = SchemaVerifyError("out_of_range", "device.id")
    without_field = SchemaVerifyError("unknown_schema")

    assert with_field.field == "device.id"
    assert "device.id" in str(with_field)
    assert without_field.field == ""
    assert "field=" not in str(without_field)


def test_unknown_type_error() -> None:
    """Test UnknownTypeError carries the type id."""
    error = UnknownTypeError(999)

    assert error.reason == "unknown_type"
    assert error.type_id == 999
    assert "999" in str(error)


def test_schema_definition_error() -> None:
    """Test SchemaDefinitionError keeps the problem description as reason."""
    error = SchemaDefinitionError("duplicate type id 3")

    assert error.reason == "duplicate type id 3"
    assert "duplicate type id 3" in str(error)
