"""Custom exception types for FlowHub binary protocol errors.

This module defines the exception hierarchy for protocol-related errors.
Errors raise exceptions instead of returning None, and every exception
carries a short machine-readable ``reason`` for logs and metrics labels.
"""

from __future__ import annotations


class FlowHubProtocolError(Exception):
    """Base exception for all FlowHub protocol errors.

    All protocol-related exceptions inherit from this base class,
    enabling catch-all error handling when needed while maintaining
    specific exception types for detailed handling.
    """


class OutOfBoundsError(FlowHubProtocolError):
    """A read asked for more bytes than remain in the buffer.

    Attributes:
        reason: Failure reason (always "short_buffer" unless overridden)
        requested: Number of bytes the read needed
        remaining: Number of bytes left in the buffer
    """

    def __init__(self, requested: int, remaining: int, reason: str = "short_buffer"):
        self.reason = reason
        self.requested = requested
        self.remaining = remaining
        super().__init__(f"Read out of bounds: {reason} (requested={requested}, remaining={remaining})")


class TruncatedFrameError(FlowHubProtocolError):
    """Frame is shorter than the fixed 38-byte header.

    Attributes:
        reason: Always "truncated_frame"
        length: Length of the rejected frame
    """

    def __init__(self, length: int):
        self.reason = "truncated_frame"
        self.length = length
        super().__init__(f"Frame truncated: {length} bytes, header needs 38")


class SchemaVerifyError(FlowHubProtocolError):
    """Value does not fit the payload schema it is being encoded with.

    Attributes:
        reason: Specific failure reason (e.g., "unknown_field", "out_of_range")
        field: Dotted path of the offending field, empty when not field-specific
    """

    def __init__(self, reason: str, field: str = ""):
        self.reason = reason
        self.field = field
        suffix = f" (field={field})" if field else ""
        super().__init__(f"Schema verification failed: {reason}{suffix}")


class DecodeError(FlowHubProtocolError):
    """Payload cannot be decoded.

    Raised when payload parsing fails due to truncated data, a malformed tag
    or length, a wire type that does not match the field, or invalid UTF-8.

    Attributes:
        reason: Specific failure reason (e.g., "truncated", "invalid_utf8")
        data_preview: First 16 bytes of payload data (security: prevents credential leakage)
    """

    def __init__(self, reason: str, data: bytes = b""):
        self.reason = reason
        # Security: Only store first 16 bytes to prevent credential leakage in logs/tracebacks
        self.data_preview = bytes(data[:16]) if data else b""
        super().__init__(f"Payload decode failed: {reason}")


class UnknownTypeError(FlowHubProtocolError):
    """Type identifier has no payload schema in the registry.

    Attributes:
        reason: Always "unknown_type"
        type_id: The unregistered type identifier
    """

    def __init__(self, type_id: int):
        self.reason = "unknown_type"
        self.type_id = type_id
        super().__init__(f"Unknown message type: {type_id}")


class SchemaDefinitionError(FlowHubProtocolError):
    """Schema descriptor file is invalid or disagrees with the code-level type table.

    Attributes:
        reason: Description of the problem
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid schema definition: {reason}")
