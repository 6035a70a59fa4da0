"""FlowHub frame encoder/decoder implementation.

This module implements the fixed 38-byte little-endian frame header and the
split of a frame into header and payload. Payload length is never encoded;
the transport delivers whole frames and the payload is everything after the
header.
"""

from __future__ import annotations

import logging
import struct
import time

from flowhub_binproto.protocol.byte_cursor import ByteWriter
from flowhub_binproto.protocol.exceptions import TruncatedFrameError
from flowhub_binproto.protocol.message_types import HEADER_SIZE, Frame, FrameHeader

# type_id, reserved, msg_id, source, target, timestamp
_HEADER_STRUCT = struct.Struct("<H4sQQQq")
_RESERVED = b"\x00\x00\x00\x00"
MAX_TYPE_ID = 0xFFFF

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current wall clock in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


class FrameCodec:
    """FlowHub frame encoder/decoder.

    Provides static methods for encoding and decoding frames.
    All methods are stateless - no instance state maintained.
    """

    @staticmethod
    def encode_header(header: FrameHeader) -> bytes:
        """Encode a 38-byte header.

        Args:
            header: Header fields to encode

        Returns:
            38-byte header

        Raises:
            ValueError: If a field is not an int, type_id is outside 0..65535
                or a 64-bit field is out of range

        """
        type_id = header.type_id
        if isinstance(type_id, bool) or not isinstance(type_id, int) or not 0 <= type_id <= MAX_TYPE_ID:
            msg = f"type_id out of range: {type_id!r}"
            raise ValueError(msg)

        writer = ByteWriter(HEADER_SIZE)
        writer.write_u16(type_id)
        writer.write_bytes(_RESERVED)
        fields = (
            ("msg_id", header.msg_id, writer.write_u64),
            ("source", header.source, writer.write_u64),
            ("target", header.target, writer.write_u64),
            ("timestamp", header.timestamp, writer.write_i64),
        )
        for name, value, write in fields:
            try:
                write(value)
            except (TypeError, ValueError) as e:
                msg = f"{name}: {e}"
                raise ValueError(msg) from e
        return writer.getvalue()

    @staticmethod
    def decode_header(data: bytes | bytearray | memoryview) -> FrameHeader:
        """Parse the 38-byte header at the start of data.

        Reserved bytes are ignored.

        Args:
            data: Frame bytes (at least 38)

        Returns:
            Parsed FrameHeader

        Raises:
            TruncatedFrameError: If data is shorter than 38 bytes

        """
        if len(data) < HEADER_SIZE:
            raise TruncatedFrameError(len(data))

        type_id, _reserved, msg_id, source, target, timestamp = _HEADER_STRUCT.unpack_from(data, 0)
        return FrameHeader(
            type_id=type_id,
            msg_id=msg_id,
            source=source,
            target=target,
            timestamp=timestamp,
        )

    @staticmethod
    def encode(
        type_id: int,
        msg_id: int,
        source: int,
        target: int,
        payload: bytes | bytearray | memoryview = b"",
        *,
        timestamp: int | None = None,
    ) -> bytes:
        """Encode a complete frame: 38-byte header followed by the payload.

        Args:
            type_id: Message type identifier (u16)
            msg_id: Message identifier (u64)
            source: Sending node (u64, 0 = unset)
            target: Receiving node (u64, 0 = broadcast)
            payload: Encoded payload bytes, may be empty
            timestamp: Milliseconds since epoch (signed); defaults to now

        Returns:
            Frame bytes of length 38 + len(payload)

        Raises:
            ValueError: If a header field is out of range for its width

        Example:
            >>> frame = FrameCodec.encode(0, 42, 1, 2, b"", timestamp=0)
            >>> len(frame)
            38
            >>> FrameCodec.decode(frame).header.msg_id
            42

        """
        if timestamp is None:
            timestamp = now_ms()

        header = FrameHeader(type_id=type_id, msg_id=msg_id, source=source, target=target, timestamp=timestamp)
        frame = FrameCodec.encode_header(header) + bytes(payload)

        logger.debug(
            "Encoded frame: type=%d, msg_id=0x%016x, source=%d, target=%d, payload_len=%d",
            type_id,
            msg_id & 0xFFFF_FFFF_FFFF_FFFF,
            source,
            target,
            len(payload),
        )

        return frame

    @staticmethod
    def decode(frame: bytes | bytearray | memoryview, zero_copy: bool = False) -> Frame:
        """Split a frame into its header and payload.

        Args:
            frame: Complete frame as delivered by the transport
            zero_copy: Return the payload as a memoryview over ``frame`` instead
                of a copy. The caller must not modify ``frame`` while the
                payload is in use.

        Returns:
            Frame with parsed header and the payload (empty if none)

        Raises:
            TruncatedFrameError: If frame is shorter than 38 bytes

        """
        header = FrameCodec.decode_header(frame)

        payload: bytes | memoryview
        if zero_copy:
            payload = memoryview(frame)[HEADER_SIZE:]
        else:
            payload = bytes(frame[HEADER_SIZE:])

        logger.debug(
            "Decoded frame: type=%d, msg_id=0x%016x, payload_len=%d",
            header.type_id,
            header.msg_id,
            len(payload),
        )

        return Frame(header=header, payload=payload)


def encode_frame(
    type_id: int,
    msg_id: int,
    source: int,
    target: int,
    payload: bytes | bytearray | memoryview = b"",
    *,
    timestamp: int | None = None,
) -> bytes:
    """Module-level shortcut for FrameCodec.encode()."""
    return FrameCodec.encode(type_id, msg_id, source, target, payload, timestamp=timestamp)


def decode_frame(frame: bytes | bytearray | memoryview, zero_copy: bool = False) -> Frame:
    """Module-level shortcut for FrameCodec.decode()."""
    return FrameCodec.decode(frame, zero_copy=zero_copy)
