"""Message-level facade: frame + registry + payload codec in one call.

``MessageCodec.encode_message`` resolves the payload schema for a type id,
encodes the value, allocates a msg_id and builds the frame.
``MessageCodec.decode_message`` runs the same pipeline in reverse. Log lines
emitted while a message is handled carry its msg_id as correlation ID.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from flowhub_binproto.correlation import correlation_context, format_msg_id
from flowhub_binproto.logging_abstraction import get_logger
from flowhub_binproto.metrics import registry as metrics
from flowhub_binproto.protocol.exceptions import (
    DecodeError,
    SchemaVerifyError,
    TruncatedFrameError,
    UnknownTypeError,
)
from flowhub_binproto.protocol.frame_codec import FrameCodec
from flowhub_binproto.protocol.message_id import MessageIdGenerator, default_generator
from flowhub_binproto.protocol.message_types import BROADCAST_NODE, FrameHeader, type_label
from flowhub_binproto.protocol.payload_codec import PayloadCodec
from flowhub_binproto.protocol.registry import TypeRegistry, default_registry

# Parent of the protocol module loggers; its handlers also print their records
logger = get_logger("flowhub_binproto.protocol")


@dataclass(frozen=True)
class DecodedMessage:
    """A decoded frame with its payload decoded through the registry.

    Attributes:
        header: Parsed frame header
        schema_name: Qualified schema name, None when the type carries no schema
        value: Decoded payload map, None when the type carries no schema
        payload: Undecoded payload bytes

    """

    header: FrameHeader
    schema_name: str | None
    value: dict[str, Any] | None
    payload: bytes | memoryview

    @property
    def type_id(self) -> int:
        return self.header.type_id

    @property
    def msg_id(self) -> int:
        return self.header.msg_id


class MessageCodec:
    """Encodes and decodes whole messages.

    Args:
        registry: Type registry; defaults to the process-wide registry
        payload_codec: Payload codec; defaults to one over the registry's schemas
        id_generator: Message ID source; defaults to the process-wide generator
        max_frame_size: Frames longer than this are rejected on decode;
            defaults to FLOWHUB_MAX_FRAME_SIZE

    """

    def __init__(
        self,
        registry: TypeRegistry | None = None,
        payload_codec: PayloadCodec | None = None,
        id_generator: MessageIdGenerator | None = None,
        max_frame_size: int | None = None,
    ) -> None:
        from flowhub_binproto.const import FLOWHUB_MAX_FRAME_SIZE

        self.registry = registry if registry is not None else default_registry()
        if payload_codec is None:
            if self.registry.schema_set is None:
                msg = "registry has no schema set; pass payload_codec explicitly"
                raise ValueError(msg)
            payload_codec = PayloadCodec(self.registry.schema_set)
        self.payload_codec = payload_codec
        self.id_generator = id_generator if id_generator is not None else default_generator()
        self.max_frame_size = max_frame_size if max_frame_size is not None else FLOWHUB_MAX_FRAME_SIZE

    def encode_message(
        self,
        type_id: int,
        value: Mapping[str, Any] | None = None,
        *,
        source: int = BROADCAST_NODE,
        target: int = BROADCAST_NODE,
        msg_id: int | None = None,
        raw_payload: bytes | None = None,
        timestamp: int | None = None,
    ) -> tuple[int, bytes]:
        """Encode a message into a frame.

        Args:
            type_id: Message type identifier
            value: Payload value map for types with a schema (None = all defaults)
            source: Sending node
            target: Receiving node (0 = broadcast)
            msg_id: Message ID; a fresh one is allocated when None
            raw_payload: Pre-encoded payload, used instead of ``value``
            timestamp: Milliseconds since epoch; defaults to now

        Returns:
            Tuple of (msg_id, frame bytes)

        Raises:
            UnknownTypeError: If a value is given for a type without a schema
            SchemaVerifyError: If the value does not fit the schema
            ValueError: If both value and raw_payload are given, or a header field is out of range

        """
        if value is not None and raw_payload is not None:
            msg = "pass either value or raw_payload, not both"
            raise ValueError(msg)

        if msg_id is None:
            msg_id = self.id_generator.next()

        with correlation_context(format_msg_id(msg_id)):
            schema_name = self.registry.resolve(type_id)
            if raw_payload is not None:
                payload = bytes(raw_payload)
            elif schema_name is None:
                if value is not None:
                    metrics.record_unknown_type("encode")
                    logger.warning("No payload schema for type %s", type_label(type_id))
                    raise UnknownTypeError(type_id)
                payload = b""
            else:
                try:
                    payload = self.payload_codec.encode(schema_name, value or {})
                except SchemaVerifyError as e:
                    metrics.record_encode_error(e.reason)
                    logger.warning(
                        "Payload rejected by schema",
                        extra={"schema": schema_name, "reason": e.reason, "field": e.field},
                    )
                    raise

            try:
                frame = FrameCodec.encode(type_id, msg_id, source, target, payload, timestamp=timestamp)
            except ValueError:
                metrics.record_encode_error("out_of_range")
                raise

            metrics.record_frame_encoded(type_label(type_id), len(payload))
            logger.debug(
                "Encoded message",
                extra={"type": type_label(type_id), "schema": schema_name, "frame_len": len(frame)},
            )
        return msg_id, frame

    def decode_message(self, data: bytes | bytearray | memoryview, zero_copy: bool = False) -> DecodedMessage:
        """Decode a frame and its payload.

        Args:
            data: Complete frame
            zero_copy: Keep the payload as a memoryview over ``data``

        Returns:
            DecodedMessage; ``value`` is None for types without a schema

        Raises:
            DecodeError: If the frame is too large or the payload is malformed
            TruncatedFrameError: If the frame is shorter than the header

        """
        if len(data) > self.max_frame_size:
            metrics.record_decode_error("frame", "frame_too_large")
            error_reason = "frame_too_large"
            raise DecodeError(error_reason, bytes(data[:16]))

        try:
            frame = FrameCodec.decode(data, zero_copy=zero_copy)
        except TruncatedFrameError as e:
            metrics.record_decode_error("frame", e.reason)
            raise

        header = frame.header
        with correlation_context(format_msg_id(header.msg_id)):
            schema_name = self.registry.resolve(header.type_id)
            value: dict[str, Any] | None = None
            if schema_name is None:
                if header.type_id not in self.registry:
                    metrics.record_unknown_type("decode")
                    logger.debug("Unregistered type %d, payload left undecoded", header.type_id)
            else:
                try:
                    value = self.payload_codec.decode(schema_name, frame.payload)
                except DecodeError as e:
                    metrics.record_decode_error("payload", e.reason)
                    logger.warning(
                        "Payload decode failed",
                        extra={"schema": schema_name, "reason": e.reason, "preview": e.data_preview.hex()},
                    )
                    raise

            metrics.record_frame_decoded(type_label(header.type_id), len(frame.payload))
            logger.debug(
                "Decoded message",
                extra={"type": type_label(header.type_id), "schema": schema_name, "payload_len": len(frame.payload)},
            )
        return DecodedMessage(header=header, schema_name=schema_name, value=value, payload=frame.payload)
