"""FlowHub binary protocol: frames, type registry and payload codecs."""

from flowhub_binproto.protocol.byte_cursor import ByteReader, ByteWriter
from flowhub_binproto.protocol.codec import DecodedMessage, MessageCodec
from flowhub_binproto.protocol.exceptions import (
    DecodeError,
    FlowHubProtocolError,
    OutOfBoundsError,
    SchemaDefinitionError,
    SchemaVerifyError,
    TruncatedFrameError,
    UnknownTypeError,
)
from flowhub_binproto.protocol.frame_codec import FrameCodec, decode_frame, encode_frame
from flowhub_binproto.protocol.message_id import MessageIdGenerator, next_msg_id
from flowhub_binproto.protocol.message_types import HEADER_SIZE, Frame, FrameHeader, MessageType
from flowhub_binproto.protocol.payload_codec import PayloadCodec
from flowhub_binproto.protocol.registry import TypeRegistry, default_registry
from flowhub_binproto.protocol.schema import SchemaSet, load_schema_set

__all__ = [
    "HEADER_SIZE",
    "ByteReader",
    "ByteWriter",
    "DecodeError",
    "DecodedMessage",
    "FlowHubProtocolError",
    "Frame",
    "FrameCodec",
    "FrameHeader",
    "MessageCodec",
    "MessageIdGenerator",
    "MessageType",
    "OutOfBoundsError",
    "PayloadCodec",
    "SchemaDefinitionError",
    "SchemaSet",
    "SchemaVerifyError",
    "TruncatedFrameError",
    "TypeRegistry",
    "UnknownTypeError",
    "decode_frame",
    "default_registry",
    "encode_frame",
    "load_schema_set",
    "next_msg_id",
]
