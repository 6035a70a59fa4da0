"""MyFlowHub binary protocol v1: frame header, message IDs, type registry and payload codecs.

Public API:
- FrameCodec / encode_frame / decode_frame: fixed 38-byte header + payload
- MessageIdGenerator / next_msg_id: time-ordered 64-bit message IDs
- TypeRegistry / default_registry: type ID -> schema name
- PayloadCodec: reflection (tag-based) and bitmask record payloads
- MessageCodec: the whole pipeline in one call each way
"""

__version__ = "0.3.0"

from flowhub_binproto.protocol import (  # noqa: E402
    DecodedMessage,
    DecodeError,
    FlowHubProtocolError,
    Frame,
    FrameCodec,
    FrameHeader,
    MessageCodec,
    MessageIdGenerator,
    MessageType,
    OutOfBoundsError,
    PayloadCodec,
    SchemaVerifyError,
    TruncatedFrameError,
    TypeRegistry,
    UnknownTypeError,
    decode_frame,
    default_registry,
    encode_frame,
    next_msg_id,
)

__all__ = [
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
    "SchemaVerifyError",
    "TruncatedFrameError",
    "TypeRegistry",
    "UnknownTypeError",
    "__version__",
    "decode_frame",
    "default_registry",
    "encode_frame",
    "next_msg_id",
]
