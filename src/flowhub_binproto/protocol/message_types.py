"""FlowHub message type identifiers and frame dataclass structures.

This module defines the numeric type identifiers carried in the frame header
and the dataclasses a decoded frame is returned as. The identifier namespace is
flat and 16 bits wide; new message kinds get new identifiers, never reused ones.

Type Range Overview:
- 0-1: Generic responses (OK / error)
- 10-29: Messaging and device management
- 100-131: Authentication (manager, user, parent hub)
- 150-151: System log queries
- 160-177: Variables and access keys
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

HEADER_SIZE = 38  # type(2) + reserved(4) + msg_id(8) + source(8) + target(8) + timestamp(8)
BROADCAST_NODE = 0  # source/target value meaning "unset" or "broadcast"


class MessageType(IntEnum):
    """Code-level names for the message type identifiers.

    The schema descriptor file is checked against these values when a
    registry is built, so the two cannot drift apart silently.
    """

    # Generic responses
    OK_RESP = 0  # Ack with request_id/code/message
    ERR_RESP = 1  # Error with request_id/code/message

    # Messaging
    MSG_SEND = 10  # Opaque application payload, no schema

    # Device management
    QUERY_NODES_REQ = 20
    CREATE_DEVICE_REQ = 21
    UPDATE_DEVICE_REQ = 22
    DELETE_DEVICE_REQ = 23

    # Manager authentication
    MANAGER_AUTH_REQ = 100
    MANAGER_AUTH_RESP = 101

    # User session
    USER_LOGIN_REQ = 110
    USER_LOGIN_RESP = 111
    USER_ME_REQ = 112
    USER_ME_RESP = 113
    USER_LOGOUT_REQ = 114
    USER_LOGOUT_RESP = 115  # Bare ack, no schema

    QUERY_NODES_RESP = 120

    # Parent hub authentication
    PARENT_AUTH_REQ = 130
    PARENT_AUTH_RESP = 131

    # System log
    SYSTEMLOG_LIST_REQ = 150
    SYSTEMLOG_LIST_RESP = 151

    # Variables
    VAR_LIST_REQ = 160
    VAR_LIST_RESP = 161
    VAR_UPDATE_REQ = 162
    VAR_DELETE_REQ = 163

    # Access keys
    KEY_LIST_REQ = 170
    KEY_LIST_RESP = 171
    KEY_CREATE_REQ = 172
    KEY_CREATE_RESP = 173
    KEY_UPDATE_REQ = 174
    KEY_DELETE_REQ = 175
    KEY_DEVICES_REQ = 176
    KEY_DEVICES_RESP = 177


def type_label(type_id: int) -> str:
    """Return the enum name for a type identifier, or its decimal string if unnamed."""
    try:
        return MessageType(type_id).name
    except ValueError:
        return str(type_id)


@dataclass(frozen=True)
class FrameHeader:
    """Fixed 38-byte frame header.

    Layout (little-endian):
    - Bytes 0-1: type_id (u16)
    - Bytes 2-5: reserved (written as zero, ignored on read)
    - Bytes 6-13: msg_id (u64)
    - Bytes 14-21: source node (u64, 0 = unset)
    - Bytes 22-29: target node (u64, 0 = broadcast)
    - Bytes 30-37: timestamp (i64, milliseconds since epoch, producer-stamped)

    Attributes:
        type_id: Message type identifier (see MessageType)
        msg_id: Message identifier used to pair requests and responses
        source: Sending node identifier
        target: Receiving node identifier
        timestamp: Producer wall clock in milliseconds

    """

    type_id: int
    msg_id: int
    source: int
    target: int
    timestamp: int


@dataclass(frozen=True)
class Frame:
    """Decoded frame: header plus the undecoded payload.

    The payload is ``bytes`` unless the frame was decoded with
    ``zero_copy=True``, in which case it is a ``memoryview`` over the
    caller's buffer.
    """

    header: FrameHeader
    payload: bytes | memoryview

    @property
    def type_id(self) -> int:
        return self.header.type_id

    @property
    def msg_id(self) -> int:
        return self.header.msg_id

    def to_dict(self) -> dict[str, object]:
        """Diagnostic view of the frame with the payload as hex."""
        return {
            "type_id": self.header.type_id,
            "type": type_label(self.header.type_id),
            "msg_id": self.header.msg_id,
            "source": self.header.source,
            "target": self.header.target,
            "timestamp": self.header.timestamp,
            "payload_len": len(self.payload),
            "payload_hex": bytes(self.payload).hex(),
        }
