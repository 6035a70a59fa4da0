from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from typing import Any

from flowhub_binproto.const import FLOWHUB_DEBUG, FLOWHUB_VERSION
from flowhub_binproto.correlation import correlation_context
from flowhub_binproto.logging_abstraction import get_logger
from flowhub_binproto.protocol import MessageCodec, default_registry
from flowhub_binproto.protocol.codec import logger as codec_logger
from flowhub_binproto.protocol.exceptions import FlowHubProtocolError
from flowhub_binproto.protocol.message_types import type_label
from flowhub_binproto.protocol.schema import SchemaSet

logger = get_logger(__name__)


def to_jsonable(value: Any) -> Any:
    """Convert decoded payload values to JSON types; bytes become hex strings."""
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).hex()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [to_jsonable(v) for v in value]
    return value


def from_jsonable(value: Any, schema_set: SchemaSet, schema_name: str) -> Any:
    """Inverse of to_jsonable for one schema: hex strings in bytes fields become bytes."""
    schema = schema_set.message(schema_name) or schema_set.record(schema_name)
    if schema is None or not isinstance(value, dict):
        return value

    out = dict(value)
    for field in schema.fields:
        if out.get(field.name) is None:
            continue

        def convert(item: Any, field_type: str = field.type) -> Any:
            if field_type == "bytes" and isinstance(item, str):
                return bytes.fromhex(item)
            if schema_set.kind_of(field_type) is not None:
                return from_jsonable(item, schema_set, field_type)
            return item

        if field.repeated and isinstance(out[field.name], list):
            out[field.name] = [convert(item) for item in out[field.name]]
        else:
            out[field.name] = convert(out[field.name])
    return out


def parse_cli(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="flowhub-binproto",
        description="Encode and decode MyFlowHub binary protocol frames",
    )
    parser.add_argument(
        "-D",
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {FLOWHUB_VERSION}")

    sub = parser.add_subparsers(dest="command", required=True)

    decode_p = sub.add_parser("decode", help="Decode a frame given as hex and print it as JSON")
    decode_p.add_argument("frame_hex", help="Complete frame (header + payload) as hex")

    encode_p = sub.add_parser("encode", help="Encode a message and print the frame as hex")
    encode_p.add_argument("--type", dest="type_id", type=int, required=True, help="Message type id")
    encode_p.add_argument("--json", dest="value_json", default=None, help="Payload value as a JSON object")
    encode_p.add_argument("--source", type=int, default=0, help="Source node id")
    encode_p.add_argument("--target", type=int, default=0, help="Target node id (0 = broadcast)")
    encode_p.add_argument("--msg-id", dest="msg_id", type=int, default=None, help="Message id (default: generated)")
    encode_p.add_argument("--timestamp", type=int, default=None, help="Timestamp in ms (default: now)")

    sub.add_parser("types", help="List registered message types")

    args = parser.parse_args(argv)

    if args.debug or FLOWHUB_DEBUG:
        for log in (logger, codec_logger):
            log.set_level(logging.DEBUG)
        logger.debug("Debug mode enabled")

    return args


def _cmd_decode(codec: MessageCodec, frame_hex: str) -> int:
    data = bytes.fromhex(frame_hex.strip())
    message = codec.decode_message(data)
    output: dict[str, Any] = {
        "type_id": message.header.type_id,
        "type": type_label(message.header.type_id),
        "msg_id": message.header.msg_id,
        "source": message.header.source,
        "target": message.header.target,
        "timestamp": message.header.timestamp,
        "schema": message.schema_name,
        "value": to_jsonable(message.value),
        "payload_hex": bytes(message.payload).hex(),
    }
    print(json.dumps(output, indent=2))
    return 0


def _cmd_encode(codec: MessageCodec, args: argparse.Namespace) -> int:
    value: dict[str, Any] | None = None
    if args.value_json is not None:
        parsed = json.loads(args.value_json)
        if not isinstance(parsed, dict):
            msg = "--json must be a JSON object"
            raise ValueError(msg)
        schema_name = codec.registry.resolve(args.type_id)
        schema_set = codec.payload_codec.schema_set
        value = from_jsonable(parsed, schema_set, schema_name) if schema_name else parsed

    msg_id, frame = codec.encode_message(
        args.type_id,
        value,
        source=args.source,
        target=args.target,
        msg_id=args.msg_id,
        timestamp=args.timestamp,
    )
    logger.debug("Encoded frame", extra={"msg_id": msg_id, "frame_len": len(frame)})
    print(frame.hex())
    return 0


def _cmd_types(codec: MessageCodec) -> int:
    for entry in codec.registry:
        print(f"{entry.type_id:>5}  {entry.name:<22} {entry.schema_name or '-'}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the flowhub-binproto command."""
    with correlation_context():
        args = parse_cli(argv)

        try:
            codec = MessageCodec(registry=default_registry())
            if args.command == "decode":
                return _cmd_decode(codec, args.frame_hex)
            if args.command == "encode":
                return _cmd_encode(codec, args)
            return _cmd_types(codec)
        except FlowHubProtocolError as e:
            logger.error("Protocol error: %s", e, extra={"error_type": type(e).__name__})
            return 1
        except ValueError as e:
            logger.error("Invalid input: %s", e)
            return 2


if __name__ == "__main__":
    sys.exit(main())
