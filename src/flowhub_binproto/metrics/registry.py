"""Prometheus metrics registry for frame and payload coding."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Histogram,
    start_http_server,
)

# Metric definitions
flowhub_frames_encoded_total: Final = Counter(  # type: ignore[assignment]
    "flowhub_frames_encoded_total",
    "Total frames encoded",
    ["type"],
)

flowhub_frames_decoded_total: Final = Counter(  # type: ignore[assignment]
    "flowhub_frames_decoded_total",
    "Total frames decoded",
    ["type"],
)

flowhub_decode_errors_total: Final = Counter(  # type: ignore[assignment]
    "flowhub_decode_errors_total",
    "Total decode errors",
    ["stage", "reason"],
)

flowhub_encode_errors_total: Final = Counter(  # type: ignore[assignment]
    "flowhub_encode_errors_total",
    "Total encode errors",
    ["reason"],
)

flowhub_unknown_type_total: Final = Counter(  # type: ignore[assignment]
    "flowhub_unknown_type_total",
    "Total frames whose type id has no payload schema",
    ["direction"],
)

flowhub_payload_size_bytes: Final = Histogram(  # type: ignore[assignment]
    "flowhub_payload_size_bytes",
    "Payload size in bytes",
    ["direction"],
    buckets=(0, 16, 64, 256, 1024, 4096, 16384, 65536, 262144, 1048576),
)

_server_state = {"started": False}
_server_lock = threading.Lock()


def _enabled() -> bool:
    from flowhub_binproto.const import FLOWHUB_METRICS_ENABLED

    return FLOWHUB_METRICS_ENABLED


def start_metrics_server(port: int = 9400) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_frame_encoded(type_label: str, payload_size: int) -> None:
    """Record an encoded frame and its payload size."""
    if not _enabled():
        return
    flowhub_frames_encoded_total.labels(type=type_label).inc()  # type: ignore[no-untyped-call]
    flowhub_payload_size_bytes.labels(direction="encode").observe(payload_size)  # type: ignore[no-untyped-call]


def record_frame_decoded(type_label: str, payload_size: int) -> None:
    """Record a decoded frame and its payload size."""
    if not _enabled():
        return
    flowhub_frames_decoded_total.labels(type=type_label).inc()  # type: ignore[no-untyped-call]
    flowhub_payload_size_bytes.labels(direction="decode").observe(payload_size)  # type: ignore[no-untyped-call]


def record_decode_error(stage: str, reason: str) -> None:
    """Record a decode error; stage is "frame" or "payload"."""
    if not _enabled():
        return
    flowhub_decode_errors_total.labels(stage=stage, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_encode_error(reason: str) -> None:
    """Record an encode error."""
    if not _enabled():
        return
    flowhub_encode_errors_total.labels(reason=reason).inc()  # type: ignore[no-untyped-call]


def record_unknown_type(direction: str) -> None:
    """Record a frame whose type id is not in the registry."""
    if not _enabled():
        return
    flowhub_unknown_type_total.labels(direction=direction).inc()  # type: ignore[no-untyped-call]
