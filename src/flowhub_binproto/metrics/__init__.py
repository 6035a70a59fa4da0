"""Metrics module."""

from .registry import (
    record_decode_error,
    record_encode_error,
    record_frame_decoded,
    record_frame_encoded,
    record_unknown_type,
    start_metrics_server,
)

__all__ = [
    "record_decode_error",
    "record_encode_error",
    "record_frame_decoded",
    "record_frame_encoded",
    "record_unknown_type",
    "start_metrics_server",
]
