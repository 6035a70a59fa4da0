import os
from pathlib import Path

from flowhub_binproto import __version__

__all__ = [
    "FLOWHUB_DEBUG",
    "FLOWHUB_LOG_CORRELATION_ENABLED",
    "FLOWHUB_LOG_FORMAT",
    "FLOWHUB_LOG_HUMAN_OUTPUT",
    "FLOWHUB_LOG_JSON_FILE",
    "FLOWHUB_MAX_FRAME_SIZE",
    "FLOWHUB_METRICS_ENABLED",
    "FLOWHUB_SCHEMA_FILE",
    "FLOWHUB_VERSION",
    "PACKAGED_SCHEMA_FILE",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
FLOWHUB_VERSION: str = __version__

FLOWHUB_DEBUG = os.environ.get("FLOWHUB_DEBUG", "0").casefold() in YES_ANSWER

# Logging Configuration
FLOWHUB_LOG_FORMAT: str = os.environ.get("FLOWHUB_LOG_FORMAT", "human")  # "json", "human", or "both"
_json_file = os.environ.get("FLOWHUB_LOG_JSON_FILE")
FLOWHUB_LOG_JSON_FILE: str | None = _json_file if _json_file else None
FLOWHUB_LOG_HUMAN_OUTPUT: str = os.environ.get("FLOWHUB_LOG_HUMAN_OUTPUT", "stderr")  # "stdout", "stderr", or file path
FLOWHUB_LOG_CORRELATION_ENABLED: bool = (
    os.environ.get("FLOWHUB_LOG_CORRELATION_ENABLED", "true").casefold() in YES_ANSWER
)

# Shared descriptor: type table, message schemas and record layouts
PACKAGED_SCHEMA_FILE: Path = Path(__file__).parent / "schemas" / "flowhub_v1.yaml"
_schema_file = os.environ.get("FLOWHUB_SCHEMA_FILE")
FLOWHUB_SCHEMA_FILE: Path = Path(_schema_file) if _schema_file else PACKAGED_SCHEMA_FILE

FLOWHUB_METRICS_ENABLED: bool = os.environ.get("FLOWHUB_METRICS_ENABLED", "true").casefold() in YES_ANSWER

_max_frame_size = os.environ.get("FLOWHUB_MAX_FRAME_SIZE", "1048576")
if not _max_frame_size:
    _max_frame_size_value: int = 1048576
else:
    try:
        _max_frame_size_value = int(_max_frame_size)
    except ValueError:
        _max_frame_size_value = 1048576
FLOWHUB_MAX_FRAME_SIZE: int = _max_frame_size_value
