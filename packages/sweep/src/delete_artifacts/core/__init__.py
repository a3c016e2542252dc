from .config import Settings, load_settings
from .errors import (
    DeleteArtifactsError,
    DeletionError,
    FilterConfigError,
    PreconditionError,
    RetrievalError,
    RetrievalTimeout,
    SweepCancelled,
)
from .logging import ILogger, bind, configure_logging, get_logger
from .provenance import new_run_id, safe_dist_version
from .time import (
    format_duration_ms,
    monotonic_ms,
    parse_duration,
    utc_now,
    utc_now_iso,
)

__all__ = [
    "Settings",
    "load_settings",
    "DeleteArtifactsError",
    "DeletionError",
    "FilterConfigError",
    "PreconditionError",
    "RetrievalError",
    "RetrievalTimeout",
    "SweepCancelled",
    "ILogger",
    "bind",
    "configure_logging",
    "get_logger",
    "new_run_id",
    "safe_dist_version",
    "format_duration_ms",
    "monotonic_ms",
    "parse_duration",
    "utc_now",
    "utc_now_iso",
]
