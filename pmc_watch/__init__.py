"""pmc-watch: live telemetry and log-tailing client for the pmc process daemon."""

from .client import DaemonClient, LogTailController, StreamConnection
from .config import load_config
from .core.log_search import LogSearchIndex
from .core.ring_buffer import MetricRingBuffer
from .types import (
    DaemonMetricsFrame,
    LogChannel,
    LogSnapshot,
    PmcWatchConfig,
    ProcessInfoFrame,
    Settings,
    VersionStatus,
)

__version__ = "2.0.0"

__all__ = [
    "DaemonClient",
    "LogTailController",
    "StreamConnection",
    "MetricRingBuffer",
    "LogSearchIndex",
    "load_config",
    "DaemonMetricsFrame",
    "LogChannel",
    "LogSnapshot",
    "PmcWatchConfig",
    "ProcessInfoFrame",
    "Settings",
    "VersionStatus",
]
