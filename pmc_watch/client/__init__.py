from .feeds import DaemonFeed, ProcessFeed
from .http import DaemonClient
from .log_tail import LogTailController
from .servers import fetch_overview, sort_overview
from .stream import StreamConnection, frame_decoder, sse_transport

__all__ = [
    "DaemonClient",
    "DaemonFeed",
    "LogTailController",
    "ProcessFeed",
    "StreamConnection",
    "fetch_overview",
    "frame_decoder",
    "sort_overview",
    "sse_transport",
]
