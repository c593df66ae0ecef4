"""All dataclasses, enums, and error types for pmc-watch."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class StreamState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    RETRYING = "retrying"
    CLOSED = "closed"


class TailMode(str, Enum):
    LIVE = "live"
    PAUSED = "paused"


class LogChannel(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


class VersionStatus(str, Enum):
    UPDATED = "updated"
    BEHIND = "behind"
    CRITICAL = "critical"


ACTION_METHODS = ("restart", "stop", "delete", "flush")
PROCESS_STATUSES = ("online", "stopped", "crashed")
LOCAL_SERVER = "local"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class PmcWatchError(Exception):
    """Base error. Carries the server name and HTTP status when known."""

    def __init__(
        self,
        message: str,
        server: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.server = server
        self.status_code = status_code


class DaemonConnectionError(PmcWatchError):
    """Transport failure on a push stream. Always retried."""


class FrameDecodeError(PmcWatchError):
    """A pushed frame could not be decoded. The frame is dropped."""


class ActionError(PmcWatchError):
    """A lifecycle action request failed. Never retried automatically."""


class FetchError(PmcWatchError):
    """A log or list fetch failed. The previous snapshot is kept."""


class VersionParseError(PmcWatchError, ValueError):
    """A version string is not ``[v]major.minor.patch``."""


class ConfigError(PmcWatchError):
    pass


# ---------------------------------------------------------------------------
# Version
# ---------------------------------------------------------------------------

@dataclass(frozen=True, order=True)
class VersionInfo:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"v{self.major}.{self.minor}.{self.patch}"


# ---------------------------------------------------------------------------
# Frames pushed by the daemon
# ---------------------------------------------------------------------------

@dataclass
class ProcessInfoFrame:
    """One frame of ``/live/process/{server}/{id}``."""

    name: str
    status: str
    pid: int | None = None
    uptime: str = ""
    command: str = ""
    cpu_percent: float = 0.0
    memory_rss: int = 0

    @property
    def running(self) -> bool:
        return self.status not in ("stopped", "crashed")

    @property
    def terminal(self) -> bool:
        return self.status == "stopped"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProcessInfoFrame:
        info = data["info"]
        stats = data.get("stats") or {}
        memory = stats.get("memory_usage") or {}
        return cls(
            name=info["name"],
            status=info["status"],
            pid=info.get("pid"),
            uptime=info.get("uptime") or "",
            command=info.get("command") or "",
            cpu_percent=float(stats.get("cpu_percent") or 0.0),
            memory_rss=int(memory.get("rss") or 0),
        )


@dataclass
class DaemonInfo:
    pid: int | None = None
    running: bool = False
    uptime: str = ""
    process_count: int | None = None
    daemon_type: str = ""


@dataclass
class OsInfo:
    name: str = ""
    version: str = ""
    arch: str = ""


@dataclass
class BuildInfo:
    pkg: str = "v0.0.0"
    hash: str = "none"
    build_date: str = "none"
    target: str = ""
    status: str | None = None  # self-reported staleness, if the server sends one


@dataclass
class DaemonMetricsFrame:
    """One frame of ``/live/daemon/{server}/metrics`` (also ``/daemon/metrics``)."""

    cpu_percent: float | None = None
    memory_usage: int | None = None
    daemon: DaemonInfo = field(default_factory=DaemonInfo)
    os: OsInfo = field(default_factory=OsInfo)
    version: BuildInfo = field(default_factory=BuildInfo)

    @property
    def terminal(self) -> bool:
        return False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DaemonMetricsFrame:
        raw = data["raw"]
        daemon = data.get("daemon") or {}
        os_raw = data.get("os") or {}
        version = data.get("version") or {}
        return cls(
            cpu_percent=raw.get("cpu_percent"),
            memory_usage=raw.get("memory_usage"),
            daemon=DaemonInfo(
                pid=daemon.get("pid"),
                running=bool(daemon.get("running", False)),
                uptime=daemon.get("uptime") or "",
                process_count=daemon.get("process_count"),
                daemon_type=daemon.get("daemon_type") or "",
            ),
            os=OsInfo(
                name=os_raw.get("name") or "",
                version=os_raw.get("version") or "",
                arch=os_raw.get("arch") or "",
            ),
            version=BuildInfo(
                pkg=version.get("pkg") or "v0.0.0",
                hash=version.get("hash") or "none",
                build_date=version.get("build_date") or "none",
                target=version.get("target") or "",
                status=version.get("status"),
            ),
        )

    @classmethod
    def offline(cls) -> DaemonMetricsFrame:
        """Placeholder used when a remote daemon cannot be reached."""
        return cls()


# ---------------------------------------------------------------------------
# Request/response payloads
# ---------------------------------------------------------------------------

@dataclass
class ProcessSummary:
    """One row of ``GET /list``."""

    id: int
    name: str
    status: str
    pid: int | None = None
    cpu: str = ""
    mem: str = ""
    uptime: str = ""
    restarts: int = 0

    @property
    def running(self) -> bool:
        return self.status not in ("stopped", "crashed")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProcessSummary:
        return cls(
            id=int(data["id"]),
            name=data["name"],
            status=data["status"],
            pid=data.get("pid"),
            cpu=str(data.get("cpu", "")),
            mem=str(data.get("mem", "")),
            uptime=str(data.get("uptime", "")),
            restarts=int(data.get("restarts") or 0),
        )


@dataclass
class LogSnapshot:
    """Full contents of one log channel at the time of the last fetch."""

    lines: list[str] = field(default_factory=list)
    channel: LogChannel = LogChannel.STDOUT
    process_id: int = 0
    server: str = LOCAL_SERVER
    stale: bool = False


@dataclass
class Chunk:
    """A run of log text, either matching the search query or not."""

    text: str
    matched: bool = False


@dataclass
class ServerOverview:
    name: str
    metrics: DaemonMetricsFrame
    status: VersionStatus = VersionStatus.CRITICAL
    reachable: bool = True


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Settings:
    """Connection settings injected into every daemon call.

    Frozen: a new token means a new Settings passed to ``update_settings()``.
    """

    base_url: str = "http://127.0.0.1:5630"
    token: str = ""
    timeout: float = 10.0

    def headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"token": self.token}

    def with_token(self, token: str) -> Settings:
        return Settings(base_url=self.base_url, token=token, timeout=self.timeout)


@dataclass
class StreamConfig:
    retry_delay: float = 5.0


@dataclass
class LogTailConfig:
    poll_interval: float = 5.0
    default_channel: LogChannel = LogChannel.STDOUT


@dataclass
class ChartConfig:
    buffer_capacity: int = 21


@dataclass
class PmcWatchConfig:
    settings: Settings = field(default_factory=Settings)
    stream: StreamConfig = field(default_factory=StreamConfig)
    logs: LogTailConfig = field(default_factory=LogTailConfig)
    charts: ChartConfig = field(default_factory=ChartConfig)
    client_version: str = ""
    default_server: str = LOCAL_SERVER
