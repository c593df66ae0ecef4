"""Telemetry feeds: one StreamConnection feeding cpu/memory ring buffers."""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

from ..core.observable import Observable
from ..core.ring_buffer import DEFAULT_CAPACITY, MetricRingBuffer
from ..types import LOCAL_SERVER, DaemonMetricsFrame, ProcessInfoFrame
from .http import DaemonClient
from .stream import DEFAULT_RETRY_DELAY, StreamConnection, frame_decoder, sse_transport

logger = logging.getLogger(__name__)

F = TypeVar("F", ProcessInfoFrame, DaemonMetricsFrame)


class _Feed(Generic[F]):
    """Latest frame plus bounded cpu/memory series for one stream."""

    def __init__(
        self,
        connection: StreamConnection[F],
        endpoint: str,
        headers: dict[str, str],
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        self.connection = connection
        self.endpoint = endpoint
        self.headers = headers
        self.cpu = MetricRingBuffer(capacity)
        self.memory = MetricRingBuffer(capacity)
        self.latest: Observable[F | None] = Observable(None)
        self.stopped = False
        self._on_terminal: Callable[[], None] | None = None

    @property
    def state(self):
        return self.connection.state

    def start(self, on_terminal: Callable[[], None] | None = None) -> None:
        self._on_terminal = on_terminal
        self.stopped = False
        self.connection.open(self.endpoint, self.headers, self._on_frame, self._terminal)

    # Reopening after a lifecycle action mirrors what start() does.
    restart = start

    def _on_frame(self, frame: F) -> None:
        self._record(frame)
        self.latest.set(frame, force=True)

    def _record(self, frame: F) -> None:
        raise NotImplementedError

    def _terminal(self) -> None:
        self.stopped = True
        logger.info("Feed %s stopped", self.endpoint)
        if self._on_terminal is not None:
            self._on_terminal()

    def close(self) -> None:
        self.connection.close()

    async def aclose(self) -> None:
        await self.connection.aclose()


class ProcessFeed(_Feed[ProcessInfoFrame]):
    """Live info for one managed process. Ends when the process stops."""

    def _record(self, frame: ProcessInfoFrame) -> None:
        self.cpu.push(frame.cpu_percent if frame.running else 0.0)
        self.memory.push(frame.memory_rss if frame.running else 0)

    @classmethod
    def create(
        cls,
        client: DaemonClient,
        process_id: int,
        server: str = LOCAL_SERVER,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        capacity: int = DEFAULT_CAPACITY,
    ) -> ProcessFeed:
        connection: StreamConnection[ProcessInfoFrame] = StreamConnection(
            sse_transport(client),
            decode=frame_decoder(ProcessInfoFrame.from_dict),
            retry_delay=retry_delay,
            name=f"process:{server}/{process_id}",
        )
        return cls(
            connection,
            client.process_stream_path(process_id, server),
            {},
            capacity,
        )


class DaemonFeed(_Feed[DaemonMetricsFrame]):
    """Live metrics of one daemon (local or remote)."""

    def _record(self, frame: DaemonMetricsFrame) -> None:
        if frame.cpu_percent is not None:
            self.cpu.push(frame.cpu_percent)
        if frame.memory_usage is not None:
            self.memory.push(frame.memory_usage)

    @classmethod
    def create(
        cls,
        client: DaemonClient,
        server: str = LOCAL_SERVER,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        capacity: int = DEFAULT_CAPACITY,
    ) -> DaemonFeed:
        connection: StreamConnection[DaemonMetricsFrame] = StreamConnection(
            sse_transport(client),
            decode=frame_decoder(DaemonMetricsFrame.from_dict),
            retry_delay=retry_delay,
            name=f"daemon:{server}",
        )
        return cls(connection, client.daemon_stream_path(server), {}, capacity)
