"""StreamConnection: supervises one push (SSE) connection to the daemon.

Lifecycle::

    IDLE -> CONNECTING -> OPEN -> (transport error) -> RETRYING -> CONNECTING ...
                             \\-> (terminal frame) -> CLOSED
    any state -> close() -> CLOSED

A transport error schedules a reconnect after a fixed delay, forever, until
``close()`` is called. Frames that fail to decode are dropped and the
connection stays open. At most one transport is active per instance: every
``open()`` first tears down the previous one and cancels any pending retry.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, AsyncIterator, Callable, Generic, TypeVar

import httpx

from ..core.observable import Observable
from ..core.timers import OneShotTimer
from ..types import DaemonConnectionError, FrameDecodeError, StreamState
from .http import DaemonClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_DELAY = 5.0

# transport(endpoint, headers) -> async context manager yielding raw frames.
# Entering the context means the connection is established.
Transport = Callable[
    [str, dict[str, str]],
    AbstractAsyncContextManager[AsyncIterator[str]],
]


def json_decoder(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise FrameDecodeError(f"Invalid JSON frame: {e}") from e


def frame_decoder(factory: Callable[[dict], T]) -> Callable[[str], T]:
    """Decoder that parses JSON and builds a typed frame with ``factory``."""

    def decode(raw: str) -> T:
        data = json_decoder(raw)
        if isinstance(data, dict) and "error" in data and len(data) == 1:
            raise FrameDecodeError(f"Daemon reported: {data['error']}")
        try:
            return factory(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise FrameDecodeError(f"Unexpected frame shape: {e!r}") from e

    return decode


def sse_transport(client: DaemonClient) -> Transport:
    """Transport reading Server-Sent Events through ``client``."""

    def connect(endpoint: str, headers: dict[str, str]):
        return client.stream_events(endpoint, headers=headers)

    return connect


def _is_terminal(sample: Any) -> bool:
    return bool(getattr(sample, "terminal", False))


class StreamConnection(Generic[T]):
    """One logical push stream with fixed-delay, unbounded reconnects."""

    def __init__(
        self,
        transport: Transport,
        decode: Callable[[str], T] = json_decoder,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        is_terminal: Callable[[T], bool] = _is_terminal,
        name: str = "stream",
    ) -> None:
        self._transport = transport
        self._decode = decode
        self._is_terminal = is_terminal
        self.retry_delay = retry_delay
        self.name = name

        self.state: Observable[StreamState] = Observable(StreamState.IDLE)
        self.last_error: Exception | None = None
        self.attempts = 0
        self.frames_received = 0
        self.frames_dropped = 0

        self._params: tuple | None = None
        self._task: asyncio.Task | None = None
        self._retry = OneShotTimer()
        self._generation = 0
        self._closed = False
        self._releasing: asyncio.Task | None = None

    # -- public API --

    @property
    def endpoint(self) -> str | None:
        return self._params[0] if self._params else None

    @property
    def retry_pending(self) -> bool:
        return self._retry.pending

    def open(
        self,
        endpoint: str,
        headers: dict[str, str] | None,
        on_sample: Callable[[T], None],
        on_terminal: Callable[[], None] | None = None,
    ) -> StreamConnection[T]:
        """Connect (or reconnect) to ``endpoint``. Must run inside an event loop."""
        self._params = (endpoint, dict(headers or {}), on_sample, on_terminal)
        self._retry.cancel()
        previous = self._detach_task()
        self._closed = False
        self._generation += 1
        self.state.set(StreamState.CONNECTING)
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(self._generation, previous))
        return self

    def close(self) -> None:
        """Stop streaming and cancel any pending retry. Safe to call repeatedly."""
        self._retry.cancel()
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        self._releasing = self._detach_task()
        self.state.set(StreamState.CLOSED)
        logger.info("%s: closed", self.name)

    async def aclose(self) -> None:
        """``close()`` and wait for the transport to be released."""
        self.close()
        task, self._releasing = self._releasing, None
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

    # -- internals --

    def _current(self, generation: int) -> bool:
        return generation == self._generation and not self._closed

    def _detach_task(self) -> asyncio.Task | None:
        task, self._task = self._task, None
        if task is None or task.done():
            return None
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()
        return task

    async def _run(self, generation: int, previous: asyncio.Task | None) -> None:
        if previous is not None and previous is not asyncio.current_task():
            # The old transport must be fully released before a new one opens.
            await asyncio.gather(previous, return_exceptions=True)
        if not self._current(generation):
            return

        endpoint, headers, on_sample, on_terminal = self._params
        try:
            async with self._transport(endpoint, headers) as frames:
                if not self._current(generation):
                    return
                self.attempts = 0
                self.state.set(StreamState.OPEN)
                logger.info("%s: connected to %s", self.name, endpoint)
                async for raw in frames:
                    if not self._current(generation):
                        return
                    if self._deliver(raw, on_sample, generation):
                        self._finish(on_terminal)
                        return
            raise DaemonConnectionError(f"Stream {endpoint} ended")
        except (DaemonConnectionError, httpx.HTTPError, OSError) as e:
            if self._current(generation):
                self._schedule_retry(e)

    def _deliver(self, raw: str, on_sample: Callable[[T], None], generation: int) -> bool:
        """Decode and hand one frame to the caller. Returns True on a terminal frame."""
        try:
            sample = self._decode(raw)
        except FrameDecodeError as e:
            self.frames_dropped += 1
            logger.debug("%s: dropped frame: %s", self.name, e)
            return False

        self.frames_received += 1
        try:
            on_sample(sample)
        except Exception:
            logger.exception("%s: sample callback failed", self.name)
        return self._current(generation) and self._is_terminal(sample)

    def _finish(self, on_terminal: Callable[[], None] | None) -> None:
        self._closed = True
        self._generation += 1
        self._task = None
        self.state.set(StreamState.CLOSED)
        logger.info("%s: remote resource stopped, stream ended", self.name)
        if on_terminal is not None:
            try:
                on_terminal()
            except Exception:
                logger.exception("%s: terminal callback failed", self.name)

    def _schedule_retry(self, error: Exception) -> None:
        self.last_error = error
        self.attempts += 1
        self._task = None
        self.state.set(StreamState.RETRYING)
        logger.warning(
            "%s: connection error (%s), retrying in %.1fs (attempt %d)",
            self.name, error, self.retry_delay, self.attempts,
        )
        self._retry.start(self.retry_delay, self._reconnect)

    def _reconnect(self) -> None:
        if self._closed or self._params is None:
            return
        self.open(*self._params)
