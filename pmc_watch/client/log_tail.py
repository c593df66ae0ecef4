"""LogTailController: pull-based log tailing with Live/Paused modes.

Each successful fetch replaces the snapshot wholesale. If the daemon truncates
or rotates the log between polls the visible content shrinks or reorders;
nothing is merged with the previous snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable

from ..core.log_search import LogSearchIndex
from ..core.observable import Observable
from ..core.timers import IntervalTimer
from ..types import LOCAL_SERVER, FetchError, LogChannel, LogSnapshot, TailMode
from .http import DaemonClient

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0

Fetcher = Callable[[LogChannel], Awaitable[list[str]]]


class LogTailController:
    """Owns one log snapshot, its polling timer and the search query.

    Starts Paused. ``set_live(True)`` polls every ``poll_interval`` seconds;
    opening a search forces Paused and closing it does not resume Live.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        process_id: int = 0,
        server: str = LOCAL_SERVER,
        channel: LogChannel = LogChannel.STDOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._fetcher = fetcher
        self.process_id = process_id
        self.server = server
        self.poll_interval = poll_interval
        self._channel = LogChannel(channel)

        self.mode: Observable[TailMode] = Observable(TailMode.PAUSED)
        self.snapshot: Observable[LogSnapshot] = Observable(
            LogSnapshot(channel=self._channel, process_id=process_id, server=server)
        )
        self.search = LogSearchIndex()
        self.searching = False
        self.loaded = False
        self.auto_scroll = False
        self.last_error: FetchError | None = None

        self._poll = IntervalTimer()
        self._fetches: set[asyncio.Task] = set()
        self._requested = 0
        self._applied = 0
        self._closed = False

    @classmethod
    def for_process(
        cls,
        client: DaemonClient,
        process_id: int,
        server: str = LOCAL_SERVER,
        channel: LogChannel = LogChannel.STDOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> LogTailController:
        async def fetcher(ch: LogChannel) -> list[str]:
            return await client.fetch_logs(process_id, ch, server)

        return cls(
            fetcher,
            process_id=process_id,
            server=server,
            channel=channel,
            poll_interval=poll_interval,
        )

    # -- state --

    @property
    def live(self) -> bool:
        return self.mode.value is TailMode.LIVE

    @property
    def channel(self) -> LogChannel:
        return self._channel

    @property
    def polling(self) -> bool:
        return self._poll.running

    @property
    def lines(self) -> list[str]:
        return self.snapshot.value.lines

    def visible_lines(self) -> list[str]:
        """Snapshot lines after the active search filter."""
        return self.search.view(self.snapshot.value)

    # -- fetching --

    async def fetch(self) -> LogSnapshot:
        """Fetch the full log and replace the snapshot.

        On FetchError the previous snapshot is kept and marked stale. A result
        that arrives after a newer request has already been applied is dropped.
        """
        channel = self._channel
        self._requested += 1
        seq = self._requested
        try:
            lines = await self._fetcher(channel)
        except FetchError as e:
            self.last_error = e
            logger.warning(
                "Log fetch failed for process %s (%s, %s): %s",
                self.process_id, self.server, channel.value, e,
            )
            if not self._closed and channel is self._channel and seq > self._applied:
                self.snapshot.set(replace(self.snapshot.value, stale=True))
            return self.snapshot.value

        if self._closed or channel is not self._channel:
            logger.debug("Discarding %s logs fetched before a channel switch", channel.value)
            return self.snapshot.value

        if seq < self._applied:
            logger.debug("Discarding out-of-order log fetch %d (applied %d)", seq, self._applied)
            return self.snapshot.value

        self._applied = seq
        self.last_error = None
        self.loaded = True
        self.auto_scroll = self.live
        snapshot = LogSnapshot(
            lines=list(lines),
            channel=channel,
            process_id=self.process_id,
            server=self.server,
        )
        self.snapshot.set(snapshot, force=True)
        return snapshot

    def request_fetch(self) -> asyncio.Task | None:
        """Schedule ``fetch()`` on the running loop; the task is owned here."""
        if self._closed:
            return None
        task = asyncio.get_running_loop().create_task(self.fetch())
        self._fetches.add(task)
        task.add_done_callback(self._fetches.discard)
        return task

    def start(self) -> asyncio.Task | None:
        """Initial load, independent of mode."""
        return self.request_fetch()

    # -- transitions --

    def set_live(self, live: bool) -> None:
        if self._closed:
            return
        if live:
            if not self._poll.running:
                self._poll.start(self.poll_interval, self._on_poll)
            self.mode.set(TailMode.LIVE)
            logger.info("Live log tail on for process %s", self.process_id)
        else:
            self._poll.cancel()
            self.auto_scroll = False
            self.mode.set(TailMode.PAUSED)

    def toggle_live(self) -> None:
        self.set_live(not self.live)

    def set_channel(self, channel: LogChannel | str) -> asyncio.Task | None:
        """Switch stdout/stderr and fetch immediately, whatever the mode."""
        channel = LogChannel(channel)
        if channel is self._channel:
            return None
        self._channel = channel
        return self.request_fetch()

    def open_search(self, query: str = "") -> None:
        """Opening the search box always pauses live polling."""
        self.searching = True
        self.set_live(False)
        self.search.set_query(query)

    def set_query(self, query: str) -> None:
        if query:
            self.set_live(False)
        self.search.set_query(query)

    def close_search(self) -> None:
        """Clear the query. Live mode stays off until re-enabled explicitly."""
        self.searching = False
        self.search.clear()

    def _on_poll(self) -> None:
        self.request_fetch()

    # -- teardown --

    def close(self) -> None:
        """Cancel the poll timer and any in-flight fetch. Idempotent."""
        self._poll.cancel()
        if self._closed:
            return
        self._closed = True
        for task in list(self._fetches):
            task.cancel()
        self.mode.set(TailMode.PAUSED)

    async def aclose(self) -> None:
        pending = list(self._fetches)
        self.close()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
