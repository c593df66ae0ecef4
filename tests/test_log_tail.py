"""Tests for LogTailController: snapshots, Live/Paused, search, teardown."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeFetcher, wait_until
from pmc_watch.client.log_tail import LogTailController
from pmc_watch.types import LogChannel, LogSnapshot, TailMode


def make_tail(fetcher: FakeFetcher, poll_interval: float = 0.02) -> LogTailController:
    return LogTailController(fetcher, process_id=7, poll_interval=poll_interval)


@pytest.mark.asyncio
async def test_starts_paused_and_loads_once(fake_fetcher):
    tail = make_tail(fake_fetcher)
    assert tail.mode.value is TailMode.PAUSED
    await tail.start()
    assert tail.lines == ["server started", "GET /health 200"]
    assert tail.loaded
    await asyncio.sleep(0.06)
    assert len(fake_fetcher.calls) == 1
    await tail.aclose()


@pytest.mark.asyncio
async def test_snapshot_is_replaced_wholesale():
    fetcher = FakeFetcher({LogChannel.STDOUT: ["a", "b"]})
    tail = make_tail(fetcher)
    await tail.fetch()
    assert tail.lines == ["a", "b"]

    fetcher.logs[LogChannel.STDOUT] = ["x"]
    await tail.fetch()
    assert tail.lines == ["x"]
    await tail.aclose()


@pytest.mark.asyncio
async def test_every_fetch_notifies_even_when_unchanged(fake_fetcher):
    tail = make_tail(fake_fetcher)
    seen: list[LogSnapshot] = []
    tail.snapshot.subscribe(seen.append)
    await tail.fetch()
    await tail.fetch()
    assert len(seen) == 2
    await tail.aclose()


@pytest.mark.asyncio
async def test_live_polls_until_paused(fake_fetcher):
    tail = make_tail(fake_fetcher)
    tail.set_live(True)
    assert tail.live
    assert tail.polling
    await wait_until(lambda: len(fake_fetcher.calls) >= 2)

    tail.set_live(False)
    assert not tail.polling
    calls = len(fake_fetcher.calls)
    await asyncio.sleep(0.06)
    assert len(fake_fetcher.calls) == calls
    await tail.aclose()


@pytest.mark.asyncio
async def test_auto_scroll_follows_live_mode(fake_fetcher):
    tail = make_tail(fake_fetcher)
    await tail.fetch()
    assert tail.auto_scroll is False
    tail.set_live(True)
    await wait_until(lambda: tail.auto_scroll)
    tail.set_live(False)
    assert tail.auto_scroll is False
    await tail.aclose()


@pytest.mark.asyncio
async def test_opening_search_forces_paused(fake_fetcher):
    tail = make_tail(fake_fetcher)
    tail.set_live(True)
    tail.open_search()
    assert tail.mode.value is TailMode.PAUSED
    assert tail.searching
    assert not tail.polling
    await tail.aclose()


@pytest.mark.asyncio
async def test_clearing_search_does_not_resume_live(fake_fetcher):
    tail = make_tail(fake_fetcher)
    await tail.fetch()
    tail.set_live(True)
    tail.set_query("health")
    assert not tail.live
    assert tail.visible_lines() == ["GET /health 200"]

    tail.close_search()
    assert not tail.live
    assert tail.visible_lines() == ["server started", "GET /health 200"]
    await tail.aclose()


@pytest.mark.asyncio
async def test_channel_switch_fetches_immediately(fake_fetcher):
    tail = make_tail(fake_fetcher)
    await tail.fetch()
    task = tail.set_channel(LogChannel.STDERR)
    assert task is not None
    await task
    assert fake_fetcher.calls == [LogChannel.STDOUT, LogChannel.STDERR]
    assert tail.lines == ["warning: deprecated flag"]
    assert tail.snapshot.value.channel is LogChannel.STDERR
    assert tail.set_channel("stderr") is None
    await tail.aclose()


@pytest.mark.asyncio
async def test_results_for_previous_channel_are_discarded(fake_fetcher):
    tail = make_tail(fake_fetcher)
    fake_fetcher.gate = asyncio.Event()
    stale = tail.request_fetch()
    await wait_until(lambda: len(fake_fetcher.calls) == 1)

    fresh = tail.set_channel(LogChannel.STDERR)
    fake_fetcher.gate.set()
    await asyncio.gather(stale, fresh)

    assert tail.channel is LogChannel.STDERR
    assert tail.lines == ["warning: deprecated flag"]
    await tail.aclose()


@pytest.mark.asyncio
async def test_older_fetch_finishing_late_does_not_overwrite_newer():
    release_first = asyncio.Event()
    calls = 0

    async def fetcher(channel: LogChannel) -> list[str]:
        nonlocal calls
        calls += 1
        if calls == 1:
            await release_first.wait()
            return ["old"]
        return ["new"]

    tail = LogTailController(fetcher, process_id=7)
    first = tail.request_fetch()
    await wait_until(lambda: calls == 1)
    second = tail.request_fetch()
    await second
    assert tail.lines == ["new"]

    release_first.set()
    await first
    assert tail.lines == ["new"]
    await tail.aclose()


@pytest.mark.asyncio
async def test_fetch_error_keeps_snapshot_and_marks_stale(fake_fetcher):
    tail = make_tail(fake_fetcher)
    await tail.fetch()
    fake_fetcher.fail = True
    snapshot = await tail.fetch()
    assert snapshot.lines == ["server started", "GET /health 200"]
    assert snapshot.stale
    assert tail.last_error is not None
    assert tail.last_error.status_code == 502

    fake_fetcher.fail = False
    snapshot = await tail.fetch()
    assert not snapshot.stale
    assert tail.last_error is None
    await tail.aclose()


@pytest.mark.asyncio
async def test_no_callbacks_after_close(fake_fetcher):
    tail = make_tail(fake_fetcher)
    seen: list[LogSnapshot] = []
    tail.snapshot.subscribe(seen.append)
    fake_fetcher.gate = asyncio.Event()
    tail.set_live(True)
    tail.request_fetch()
    await wait_until(lambda: len(fake_fetcher.calls) == 1)

    tail.close()
    tail.close()
    fake_fetcher.gate.set()
    await asyncio.sleep(0.06)

    assert seen == []
    assert not tail.polling
    assert tail.request_fetch() is None
    tail.set_live(True)
    assert not tail.polling
