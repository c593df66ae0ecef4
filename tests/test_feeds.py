"""Tests for ProcessFeed and DaemonFeed buffering."""

from __future__ import annotations

import json

import pytest

from conftest import FakeTransport, metrics_payload, process_frame, wait_until
from pmc_watch.client.feeds import DaemonFeed, ProcessFeed
from pmc_watch.client.stream import StreamConnection, frame_decoder
from pmc_watch.types import DaemonMetricsFrame, ProcessInfoFrame, StreamState


def process_feed(transport: FakeTransport, capacity: int = 3) -> ProcessFeed:
    conn = StreamConnection(
        transport, decode=frame_decoder(ProcessInfoFrame.from_dict), retry_delay=0.01
    )
    return ProcessFeed(conn, "/live/process/local/1", {}, capacity)


def daemon_feed(transport: FakeTransport, capacity: int = 3) -> DaemonFeed:
    conn = StreamConnection(
        transport, decode=frame_decoder(DaemonMetricsFrame.from_dict), retry_delay=0.01
    )
    return DaemonFeed(conn, "/live/daemon/local/metrics", {}, capacity)


@pytest.mark.asyncio
async def test_process_feed_fills_buffers(fake_transport):
    feed = process_feed(fake_transport)
    feed.start()
    await wait_until(lambda: feed.state.value is StreamState.OPEN)
    for cpu in (1.0, 2.0, 3.0, 4.0):
        fake_transport.push(process_frame(cpu=cpu, rss=int(cpu * 100)))
    await wait_until(lambda: len(feed.cpu) == 3 and feed.cpu.latest() == 4.0)

    assert feed.cpu.values() == [2.0, 3.0, 4.0]
    assert feed.memory.values() == [200, 300, 400]
    assert feed.latest.value.name == "api"
    await feed.aclose()


@pytest.mark.asyncio
async def test_process_feed_records_zero_and_stops_on_stopped(fake_transport):
    feed = process_feed(fake_transport)
    stopped: list[int] = []
    feed.start(on_terminal=lambda: stopped.append(1))
    await wait_until(lambda: feed.state.value is StreamState.OPEN)
    fake_transport.push(process_frame(status="crashed", cpu=9.0))
    fake_transport.push(process_frame(status="stopped", cpu=9.0))
    await wait_until(lambda: feed.stopped)

    assert feed.cpu.values() == [0.0, 0.0]
    assert stopped == [1]
    assert feed.state.value is StreamState.CLOSED


@pytest.mark.asyncio
async def test_restart_reopens_after_stop(fake_transport):
    feed = process_feed(fake_transport)
    feed.start()
    await wait_until(lambda: feed.state.value is StreamState.OPEN)
    fake_transport.push(process_frame(status="stopped"))
    await wait_until(lambda: feed.stopped)

    feed.restart()
    await wait_until(lambda: feed.state.value is StreamState.OPEN)
    assert not feed.stopped
    assert len(fake_transport.connects) == 2
    await feed.aclose()


@pytest.mark.asyncio
async def test_daemon_feed_skips_missing_values(fake_transport):
    feed = daemon_feed(fake_transport)
    feed.start()
    await wait_until(lambda: feed.state.value is StreamState.OPEN)
    fake_transport.push(json.dumps(metrics_payload(cpu=10.0, memory=100)))
    payload = metrics_payload()
    payload["raw"] = {}
    fake_transport.push(json.dumps(payload))
    await wait_until(lambda: feed.connection.frames_received == 2)

    assert feed.cpu.values() == [10.0]
    assert feed.memory.values() == [100]
    assert feed.latest.value.cpu_percent is None
    await feed.aclose()


@pytest.mark.asyncio
async def test_create_uses_client_stream_paths(daemon):
    async with daemon.client() as client:
        feed = ProcessFeed.create(client, 4, "edge-1", retry_delay=0.5, capacity=5)
        assert feed.endpoint == "/live/process/edge-1/4"
        assert feed.cpu.capacity == 5
        assert feed.connection.retry_delay == 0.5
        assert DaemonFeed.create(client).endpoint == "/live/daemon/local/metrics"
