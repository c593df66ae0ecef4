"""Shared fixtures for pmc-watch tests."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager

import httpx
import pytest

from pmc_watch.client.http import DaemonClient
from pmc_watch.config import load_config
from pmc_watch.types import DaemonConnectionError, FetchError, LogChannel, PmcWatchConfig, Settings

_END = object()


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


def process_frame(
    name: str = "api",
    status: str = "online",
    cpu: float = 1.5,
    rss: int = 2048,
) -> str:
    return json.dumps({
        "info": {"name": name, "status": status, "pid": 4242, "uptime": "3h", "command": "node app.js"},
        "stats": {"cpu_percent": cpu, "memory_usage": {"rss": rss}},
    })


def metrics_payload(
    pkg: str = "v2.0.0",
    cpu: float = 12.5,
    memory: int = 1_048_576,
    status: str | None = None,
) -> dict:
    version = {"pkg": pkg, "hash": "abc123", "build_date": "2024-05-01", "target": "release"}
    if status is not None:
        version["status"] = status
    return {
        "raw": {"cpu_percent": cpu, "memory_usage": memory},
        "daemon": {"pid": 100, "running": True, "uptime": "2d", "process_count": 3, "daemon_type": "default"},
        "os": {"name": "linux", "version": "6.1", "arch": "x86_64"},
        "version": version,
    }


class FakeTransport:
    """Scripted push transport. Every connect gets its own frame queue."""

    def __init__(self) -> None:
        self.connects: list[tuple[str, dict[str, str]]] = []
        self.queues: list[asyncio.Queue] = []
        self.active = 0
        self.released = 0
        self.fail_next = 0

    def __call__(self, endpoint: str, headers: dict[str, str]):
        return self._connect(endpoint, headers)

    @asynccontextmanager
    async def _connect(self, endpoint: str, headers: dict[str, str]):
        self.connects.append((endpoint, headers))
        if self.fail_next:
            self.fail_next -= 1
            raise DaemonConnectionError("connection refused")
        queue: asyncio.Queue = asyncio.Queue()
        self.queues.append(queue)
        self.active += 1
        try:
            yield self._frames(queue)
        finally:
            self.active -= 1
            self.released += 1

    async def _frames(self, queue: asyncio.Queue):
        while True:
            item = await queue.get()
            if item is _END:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    def push(self, raw: str) -> None:
        self.queues[-1].put_nowait(raw)

    def end(self) -> None:
        self.queues[-1].put_nowait(_END)

    def fail(self, error: Exception | None = None) -> None:
        self.queues[-1].put_nowait(error or DaemonConnectionError("connection reset"))


class FakeFetcher:
    """Log fetcher returning scripted snapshots per channel."""

    def __init__(self, logs: dict[LogChannel, list[str]] | None = None) -> None:
        self.logs = logs or {LogChannel.STDOUT: [], LogChannel.STDERR: []}
        self.calls: list[LogChannel] = []
        self.fail = False
        self.gate: asyncio.Event | None = None

    async def __call__(self, channel: LogChannel) -> list[str]:
        self.calls.append(channel)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise FetchError("daemon unreachable", server="local", status_code=502)
        return list(self.logs.get(channel, []))


class FakeDaemon:
    """httpx.MockTransport handler emulating the daemon's HTTP API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], dict] = {}

    def route(self, method: str, path: str, **response_kwargs) -> None:
        response_kwargs.setdefault("status_code", 200)
        self.routes[(method, path)] = response_kwargs

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        kwargs = self.routes.get((request.method, request.url.path))
        if kwargs is None:
            return httpx.Response(404, json={"code": 404, "message": "Not found"})
        kwargs = dict(kwargs)
        status = kwargs.pop("status_code")
        if "raise_error" in kwargs:
            raise kwargs["raise_error"]
        return httpx.Response(status, **kwargs)

    def client(self, token: str = "secret") -> DaemonClient:
        settings = Settings(base_url="http://daemon.test", token=token, timeout=5.0)
        return DaemonClient(settings, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher({
        LogChannel.STDOUT: ["server started", "GET /health 200"],
        LogChannel.STDERR: ["warning: deprecated flag"],
    })


@pytest.fixture
def daemon() -> FakeDaemon:
    return FakeDaemon()


@pytest.fixture
def fast_config() -> PmcWatchConfig:
    return load_config(config_dict={
        "daemon": {"url": "http://daemon.test", "token": "secret"},
        "stream": {"retry_delay": 0.01},
        "logs": {"poll_interval": 0.02},
        "client_version": "2.0.0",
    })
