"""DaemonClient: async request/response calls to the pmc daemon via httpx.

Every call carries the ``token`` header from the injected Settings. Requests
are never retried here; callers decide what a failure means (ActionError is
surfaced, FetchError keeps the last good state).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import quote

import httpx

from ..types import (
    LOCAL_SERVER,
    ActionError,
    DaemonConnectionError,
    DaemonMetricsFrame,
    FetchError,
    LogChannel,
    PmcWatchError,
    ProcessSummary,
    Settings,
)

logger = logging.getLogger(__name__)


def _is_local(server: str | None) -> bool:
    return server in (None, "", LOCAL_SERVER, "internal")


def _seg(value: Any) -> str:
    return quote(str(value), safe="")


def _error_message(response: httpx.Response) -> str:
    """Prefer the daemon's ``{code, message}`` body over the raw text."""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text}"
    if isinstance(body, dict) and "message" in body:
        return f"HTTP {response.status_code}: {body['message']}"
    return f"HTTP {response.status_code}: {response.text}"


async def iter_sse_data(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield the ``data`` payload of each Server-Sent Event in ``lines``."""
    data: list[str] = []
    async for line in lines:
        if not line:
            if data:
                yield "\n".join(data)
                data = []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "data":
            data.append(value)
    if data:
        yield "\n".join(data)


class DaemonClient:
    """Calling side of the daemon's HTTP API.

    ``server`` selects a remote daemon configured on the local one; ``local``
    (the default) talks to the local daemon directly.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._client = httpx.AsyncClient(
            timeout=settings.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> DaemonClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def update_settings(self, settings: Settings) -> None:
        """Swap in new settings (e.g. a refreshed token) for later calls."""
        self.settings = settings

    # -- URLs --

    def url(self, path: str) -> str:
        return self.settings.base_url.rstrip("/") + path

    def headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = self.settings.headers()
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def process_stream_path(process_id: int, server: str = LOCAL_SERVER) -> str:
        return f"/live/process/{_seg(server or LOCAL_SERVER)}/{_seg(process_id)}"

    @staticmethod
    def daemon_stream_path(server: str = LOCAL_SERVER) -> str:
        return f"/live/daemon/{_seg(server or LOCAL_SERVER)}/metrics"

    # -- plumbing --

    async def _request(
        self,
        method: str,
        path: str,
        error_cls: type[PmcWatchError],
        server: str | None,
        headers: dict[str, str] | None = None,
        **kwargs,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, self.url(path), headers=self.headers(headers), **kwargs
            )
        except httpx.HTTPError as e:
            raise error_cls(f"HTTP error: {e}", server=server) from e

        if response.status_code != 200:
            raise error_cls(
                _error_message(response),
                server=server,
                status_code=response.status_code,
            )
        return response

    async def _get_json(self, path: str, server: str | None) -> Any:
        response = await self._request("GET", path, FetchError, server)
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON from {path}", server=server) from e

    # -- reads --

    async def list_processes(self, server: str = LOCAL_SERVER) -> list[ProcessSummary]:
        path = "/list" if _is_local(server) else f"/remote/{_seg(server)}/list"
        data = await self._get_json(path, server)
        try:
            return [ProcessSummary.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            raise FetchError(f"Malformed process list: {e}", server=server) from e

    async def list_servers(self) -> list[str]:
        data = await self._get_json("/daemon/servers", LOCAL_SERVER)
        if isinstance(data, dict):
            return list(data.keys())
        return [str(name) for name in data or []]

    async def metrics(self, server: str = LOCAL_SERVER) -> DaemonMetricsFrame:
        path = "/daemon/metrics" if _is_local(server) else f"/remote/{_seg(server)}/metrics"
        data = await self._get_json(path, server)
        try:
            return DaemonMetricsFrame.from_dict(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise FetchError(f"Malformed metrics: {e}", server=server) from e

    async def fetch_logs(
        self,
        process_id: int,
        channel: LogChannel = LogChannel.STDOUT,
        server: str = LOCAL_SERVER,
    ) -> list[str]:
        """Full snapshot of one log channel (never incremental)."""
        kind = LogChannel(channel).value
        if _is_local(server):
            path = f"/process/{_seg(process_id)}/logs/{kind}"
        else:
            path = f"/remote/{_seg(server)}/logs/{_seg(process_id)}/{kind}"
        data = await self._get_json(path, server)
        if not isinstance(data, dict) or not isinstance(data.get("logs"), list):
            raise FetchError(f"Malformed log response from {path}", server=server)
        return [str(line) for line in data["logs"]]

    async def check_token(self) -> bool:
        """True when the daemon accepts the configured token."""
        try:
            response = await self._client.get(
                self.url("/daemon/metrics"), headers=self.headers()
            )
        except httpx.HTTPError as e:
            logger.warning("Token check failed: %s", e)
            return False
        return response.status_code == 200

    # -- lifecycle actions --

    async def action(
        self,
        process_id: int,
        method: str,
        server: str = LOCAL_SERVER,
    ) -> dict:
        """Run ``restart|stop|delete|flush`` on a process."""
        if _is_local(server):
            path = f"/process/{_seg(process_id)}/action"
        else:
            path = f"/remote/{_seg(server)}/action/{_seg(process_id)}"
        response = await self._request(
            "POST", path, ActionError, server, json={"method": method}
        )
        try:
            ack = response.json()
        except ValueError:
            ack = {}
        if isinstance(ack, dict) and ack.get("done") is False:
            raise ActionError(f"Action {method!r} was not performed", server=server)
        logger.info("Action %s on process %s (%s)", method, process_id, server)
        return ack if isinstance(ack, dict) else {}

    async def rename(
        self,
        process_id: int,
        new_name: str,
        server: str = LOCAL_SERVER,
    ) -> None:
        if not new_name.strip():
            raise ActionError("New name must not be empty", server=server)
        if _is_local(server):
            path = f"/process/{_seg(process_id)}/rename"
        else:
            path = f"/remote/{_seg(server)}/rename/{_seg(process_id)}"
        await self._request(
            "POST",
            path,
            ActionError,
            server,
            content=new_name.encode(),
            headers={"content-type": "text/plain"},
        )
        logger.info("Renamed process %s to %r (%s)", process_id, new_name, server)

    # -- push streams --

    @asynccontextmanager
    async def stream_events(
        self,
        path: str,
        headers: dict[str, str] | None = None,
    ) -> AsyncIterator[AsyncIterator[str]]:
        """Open an SSE stream; yields an iterator over event payloads.

        Connection failures and non-200 responses raise DaemonConnectionError.
        """
        timeout = httpx.Timeout(self.settings.timeout, read=None)
        request_headers = self.headers(headers)
        request_headers.setdefault("accept", "text/event-stream")
        try:
            async with self._client.stream(
                "GET", self.url(path), headers=request_headers, timeout=timeout
            ) as response:
                if response.status_code != 200:
                    await response.aread()
                    raise DaemonConnectionError(
                        _error_message(response),
                        status_code=response.status_code,
                    )
                yield iter_sse_data(response.aiter_lines())
        except httpx.HTTPError as e:
            raise DaemonConnectionError(f"HTTP error: {e}") from e
