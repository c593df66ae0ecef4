"""Server overview: local daemon metrics plus every configured remote.

Remotes are queried concurrently; the result is an unordered collection and
callers sort it for display. A remote that cannot be reached contributes an
offline placeholder instead of failing the whole overview.
"""

from __future__ import annotations

import asyncio
import logging

from ..core.version import classify
from ..types import (
    LOCAL_SERVER,
    DaemonMetricsFrame,
    FetchError,
    ServerOverview,
    VersionParseError,
    VersionStatus,
)
from .http import DaemonClient

logger = logging.getLogger(__name__)


def version_status(client_version: str, metrics: DaemonMetricsFrame) -> VersionStatus:
    """Staleness badge for a server; malformed versions count as critical."""
    if not client_version:
        try:
            return VersionStatus(metrics.version.status or VersionStatus.CRITICAL.value)
        except ValueError:
            return VersionStatus.CRITICAL
    try:
        return classify(client_version, metrics.version.pkg, metrics.version.status)
    except VersionParseError as e:
        logger.warning("Cannot classify version %r: %s", metrics.version.pkg, e)
        return VersionStatus.CRITICAL


async def _remote_overview(
    client: DaemonClient,
    name: str,
    client_version: str,
) -> ServerOverview:
    try:
        metrics = await client.metrics(name)
    except FetchError as e:
        logger.warning("Remote server %s unreachable: %s", name, e)
        metrics = DaemonMetricsFrame.offline()
        return ServerOverview(
            name=name,
            metrics=metrics,
            status=version_status(client_version, metrics),
            reachable=False,
        )
    return ServerOverview(
        name=name,
        metrics=metrics,
        status=version_status(client_version, metrics),
    )


async def fetch_overview(
    client: DaemonClient,
    client_version: str = "",
) -> list[ServerOverview]:
    """Local daemon first, then remotes in completion order.

    Raises FetchError only when the local daemon itself cannot be reached.
    """
    local = await client.metrics(LOCAL_SERVER)
    overview = [
        ServerOverview(
            name=LOCAL_SERVER,
            metrics=local,
            status=version_status(client_version, local),
        )
    ]

    try:
        names = await client.list_servers()
    except FetchError as e:
        logger.info("No remote servers listed: %s", e)
        return overview

    tasks = [
        asyncio.create_task(_remote_overview(client, name, client_version))
        for name in names
        if name != LOCAL_SERVER
    ]
    for finished in asyncio.as_completed(tasks):
        overview.append(await finished)
    return overview


def sort_overview(overview: list[ServerOverview]) -> list[ServerOverview]:
    """Display order: local first, then remotes by name."""
    return sorted(overview, key=lambda s: (s.name != LOCAL_SERVER, s.name))
