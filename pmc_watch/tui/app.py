"""PmcWatchApp: Textual application wiring the daemon client and screens together."""

from __future__ import annotations

from textual import work
from textual.app import App
from textual.binding import Binding

from .. import __version__
from ..client.http import DaemonClient
from ..types import PmcWatchConfig
from .process_screen import ProcessScreen
from .servers_screen import ServersScreen
from .status_screen import StatusScreen


class PmcWatchApp(App):
    """Servers overview, per-daemon status and per-process views."""

    TITLE = "pmc-watch"

    CSS = """
    .info {
        height: auto;
        padding: 0 1;
    }
    .charts {
        height: auto;
    }
    .charts > MetricChart {
        width: 1fr;
    }
    .error {
        color: $error;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        config: PmcWatchConfig | None = None,
        client: DaemonClient | None = None,
        server: str | None = None,
        process_id: int | None = None,
    ) -> None:
        super().__init__()
        self.config = config or PmcWatchConfig()
        self._owns_client = client is None
        self.client = client or DaemonClient(self.config.settings)
        self._server = server
        self._process_id = process_id
        self.token_ok: bool | None = None

    @property
    def client_version(self) -> str:
        return self.config.client_version or __version__

    def on_mount(self) -> None:
        self.check_token()
        self.push_screen(ServersScreen())
        server = self._server or self.config.default_server
        if self._process_id is not None:
            self.push_screen(ProcessScreen(self._process_id, server))
        elif self._server is not None:
            self.push_screen(StatusScreen(server))

    @work(exclusive=True, group="token")
    async def check_token(self) -> None:
        """Warn once at startup when the daemon does not accept the token."""
        self.token_ok = await self.client.check_token()
        if not self.token_ok:
            self.notify(
                f"Daemon at {self.config.settings.base_url} rejected the token or is unreachable",
                severity="error",
                timeout=10,
            )

    async def on_unmount(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def run_ui(
    config: PmcWatchConfig,
    server: str | None = None,
    process_id: int | None = None,
) -> None:
    PmcWatchApp(config=config, server=server, process_id=process_id).run()
