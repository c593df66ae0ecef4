"""Overview of the local daemon and every remote it knows about."""

from __future__ import annotations

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.screen import Screen
from textual.widgets import DataTable, Footer, Header, Static

from ..client.servers import fetch_overview, sort_overview
from ..core.formatting import bytes_to_size, describe_duration
from ..types import FetchError, ServerOverview, VersionStatus
from .status_screen import StatusScreen

_BADGES = {
    VersionStatus.UPDATED: "[green]updated[/green]",
    VersionStatus.BEHIND: "[yellow]behind[/yellow]",
    VersionStatus.CRITICAL: "[red]critical[/red]",
}


def version_badge(status: VersionStatus) -> str:
    return _BADGES[status]


class ServersScreen(Screen):
    """One row per server. Enter opens the server's status screen."""

    BINDINGS = [
        Binding("r", "refresh", "Refresh"),
    ]

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static("Loading servers...", id="servers-info", classes="info")
        yield DataTable(id="servers-table", cursor_type="row")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#servers-table", DataTable)
        table.add_columns("Server", "Version", "Status", "OS", "CPU", "Memory", "Uptime", "Processes")
        self.load()

    def action_refresh(self) -> None:
        self.load()

    @work(exclusive=True)
    async def load(self) -> None:
        info = self.query_one("#servers-info", Static)
        try:
            overview = await fetch_overview(self.app.client, self.app.client_version)
        except FetchError as e:
            info.update(f"[red]Cannot reach daemon: {e}[/red]")
            return
        self.show(sort_overview(overview))
        info.update(f"{len(overview)} server{'s' if len(overview) != 1 else ''}")

    def show(self, overview: list[ServerOverview]) -> None:
        table = self.query_one("#servers-table", DataTable)
        table.clear()
        for entry in overview:
            metrics = entry.metrics
            if entry.reachable:
                os_label = f"{metrics.os.name} {metrics.os.version} ({metrics.os.arch})"
                cpu = f"{metrics.cpu_percent or 0:.2f}%"
                processes = str(metrics.daemon.process_count or 0)
            else:
                os_label, cpu, processes = "offline", "-", "-"
            table.add_row(
                entry.name,
                metrics.version.pkg,
                version_badge(entry.status),
                os_label,
                cpu,
                bytes_to_size(metrics.memory_usage),
                describe_duration(metrics.daemon.uptime),
                processes,
                key=entry.name,
            )

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self.app.push_screen(StatusScreen(event.row_key.value))
