"""Live metrics for one daemon plus its process list."""

from __future__ import annotations

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.screen import Screen
from textual.widgets import DataTable, Footer, Header, Static

from ..client.feeds import DaemonFeed
from ..core.formatting import bytes_to_size, describe_duration
from ..types import DaemonMetricsFrame, FetchError, StreamState
from .process_screen import ProcessScreen
from .widgets.metric_chart import MetricChart


class StatusScreen(Screen):
    """Owns a DaemonFeed for as long as it is mounted."""

    BINDINGS = [
        Binding("escape", "app.pop_screen", "Back"),
        Binding("r", "refresh", "Refresh"),
    ]

    def __init__(self, server: str) -> None:
        super().__init__()
        self.server = server
        self.feed: DaemonFeed | None = None
        self._unsubscribe: list = []

    def compose(self) -> ComposeResult:
        config = self.app.config
        self.feed = DaemonFeed.create(
            self.app.client,
            self.server,
            retry_delay=config.stream.retry_delay,
            capacity=config.charts.buffer_capacity,
        )
        yield Header()
        yield Static(f"[bold]{self.server}[/bold]  connecting...", id="status-info", classes="info")
        with Horizontal(classes="charts"):
            yield MetricChart("CPU", self.feed.cpu, lambda v: f"{v:.2f}%", id="cpu-chart")
            yield MetricChart("Memory", self.feed.memory, bytes_to_size, id="memory-chart")
        yield DataTable(id="process-table", cursor_type="row")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#process-table", DataTable)
        table.add_columns("ID", "Name", "Status", "PID", "CPU", "Memory", "Uptime", "Restarts")
        self._unsubscribe = [
            self.feed.latest.subscribe(self._on_metrics),
            self.feed.state.subscribe(self._on_state),
        ]
        self.feed.start()
        self.load_processes()

    def on_unmount(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        if self.feed is not None:
            self.feed.close()

    def action_refresh(self) -> None:
        self.load_processes()

    @work(exclusive=True)
    async def load_processes(self) -> None:
        table = self.query_one("#process-table", DataTable)
        try:
            processes = await self.app.client.list_processes(self.server)
        except FetchError as e:
            self.notify(f"Cannot list processes: {e}", severity="error")
            return
        table.clear()
        for p in processes:
            status = p.status if p.running else f"[red]{p.status}[/red]"
            table.add_row(
                str(p.id), p.name, status, str(p.pid or "-"),
                p.cpu, p.mem, p.uptime, str(p.restarts),
                key=str(p.id),
            )

    def _on_metrics(self, frame: DaemonMetricsFrame | None) -> None:
        if frame is None:
            return
        self.query_one("#cpu-chart", MetricChart).refresh_chart()
        self.query_one("#memory-chart", MetricChart).refresh_chart()
        daemon = frame.daemon
        self.query_one("#status-info", Static).update(
            f"[bold]{self.server}[/bold]  {frame.version.pkg} ({frame.version.hash})  "
            f"{frame.os.name} {frame.os.version} {frame.os.arch}  "
            f"pid {daemon.pid or '-'}  up {describe_duration(daemon.uptime)}  "
            f"{daemon.process_count or 0} processes"
        )

    def _on_state(self, state: StreamState) -> None:
        if state is StreamState.RETRYING:
            self.sub_title = f"{self.server}: reconnecting"
        else:
            self.sub_title = f"{self.server}: {state.value}"

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self.app.push_screen(ProcessScreen(int(event.row_key.value), self.server))
