"""One managed process: live info, charts, lifecycle actions and its logs."""

from __future__ import annotations

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.screen import Screen
from textual.widgets import Footer, Header, Input, Static

from ..client.feeds import ProcessFeed
from ..client.log_tail import LogTailController
from ..core.formatting import bytes_to_size, describe_duration
from ..types import ActionError, LogChannel, LogSnapshot, ProcessInfoFrame
from .modals.rename import RenameModal
from .widgets.log_view import LogView
from .widgets.metric_chart import MetricChart


class ProcessScreen(Screen):
    """Owns a ProcessFeed and a LogTailController while mounted."""

    AUTO_FOCUS = "#log-view"

    BINDINGS = [
        Binding("ctrl+f", "search", "Search", priority=True),
        Binding("escape", "back", "Back"),
        Binding("l", "toggle_live", "Live"),
        Binding("o", "toggle_channel", "stdout/stderr"),
        Binding("r", "process_action('restart')", "Restart"),
        Binding("s", "process_action('stop')", "Stop"),
        Binding("f", "process_action('flush')", "Flush"),
        Binding("d", "process_action('delete')", "Delete"),
        Binding("n", "rename", "Rename"),
    ]

    def __init__(self, process_id: int, server: str) -> None:
        super().__init__()
        self.process_id = process_id
        self.server = server
        self.feed: ProcessFeed | None = None
        self.tail: LogTailController | None = None
        self._unsubscribe: list = []

    def compose(self) -> ComposeResult:
        config = self.app.config
        client = self.app.client
        self.feed = ProcessFeed.create(
            client,
            self.process_id,
            self.server,
            retry_delay=config.stream.retry_delay,
            capacity=config.charts.buffer_capacity,
        )
        self.tail = LogTailController.for_process(
            client,
            self.process_id,
            self.server,
            channel=config.logs.default_channel,
            poll_interval=config.logs.poll_interval,
        )
        yield Header()
        yield Static(f"process {self.process_id}  connecting...", id="process-info", classes="info")
        with Horizontal(classes="charts"):
            yield MetricChart("CPU", self.feed.cpu, lambda v: f"{v:.2f}%", id="cpu-chart")
            yield MetricChart("Memory", self.feed.memory, bytes_to_size, id="memory-chart")
        yield Static("", id="log-status", classes="info")
        search = Input(placeholder="Search logs...", id="log-search", disabled=True)
        search.display = False
        yield search
        yield LogView(id="log-view")
        yield Footer()

    def on_mount(self) -> None:
        self._unsubscribe = [
            self.feed.latest.subscribe(self._on_info),
            self.feed.state.subscribe(lambda _: self._update_status()),
            self.tail.snapshot.subscribe(self._on_snapshot),
            self.tail.mode.subscribe(lambda _: self._update_status()),
        ]
        self.feed.start(on_terminal=self._on_stopped)
        self.tail.start()
        self._log_view.focus()
        self._update_status()

    def on_unmount(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        if self.feed is not None:
            self.feed.close()
        if self.tail is not None:
            self.tail.close()

    @property
    def _log_view(self) -> LogView:
        return self.query_one("#log-view", LogView)

    @property
    def _search_input(self) -> Input:
        return self.query_one("#log-search", Input)

    # -- telemetry --

    def _on_info(self, frame: ProcessInfoFrame | None) -> None:
        if frame is None:
            return
        self.query_one("#cpu-chart", MetricChart).refresh_chart()
        self.query_one("#memory-chart", MetricChart).refresh_chart()
        status = frame.status if frame.running else f"[red]{frame.status}[/red]"
        self.query_one("#process-info", Static).update(
            f"[bold]{frame.name}[/bold]  {status}  pid {frame.pid or '-'}  "
            f"up {describe_duration(frame.uptime)}\n[dim]{frame.command}[/dim]"
        )

    def _on_stopped(self) -> None:
        self.notify(f"Process {self.process_id} stopped")
        self._update_status()

    # -- logs --

    def _on_snapshot(self, snapshot: LogSnapshot) -> None:
        self._redraw(follow=self.tail.auto_scroll)

    def _redraw(self, follow: bool = False) -> None:
        self._log_view.show(self.tail.lines, self.tail.search, follow=follow)
        self._update_status()

    def _update_status(self) -> None:
        tail = self.tail
        parts = [
            tail.channel.value,
            "[green]live[/green]" if tail.live else "paused",
            f"stream {self.feed.state.value.value}",
        ]
        if tail.search.active:
            parts.append(f"{len(self._log_view.rendered)} matching lines")
        if tail.snapshot.value.stale:
            parts.append("[yellow]stale[/yellow]")
        self.query_one("#log-status", Static).update("  |  ".join(parts))

    def action_toggle_live(self) -> None:
        self.tail.toggle_live()

    def action_toggle_channel(self) -> None:
        other = LogChannel.STDERR if self.tail.channel is LogChannel.STDOUT else LogChannel.STDOUT
        self.tail.set_channel(other)
        self._update_status()

    def action_search(self) -> None:
        search = self._search_input
        search.disabled = False
        search.display = True
        search.focus()
        self.tail.open_search(search.value)
        self._redraw()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "log-search" or not self.tail.searching:
            return
        self.tail.set_query(event.value)
        self._redraw()

    def action_back(self) -> None:
        if self.tail.searching:
            self.tail.close_search()
            search = self._search_input
            search.value = ""
            search.display = False
            search.disabled = True
            self._log_view.focus()
            self._redraw()
            return
        self.app.pop_screen()

    # -- lifecycle actions --

    def action_process_action(self, method: str) -> None:
        self._run_action(method)

    @work(group="actions")
    async def _run_action(self, method: str) -> None:
        try:
            await self.app.client.action(self.process_id, method, self.server)
        except ActionError as e:
            self.notify(f"{method} failed: {e}", severity="error")
            return
        self.notify(f"{method} sent to process {self.process_id}")
        if method == "delete":
            self.app.pop_screen()
            return
        self.feed.restart(on_terminal=self._on_stopped)
        self.tail.request_fetch()

    def action_rename(self) -> None:
        frame = self.feed.latest.value
        current = frame.name if frame is not None else ""

        def apply(new_name: str | None) -> None:
            if new_name and new_name != current:
                self._rename(new_name)

        self.app.push_screen(RenameModal(current), apply)

    @work(group="actions")
    async def _rename(self, new_name: str) -> None:
        try:
            await self.app.client.rename(self.process_id, new_name, self.server)
        except ActionError as e:
            self.notify(f"Rename failed: {e}", severity="error")
            return
        self.notify(f"Renamed to {new_name}")
        self.feed.restart(on_terminal=self._on_stopped)
