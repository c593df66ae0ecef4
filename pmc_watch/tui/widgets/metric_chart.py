"""Sparkline chart over a MetricRingBuffer with a headline value."""

from __future__ import annotations

from typing import Callable

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Sparkline, Static

from ...core.ring_buffer import MetricRingBuffer


class MetricChart(Vertical):
    """Title, latest value, and a sparkline of the buffered series."""

    DEFAULT_CSS = """
    MetricChart {
        height: 8;
        border: round $panel;
        padding: 0 1;
    }
    MetricChart > Sparkline {
        height: 4;
    }
    """

    def __init__(
        self,
        title: str,
        buffer: MetricRingBuffer,
        formatter: Callable[[float], str] = lambda v: f"{v:.2f}",
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._label = title
        self._buffer = buffer
        self._formatter = formatter

    def compose(self) -> ComposeResult:
        yield Static(self._headline(), classes="chart-headline")
        yield Sparkline(self._buffer.values(), summary_function=max)

    def _headline(self) -> str:
        latest = self._buffer.latest()
        value = "-" if latest is None else self._formatter(latest)
        return f"[bold]{self._label}[/bold]  {value}"

    def refresh_chart(self) -> None:
        """Redraw from the buffer's current contents."""
        self.query_one(".chart-headline", Static).update(self._headline())
        self.query_one(Sparkline).data = self._buffer.values()
