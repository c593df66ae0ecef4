"""Log lines with search matches highlighted."""

from __future__ import annotations

from rich.text import Text
from textual.widgets import RichLog

from ...core.log_search import LogSearchIndex


class LogView(RichLog):
    """Renders a filtered log view; redraws fully on every snapshot."""

    DEFAULT_CSS = """
    LogView {
        padding: 0 1;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(wrap=True, markup=False, auto_scroll=False, **kwargs)
        self.rendered: list[str] = []

    def show(self, lines: list[str], search: LogSearchIndex, follow: bool = False) -> None:
        self.clear()
        self.rendered = search.filter(lines)
        for line in self.rendered:
            text = Text()
            for chunk in search.highlight(line):
                text.append(chunk.text, style="black on yellow" if chunk.matched else "")
            self.write(text)
        if follow:
            self.scroll_end(animate=False)
