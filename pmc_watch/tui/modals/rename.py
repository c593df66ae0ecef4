"""Modal asking for a process's new name."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static


class RenameModal(ModalScreen[str | None]):
    """Dismisses with the new name, or None when cancelled."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    DEFAULT_CSS = """
    RenameModal {
        align: center middle;
    }
    RenameModal > Vertical {
        width: 60;
        height: auto;
        border: thick $accent;
        background: $surface;
        padding: 1 2;
    }
    RenameModal Horizontal {
        height: auto;
        align-horizontal: right;
    }
    """

    def __init__(self, current_name: str) -> None:
        super().__init__()
        self._current_name = current_name

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static("[bold]Rename this process[/bold]")
            yield Input(value=self._current_name, placeholder=self._current_name, id="rename-input")
            with Horizontal():
                yield Button("Cancel", id="rename-cancel")
                yield Button("Rename", variant="primary", id="rename-submit")

    def on_mount(self) -> None:
        self.query_one("#rename-input", Input).focus()

    def _submit(self) -> None:
        value = self.query_one("#rename-input", Input).value.strip()
        self.dismiss(value or None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "rename-submit":
            self._submit()
        else:
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)
