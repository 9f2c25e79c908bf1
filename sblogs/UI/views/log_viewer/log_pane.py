"""
Log Pane Module - Scrollable text widget for rendered log content

Handles:
- Displaying the controller's rendered lines
- Key bindings for paging, follow and display toggles
- Reporting scroll position changes back to the view
"""
from typing import List

from textual.binding import Binding
from textual.message import Message
from textual.widgets import Log

from .controller import (
    Back,
    DismissError,
    PageNewer,
    PageOlder,
    ScrollHorizontal,
    ToggleFollow,
    ToggleMetadata,
)

HORIZONTAL_STEP = 10

COMMANDS = {
    "back": Back,
    "page_older": PageOlder,
    "page_newer": PageNewer,
    "toggle_follow": ToggleFollow,
    "toggle_metadata": ToggleMetadata,
    "dismiss_error": DismissError,
}


class LogPane(Log):
    """Log widget whose paging keys become controller events"""

    BINDINGS = [
        Binding("escape", "command('back')", "Back"),
        Binding("pageup,u", "command('page_older')", "Older"),
        Binding("pagedown,d", "command('page_newer')", "Newer"),
        Binding("f", "command('toggle_follow')", "Follow"),
        Binding("t", "command('toggle_metadata')", "Timestamps"),
        Binding("x", "command('dismiss_error')", "Dismiss", show=False),
        Binding("left", "scroll_columns(-1)", "Left", show=False),
        Binding("right", "scroll_columns(1)", "Right", show=False),
    ]

    class Command(Message):
        """A key press translated into a controller event"""

        def __init__(self, event) -> None:
            self.event = event
            super().__init__()

    class Scrolled(Message):
        """The first visible line changed"""

        def __init__(self, offset: int) -> None:
            self.offset = offset
            super().__init__()

    def __init__(self, **kwargs):
        super().__init__(highlight=False, auto_scroll=False, **kwargs)
        self._shown_lines: List[str] = []
        self._syncing = False

    def action_command(self, name: str) -> None:
        self.post_message(self.Command(COMMANDS[name]()))

    def action_scroll_columns(self, direction: int) -> None:
        self.post_message(self.Command(ScrollHorizontal(direction * HORIZONTAL_STEP)))

    def watch_scroll_y(self, old_value: float, new_value: float) -> None:
        super().watch_scroll_y(old_value, new_value)
        if not self._syncing and round(old_value) != round(new_value):
            self.post_message(self.Scrolled(round(new_value)))

    def show(self, lines: List[str], y: int, x: int) -> None:
        """
        Display lines at the given offsets without echoing a Scrolled message

        Args:
            lines: Rendered content (replaced only when it is a new list)
            y: First visible line
            x: First visible column
        """
        self._syncing = True
        try:
            if lines is not self._shown_lines:
                self.clear()
                self.write_lines(lines, scroll_end=False)
                self._shown_lines = lines
            self.scroll_to(x=x, y=y, animate=False)
        finally:
            self._syncing = False
