"""
Log Viewer Components Module - Target list and status widgets

Handles:
- Target selector list (containers or services)
- Colored container status indicators
- Status line (loading, errors, entry count)
"""
from typing import List, Optional

from rich.text import Text
from textual.reactive import reactive
from textual.widgets import Label, ListItem, ListView, Static

from .targets import LogTarget, format_container_status

STATUS_COLORS = {
    "running": "green",
    "exited": "red",
    "created": "yellow",
    "paused": "yellow",
    "restarting": "bold red",
    "removing": "bold red",
    "dead": "bold red",
}


class TargetItem(ListItem):
    """List row for one log target"""

    def __init__(self, target: LogTarget, name_width: int = 0, **kwargs):
        """
        Args:
            target: The container or service shown by this row
            name_width: Column width used to align status indicators
        """
        super().__init__(Label(self.format_label(target, name_width)), **kwargs)
        self.target = target

    @staticmethod
    def format_label(target: LogTarget, name_width: int = 0) -> Text:
        label = Text(target.name)
        if target.status:
            label.append(" " * (max(name_width - len(target.name), 0) + 2))
            label.append(format_container_status(target.status, target.state),
                         style=STATUS_COLORS.get(target.status, "dim"))
        return label


class TargetList(ListView):
    """Selectable list of log targets"""

    def set_targets(self, targets: List[LogTarget]) -> None:
        """Replace the rows with the given targets"""
        self.clear()
        name_width = max((len(target.name) for target in targets), default=0)
        for target in targets:
            self.append(TargetItem(target, name_width))
        if targets:
            self.index = 0

    @property
    def selected_target(self) -> Optional[LogTarget]:
        item = self.highlighted_child
        return item.target if isinstance(item, TargetItem) else None


class LogStatusBar(Static):
    """One-line status display fed by the controller"""

    message: reactive[str] = reactive("")
    is_error: reactive[bool] = reactive(False)

    def watch_message(self, value: str) -> None:
        self.update(Text(value))

    def watch_is_error(self, value: bool) -> None:
        self.set_class(value, "error")
