"""
Log Viewer View Module - Main UI orchestration

Handles:
- Target list and log pane composition
- Target discovery in a background thread
- Running fetches off the event loop and feeding results back
- Follow mode timers
- Translating widget events into controller events
"""
import logging
from functools import partial
from typing import Callable, List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import ListView

from sblogs.config import ScrollbackSettings

from .controller import (
    ExitApp,
    Fetch,
    FetchCompleted,
    FollowTick,
    Quit,
    Resize,
    ScheduleFollowTick,
    Scrolled,
    SelectTarget,
    ViewController,
    ViewMode,
)
from .components import LogStatusBar, TargetItem, TargetList
from .log_parser import FetchRequest, LogSourceError
from .log_pane import LogPane
from .log_reader import LogSourceAdapter
from .targets import LogTarget

logger = logging.getLogger(__name__)


class LogViewerView(Vertical):
    """
    Paginated log viewer for one kind of source

    Features:
    - Pick a container or service from a list
    - Bidirectional paging with background prefetch
    - Bounded memory through trimming far-away entries
    - Follow mode
    """

    def __init__(self, source: LogSourceAdapter, discover: Callable[[], List[LogTarget]],
                 settings: ScrollbackSettings, **kwargs):
        """
        Args:
            source: Adapter that fetches pages of log entries
            discover: Returns the selectable targets (may raise LogSourceError)
            settings: Paging and memory limits
        """
        super().__init__(**kwargs)
        self.source = source
        self.discover = discover
        self.settings = settings
        self.controller = ViewController.from_settings(settings)

    def compose(self) -> ComposeResult:
        """Compose the log viewer layout"""
        yield TargetList(id="target-list")
        yield LogPane(id="log-pane")
        yield LogStatusBar(id="log-status")

    def on_mount(self) -> None:
        """Start discovery and show the target list"""
        self._refresh()
        self.load_targets()

    @work(exclusive=True, thread=True, group="targets")
    def load_targets(self) -> None:
        """Discover targets in a background thread"""
        try:
            targets = self.discover()
        except LogSourceError as e:
            logger.error(f"Target discovery failed: {e}")
            self.app.call_from_thread(self.notify, str(e), severity="error", timeout=10)
            return

        logger.info(f"Discovered {len(targets)} log targets")
        self.app.call_from_thread(self._show_targets, targets)

    def _show_targets(self, targets: List[LogTarget]) -> None:
        target_list = self.query_one("#target-list", TargetList)
        target_list.set_targets(targets)
        if not targets:
            self.notify("No log targets found", severity="warning")
        target_list.focus()

    # Controller plumbing

    def dispatch(self, event) -> None:
        """Feed one event to the controller, then run its effects and redraw"""
        effects = self.controller.dispatch(event)
        for effect in effects:
            self._run_effect(effect)
        self._refresh()

    def _run_effect(self, effect) -> None:
        if isinstance(effect, Fetch):
            self._fetch(effect.request)
        elif isinstance(effect, ScheduleFollowTick):
            self.set_timer(effect.delay, partial(self.dispatch, FollowTick(effect.generation)))
        elif isinstance(effect, ExitApp):
            self.app.exit()

    @work(thread=True, group="fetch")
    def _fetch(self, request: FetchRequest) -> None:
        """Run one fetch in a background thread and report the result"""
        result = self.source.execute(request, self.settings.page_size)
        self.app.call_from_thread(self.dispatch, FetchCompleted(result))

    def _refresh(self) -> None:
        """Bring widgets in line with controller state"""
        controller = self.controller
        target_list = self.query_one("#target-list", TargetList)
        pane = self.query_one("#log-pane", LogPane)
        status = self.query_one("#log-status", LogStatusBar)

        viewing = controller.mode is ViewMode.VIEWING
        switched = pane.display != viewing
        target_list.display = not viewing
        pane.display = viewing

        if viewing:
            pane.show(controller.lines, controller.scroll_offset, controller.x_offset)
            if switched:
                pane.focus()
                self.call_after_refresh(self._report_geometry)
        elif switched:
            target_list.focus()

        status.message = controller.status_text()
        status.is_error = controller.error is not None

    def _report_geometry(self) -> None:
        pane = self.query_one("#log-pane", LogPane)
        size = pane.scrollable_content_region.size
        if size.height > 0 and (size.width, size.height) != (self.controller.width,
                                                            self.controller.height):
            self.dispatch(Resize(size.width, size.height))

    def request_quit(self) -> None:
        self.dispatch(Quit())

    # Event handlers

    def on_resize(self) -> None:
        self.call_after_refresh(self._report_geometry)

    @on(ListView.Selected, "#target-list")
    def handle_target_selected(self, event: ListView.Selected) -> None:
        if isinstance(event.item, TargetItem):
            target = event.item.target
            self.dispatch(SelectTarget(target.target_id, target.label))

    @on(LogPane.Command)
    def handle_pane_command(self, message: LogPane.Command) -> None:
        self.dispatch(message.event)

    @on(LogPane.Scrolled)
    def handle_pane_scrolled(self, message: LogPane.Scrolled) -> None:
        self.dispatch(Scrolled(message.offset))
