"""
Controller Module - Log viewer state machine, independent of any terminal library

Handles:
- List / Viewing modes and the Loading gate
- Target switching with buffer teardown and stale-result isolation
- Manual paging, passive-scroll prefetch and trimming
- Follow mode polling
- Scroll position bookkeeping (prepend shift, trim shift, resize clamp)
- User-visible status and error text

The presentation layer feeds events to `ViewController.dispatch` and
carries out the returned effects (fetches and follow timers).
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .log_parser import Direction, FetchRequest, FetchResult
from .scrollback import ScrollbackBuffer

logger = logging.getLogger(__name__)


class ViewMode(Enum):
    """Top-level viewer state"""
    LIST = "list"
    VIEWING = "viewing"


# Events

@dataclass
class SelectTarget:
    target_id: str
    label: str = ""


@dataclass
class Back:
    pass


@dataclass
class PageOlder:
    pass


@dataclass
class PageNewer:
    pass


@dataclass
class ToggleFollow:
    pass


@dataclass
class ToggleMetadata:
    pass


@dataclass
class ScrollHorizontal:
    delta: int


@dataclass
class Scrolled:
    """The presentation layer moved the viewport to a new first line"""
    offset: int


@dataclass
class Resize:
    width: int
    height: int


@dataclass
class FollowTick:
    generation: int


@dataclass
class FetchCompleted:
    result: FetchResult


@dataclass
class DismissError:
    pass


@dataclass
class Quit:
    pass


# Effects

@dataclass
class Fetch:
    """Run the request off the event loop and feed back FetchCompleted"""
    request: FetchRequest


@dataclass
class ScheduleFollowTick:
    """Feed back FollowTick(generation) after `delay` seconds"""
    delay: float
    generation: int


@dataclass
class ExitApp:
    pass


# Events still handled while a blocking fetch is outstanding
UNGATED_EVENTS = (Resize, FollowTick, FetchCompleted, Quit)


class ViewController:
    """
    Owns the scrollback buffer of the selected target and decides when to
    fetch, prefetch, trim and follow
    """

    def __init__(self, page_size: int = 500, max_buffer_entries: int = 20000,
                 prefetch_pages_ahead: int = 10, prefetch_lead_viewports: int = 5,
                 viewports_to_keep: int = 10, min_trim_entries: int = 100,
                 follow_interval: float = 0.5):
        self.page_size = page_size
        self.max_buffer_entries = max_buffer_entries
        self.prefetch_pages_ahead = prefetch_pages_ahead
        self.prefetch_lead_viewports = prefetch_lead_viewports
        self.viewports_to_keep = viewports_to_keep
        self.min_trim_entries = min_trim_entries
        self.follow_interval = follow_interval

        self.mode = ViewMode.LIST
        self.loading = False
        self.error: Optional[str] = None
        self.buffer: Optional[ScrollbackBuffer] = None
        self.target_label = ""
        self.show_metadata = True

        self.width = 80
        self.height = 24
        self.scroll_offset = 0
        self.x_offset = 0
        self.lines: List[str] = []

        # Bumped whenever follow starts or stops so stale tick chains die out
        self.follow_generation = 0

        self._handlers = {
            SelectTarget: self._on_select_target,
            Back: self._on_back,
            PageOlder: self._on_page_older,
            PageNewer: self._on_page_newer,
            ToggleFollow: self._on_toggle_follow,
            ToggleMetadata: self._on_toggle_metadata,
            ScrollHorizontal: self._on_scroll_horizontal,
            Scrolled: self._on_scrolled,
            Resize: self._on_resize,
            FollowTick: self._on_follow_tick,
            FetchCompleted: self._on_fetch_completed,
            DismissError: self._on_dismiss_error,
            Quit: self._on_quit,
        }

    @classmethod
    def from_settings(cls, settings) -> "ViewController":
        return cls(
            page_size=settings.page_size,
            max_buffer_entries=settings.max_buffer_entries,
            prefetch_pages_ahead=settings.prefetch_pages_ahead,
            prefetch_lead_viewports=settings.prefetch_lead_viewports,
            viewports_to_keep=settings.viewports_to_keep,
            min_trim_entries=settings.min_trim_entries,
            follow_interval=settings.follow_interval,
        )

    # Read-only view state

    @property
    def target_id(self) -> str:
        return self.buffer.target_id if self.buffer is not None else ""

    @property
    def target_size(self) -> int:
        return self.prefetch_pages_ahead * self.page_size

    @property
    def following(self) -> bool:
        return self.buffer is not None and self.buffer.follow_active

    @property
    def content(self) -> str:
        """Render-ready text of the whole buffer"""
        return "\n".join(self.lines)

    @property
    def max_offset(self) -> int:
        return max(0, len(self.lines) - self.height)

    @property
    def at_top(self) -> bool:
        return self.scroll_offset <= 0

    @property
    def at_bottom(self) -> bool:
        return self.scroll_offset >= self.max_offset

    def visible_lines(self) -> List[str]:
        return self.lines[self.scroll_offset:self.scroll_offset + self.height]

    def status_text(self) -> str:
        """The single place user-visible status and error text is produced"""
        if self.error:
            return f"Error: {self.error}"
        if self.loading:
            return f"Loading logs for {self.target_label}..."
        if self.mode is ViewMode.LIST or self.buffer is None:
            return "Select a target to view logs"

        status = f"{self.target_label}: {len(self.buffer)} entries"
        if self.following:
            status += " (following)"
        return status

    # Dispatch

    def dispatch(self, event) -> list:
        """
        Apply one event

        Args:
            event: One of the event dataclasses above

        Returns:
            Effects for the presentation layer to carry out
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"unsupported event: {event!r}")

        if self.loading and not isinstance(event, UNGATED_EVENTS):
            return []

        return handler(event)

    def _render(self) -> None:
        self.lines = self.buffer.render_lines(self.show_metadata) if self.buffer is not None else []

    def _clamp_offset(self) -> None:
        self.scroll_offset = max(0, min(self.scroll_offset, self.max_offset))

    def _goto_bottom(self) -> None:
        self.scroll_offset = self.max_offset

    def _stop_follow(self) -> None:
        if self.buffer is not None and self.buffer.follow_active:
            self.buffer.stop_follow()
        self.follow_generation += 1

    def _new_buffer(self) -> ScrollbackBuffer:
        return ScrollbackBuffer(
            page_size=self.page_size,
            max_buffer_entries=self.max_buffer_entries,
            prefetch_lead_viewports=self.prefetch_lead_viewports,
            viewports_to_keep=self.viewports_to_keep,
            min_trim_entries=self.min_trim_entries,
        )

    @staticmethod
    def _fetches(requests) -> list:
        return [Fetch(request) for request in requests if request is not None]

    # Handlers

    def _on_select_target(self, event: SelectTarget) -> list:
        self.mode = ViewMode.VIEWING

        # Re-selecting the buffered target keeps it, unless its first load failed
        if self.buffer is not None and event.target_id == self.buffer.target_id \
                and not self.buffer.is_empty:
            self._render()
            self._clamp_offset()
            return []

        if self.buffer is not None:
            self._stop_follow()
            self.buffer.teardown()
            logger.info(f"Switching log target to {event.target_id}")

        self.buffer = self._new_buffer()
        self.buffer.initialize(event.target_id, self.target_size)
        self.target_label = event.label or event.target_id
        self.loading = True
        self.error = None
        self.scroll_offset = 0
        self.x_offset = 0
        self._render()
        return [Fetch(self.buffer.initial_request())]

    def _on_back(self, event: Back) -> list:
        if self.mode is not ViewMode.VIEWING:
            return []
        if self.following:
            self._stop_follow()
            self._render()
        self.mode = ViewMode.LIST
        self.error = None
        return []

    def _on_page_older(self, event: PageOlder) -> list:
        if self.mode is not ViewMode.VIEWING or self.buffer is None or self.following:
            return []

        if self.at_top:
            request = self.buffer.request_backward(is_prefetch=False)
            if request is None:
                return []
            self.loading = True
            self.error = None
            return [Fetch(request)]

        self.scroll_offset = max(0, self.scroll_offset - self.height)
        return self._after_scroll()

    def _on_page_newer(self, event: PageNewer) -> list:
        if self.mode is not ViewMode.VIEWING or self.buffer is None or self.following:
            return []

        if self.at_bottom:
            request = self.buffer.request_forward(is_prefetch=False)
            if request is None:
                return []
            self.loading = True
            self.error = None
            return [Fetch(request)]

        self.scroll_offset = min(self.max_offset, self.scroll_offset + self.height)
        return self._after_scroll()

    def _on_scrolled(self, event: Scrolled) -> list:
        if self.mode is not ViewMode.VIEWING or self.buffer is None:
            return []

        if self.following:
            self._goto_bottom()
            return []

        previous = self.scroll_offset
        self.scroll_offset = event.offset
        self._clamp_offset()
        if self.scroll_offset == previous:
            return []
        return self._after_scroll()

    def _after_scroll(self) -> list:
        """Prefetch toward nearby edges, then trim what is far away"""
        effects = self._fetches(self.buffer.check_prefetch_needs(
            self.scroll_offset, self.height, len(self.lines)))
        self._trim()
        return effects

    def _trim(self) -> None:
        """Drop entries far from the viewport once the buffer is over its cap"""
        size_before = len(self.buffer)
        lines_removed = self.buffer.trim(self.scroll_offset, self.height)
        if len(self.buffer) == size_before:
            return

        self._render()
        if self.following:
            self._goto_bottom()
        else:
            self.scroll_offset -= lines_removed
            self._clamp_offset()

    def _on_toggle_follow(self, event: ToggleFollow) -> list:
        if self.mode is not ViewMode.VIEWING or self.buffer is None:
            return []

        if self.following:
            self._stop_follow()
            self._render()
            self._clamp_offset()
            return []

        self.buffer.start_follow()
        self.follow_generation += 1
        self._render()
        self._goto_bottom()
        return [ScheduleFollowTick(self.follow_interval, self.follow_generation)]

    def _on_toggle_metadata(self, event: ToggleMetadata) -> list:
        if self.mode is not ViewMode.VIEWING:
            return []
        self.show_metadata = not self.show_metadata
        self._render()
        if self.following:
            self._goto_bottom()
        else:
            self._clamp_offset()
        return []

    def _on_scroll_horizontal(self, event: ScrollHorizontal) -> list:
        if self.mode is not ViewMode.VIEWING:
            return []
        self.x_offset = max(0, self.x_offset + event.delta)
        return []

    def _on_resize(self, event: Resize) -> list:
        self.width = max(1, event.width)
        self.height = max(1, event.height)
        if self.following:
            self._goto_bottom()
            return []

        self._clamp_offset()
        if self.mode is not ViewMode.VIEWING or self.buffer is None or self.buffer.is_empty:
            return []
        # A taller viewport can bring an edge within prefetch range
        return self._after_scroll()

    def _on_follow_tick(self, event: FollowTick) -> list:
        if event.generation != self.follow_generation or not self.following:
            return []

        effects = []
        if not self.loading:
            effects = self._fetches([self.buffer.follow_request()])
        effects.append(ScheduleFollowTick(self.follow_interval, self.follow_generation))
        return effects

    def _on_fetch_completed(self, event: FetchCompleted) -> list:
        result = event.result

        if self.buffer is None or result.target_id != self.buffer.target_id:
            logger.debug(f"Dropping stale {result.direction.value} result for {result.target_id}")
            return []

        if not result.is_prefetch:
            self.loading = False

        if result.failed:
            self.buffer.fail(result)
            self.error = result.error
            logger.warning(f"Fetch failed for {result.target_id}: {result.error}")
            return []

        self.error = None

        if result.direction is Direction.BACKWARD:
            lines_before = len(self.lines)
            request = self.buffer.apply_backward(result)
            self._render()
            # Everything added sits above the viewport; keep the same content in view
            self.scroll_offset += len(self.lines) - lines_before
            self._clamp_offset()
            return self._fetches([request])

        if self.buffer.is_empty and result.is_initial:
            request = self.buffer.apply_initial(result)
            self._render()
            self._goto_bottom()
            return self._fetches([request])

        self.buffer.apply_forward(result)
        self._render()
        if not result.is_prefetch or self.following:
            self._goto_bottom()
        else:
            self._clamp_offset()
        self._trim()
        return []

    def _on_dismiss_error(self, event: DismissError) -> list:
        self.error = None
        return []

    def _on_quit(self, event: Quit) -> list:
        self._stop_follow()
        return [ExitApp()]
