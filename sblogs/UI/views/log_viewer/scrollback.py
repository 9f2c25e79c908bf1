"""
Scrollback Module - Bounded, bidirectionally paged window of log entries

Handles:
- Ordered entry storage for one log target (oldest first)
- Backward/forward pagination tokens and boundary flags
- One in-flight fetch per direction
- Prefetch decisions from viewport position
- Trimming far-away entries without moving the visible content
- Rendering with start/end/follow markers
"""
import logging
from typing import List, Optional

from .log_parser import Direction, FetchRequest, FetchResult, LogEntry

START_MARKER = "--- start of logs ---"
END_MARKER = "--- end of logs ---"
FOLLOW_MARKER = "--- watching for new logs ---"
EMPTY_TEXT = "No log entries"

# Marker line plus the blank separator line
MARKER_LINES = 2

logger = logging.getLogger(__name__)


class ScrollbackBuffer:
    """
    In-memory window over one target's logs

    Fetch merges only ever lower `has_more_backward`/`has_more_forward`;
    `trim()` is the only operation that raises them, because it discards
    entries that are known to exist upstream.
    """

    def __init__(self, page_size: int = 500, max_buffer_entries: int = 20000,
                 prefetch_lead_viewports: int = 5, viewports_to_keep: int = 10,
                 min_trim_entries: int = 100):
        """
        Initialize an empty buffer

        Args:
            page_size: Entries per fetch
            max_buffer_entries: Size above which trim() starts discarding
            prefetch_lead_viewports: Prefetch when this many viewports from an edge
            viewports_to_keep: Viewports kept on each side of the visible range when trimming
            min_trim_entries: Smallest cut worth making at one edge
        """
        self.page_size = page_size
        self.max_buffer_entries = max_buffer_entries
        self.prefetch_lead_viewports = prefetch_lead_viewports
        self.viewports_to_keep = viewports_to_keep
        self.min_trim_entries = min_trim_entries

        self.entries: List[LogEntry] = []
        self.target_id = ""
        self.target_size = 0
        self.backward_token = ""
        self.forward_token = ""
        self.has_more_backward = False
        self.has_more_forward = False
        self.backward_fetch_in_flight = False
        self.forward_fetch_in_flight = False
        self.follow_active = False

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def initialize(self, target_id: str, target_size: int) -> None:
        """Reset all state for a newly selected target"""
        self.teardown()
        self.target_id = target_id
        self.target_size = target_size
        self.has_more_backward = True
        self.has_more_forward = False

    def teardown(self) -> None:
        """Drop every entry and all pagination state"""
        self.entries = []
        self.target_id = ""
        self.target_size = 0
        self.backward_token = ""
        self.forward_token = ""
        self.has_more_backward = False
        self.has_more_forward = False
        self.backward_fetch_in_flight = False
        self.forward_fetch_in_flight = False
        self.follow_active = False

    # Requests

    def initial_request(self) -> FetchRequest:
        """Blocking request for the most recent page"""
        self.forward_fetch_in_flight = True
        return FetchRequest(self.target_id, Direction.FORWARD, "", is_prefetch=False)

    def request_backward(self, is_prefetch: bool = True) -> Optional[FetchRequest]:
        """Claim the backward slot and build a request from backward_token"""
        if self.backward_fetch_in_flight or not self.has_more_backward or not self.backward_token:
            return None
        self.backward_fetch_in_flight = True
        return FetchRequest(self.target_id, Direction.BACKWARD, self.backward_token, is_prefetch)

    def request_forward(self, is_prefetch: bool = True) -> Optional[FetchRequest]:
        """Claim the forward slot and build a request from forward_token"""
        if self.forward_fetch_in_flight or not self.has_more_forward or not self.forward_token:
            return None
        self.forward_fetch_in_flight = True
        return FetchRequest(self.target_id, Direction.FORWARD, self.forward_token, is_prefetch)

    def should_prefetch_backward(self) -> bool:
        """True while the buffer is below target size and older entries exist"""
        return (
            len(self.entries) < self.target_size
            and self.has_more_backward
            and bool(self.backward_token)
            and not self.backward_fetch_in_flight
        )

    def start_backward_prefetch(self) -> Optional[FetchRequest]:
        if not self.should_prefetch_backward():
            return None
        return self.request_backward(is_prefetch=True)

    def check_prefetch_needs(self, viewport_offset: int, viewport_height: int,
                             total_rendered_height: int) -> List[FetchRequest]:
        """
        Requests for edges the viewport is approaching

        Args:
            viewport_offset: First visible line
            viewport_height: Visible line count
            total_rendered_height: Line count of the rendered content

        Returns:
            Zero, one or two prefetch requests
        """
        requests = []
        threshold = self.prefetch_lead_viewports * viewport_height

        if viewport_offset < threshold:
            request = self.request_backward(is_prefetch=True)
            if request:
                requests.append(request)

        distance_from_bottom = total_rendered_height - (viewport_offset + viewport_height)
        if distance_from_bottom < threshold:
            request = self.request_forward(is_prefetch=True)
            if request:
                requests.append(request)

        return requests

    # Merging

    @staticmethod
    def _strip_boundary(entries: List[LogEntry], token: str, from_end: bool) -> List[LogEntry]:
        """Remove entries at the requested edge that repeat the request token"""
        if not token:
            return entries
        entries = list(entries)
        if from_end:
            while entries and entries[-1].page_token == token:
                entries.pop()
        else:
            while entries and entries[0].page_token == token:
                entries.pop(0)
        return entries

    def fail(self, result: FetchResult) -> None:
        """Release the direction's slot after an error; boundary flags stay as they are"""
        if result.direction is Direction.BACKWARD:
            self.backward_fetch_in_flight = False
        else:
            self.forward_fetch_in_flight = False

    def apply_initial(self, result: FetchResult) -> Optional[FetchRequest]:
        """
        Store the first page of an empty buffer

        Returns:
            Backward prefetch request if the buffer wants more history
        """
        self.forward_fetch_in_flight = False

        if not result.entries:
            # Nothing at all for this target
            self.has_more_backward = False
            self.has_more_forward = False
            return None

        self.entries = list(result.entries)
        self.backward_token = self.entries[0].page_token
        self.forward_token = self.entries[-1].page_token
        self.has_more_backward = True
        self.has_more_forward = False
        return self.start_backward_prefetch()

    def apply_backward(self, result: FetchResult) -> Optional[FetchRequest]:
        """
        Prepend older entries

        Returns:
            Further backward prefetch request while under target size
        """
        self.backward_fetch_in_flight = False

        if result.from_token != self.backward_token:
            logger.debug(f"Discarding backward page from {result.from_token!r}; edge moved")
            return None

        entries = self._strip_boundary(result.entries, result.from_token, from_end=True)
        if not entries:
            self.has_more_backward = False
            return None

        self.entries = entries + self.entries
        self.backward_token = entries[0].page_token
        self.has_more_backward = self.has_more_backward and result.has_more
        return self.start_backward_prefetch()

    def apply_forward(self, result: FetchResult) -> None:
        """Append newer entries; forward fetching never chains itself"""
        self.forward_fetch_in_flight = False

        if result.from_token != self.forward_token:
            logger.debug(f"Discarding forward page from {result.from_token!r}; edge moved")
            return

        entries = self._strip_boundary(result.entries, result.from_token, from_end=False)
        if not entries:
            self.has_more_forward = False
            return

        self.entries = self.entries + entries
        self.forward_token = entries[-1].page_token
        self.has_more_forward = self.has_more_forward and result.has_more

    # Follow mode

    def start_follow(self) -> None:
        self.follow_active = True

    def stop_follow(self) -> None:
        self.follow_active = False

    def follow_request(self) -> Optional[FetchRequest]:
        """Poll for entries after forward_token; one poll at a time"""
        if not self.follow_active or self.forward_fetch_in_flight:
            return None
        if self.is_empty:
            return self.initial_request_prefetch()
        self.forward_fetch_in_flight = True
        return FetchRequest(self.target_id, Direction.FORWARD, self.forward_token, is_prefetch=True)

    def initial_request_prefetch(self) -> FetchRequest:
        """Background most-recent-page request, used while following an empty target"""
        self.forward_fetch_in_flight = True
        return FetchRequest(self.target_id, Direction.FORWARD, "", is_prefetch=True)

    # Geometry

    def header_lines(self) -> int:
        if self.entries and not self.has_more_backward:
            return MARKER_LINES
        return 0

    def footer_lines(self) -> int:
        if self.entries and not self.has_more_forward:
            return MARKER_LINES
        return 0

    def total_lines(self) -> int:
        """Rendered line count, markers included"""
        if not self.entries:
            return 1
        return (self.header_lines()
                + sum(entry.line_count for entry in self.entries)
                + self.footer_lines())

    def _entry_at_line(self, line: int) -> int:
        """Index of the entry covering a rendered line (clamped to the buffer)"""
        position = self.header_lines()
        for index, entry in enumerate(self.entries):
            if position + entry.line_count > line:
                return index
            position += entry.line_count
        return len(self.entries) - 1

    def trim(self, viewport_offset: int, viewport_height: int) -> int:
        """
        Discard entries far from the viewport once the buffer exceeds its cap

        Args:
            viewport_offset: First visible line
            viewport_height: Visible line count

        Returns:
            Rendered lines removed above the viewport; the caller subtracts
            this from its offset so the visible content does not move
        """
        count = len(self.entries)
        if count <= self.max_buffer_entries:
            return 0

        first_visible = self._entry_at_line(viewport_offset)
        last_visible = self._entry_at_line(viewport_offset + max(viewport_height, 1) - 1)

        # Rough estimate of ~3 lines per entry, but never less than one page
        keep = max(self.viewports_to_keep * viewport_height // 3, self.page_size)

        trim_start = max(0, first_visible - keep)
        trim_end = min(count, last_visible + 1 + keep)

        if trim_start < self.min_trim_entries:
            trim_start = 0
        if count - trim_end < self.min_trim_entries:
            trim_end = count
        if trim_start == 0 and trim_end == count:
            return 0

        lines_removed = 0
        if trim_start > 0:
            lines_removed = self.header_lines() + sum(
                entry.line_count for entry in self.entries[:trim_start])

        self.entries = self.entries[trim_start:trim_end]

        if trim_start > 0:
            self.backward_token = self.entries[0].page_token
            self.has_more_backward = True
        if trim_end < count:
            self.forward_token = self.entries[-1].page_token
            self.has_more_forward = True

        logger.debug(f"Trimmed {trim_start} older and {count - trim_end} newer entries "
                     f"for {self.target_id}")
        return lines_removed

    # Rendering

    def render_lines(self, show_metadata: bool = True) -> List[str]:
        if not self.entries:
            return [EMPTY_TEXT]

        lines = []
        if not self.has_more_backward:
            lines += [START_MARKER, ""]

        for entry in self.entries:
            lines.extend(entry.format(show_metadata).split("\n"))

        if not self.has_more_forward:
            lines += ["", FOLLOW_MARKER if self.follow_active else END_MARKER]

        return lines

    def render(self, show_metadata: bool = True) -> str:
        """Formatted entries with boundary markers, one string"""
        return "\n".join(self.render_lines(show_metadata))
