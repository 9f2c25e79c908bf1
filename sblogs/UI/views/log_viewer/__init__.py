"""
Log Viewer Package - Paginated viewing of container and service logs

This package provides a scrollback log viewer with:
- Pluggable log sources (docker engine, systemd journal)
- Token-based backward/forward pagination
- Background prefetch toward the edges the user is approaching
- Bounded memory by trimming entries far from the viewport
- Follow mode polling for new entries

Package Structure:
- view: Main view orchestration (LogViewerView)
- controller: Terminal-independent state machine (ViewController)
- scrollback: Bounded entry buffer with pagination tokens (ScrollbackBuffer)
- components: Target list and status widgets (TargetList, LogStatusBar)
- log_pane: Scrollable log text widget (LogPane)
- log_reader: Source adapters (ContainerLogSource, JournalLogSource)
- log_parser: Entry model and wire format parsing (LogEntry, FetchRequest, FetchResult)
- targets: Container and service discovery (LogTarget)
"""

from .view import LogViewerView

from .components import LogStatusBar, TargetItem, TargetList
from .controller import ViewController, ViewMode
from .log_pane import LogPane
from .log_reader import ContainerLogSource, JournalLogSource, LogSourceAdapter
from .log_parser import Direction, FetchRequest, FetchResult, LogEntry, LogSourceError
from .scrollback import ScrollbackBuffer
from .targets import LogTarget, list_containers, list_services, service_targets

__all__ = [
    # Main view
    'LogViewerView',

    # UI components
    'LogPane',
    'LogStatusBar',
    'TargetItem',
    'TargetList',

    # Core components
    'ViewController',
    'ScrollbackBuffer',
    'LogSourceAdapter',
    'ContainerLogSource',
    'JournalLogSource',
    'list_containers',
    'list_services',
    'service_targets',

    # Data models
    'Direction',
    'FetchRequest',
    'FetchResult',
    'LogEntry',
    'LogSourceError',
    'LogTarget',
    'ViewMode',
]
