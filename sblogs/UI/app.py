"""
sblogs Main Application - Textual UI for paging through logs
"""
import logging
from pathlib import Path
from typing import Callable, List, Optional

from textual.app import App, ComposeResult
from textual.widgets import Footer, Header

from sblogs.config import ScrollbackSettings
from sblogs.UI.views.log_viewer import (
    ContainerLogSource,
    JournalLogSource,
    LogSourceAdapter,
    LogTarget,
    LogViewerView,
    list_containers,
    service_targets,
)

logger = logging.getLogger(__name__)

SOURCE_KINDS = ("services", "containers")


class LogsApp(App):
    """Log viewer for systemd services or docker containers"""

    TITLE = "sblogs"
    # Absolute so subclasses defined elsewhere still find the stylesheet
    CSS_PATH = Path(__file__).parent / "sblogs.tcss"

    BINDINGS = [
        ("q", "request_quit", "Quit"),
    ]

    def __init__(self, source: LogSourceAdapter, discover: Callable[[], List[LogTarget]],
                 settings: ScrollbackSettings, sub_title: str = "", **kwargs):
        super().__init__(**kwargs)
        self.source = source
        self.discover = discover
        self.settings = settings
        self.sub_title = sub_title

    def compose(self) -> ComposeResult:
        """Compose the main UI layout"""
        yield Header(show_clock=True)
        yield LogViewerView(self.source, self.discover, self.settings, id="log-viewer-view")
        yield Footer()

    def action_request_quit(self) -> None:
        """Stop follow mode and exit"""
        self.query_one("#log-viewer-view", LogViewerView).request_quit()


def build_app(kind: str, settings: Optional[ScrollbackSettings] = None) -> LogsApp:
    """
    Wire the source adapter and target discovery for a source kind

    Args:
        kind: "services" (systemd journal) or "containers" (docker engine)
        settings: Paging limits (defaults when omitted)
    """
    settings = settings or ScrollbackSettings()

    if kind == "containers":
        container_source = ContainerLogSource(timeout=settings.fetch_timeout)
        return LogsApp(container_source, lambda: list_containers(container_source.client),
                       settings, sub_title="Docker containers")

    if kind == "services":
        journal_source = JournalLogSource(timeout=settings.fetch_timeout)
        return LogsApp(journal_source,
                       lambda: service_targets(settings.service_filters, settings.fetch_timeout),
                       settings, sub_title="Systemd services")

    raise ValueError(f"unknown source kind: {kind}")


def run_app(kind: str = "services", settings: Optional[ScrollbackSettings] = None) -> None:
    """Entry point to run the log viewer"""
    app = build_app(kind, settings)
    logger.info(f"Starting log viewer for {kind}")
    app.run()
