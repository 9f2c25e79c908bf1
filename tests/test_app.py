"""
Integration tests for the Textual log viewer
"""
from pathlib import Path

import pytest

from sblogs.config import ScrollbackSettings
from sblogs.UI.app import LogsApp, build_app
from sblogs.UI.views.log_viewer import (
    ContainerLogSource,
    JournalLogSource,
    LogEntry,
    LogPane,
    LogSourceAdapter,
    LogSourceError,
    LogTarget,
    LogViewerView,
    TargetItem,
    TargetList,
    ViewMode,
)
from sblogs.UI.views.log_viewer.log_parser import Direction


class MemorySource(LogSourceAdapter):
    """Pages through an in-memory list of entries"""

    name = "memory"

    def __init__(self, count: int = 30):
        super().__init__()
        self.entries = [LogEntry(f"ts{i:04d}", f"line {i}", f"tok{i:04d}") for i in range(count)]

    def _read_page(self, target_id, direction, from_token, page_size):
        if not from_token:
            return self.entries[-page_size:]
        position = [e.page_token for e in self.entries].index(from_token)
        if direction is Direction.BACKWARD:
            return self.entries[max(0, position - page_size):position]
        return self.entries[position + 1:position + 1 + page_size]


class RecordingApp(LogsApp):
    """LogsApp that keeps notifications for assertions"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.notifications = []

    def notify(self, message, **kwargs):
        self.notifications.append((message, kwargs.get("severity", "information")))


def make_app(count: int = 30, discover=None) -> RecordingApp:
    settings = ScrollbackSettings(page_size=5, prefetch_pages_ahead=2)
    discover = discover or (lambda: [LogTarget("app", "app"), LogTarget("db", "db")])
    return RecordingApp(MemorySource(count), discover, settings)


async def settle(app, pilot):
    await app.workers.wait_for_complete()
    await pilot.pause()


class TestBuildApp:
    """Test wiring for each source kind"""

    def test_services(self):
        app = build_app("services", ScrollbackSettings())
        assert isinstance(app.source, JournalLogSource)

    def test_containers(self):
        app = build_app("containers", ScrollbackSettings(fetch_timeout=3.0))
        assert isinstance(app.source, ContainerLogSource)
        assert app.source.timeout == 3.0

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            build_app("pods")


class TestLogViewerApp:
    """Drive the app with the Textual pilot"""

    def test_stylesheet_found_from_subclass(self):
        css_path = Path(RecordingApp.CSS_PATH)
        assert css_path.is_absolute()
        assert css_path.is_file()

    @pytest.mark.asyncio
    async def test_targets_listed(self):
        app = make_app()
        async with app.run_test() as pilot:
            await settle(app, pilot)
            target_list = app.query_one("#target-list", TargetList)
            assert len(target_list.children) == 2
            assert target_list.selected_target.name == "app"

    @pytest.mark.asyncio
    async def test_open_target_and_go_back(self):
        app = make_app()
        async with app.run_test() as pilot:
            await settle(app, pilot)
            await pilot.press("enter")
            await settle(app, pilot)
            await settle(app, pilot)

            view = app.query_one(LogViewerView)
            assert view.controller.mode is ViewMode.VIEWING
            assert view.controller.target_id == "app"
            assert len(view.controller.buffer) >= 5
            assert app.query_one("#log-pane", LogPane).display

            await pilot.press("escape")
            await pilot.pause()
            assert view.controller.mode is ViewMode.LIST
            assert app.query_one("#target-list", TargetList).display

    @pytest.mark.asyncio
    async def test_follow_toggle(self):
        app = make_app()
        async with app.run_test() as pilot:
            await settle(app, pilot)
            await pilot.press("enter")
            await settle(app, pilot)

            await pilot.press("f")
            await pilot.pause()
            view = app.query_one(LogViewerView)
            assert view.controller.following

            await pilot.press("f")
            await pilot.pause()
            assert not view.controller.following

    @pytest.mark.asyncio
    async def test_discovery_error_is_notified(self):
        def broken():
            raise LogSourceError("failed to list containers: no socket")

        app = make_app(discover=broken)
        async with app.run_test() as pilot:
            await settle(app, pilot)
            target_list = app.query_one("#target-list", TargetList)
            assert len(target_list.children) == 0
            assert ("failed to list containers: no socket", "error") in app.notifications

    @pytest.mark.asyncio
    async def test_quit(self):
        app = make_app()
        async with app.run_test() as pilot:
            await settle(app, pilot)
            await pilot.press("q")
            await pilot.pause()
        assert app.return_code == 0


class TestComponents:
    """Test target list rows"""

    def test_container_label_aligned(self):
        target = LogTarget("c1", "web", status="running", state="Up 2 hours")
        assert TargetItem.format_label(target, 6).plain == "web     [✓ Up 2 hours]"

    def test_service_label(self):
        assert TargetItem.format_label(LogTarget("plex", "plex")).plain == "plex"
