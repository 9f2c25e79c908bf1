"""
Unit tests for the log source adapters
"""
import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest
import requests
from docker.errors import DockerException

from sblogs.UI.views.log_viewer.log_parser import (
    FRAME_HEADER,
    Direction,
    FetchRequest,
    LogEntry,
    LogSourceError,
)
from sblogs.UI.views.log_viewer.log_reader import (
    ContainerLogSource,
    JournalLogSource,
    LogSourceAdapter,
)

RUN = "sblogs.UI.views.log_viewer.log_reader.subprocess.run"


def journal_output(indexes) -> str:
    return "\n".join(json.dumps({
        "__CURSOR": f"c{i}",
        "__REALTIME_TIMESTAMP": str(1700000000000000 + i * 1000000),
        "MESSAGE": f"line {i}",
    }) for i in indexes) + "\n"


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> MagicMock:
    result = MagicMock()
    result.stdout = stdout
    result.stderr = stderr
    result.returncode = returncode
    return result


def container_body(seconds) -> bytes:
    payload = "".join(f"1970-01-01T00:00:{s:02d}Z line {s}\n" for s in seconds).encode()
    return FRAME_HEADER.pack(1, len(payload)) + payload


class StaticSource(LogSourceAdapter):
    """Adapter returning a fixed page, for testing the fetch contract"""

    name = "static"

    def __init__(self, entries=None, error=None):
        super().__init__()
        self.entries = entries or []
        self.error = error

    def _read_page(self, target_id, direction, from_token, page_size):
        if self.error:
            raise self.error
        return list(self.entries)


class TestFetchContract:
    """Test LogSourceAdapter.fetch and execute"""

    def test_full_page_has_more(self):
        entries = [LogEntry("T", f"m{i}", f"t{i}") for i in range(3)]
        result = StaticSource(entries).fetch("app", Direction.BACKWARD, "t9", 3)
        assert result.has_more
        assert result.oldest_token == "t0"
        assert result.newest_token == "t2"
        assert result.error is None

    def test_short_page_has_no_more(self):
        entries = [LogEntry("T", "m", "t0")]
        assert not StaticSource(entries).fetch("app", Direction.BACKWARD, "t9", 3).has_more

    def test_empty_page_keeps_request_token(self):
        result = StaticSource([]).fetch("app", Direction.FORWARD, "t5", 3)
        assert result.entries == []
        assert result.oldest_token == "t5"
        assert result.newest_token == "t5"
        assert not result.has_more

    def test_source_error_becomes_result_error(self):
        result = StaticSource(error=LogSourceError("unreachable")).fetch(
            "app", Direction.FORWARD, "", 3)
        assert result.error == "unreachable"
        assert result.entries == []

    def test_execute_marks_prefetch(self):
        request = FetchRequest("app", Direction.BACKWARD, "t9", is_prefetch=True)
        result = StaticSource([LogEntry("T", "m", "t0")]).execute(request, 3)
        assert result.is_prefetch
        assert result.from_token == "t9"

    def test_execute_never_raises(self):
        request = FetchRequest("app", Direction.FORWARD)
        result = StaticSource(error=RuntimeError("kaboom")).execute(request, 3)
        assert result.failed
        assert "kaboom" in result.error
        assert result.target_id == "app"


class TestJournalLogSource:
    """Test journalctl pagination"""

    @pytest.fixture
    def source(self):
        return JournalLogSource(timeout=5.0)

    def test_unit_name(self):
        assert JournalLogSource.unit_name("plex") == "plex.service"
        assert JournalLogSource.unit_name("plex.service") == "plex.service"

    def test_initial_args(self, source):
        args = source.build_args("plex", Direction.FORWARD, "", 500)
        assert args == ["journalctl", "-u", "plex.service", "-o", "json", "--no-pager", "-n", "500"]

    def test_backward_args(self, source):
        args = source.build_args("plex", Direction.BACKWARD, "c10", 500)
        assert args[-5:] == ["--cursor", "c10", "--reverse", "-n", "501"]

    def test_forward_args(self, source):
        args = source.build_args("plex", Direction.FORWARD, "c10", 500)
        assert "--reverse" not in args
        assert args[-4:] == ["--cursor", "c10", "-n", "501"]

    def test_initial_fetch(self, source):
        with patch(RUN, return_value=completed(journal_output(range(1, 4)))) as run:
            result = source.fetch("plex", Direction.FORWARD, "", 3)
        assert [e.page_token for e in result.entries] == ["c1", "c2", "c3"]
        assert result.has_more
        assert run.call_args.kwargs["timeout"] == 5.0

    def test_backward_fetch_strips_cursor_and_reverses(self, source):
        # --reverse from c10: the cursor record first, then older records newest first
        with patch(RUN, return_value=completed(journal_output([10, 9, 8, 7]))):
            result = source.fetch("plex", Direction.BACKWARD, "c10", 3)
        assert [e.page_token for e in result.entries] == ["c7", "c8", "c9"]
        assert result.has_more
        assert result.oldest_token == "c7"

    def test_forward_fetch_strips_cursor(self, source):
        with patch(RUN, return_value=completed(journal_output([10, 11]))):
            result = source.fetch("plex", Direction.FORWARD, "c10", 3)
        assert [e.page_token for e in result.entries] == ["c11"]
        assert not result.has_more

    def test_only_cursor_means_boundary(self, source):
        with patch(RUN, return_value=completed(journal_output([10]))):
            result = source.fetch("plex", Direction.BACKWARD, "c10", 3)
        assert result.entries == []
        assert not result.has_more

    def test_nonzero_exit(self, source):
        with patch(RUN, return_value=completed(returncode=1, stderr="No journal files")):
            result = source.fetch("plex", Direction.FORWARD, "", 3)
        assert "No journal files" in result.error

    def test_timeout(self, source):
        with patch(RUN, side_effect=subprocess.TimeoutExpired("journalctl", 5)):
            result = source.fetch("plex", Direction.FORWARD, "", 3)
        assert "timed out" in result.error

    def test_missing_command(self, source):
        with patch(RUN, side_effect=FileNotFoundError("journalctl")):
            result = source.fetch("plex", Direction.FORWARD, "", 3)
        assert "failed to run journalctl" in result.error


class TestContainerLogSource:
    """Test docker engine pagination"""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.api.base_url = "http+docker://localhost"
        client.api.api_version = "1.43"
        response = MagicMock()
        response.status_code = 200
        response.content = b""
        client.api.get.return_value = response
        return client

    @pytest.fixture
    def source(self, client):
        return ContainerLogSource(client=client, timeout=10.0)

    def respond(self, client, body: bytes, status_code: int = 200):
        client.api.get.return_value.content = body
        client.api.get.return_value.status_code = status_code

    def test_initial_params(self, source):
        params = source.build_params(Direction.FORWARD, "", 500)
        assert params == {"stdout": 1, "stderr": 1, "timestamps": 1, "tail": "500"}

    def test_backward_params(self, source):
        params = source.build_params(Direction.BACKWARD, "1970-01-01T00:00:10.25Z", 500)
        assert params["until"] == "10.250000000"
        assert params["tail"] == "501"

    def test_forward_params(self, source):
        params = source.build_params(Direction.FORWARD, "1970-01-01T00:00:10Z", 500)
        assert params["since"] == "10.000000000"
        assert "tail" not in params

    def test_requests_logs_endpoint(self, source, client):
        self.respond(client, container_body([1, 2]))
        result = source.fetch("abc123", Direction.FORWARD, "", 2)

        url = client.api.get.call_args.args[0]
        assert url == "http+docker://localhost/v1.43/containers/abc123/logs"
        assert client.api.get.call_args.kwargs["timeout"] == 10.0
        assert [e.message for e in result.entries] == ["line 1", "line 2"]
        assert result.entries[0].source_stream == "stdout"
        assert result.has_more

    def test_backward_strips_boundary(self, source, client):
        self.respond(client, container_body([7, 8, 9, 10]))
        result = source.fetch("abc", Direction.BACKWARD, "1970-01-01T00:00:10Z", 3)
        assert [e.message for e in result.entries] == ["line 7", "line 8", "line 9"]
        assert result.has_more

    def test_forward_strips_boundary_and_truncates(self, source, client):
        self.respond(client, container_body([10, 11, 12, 13, 14]))
        result = source.fetch("abc", Direction.FORWARD, "1970-01-01T00:00:10Z", 3)
        assert [e.message for e in result.entries] == ["line 11", "line 12", "line 13"]
        assert result.newest_token == "1970-01-01T00:00:13Z"

    def test_not_found(self, source, client):
        self.respond(client, b"", status_code=404)
        result = source.fetch("gone", Direction.FORWARD, "", 3)
        assert result.error == "container gone not found"

    def test_timeout(self, source, client):
        client.api.get.side_effect = requests.exceptions.Timeout("slow")
        result = source.fetch("abc", Direction.FORWARD, "", 3)
        assert "timed out" in result.error

    def test_connection_error(self, source, client):
        client.api.get.side_effect = requests.exceptions.ConnectionError("refused")
        result = source.fetch("abc", Direction.FORWARD, "", 3)
        assert result.error.startswith("failed to fetch logs")

    def test_bad_token(self, source, client):
        result = source.fetch("abc", Direction.BACKWARD, "garbage", 3)
        assert "invalid pagination token" in result.error
        client.api.get.assert_not_called()

    def test_engine_unavailable(self):
        with patch("sblogs.UI.views.log_viewer.log_reader.docker.from_env",
                   side_effect=DockerException("no socket")):
            result = ContainerLogSource().fetch("abc", Direction.FORWARD, "", 3)
        assert "failed to connect to Docker" in result.error
