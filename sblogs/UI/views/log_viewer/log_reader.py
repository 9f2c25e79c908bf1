"""
Log Reader Module - Paginated access to external log providers

Handles:
- The uniform fetch contract used by the scrollback buffer
- Container engine logs (timestamp tokens)
- systemd journal logs (opaque cursor tokens)
- Provider timeouts and error conversion
"""
import logging
import subprocess
from abc import ABC, abstractmethod
from typing import List, Optional
from urllib.parse import quote

import docker
import requests
from docker.errors import DockerException

from .log_parser import (
    Direction,
    FetchRequest,
    FetchResult,
    LogEntry,
    LogSourceError,
    parse_container_logs,
    parse_journal_json,
    to_engine_timestamp,
)

DEFAULT_FETCH_TIMEOUT = 10.0

logger = logging.getLogger(__name__)


class LogSourceAdapter(ABC):
    """
    Uniform "fetch one page" contract over an external log provider

    Concrete sources implement `_read_page`, which returns entries oldest
    first with the boundary duplicate already removed. `fetch` turns that
    into a FetchResult and never raises.

    `has_more` is a heuristic: a page at least `page_size` long is assumed
    to have more behind it. A last page that is exactly full reports
    `has_more=True`; the following fetch comes back empty and marks the
    boundary.
    """

    name = "logs"

    def __init__(self, timeout: float = DEFAULT_FETCH_TIMEOUT):
        """
        Args:
            timeout: Seconds before a provider call is abandoned
        """
        self.timeout = timeout

    @abstractmethod
    def _read_page(self, target_id: str, direction: Direction,
                   from_token: str, page_size: int) -> List[LogEntry]:
        """Query the provider; raise LogSourceError on failure"""

    def fetch(self, target_id: str, direction: Direction,
              from_token: str, page_size: int) -> FetchResult:
        """
        Fetch one page of entries

        Args:
            target_id: Container id or service name
            direction: BACKWARD (older than token) or FORWARD (newer than token)
            from_token: Pagination token, empty for the most recent page
            page_size: Number of entries requested

        Returns:
            FetchResult with entries oldest first, or with `error` set
        """
        result = FetchResult(target_id=target_id, direction=direction, from_token=from_token)

        try:
            entries = self._read_page(target_id, direction, from_token, page_size)
        except LogSourceError as e:
            logger.error(f"{self.name} fetch failed for {target_id}: {e}")
            result.error = str(e)
            return result

        result.entries = entries
        if not entries:
            result.oldest_token = from_token
            result.newest_token = from_token
            result.has_more = False
            return result

        result.oldest_token = entries[0].page_token
        result.newest_token = entries[-1].page_token
        result.has_more = len(entries) >= page_size
        return result

    def execute(self, request: FetchRequest, page_size: int) -> FetchResult:
        """
        Run a FetchRequest (called from a worker thread)

        Unexpected exceptions are logged and reported through the result so
        nothing crosses the worker boundary.
        """
        try:
            result = self.fetch(request.target_id, request.direction, request.from_token, page_size)
        except Exception as e:
            logger.error(f"Unexpected error fetching {request.target_id}: {e}", exc_info=True)
            result = FetchResult(
                target_id=request.target_id,
                direction=request.direction,
                from_token=request.from_token,
                error=f"failed to fetch logs: {e}",
            )

        result.is_prefetch = request.is_prefetch
        return result


class ContainerLogSource(LogSourceAdapter):
    """
    Container engine logs with RFC3339Nano timestamp tokens

    The logs endpoint is called through the docker SDK's HTTP session so the
    raw multiplexed frames (and therefore the stdout/stderr labels) and the
    nanosecond `since`/`until` precision are preserved.
    """

    name = "container"

    def __init__(self, client: Optional[docker.DockerClient] = None,
                 timeout: float = DEFAULT_FETCH_TIMEOUT):
        super().__init__(timeout)
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                self._client = docker.from_env(timeout=int(self.timeout))
            except DockerException as e:
                raise LogSourceError(f"failed to connect to Docker: {e}") from e
        return self._client

    def build_params(self, direction: Direction, from_token: str, page_size: int) -> dict:
        """Query parameters for the logs endpoint"""
        params = {'stdout': 1, 'stderr': 1, 'timestamps': 1}

        if not from_token:
            params['tail'] = str(page_size)
        elif direction is Direction.BACKWARD:
            # One extra slot for the boundary entry stripped below
            params['until'] = to_engine_timestamp(from_token)
            params['tail'] = str(page_size + 1)
        else:
            params['since'] = to_engine_timestamp(from_token)

        return params

    def _read_page(self, target_id: str, direction: Direction,
                   from_token: str, page_size: int) -> List[LogEntry]:
        api = self.client.api
        url = f"{api.base_url}/v{api.api_version}/containers/{quote(target_id, safe='')}/logs"
        try:
            params = self.build_params(direction, from_token, page_size)
        except ValueError as e:
            raise LogSourceError(f"invalid pagination token: {e}") from e
        logger.debug(f"GET {url} {params}")

        try:
            response = api.get(url, params=params, timeout=self.timeout)
            if response.status_code == 404:
                raise LogSourceError(f"container {target_id} not found")
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise LogSourceError(f"timed out after {self.timeout:g}s fetching logs") from e
        except requests.RequestException as e:
            raise LogSourceError(f"failed to fetch logs: {e}") from e

        entries = parse_container_logs(response.content)

        if from_token:
            entries = [entry for entry in entries if entry.page_token != from_token]
            if direction is Direction.FORWARD:
                # The engine cannot limit from the start; keep the oldest page
                entries = entries[:page_size]

        return entries


class JournalLogSource(LogSourceAdapter):
    """
    systemd journal logs with opaque cursor tokens

    journalctl always includes the cursor entry itself as the first record,
    so resumed queries ask for one extra record and drop it.
    """

    name = "journal"

    def __init__(self, timeout: float = DEFAULT_FETCH_TIMEOUT, command: str = "journalctl"):
        super().__init__(timeout)
        self.command = command

    @staticmethod
    def unit_name(service: str) -> str:
        """Append .service so only the exact unit matches"""
        return service if service.endswith('.service') else f"{service}.service"

    def build_args(self, service: str, direction: Direction, from_token: str, page_size: int) -> List[str]:
        """Command line for one page"""
        args = [self.command, '-u', self.unit_name(service), '-o', 'json', '--no-pager']

        if from_token:
            args += ['--cursor', from_token]
            if direction is Direction.BACKWARD:
                args.append('--reverse')
            args += ['-n', str(page_size + 1)]
        else:
            args += ['-n', str(page_size)]

        return args

    def _read_page(self, target_id: str, direction: Direction,
                   from_token: str, page_size: int) -> List[LogEntry]:
        args = self.build_args(target_id, direction, from_token, page_size)
        logger.debug(f"Running {' '.join(args)}")

        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise LogSourceError(f"timed out after {self.timeout:g}s fetching logs") from e
        except OSError as e:
            raise LogSourceError(f"failed to run {self.command}: {e}") from e

        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout or "").strip()
            raise LogSourceError(f"{self.command} exited with code {completed.returncode}: {detail}")

        entries = parse_journal_json(completed.stdout)

        if from_token and entries and entries[0].page_token == from_token:
            entries = entries[1:]

        if direction is Direction.BACKWARD and from_token:
            # --reverse prints newest first
            entries.reverse()

        return entries
