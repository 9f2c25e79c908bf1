"""
Log Parser Module - Log entry model and provider output parsing

Handles:
- The LogEntry record shared by every log source
- Fetch request/result records exchanged with the scrollback buffer
- Container engine output (multiplexed stdout/stderr frames, RFC3339 lines)
- systemd journal output (one JSON object per line)
- Timestamp normalisation for ordering and engine queries
"""
import calendar
import json
import re
import struct
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Direction(Enum):
    """Pagination direction relative to the buffered window"""
    BACKWARD = "backward"
    FORWARD = "forward"


class LogSourceError(Exception):
    """Raised when a log provider cannot be queried or answers with an error"""


@dataclass(frozen=True)
class LogEntry:
    """One unit of log output with the token needed to resume paging from it"""
    timestamp: str
    message: str
    page_token: str
    source_stream: str = ""
    origin_label: str = ""

    def __str__(self) -> str:
        return self.format()

    @property
    def line_count(self) -> int:
        """Number of rendered lines (messages may span several lines)"""
        return self.message.count("\n") + 1

    def format(self, show_metadata: bool = True) -> str:
        """
        Format the entry for display

        Args:
            show_metadata: Include timestamp, stream and origin columns

        Returns:
            Display text for the entry
        """
        if not show_metadata:
            return self.message
        if self.source_stream:
            return f"{self.timestamp} {self.source_stream:>6} │ {self.message}"
        if self.origin_label:
            return f"{self.timestamp} {self.origin_label}: {self.message}"
        return f"{self.timestamp} {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for export"""
        return {
            'timestamp': self.timestamp,
            'source_stream': self.source_stream,
            'origin_label': self.origin_label,
            'message': self.message,
            'page_token': self.page_token,
        }


@dataclass
class FetchRequest:
    """A request for one page of entries in one direction"""
    target_id: str
    direction: Direction
    from_token: str = ""
    is_prefetch: bool = False

    @property
    def is_initial(self) -> bool:
        """An empty token asks for the most recent page"""
        return not self.from_token


@dataclass
class FetchResult:
    """Asynchronous answer to a FetchRequest, merged exactly once"""
    target_id: str
    direction: Direction
    from_token: str = ""
    entries: List[LogEntry] = field(default_factory=list)
    oldest_token: str = ""
    newest_token: str = ""
    has_more: bool = False
    is_prefetch: bool = False
    error: Optional[str] = None

    @property
    def is_initial(self) -> bool:
        return not self.from_token

    @property
    def failed(self) -> bool:
        return self.error is not None


# Docker's RFC3339Nano output: "2025-11-12T14:23:45.123456789Z"
RFC3339_PATTERN = re.compile(
    r'^(?P<date>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})'
    r'(?:\.(?P<fraction>\d{1,9}))?'
    r'(?P<offset>Z|[+-]\d{2}:\d{2})$'
)

# Engine frame header: stream id, 3 padding bytes, big-endian payload size
FRAME_HEADER = struct.Struct('>BxxxL')
STREAM_STDOUT = 1
STREAM_STDERR = 2


def is_rfc3339(value: str) -> bool:
    """Check whether a string is an RFC3339 timestamp with optional nanoseconds"""
    return RFC3339_PATTERN.match(value) is not None


def _split_rfc3339(value: str) -> Tuple[int, int]:
    """Split an RFC3339 timestamp into (unix seconds, nanoseconds)"""
    match = RFC3339_PATTERN.match(value)
    if not match:
        raise ValueError(f"not an RFC3339 timestamp: {value!r}")

    base = datetime.strptime(match.group('date'), '%Y-%m-%dT%H:%M:%S')
    seconds = calendar.timegm(base.timetuple())

    offset = match.group('offset')
    if offset != 'Z':
        sign = 1 if offset[0] == '+' else -1
        hours, minutes = offset[1:].split(':')
        seconds -= sign * (int(hours) * 3600 + int(minutes) * 60)

    nanos = int((match.group('fraction') or '0').ljust(9, '0'))
    return seconds, nanos


def timestamp_sort_key(value: str) -> Tuple[int, int]:
    """
    Numeric ordering key for RFC3339 timestamps

    Docker trims trailing zeros from the fraction, so plain string
    comparison misorders "…:45.1Z" and "…:45.12Z".
    """
    try:
        return _split_rfc3339(value)
    except ValueError:
        return (0, 0)


def to_engine_timestamp(value: str) -> str:
    """Convert an RFC3339Nano token to the engine's "seconds.nanoseconds" form"""
    seconds, nanos = _split_rfc3339(value)
    return f"{seconds}.{nanos:09d}"


def now_rfc3339() -> str:
    """Current time in the same shape the engine uses for log timestamps"""
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ')


def demux_stream(data: bytes) -> Tuple[bytes, bytes]:
    """
    Split the engine's multiplexed log stream into stdout and stderr

    Containers started with a TTY send a raw stream without frame headers;
    that output is returned entirely as stdout.

    Args:
        data: Raw response body of the logs endpoint

    Returns:
        Tuple of (stdout bytes, stderr bytes)
    """
    if len(data) < FRAME_HEADER.size or data[0] not in (0, STREAM_STDOUT, STREAM_STDERR) \
            or data[1:4] != b'\x00\x00\x00':
        return data, b''

    stdout = bytearray()
    stderr = bytearray()
    position = 0
    while position + FRAME_HEADER.size <= len(data):
        stream_id, size = FRAME_HEADER.unpack_from(data, position)
        position += FRAME_HEADER.size
        payload = data[position:position + size]
        position += size

        if stream_id == STREAM_STDERR:
            stderr.extend(payload)
        elif stream_id == STREAM_STDOUT:
            stdout.extend(payload)
        elif stream_id != 0:
            raise LogSourceError(f"unexpected stream id {stream_id} in log output")

    return bytes(stdout), bytes(stderr)


def parse_container_lines(text: str, stream: str) -> List[LogEntry]:
    """
    Parse "<RFC3339Nano> <message>" lines from one container stream

    Lines without a leading timestamp get the fetch time instead.

    Args:
        text: Decoded stream content
        stream: Stream label ("stdout" or "stderr")

    Returns:
        List of LogEntry objects in stream order
    """
    entries = []
    for line in text.splitlines():
        if not line:
            continue

        parts = line.split(' ', 1)
        if len(parts) == 2 and is_rfc3339(parts[0]):
            timestamp, message = parts
        else:
            timestamp, message = now_rfc3339(), line

        entries.append(LogEntry(
            timestamp=timestamp,
            message=message,
            page_token=timestamp,
            source_stream=stream,
        ))

    return entries


def parse_container_logs(data: bytes) -> List[LogEntry]:
    """
    Parse a raw container logs response into chronologically ordered entries

    Args:
        data: Raw (possibly multiplexed) response body

    Returns:
        Entries from both streams, oldest first
    """
    stdout, stderr = demux_stream(data)
    entries = parse_container_lines(stdout.decode('utf-8', errors='replace'), 'stdout')
    entries.extend(parse_container_lines(stderr.decode('utf-8', errors='replace'), 'stderr'))

    # Streams are parsed separately; sort is stable so same-instant lines keep stream order
    entries.sort(key=lambda entry: timestamp_sort_key(entry.timestamp))
    return entries


def _journal_message(value: Any) -> Optional[str]:
    """journald encodes non-UTF-8 messages as an array of byte values"""
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(b, int) for b in value):
        try:
            return bytes(value).decode('utf-8', errors='replace')
        except ValueError:
            return None
    return None


def parse_journal_record(record: Dict[str, Any]) -> Optional[LogEntry]:
    """
    Convert one `journalctl -o json` record to a LogEntry

    Returns:
        LogEntry, or None when the record has no cursor
    """
    cursor = record.get('__CURSOR')
    if not isinstance(cursor, str) or not cursor:
        return None

    timestamp = ""
    realtime = record.get('__REALTIME_TIMESTAMP')
    if isinstance(realtime, str) and realtime.isdigit():
        moment = datetime.fromtimestamp(int(realtime) / 1_000_000, tz=timezone.utc).astimezone()
        timestamp = moment.strftime('%Y-%m-%dT%H:%M:%S%z')

    hostname = record.get('_HOSTNAME') if isinstance(record.get('_HOSTNAME'), str) else ""
    unit = record.get('_SYSTEMD_UNIT')
    if not isinstance(unit, str):
        unit = record.get('SYSLOG_IDENTIFIER') if isinstance(record.get('SYSLOG_IDENTIFIER'), str) else ""

    return LogEntry(
        timestamp=timestamp,
        message=_journal_message(record.get('MESSAGE')) or "",
        page_token=cursor,
        origin_label=" ".join(part for part in (hostname, unit) if part),
    )


def parse_journal_json(output: str) -> List[LogEntry]:
    """
    Parse line-delimited JSON from `journalctl -o json`

    Malformed lines and records without a cursor are skipped.

    Args:
        output: Command output

    Returns:
        Entries in the order journalctl printed them
    """
    entries = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue

        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            continue

        if not isinstance(record, dict):
            continue

        entry = parse_journal_record(record)
        if entry is not None:
            entries.append(entry)

    return entries
