"""
Targets Module - Discovery of log targets

Handles:
- Running containers (docker SDK)
- Managed systemd services (systemctl list-units)
- Status indicators for the target list
"""
import logging
import subprocess
from dataclasses import dataclass
from typing import List, Optional

import docker
import requests
from docker.errors import DockerException

from .log_parser import LogSourceError

logger = logging.getLogger(__name__)


@dataclass
class LogTarget:
    """A container or service whose logs can be viewed"""
    target_id: str
    name: str
    status: str = ""
    state: str = ""

    @property
    def label(self) -> str:
        return self.name


STATUS_SYMBOLS = {
    "running": "✓",
    "exited": "✗",
    "created": "○",
    "paused": "○",
    "restarting": "⚠",
    "removing": "⚠",
    "dead": "⚠",
}


def format_container_status(status: str, state: str) -> str:
    """Status indicator shown next to a container name, e.g. "[✓ Up 2 hours]" """
    symbol = STATUS_SYMBOLS.get(status, "?")
    return f"[{symbol} {state}]"


def simple_state(status_text: str) -> str:
    """Reduce the engine's status text ("Up 2 hours (healthy)") to a state word"""
    lowered = status_text.lower()
    for state in ("exited", "created", "paused", "restarting", "removing", "dead"):
        if state in lowered:
            return state
    return "running"


def list_containers(client: Optional[docker.DockerClient] = None) -> List[LogTarget]:
    """
    List running containers sorted by name

    Raises:
        LogSourceError: If the engine cannot be reached
    """
    try:
        client = client or docker.from_env()
        containers = client.containers.list(all=False)
    except (DockerException, requests.RequestException) as e:
        raise LogSourceError(f"failed to list containers: {e}") from e

    targets = []
    for container in containers:
        status_text = container.attrs.get("Status") or container.status or ""
        targets.append(LogTarget(
            target_id=container.id,
            name=container.name.lstrip("/"),
            status=simple_state(status_text),
            state=status_text,
        ))

    targets.sort(key=lambda target: target.name)
    return targets


def parse_unit_list(output: str) -> List[str]:
    """
    Extract service names from `systemctl list-units` output

    Header, legend and footer lines are skipped; failed units carry a
    leading "●".
    """
    services = []
    for line in output.splitlines():
        trimmed = line.strip()
        if (not trimmed or trimmed.startswith("UNIT") or trimmed.startswith("Legend:")
                or trimmed.startswith("LOAD") or trimmed.startswith("ACTIVE")
                or trimmed.startswith("SUB") or "loaded units listed" in trimmed
                or trimmed.startswith("To show all")):
            continue

        name = trimmed.split()[0].lstrip("●").strip()
        if not name and len(trimmed.split()) > 1:
            name = trimmed.split()[1]
        if name.endswith(".service"):
            services.append(name[:-len(".service")])

    return services


def list_services(filters: List[str], timeout: float = 10.0,
                  command: str = "systemctl") -> List[str]:
    """
    List systemd services whose names start with any of the filters

    Args:
        filters: Name prefixes (each queried as "<prefix>*")
        timeout: Seconds allowed per systemctl call

    Returns:
        Sorted, de-duplicated service names without the .service suffix

    Raises:
        LogSourceError: If systemctl fails or times out
    """
    found = set()
    for prefix in filters:
        pattern = f"{prefix}*"
        args = [command, "list-units", pattern, "--type=service", "--all", "--no-pager"]
        logger.debug(f"Running {' '.join(args)}")

        try:
            completed = subprocess.run(args, capture_output=True, text=True,
                                       timeout=timeout, check=False)
        except subprocess.TimeoutExpired as e:
            raise LogSourceError(f"timed out listing services for pattern {pattern}") from e
        except OSError as e:
            raise LogSourceError(f"failed to run {command}: {e}") from e

        if completed.returncode != 0:
            raise LogSourceError(
                f"failed to list systemd services for pattern {pattern}: "
                f"{(completed.stderr or '').strip()}")

        found.update(parse_unit_list(completed.stdout))

    return sorted(found)


def service_targets(filters: List[str], timeout: float = 10.0) -> List[LogTarget]:
    return [LogTarget(target_id=name, name=name) for name in list_services(filters, timeout)]
