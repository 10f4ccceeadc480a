# hoststate/collectors/capability_detector.py
"""
Tool Availability Detection
Decides which introspection tools exist on the target and whether the
target itself is running inside a container.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Iterable, Optional
import logging
import threading

from ..connectors.base_connector import CommandFailure

# Candidate tools per fact family, in preference order
FAMILY_CANDIDATE_TOOLS = {
    'interfaces': ('ip', 'ifconfig'),
    'sockets': ('ss', 'netstat'),
    'firewall': ('ufw', 'iptables', 'firewall-cmd'),
    'compute_units': ('virsh', 'vboxmanage', 'docker', 'podman', 'ps'),
    'storage': ('df', 'lsblk'),
    'host_load': ('top', 'free', 'uptime'),
}

CGROUP_CONTAINER_MARKERS = ('docker', 'containerd', 'kubepods', 'lxc', 'libpod')
CONTAINER_MARKER_FILES = ('/.dockerenv', '/run/.containerenv')


class ToolStatus(str, Enum):
    AVAILABLE = 'available'
    MISSING = 'missing'
    # `which` itself missing or timed out
    UNKNOWN = 'unknown'


@dataclass
class HostCapabilities:
    """Data class holding detected tool availability"""

    in_container: bool = False
    container_marker: str = "none"
    tools: Dict[str, str] = field(default_factory=dict)

    def to_dict(self):
        """Convert to dictionary"""
        return asdict(self)


class ToolProber:
    """
    Probes tool availability on the target through its connector.

    Answers are cached for the life of the prober, which is one
    collection request. All probes are read-only.
    """

    def __init__(self, connector):
        """
        Initialize tool prober

        Args:
            connector: LocalConnector or connected SSHConnector
        """
        self.connector = connector
        self.logger = logging.getLogger('tool_prober')
        self._cache: Dict[str, ToolStatus] = {}
        self._in_container: Optional[bool] = None
        self._container_marker = "none"
        self._lock = threading.Lock()

    def status(self, tool: str) -> ToolStatus:
        """Tri-state availability of a single tool"""
        with self._lock:
            cached = self._cache.get(tool)
        if cached is not None:
            return cached

        result = self.connector.execute_command(('which', tool), log_command=False)

        if result.success and result.has_output:
            status = ToolStatus.AVAILABLE
        elif result.failure in (CommandFailure.TOOL_MISSING, CommandFailure.TIMEOUT):
            status = ToolStatus.UNKNOWN
        elif result.exit_code == 1:
            status = ToolStatus.MISSING
        else:
            status = ToolStatus.UNKNOWN

        self.logger.debug(f"Tool {tool}: {status.value}")
        with self._lock:
            self._cache[tool] = status
        return status

    def is_available(self, tool: str) -> bool:
        """True unless the tool is known to be missing"""
        return self.status(tool) != ToolStatus.MISSING

    def in_container(self) -> bool:
        """Whether the target is itself a container (cached)"""
        with self._lock:
            if self._in_container is not None:
                return self._in_container

        marker = self._detect_container()
        with self._lock:
            self._in_container = marker is not None
            self._container_marker = marker or "none"
        return marker is not None

    def _detect_container(self) -> Optional[str]:
        """Returns the first container marker found, or None"""
        result = self.connector.execute_command(('cat', '/proc/1/cgroup'), log_command=False)
        if result.success:
            lowered = result.output.lower()
            for marker in CGROUP_CONTAINER_MARKERS:
                if marker in lowered:
                    self.logger.info(f"Detected container via /proc/1/cgroup ({marker})")
                    return f"cgroup:{marker}"

        result = self.connector.execute_command(('printenv', 'DOCKER_CONTAINER'), log_command=False)
        if result.success and result.has_output:
            self.logger.info("Detected container via DOCKER_CONTAINER environment")
            return "env:DOCKER_CONTAINER"

        result = self.connector.execute_command(('cat', '/proc/1/environ'), log_command=False)
        if result.success and 'container=' in result.output:
            self.logger.info("Detected container via /proc/1/environ")
            return "environ:container"

        for path in CONTAINER_MARKER_FILES:
            result = self.connector.execute_command(('test', '-e', path), log_command=False)
            if result.exit_code == 0 and result.failure in (None, CommandFailure.EMPTY_OUTPUT):
                self.logger.info(f"Detected container via {path}")
                return f"file:{path}"

        result = self.connector.execute_command(('systemd-detect-virt', '--container'), log_command=False)
        virt_type = result.output.strip()
        if result.success and virt_type and virt_type != 'none':
            self.logger.info(f"Detected container type: {virt_type}")
            return f"systemd:{virt_type}"

        return None

    def detect_all(self, families: Optional[Iterable[str]] = None) -> HostCapabilities:
        """
        Probe every candidate tool of the given families

        Returns:
            HostCapabilities: Detected tools and container status
        """
        self.logger.info("Starting tool availability detection")
        caps = HostCapabilities()
        caps.in_container = self.in_container()
        caps.container_marker = self._container_marker

        selected = families or FAMILY_CANDIDATE_TOOLS.keys()
        for family in selected:
            for tool in FAMILY_CANDIDATE_TOOLS.get(family, ()):
                caps.tools[tool] = self.status(tool).value

        self._log_detection_summary(caps)
        return caps

    def _log_detection_summary(self, caps: HostCapabilities):
        """Log summary of detected tools"""
        self.logger.info("=" * 60)
        self.logger.info("Tool Detection Summary:")
        self.logger.info(f"  Container: {caps.in_container} ({caps.container_marker})")

        available = [tool for tool, status in caps.tools.items() if status == ToolStatus.AVAILABLE.value]
        missing = [tool for tool, status in caps.tools.items() if status == ToolStatus.MISSING.value]
        if available:
            self.logger.info(f"  Available: {', '.join(available)}")
        if missing:
            self.logger.info(f"  Missing: {', '.join(missing)}")

        self.logger.info("=" * 60)
