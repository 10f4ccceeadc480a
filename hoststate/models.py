# hoststate/models.py
"""
Read-model snapshots produced by the introspection engine.

Every entity is built fresh per call and never stored. Partial builders
carry optional fields (None means "not seen by this source") and are
merged by the normalizer before the immutable records are created.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Any, Optional, Union

UNKNOWN = 'unknown'
UNKNOWN_LINK = 'Unknown'

Number = Union[int, float, str]

INTERFACE_KINDS = ('ethernet', 'wifi', 'bridge', 'bond', 'vlan')
INTERFACE_STATUSES = ('up', 'down', 'disconnected')

CONNECTION_PROTOCOLS = ('tcp', 'udp', 'icmp')
CONNECTION_STATES = (
    'established', 'listen', 'unconnected', 'time_wait', 'close_wait',
    'syn_sent', 'syn_recv', 'fin_wait', 'last_ack', 'closing', 'closed'
)

PORT_PROTOCOLS = ('tcp', 'udp')
PORT_STATES = ('open', 'closed', 'filtered', 'listening')

CONFIDENCE_PROBED = 'probed'
CONFIDENCE_ASSUMED = 'assumed'

FIREWALL_CHAINS = ('input', 'output', 'forward')
FIREWALL_ACTIONS = ('accept', 'drop', 'reject')
FIREWALL_PROTOCOLS = ('tcp', 'udp', 'icmp', 'any')

VOLUME_KINDS = ('local', 'network', 'external')
VOLUME_STATUSES = ('mounted', 'unmounted', 'error')

COMPUTE_KINDS = ('vm', 'container', 'process', 'placeholder')
COMPUTE_STATUSES = ('running', 'stopped', 'paused')

HOST_STATUSES = ('online', 'warning')


class _Snapshot:
    """Serialization shared by all snapshot records"""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------

@dataclass
class InterfacePartial:
    """One source's view of an interface. Joined with others by name."""
    name: str
    source: str
    kind: Optional[str] = None
    status: Optional[str] = None
    mac: Optional[str] = None
    ip: Optional[str] = None
    netmask: Optional[str] = None
    gateway: Optional[str] = None
    dns: Optional[List[str]] = None
    mtu: Optional[int] = None
    speed: Optional[str] = None
    duplex: Optional[str] = None
    rx_bytes: Optional[int] = None
    tx_bytes: Optional[int] = None
    rx_packets: Optional[int] = None
    tx_packets: Optional[int] = None
    rx_errors: Optional[int] = None
    tx_errors: Optional[int] = None
    rx_dropped: Optional[int] = None
    tx_dropped: Optional[int] = None
    rx_rate: Optional[float] = None
    tx_rate: Optional[float] = None


@dataclass(frozen=True)
class NetworkInterface(_Snapshot):
    name: str
    kind: str = 'ethernet'
    status: str = 'down'
    mac: str = UNKNOWN
    ip: str = UNKNOWN
    netmask: str = UNKNOWN
    gateway: str = UNKNOWN
    dns: List[str] = field(default_factory=list)
    mtu: Number = UNKNOWN
    speed: str = UNKNOWN_LINK
    duplex: str = UNKNOWN_LINK
    rx_bytes: Number = UNKNOWN
    tx_bytes: Number = UNKNOWN
    rx_packets: Number = UNKNOWN
    tx_packets: Number = UNKNOWN
    rx_errors: Number = UNKNOWN
    tx_errors: Number = UNKNOWN
    rx_dropped: Number = UNKNOWN
    tx_dropped: Number = UNKNOWN
    rx_rate: Number = UNKNOWN
    tx_rate: Number = UNKNOWN
    confidence: str = CONFIDENCE_PROBED


@dataclass
class SocketEntry:
    """A single row of a socket table dump (ss or netstat)"""
    protocol: str
    state: str
    local_address: str
    local_port: int
    foreign_address: str = '*'
    foreign_port: int = 0
    process: Optional[str] = None
    pid: Optional[int] = None


@dataclass(frozen=True)
class Connection(_Snapshot):
    id: str
    protocol: str
    local_address: str
    local_port: Number
    foreign_address: str
    foreign_port: Number
    state: str
    process: str = 'Unknown'
    pid: Optional[int] = None
    user: str = UNKNOWN
    confidence: str = CONFIDENCE_PROBED


@dataclass(frozen=True)
class ListeningPort(_Snapshot):
    port: int
    protocol: str
    state: str
    service: str = UNKNOWN
    local_address: str = '0.0.0.0'
    process: Optional[str] = None
    pid: Optional[int] = None
    confidence: str = CONFIDENCE_PROBED


@dataclass
class FirewallRulePartial:
    """Backend-specific rule fields before normalization"""
    chain: Optional[str] = None
    action: Optional[str] = None
    protocol: Optional[str] = None
    source: Optional[str] = None
    destination: Optional[str] = None
    source_port: Optional[str] = None
    destination_port: Optional[str] = None
    description: str = ''
    hits: Optional[int] = None
    rule_number: Optional[int] = None


@dataclass(frozen=True)
class FirewallRule(_Snapshot):
    id: str
    chain: str = 'input'
    action: str = 'accept'
    protocol: str = 'any'
    source: str = 'any'
    destination: str = 'any'
    source_port: str = 'any'
    destination_port: str = 'any'
    enabled: bool = True
    description: str = ''
    hits: Number = 0
    last_hit: str = 'N/A'
    backend: str = UNKNOWN


@dataclass(frozen=True)
class Alert(_Snapshot):
    id: str
    type: str
    severity: str
    message: str
    interface: str
    timestamp: str
    resolved: bool = False


@dataclass(frozen=True)
class NetworkSnapshot(_Snapshot):
    interfaces: List[NetworkInterface]
    connections: List[Connection]
    ports: List[ListeningPort]
    firewall: List[FirewallRule]
    bandwidth: Dict[str, Any]
    latency: Dict[str, Number]
    packet_loss: Number
    alerts: List[Alert]
    last_updated: str


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

@dataclass
class VolumePartial:
    device: str
    mount_point: str
    filesystem: Optional[str] = None
    total_bytes: Optional[int] = None
    used_bytes: Optional[int] = None
    available_bytes: Optional[int] = None
    percentage: Optional[float] = None


@dataclass(frozen=True)
class StorageVolume(_Snapshot):
    device: str
    mount_point: str
    filesystem: str = UNKNOWN
    total_gb: Number = UNKNOWN
    used_gb: Number = UNKNOWN
    available_gb: Number = UNKNOWN
    percentage: Number = UNKNOWN
    kind: str = 'local'
    status: str = 'mounted'
    iops: Dict[str, Number] = field(default_factory=lambda: {'reads': UNKNOWN, 'writes': UNKNOWN})
    throughput: Dict[str, Number] = field(default_factory=lambda: {'read_kb': UNKNOWN, 'write_kb': UNKNOWN})


@dataclass(frozen=True)
class StorageSnapshot(_Snapshot):
    filesystems: List[StorageVolume]
    inodes: Dict[str, Number]
    iops: Dict[str, Number]
    last_updated: str


# ---------------------------------------------------------------------------
# Compute units and host load
# ---------------------------------------------------------------------------

@dataclass
class ComputeUnitPartial:
    name: str
    backend: str
    kind: str
    status: Optional[str] = None
    unit_id: Optional[str] = None
    cpu: Optional[float] = None
    memory: Optional[float] = None
    vcpus: Optional[int] = None
    memory_mb: Optional[int] = None
    ip: Optional[str] = None
    os: Optional[str] = None
    uptime: Optional[str] = None


@dataclass(frozen=True)
class ComputeUnit(_Snapshot):
    id: str
    name: str
    kind: str
    backend: str
    status: str = 'stopped'
    cpu: Number = UNKNOWN
    memory: Number = UNKNOWN
    vcpus: Number = UNKNOWN
    memory_mb: Number = UNKNOWN
    ip: str = 'N/A'
    os: str = UNKNOWN
    uptime: str = UNKNOWN


@dataclass(frozen=True)
class HostLoad(_Snapshot):
    name: str
    status: str = 'online'
    cpu: Number = UNKNOWN
    memory: Number = UNKNOWN
    disk: Number = UNKNOWN
    network_mb: Number = UNKNOWN
    load_average: Dict[str, Number] = field(
        default_factory=lambda: {'1m': UNKNOWN, '5m': UNKNOWN, '15m': UNKNOWN})
    uptime: str = UNKNOWN
    last_updated: str = ''


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

@dataclass
class ToolAvailability:
    """Which backend a fact family ended up using, and what was tried first"""
    family: str
    backend: Optional[str] = None
    attempts: List[Dict[str, str]] = field(default_factory=list)
    placeholder: bool = False

    def record(self, tool: str, command: str, outcome: str):
        self.attempts.append({'tool': tool, 'command': command, 'outcome': outcome})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
