# hoststate/processors/normalizer.py
"""
Turns partial records from one or more sources into immutable snapshots.

Interfaces are joined by name with a fixed source precedence; every other
family is a straight conversion with enum values constrained to their
documented sets and missing values filled with the unknown sentinel.
"""

import re
from dataclasses import fields
from typing import Dict, Iterable, List, Optional, Set
import logging

from ..models import (
    UNKNOWN, CONFIDENCE_PROBED,
    INTERFACE_KINDS, INTERFACE_STATUSES, CONNECTION_PROTOCOLS, CONNECTION_STATES,
    PORT_PROTOCOLS, PORT_STATES, FIREWALL_CHAINS, FIREWALL_ACTIONS, FIREWALL_PROTOCOLS,
    VOLUME_KINDS, VOLUME_STATUSES, COMPUTE_KINDS, COMPUTE_STATUSES, HOST_STATUSES,
    InterfacePartial, NetworkInterface, SocketEntry, Connection, ListeningPort,
    FirewallRulePartial, FirewallRule, VolumePartial, StorageVolume,
    ComputeUnitPartial, ComputeUnit
)
from ..parsers.interfaces import interface_kind

logger = logging.getLogger('collector.normalizer')

# Lowest to highest; later sources overwrite earlier non-None fields
INTERFACE_SOURCE_PRECEDENCE = ('ifconfig', 'ip', 'route', 'sysfs', 'ethtool', 'proc_net_dev', 'rate')

LISTENING_SOCKET_STATES = ('listen', 'unconnected')

NETWORK_FILESYSTEMS = (
    'nfs', 'nfs4', 'cifs', 'smbfs', 'smb3', 'sshfs', 'fuse.sshfs',
    'glusterfs', 'fuse.glusterfs', 'ceph', '9p', 'davfs'
)
REMOTE_DEVICE = re.compile(r'^(//[^/]+/|[\w.-]+:/)')
LEGACY_EXTERNAL_DEVICE = re.compile(r'^/dev/sd[b-z]')

GIB = 1024 ** 3
# Volumes at or above this usage are in error, hosts above it in warning
USAGE_ALERT_PERCENT = 90

_MERGE_FIELDS = [f.name for f in fields(InterfacePartial) if f.name not in ('name', 'source')]


def _constrain(value: Optional[str], allowed, default: str) -> str:
    if value in allowed:
        return value
    if value is not None:
        logger.debug(f"Value {value!r} not in {allowed}, using {default!r}")
    return default


def _rank(source: str) -> int:
    try:
        return INTERFACE_SOURCE_PRECEDENCE.index(source)
    except ValueError:
        return -1


def merge_interfaces(partials: Iterable[InterfacePartial]) -> List[NetworkInterface]:
    """
    Join interface partials by name.

    Sources are applied in precedence order regardless of the order they
    were collected in, so the result is deterministic. Merging the same
    partials again gives the same snapshot.
    """
    ordered = sorted(partials, key=lambda p: _rank(p.source))

    names: List[str] = []
    merged: Dict[str, Dict] = {}
    for partial in ordered:
        if partial.name not in merged:
            names.append(partial.name)
            merged[partial.name] = {}
        values = merged[partial.name]
        for name in _MERGE_FIELDS:
            value = getattr(partial, name)
            if value is not None:
                values[name] = list(value) if isinstance(value, list) else value

    interfaces = []
    for name in names:
        values = merged[name]
        values['kind'] = _constrain(values.get('kind') or interface_kind(name), INTERFACE_KINDS, 'ethernet')
        values['status'] = _constrain(values.get('status'), INTERFACE_STATUSES, 'down')
        interfaces.append(NetworkInterface(name=name, **values))
    return interfaces


def build_connections(entries: Iterable[SocketEntry], limit: int = 20) -> List[Connection]:
    connections = []
    for entry in entries:
        if len(connections) >= limit:
            break
        protocol = _constrain(entry.protocol, CONNECTION_PROTOCOLS, 'tcp')
        default_state = 'unconnected' if protocol == 'udp' else 'established'
        connections.append(Connection(
            id=f"conn-{len(connections) + 1}",
            protocol=protocol,
            local_address=entry.local_address,
            local_port=entry.local_port,
            foreign_address=entry.foreign_address,
            foreign_port=entry.foreign_port,
            state=_constrain(entry.state, CONNECTION_STATES, default_state),
            process=entry.process or 'Unknown',
            pid=entry.pid
        ))
    return connections


def build_ports(entries: Iterable[SocketEntry], resolve_service) -> List[ListeningPort]:
    """
    Convert socket rows into unique listening ports.

    Args:
        entries: Parsed ss/netstat rows
        resolve_service: callable(port, protocol) -> service name
    """
    ports = []
    seen = set()
    for entry in entries:
        if entry.protocol not in PORT_PROTOCOLS:
            continue
        if not 1 <= entry.local_port <= 65535:
            continue
        key = (entry.local_port, entry.protocol, entry.local_address)
        if key in seen:
            continue
        seen.add(key)

        ports.append(ListeningPort(
            port=entry.local_port,
            protocol=entry.protocol,
            state=_constrain('listening' if entry.state in LISTENING_SOCKET_STATES else 'open',
                             PORT_STATES, 'open'),
            service=resolve_service(entry.local_port, entry.protocol),
            local_address=entry.local_address,
            process=entry.process,
            pid=entry.pid,
            confidence=CONFIDENCE_PROBED
        ))
    return ports


def build_firewall_rules(partials: Iterable[FirewallRulePartial], backend: str) -> List[FirewallRule]:
    rules = []
    for index, partial in enumerate(partials, start=1):
        chain = _constrain(partial.chain, FIREWALL_CHAINS, 'input')
        if partial.rule_number is not None and backend == 'iptables':
            rule_id = f"{chain}-{partial.rule_number}"
        elif partial.rule_number is not None:
            rule_id = f"{backend}-{partial.rule_number}"
        else:
            rule_id = f"{backend}-{index}"

        rules.append(FirewallRule(
            id=rule_id,
            chain=chain,
            action=_constrain(partial.action, FIREWALL_ACTIONS, 'accept'),
            protocol=_constrain(partial.protocol, FIREWALL_PROTOCOLS, 'any'),
            source=partial.source or 'any',
            destination=partial.destination or 'any',
            source_port=partial.source_port or 'any',
            destination_port=partial.destination_port or 'any',
            enabled=True,
            description=partial.description,
            hits=partial.hits if partial.hits is not None else 0,
            backend=backend
        ))
    return rules


def is_network_volume(volume: VolumePartial) -> bool:
    if volume.filesystem and volume.filesystem.lower() in NETWORK_FILESYSTEMS:
        return True
    return bool(REMOTE_DEVICE.match(volume.device))


def is_reportable_volume(volume: VolumePartial) -> bool:
    """Block devices other than loop devices, plus network mounts"""
    if is_network_volume(volume):
        return True
    return volume.device.startswith('/dev/') and not volume.device.startswith('/dev/loop')


def volume_kind(volume: VolumePartial, external_devices: Optional[Set[str]]) -> str:
    if is_network_volume(volume):
        return 'network'
    name = volume.device.rsplit('/', 1)[-1]
    if external_devices is not None:
        return 'external' if name in external_devices else 'local'
    # Without lsblk fall back to device naming
    if 'usb' in volume.device or LEGACY_EXTERNAL_DEVICE.match(volume.device):
        return 'external'
    return 'local'


def volume_status(percentage) -> str:
    if percentage is not None and percentage >= USAGE_ALERT_PERCENT:
        return 'error'
    return 'mounted'


def host_status(percentages: Iterable[float]) -> str:
    """'warning' when any cpu, memory or disk percentage is over the alert level"""
    status = 'warning' if any(value > USAGE_ALERT_PERCENT for value in percentages) else 'online'
    return _constrain(status, HOST_STATUSES, 'online')


def _known(value):
    return value if value is not None else UNKNOWN


def _gib(value: Optional[int]):
    return round(value / GIB, 2) if value is not None else UNKNOWN


def build_volumes(partials: Iterable[VolumePartial], limit: int = 10,
                  external_devices: Optional[Set[str]] = None,
                  disk_io: Optional[Dict[str, Dict]] = None) -> List[StorageVolume]:
    volumes = []
    disk_io = disk_io or {}

    for partial in partials:
        if len(volumes) >= limit:
            break
        if not is_reportable_volume(partial):
            continue

        percentage = partial.percentage
        if percentage is None and partial.total_bytes and partial.used_bytes is not None:
            percentage = round(100.0 * partial.used_bytes / partial.total_bytes, 1)

        io = disk_io.get(partial.device.rsplit('/', 1)[-1])
        volumes.append(StorageVolume(
            device=partial.device,
            mount_point=partial.mount_point,
            filesystem=partial.filesystem or UNKNOWN,
            total_gb=_gib(partial.total_bytes),
            used_gb=_gib(partial.used_bytes),
            available_gb=_gib(partial.available_bytes),
            percentage=percentage if percentage is not None else UNKNOWN,
            kind=_constrain(volume_kind(partial, external_devices), VOLUME_KINDS, 'local'),
            status=_constrain(volume_status(percentage), VOLUME_STATUSES, 'mounted'),
            iops={'reads': io['reads'], 'writes': io['writes']} if io else {'reads': UNKNOWN, 'writes': UNKNOWN},
            throughput=({'read_kb': io['read_kb'], 'write_kb': io['write_kb']} if io
                        else {'read_kb': UNKNOWN, 'write_kb': UNKNOWN})
        ))
    return volumes


def build_compute_units(partials: Iterable[ComputeUnitPartial]) -> List[ComputeUnit]:
    units = []
    for partial in partials:
        kind = _constrain(partial.kind, COMPUTE_KINDS, 'process')
        unit_key = partial.unit_id or partial.name
        if kind == 'process':
            unit_id = f"proc-{unit_key}"
        else:
            unit_id = f"{partial.backend}-{unit_key}"

        cpu = partial.cpu
        if cpu is not None and kind == 'process':
            cpu = min(100, round(cpu))

        units.append(ComputeUnit(
            id=unit_id,
            name=partial.name,
            kind=kind,
            backend=partial.backend or UNKNOWN,
            status=_constrain(partial.status, COMPUTE_STATUSES, 'stopped'),
            cpu=_known(cpu),
            memory=_known(partial.memory),
            vcpus=_known(partial.vcpus),
            memory_mb=_known(partial.memory_mb),
            ip=partial.ip or 'N/A',
            os=partial.os or UNKNOWN,
            uptime=partial.uptime or UNKNOWN
        ))
    return units
