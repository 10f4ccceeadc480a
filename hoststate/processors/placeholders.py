# hoststate/processors/placeholders.py
"""
Fallback records returned when a family could not be collected at all.
Placeholders carry no fabricated measurements: every metric is UNKNOWN.
"""

from datetime import datetime
from typing import List

from ..models import (
    UNKNOWN, CONFIDENCE_ASSUMED, NetworkInterface, Connection, ListeningPort, FirewallRule,
    StorageVolume, StorageSnapshot, ComputeUnit, HostLoad, NetworkSnapshot
)

ASSUMED_PORTS = (
    (22, 'tcp', 'ssh'),
    (80, 'tcp', 'http'),
    (443, 'tcp', 'https'),
    (3000, 'tcp', 'nodejs'),
    (53, 'udp', 'dns'),
)

CONTAINER_PLACEHOLDER = ('Container Environment - No VMs Available', 'Container Environment')
IDLE_TOOLS_PLACEHOLDER = ('Virtualization Tools Available - No VMs Running', 'Virtualization Ready')
NO_TOOLS_PLACEHOLDER = ('No Virtualization Tools Installed', 'Install KVM, VirtualBox, or Docker')

DEFAULT_HOST_NAME = 'Main Server'
UNAVAILABLE = 'unavailable'


def interface_placeholder() -> List[NetworkInterface]:
    """A single down interface named 'unavailable' with every metric UNKNOWN"""
    return [NetworkInterface(name=UNAVAILABLE, status='down', confidence=CONFIDENCE_ASSUMED)]


def connection_placeholder() -> List[Connection]:
    return [Connection(
        id='conn-unavailable',
        protocol='tcp',
        local_address=UNKNOWN,
        local_port=UNKNOWN,
        foreign_address=UNKNOWN,
        foreign_port=UNKNOWN,
        state='closed',
        confidence=CONFIDENCE_ASSUMED
    )]


def assumed_ports(connection_ports=None) -> List[ListeningPort]:
    """
    Well-known ports reported when no socket tool answered.

    Args:
        connection_ports: Local ports seen in observed connections; a port
            in use there is reported open rather than listening
    """
    connection_ports = set(connection_ports or ())
    return [
        ListeningPort(
            port=port,
            protocol=protocol,
            state='open' if port in connection_ports else 'listening',
            service=service,
            confidence=CONFIDENCE_ASSUMED
        )
        for port, protocol, service in ASSUMED_PORTS
    ]


def default_firewall_rules() -> List[FirewallRule]:
    return [FirewallRule(
        id='default-1',
        chain='input',
        action='accept',
        protocol='any',
        description='Default accept rule',
        backend='none'
    )]


def storage_placeholder() -> StorageSnapshot:
    volume = StorageVolume(device=UNAVAILABLE, mount_point='/', status='error')
    return StorageSnapshot(
        filesystems=[volume],
        inodes={'total': UNKNOWN, 'used': UNKNOWN, 'available': UNKNOWN, 'percentage': UNKNOWN},
        iops={'reads': UNKNOWN, 'writes': UNKNOWN, 'read_kb': UNKNOWN, 'write_kb': UNKNOWN},
        last_updated=datetime.now().isoformat()
    )


def compute_placeholder(in_container: bool, tools_present: bool) -> ComputeUnit:
    if in_container:
        name, os_text = CONTAINER_PLACEHOLDER
    elif tools_present:
        name, os_text = IDLE_TOOLS_PLACEHOLDER
    else:
        name, os_text = NO_TOOLS_PLACEHOLDER
    return ComputeUnit(
        id='placeholder-1',
        name=name,
        kind='placeholder',
        backend='none',
        status='stopped',
        os=os_text,
        uptime='N/A'
    )


def host_load_placeholder() -> HostLoad:
    return HostLoad(name=DEFAULT_HOST_NAME, last_updated=datetime.now().isoformat())


def network_placeholder() -> NetworkSnapshot:
    return NetworkSnapshot(
        interfaces=interface_placeholder(),
        connections=connection_placeholder(),
        ports=assumed_ports(),
        firewall=default_firewall_rules(),
        bandwidth={'interface': UNKNOWN, 'rx_rate': UNKNOWN, 'tx_rate': UNKNOWN,
                   'total_rx': UNKNOWN, 'total_tx': UNKNOWN},
        latency={'average': UNKNOWN, 'min': UNKNOWN, 'max': UNKNOWN},
        packet_loss=UNKNOWN,
        alerts=[],
        last_updated=datetime.now().isoformat()
    )
