# hoststate/parsers/interfaces.py
"""
Interface parsers: address listings (ip, ifconfig), kernel counters
(/proc/net/dev) and link settings (ethtool, sysfs).
"""

import re
from typing import List, Optional

from .base import BaseOutputParser, ParseMismatch, to_int, prefix_to_netmask
from ..models import InterfacePartial

IP_HEADER = re.compile(r'^(\d+):\s+([^:]+):\s+<([^>]*)>\s*(.*)$')
IP_MAC = re.compile(r'link/ether\s+([0-9a-f:]{17})', re.IGNORECASE)
IP_MTU = re.compile(r'\bmtu\s+(\d+)')
IP_INET = re.compile(r'\binet\s+([0-9.]+)/(\d+)')
IP_STATE = re.compile(r'\bstate\s+(\S+)')

IFCONFIG_NEW_HEADER = re.compile(r'^(\S+?):\s+flags=\d+<([^>]*)>(?:.*?\bmtu\s+(\d+))?')
IFCONFIG_OLD_HEADER = re.compile(r'^(\S+)\s+Link encap:(\S+)')
IFCONFIG_NEW_INET = re.compile(r'\binet\s+([0-9.]+)\s+netmask\s+([0-9.]+)')
IFCONFIG_OLD_INET = re.compile(r'inet addr:([0-9.]+).*?Mask:([0-9.]+)')
IFCONFIG_MAC = re.compile(r'(?:ether|HWaddr)\s+([0-9a-f:]{17})', re.IGNORECASE)
IFCONFIG_OLD_MTU = re.compile(r'\bMTU:(\d+)')

# Counter line variants across iproute2 and net-tools releases
RX_STATS = (
    re.compile(r'RX packets[: ]\s*(?P<packets>\d+)\s+bytes\s+(?P<bytes>\d+)'),
    re.compile(r'RX bytes:(?P<bytes>\d+)'),
    re.compile(r'RX packets:(?P<packets>\d+)\s+errors:(?P<errors>\d+)\s+dropped:(?P<dropped>\d+)'),
    re.compile(r'RX errors\s+(?P<errors>\d+)\s+dropped\s+(?P<dropped>\d+)'),
)
TX_STATS = (
    re.compile(r'TX packets[: ]\s*(?P<packets>\d+)\s+bytes\s+(?P<bytes>\d+)'),
    re.compile(r'TX bytes:(?P<bytes>\d+)'),
    re.compile(r'TX packets:(?P<packets>\d+)\s+errors:(?P<errors>\d+)\s+dropped:(?P<dropped>\d+)'),
    re.compile(r'TX errors\s+(?P<errors>\d+)\s+dropped\s+(?P<dropped>\d+)'),
)

ETHTOOL_SPEED = re.compile(r'Speed:\s*(\d+)\s*Mb/s')
ETHTOOL_DUPLEX = re.compile(r'Duplex:\s*(\w+)')
ETHTOOL_NAME = re.compile(r'Settings for\s+([^:]+):')


def interface_kind(name: str) -> str:
    """Guess the interface kind from its kernel name"""
    if name.startswith(('wlan', 'wlp', 'wlx', 'wl')):
        return 'wifi'
    if name.startswith(('br', 'virbr', 'docker')):
        return 'bridge'
    if name.startswith('bond'):
        return 'bond'
    if '.' in name or name.startswith('vlan'):
        return 'vlan'
    return 'ethernet'


def _apply_stats(partial: InterfacePartial, line: str, patterns, prefix: str):
    for pattern in patterns:
        match = pattern.search(line)
        if not match:
            continue
        for key, value in match.groupdict().items():
            if value is not None:
                setattr(partial, f'{prefix}_{key}', to_int(value))


class IpAddrParser(BaseOutputParser):
    """Parses `ip addr show` (optionally with -s) block output"""

    TOOLS = ('ip',)
    FACTS = ('interfaces',)

    def parse(self, output: str) -> List[InterfacePartial]:
        interfaces = []
        current: Optional[InterfacePartial] = None
        pending_stats = None

        for line in self.lines(output):
            trimmed = line.strip()

            header = IP_HEADER.match(trimmed)
            if header:
                _, raw_name, flags, extra = header.groups()
                name = raw_name.split('@')[0]
                flag_set = set(flags.split(','))
                state_match = IP_STATE.search(extra)
                state = state_match.group(1) if state_match else ''

                if 'UP' in flag_set and ('NO-CARRIER' in flag_set or state == 'DOWN'):
                    status = 'disconnected'
                elif 'UP' in flag_set:
                    status = 'up'
                else:
                    status = 'down'

                current = InterfacePartial(name=name, source='ip', kind=interface_kind(name), status=status)
                mtu = IP_MTU.search(extra)
                if mtu:
                    current.mtu = to_int(mtu.group(1), None)
                interfaces.append(current)
                pending_stats = None
                continue

            if current is None:
                continue

            # `ip -s` prints a header row followed by a row of numbers
            if pending_stats:
                values = trimmed.split()
                if values and all(v.isdigit() for v in values):
                    prefix = pending_stats
                    fields = ('bytes', 'packets', 'errors', 'dropped')
                    for key, value in zip(fields, values):
                        setattr(current, f'{prefix}_{key}', to_int(value))
                pending_stats = None
                continue
            if trimmed.startswith('RX:'):
                pending_stats = 'rx'
                continue
            if trimmed.startswith('TX:'):
                pending_stats = 'tx'
                continue

            mac = IP_MAC.search(trimmed)
            if mac:
                current.mac = mac.group(1).lower()

            inet = IP_INET.search(trimmed)
            if inet and current.ip is None:
                current.ip = inet.group(1)
                current.netmask = prefix_to_netmask(to_int(inet.group(2), 32))

        if output.strip() and not interfaces:
            raise ParseMismatch("no 'N: name: <FLAGS>' blocks in ip output")
        return interfaces


class IfconfigParser(BaseOutputParser):
    """Parses both net-tools 1.x and 2.x `ifconfig -a` layouts"""

    TOOLS = ('ifconfig',)
    FACTS = ('interfaces',)

    def parse(self, output: str) -> List[InterfacePartial]:
        interfaces = []
        current: Optional[InterfacePartial] = None

        for line in self.lines(output):
            if not line[0].isspace():
                current = self._start_block(line)
                if current:
                    interfaces.append(current)
                continue

            if current is None:
                continue

            trimmed = line.strip()

            inet = IFCONFIG_NEW_INET.search(trimmed) or IFCONFIG_OLD_INET.search(trimmed)
            if inet and current.ip is None:
                current.ip, current.netmask = inet.group(1), inet.group(2)

            mac = IFCONFIG_MAC.search(trimmed)
            if mac:
                current.mac = mac.group(1).lower()

            # Old layout puts flags and MTU on their own line
            if trimmed.startswith('UP ') or ' RUNNING ' in f' {trimmed} ':
                words = set(trimmed.split())
                current.status = 'up' if 'RUNNING' in words else 'disconnected'
            old_mtu = IFCONFIG_OLD_MTU.search(trimmed)
            if old_mtu:
                current.mtu = to_int(old_mtu.group(1), None)

            _apply_stats(current, trimmed, RX_STATS, 'rx')
            _apply_stats(current, trimmed, TX_STATS, 'tx')

        if output.strip() and not interfaces:
            raise ParseMismatch("no interface blocks in ifconfig output")
        return interfaces

    def _start_block(self, line: str) -> Optional[InterfacePartial]:
        new = IFCONFIG_NEW_HEADER.match(line)
        if new:
            name = new.group(1).split('@')[0]
            flags = set(new.group(2).split(','))
            if 'UP' in flags and 'RUNNING' in flags:
                status = 'up'
            elif 'UP' in flags:
                status = 'disconnected'
            else:
                status = 'down'
            partial = InterfacePartial(name=name, source='ifconfig', kind=interface_kind(name), status=status)
            if new.group(3):
                partial.mtu = to_int(new.group(3), None)
            return partial

        old = IFCONFIG_OLD_HEADER.match(line)
        if old:
            name = old.group(1)
            partial = InterfacePartial(name=name, source='ifconfig', kind=interface_kind(name), status='down')
            # Old layout prints HWaddr on the header line
            mac = IFCONFIG_MAC.search(line)
            if mac:
                partial.mac = mac.group(1).lower()
            return partial

        return None


class ProcNetDevParser(BaseOutputParser):
    """Parses /proc/net/dev, the authoritative per-interface counter source"""

    TOOLS = ('proc_net_dev',)
    FACTS = ('interface_counters',)

    def parse(self, output: str) -> List[InterfacePartial]:
        counters = []

        for line in self.lines(output):
            if ':' not in line or 'Inter-' in line or 'face' in line:
                continue
            name, _, stats_part = line.partition(':')
            stats = stats_part.split()
            if len(stats) < 16:
                continue

            counters.append(InterfacePartial(
                name=name.strip(),
                source='proc_net_dev',
                rx_bytes=to_int(stats[0]),
                rx_packets=to_int(stats[1]),
                rx_errors=to_int(stats[2]),
                rx_dropped=to_int(stats[3]),
                tx_bytes=to_int(stats[8]),
                tx_packets=to_int(stats[9]),
                tx_errors=to_int(stats[10]),
                tx_dropped=to_int(stats[11])
            ))

        return counters


class EthtoolParser(BaseOutputParser):
    """Parses `ethtool <iface>` link settings"""

    TOOLS = ('ethtool',)
    FACTS = ('link_settings',)

    def parse(self, output: str) -> List[InterfacePartial]:
        name_match = ETHTOOL_NAME.search(output)
        partial = InterfacePartial(name=name_match.group(1).strip() if name_match else '', source='ethtool')

        speed = ETHTOOL_SPEED.search(output)
        if speed:
            partial.speed = f"{speed.group(1)}Mb/s"

        duplex = ETHTOOL_DUPLEX.search(output)
        if duplex and duplex.group(1).lower() != 'unknown':
            partial.duplex = duplex.group(1).capitalize()

        if partial.speed is None and partial.duplex is None:
            return []
        return [partial]


class SysfsLinkParser(BaseOutputParser):
    """Parses `cat /sys/class/net/<iface>/speed /sys/class/net/<iface>/duplex`"""

    TOOLS = ('sysfs',)
    FACTS = ('link_settings',)

    def parse(self, output: str) -> List[InterfacePartial]:
        partial = InterfacePartial(name='', source='sysfs')

        for line in self.lines(output):
            value = line.strip()
            if value.lstrip('-').isdigit():
                # -1 means the driver does not know
                if to_int(value) > 0:
                    partial.speed = f"{value}Mb/s"
            elif value.lower() in ('full', 'half'):
                partial.duplex = value.capitalize()

        if partial.speed is None and partial.duplex is None:
            return []
        return [partial]
