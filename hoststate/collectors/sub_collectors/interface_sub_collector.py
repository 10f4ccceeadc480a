# hoststate/collectors/sub_collectors/interface_sub_collector.py
"""
Interface Sub-Collector
Addresses, gateway, resolvers, kernel counters, link settings and rates.
"""

import time
from typing import Dict, List, Optional

from .base_sub_collector import SubCollector
from ..fallback_chain import Candidate
from ...models import InterfacePartial, NetworkInterface
from ...processors.normalizer import merge_interfaces
from ...processors.placeholders import interface_placeholder

ADDRESS_CANDIDATES = [
    Candidate('ip', 'interfaces', ('ip', 'addr', 'show')),
    Candidate('ifconfig', 'interfaces', ('ifconfig', '-a')),
]
GATEWAY_CANDIDATES = [
    Candidate('ip', 'gateway', ('ip', 'route', 'show', 'default')),
    Candidate('route', 'gateway', ('route', '-n')),
]
DNS_CANDIDATES = [
    Candidate('resolv_conf', 'dns', ('cat', '/etc/resolv.conf'), probes=()),
]
COUNTER_CANDIDATES = [
    Candidate('proc_net_dev', 'interface_counters', ('cat', '/proc/net/dev'), probes=()),
]

LOOPBACK = 'lo'


def link_candidates(name: str) -> List[Candidate]:
    return [
        Candidate('ethtool', 'link_settings', ('ethtool', name)),
        # Reading speed of a downed link fails with EINVAL after duplex was printed
        Candidate('sysfs', 'link_settings',
                  ('cat', f'/sys/class/net/{name}/speed', f'/sys/class/net/{name}/duplex'),
                  probes=(), salvage=True),
    ]


class InterfaceSubCollector(SubCollector):
    """
    Collects network interfaces.

    Returns a list of NetworkInterface snapshots joined from every source
    that answered. When no source answered, a single placeholder interface
    tagged with confidence 'assumed' is returned instead.
    """

    def get_section_name(self) -> str:
        return "interfaces"

    def collect(self) -> List[NetworkInterface]:
        self.log_start()

        partials: List[InterfacePartial] = []

        addresses = self.run_chain('interfaces', ADDRESS_CANDIDATES)
        if addresses:
            partials.extend(addresses.records)

        counters_before = self._read_counters()
        sampled_at = time.monotonic()
        partials.extend(counters_before.values())

        if not partials:
            self.logger.warning("No interface source answered, returning placeholder interface")
            self.mark_placeholder('interfaces')
            return interface_placeholder()

        names = self._interface_names(partials)
        partials.extend(self._host_wide_partials(names))

        for name in names:
            if name == LOOPBACK:
                continue
            link = self.run_chain('link_settings', link_candidates(name))
            if link:
                for partial in link.records:
                    partial.name = name
                    partials.append(partial)

        partials.extend(self._rate_partials(counters_before, sampled_at))

        interfaces = merge_interfaces(partials)
        self.log_end(len(interfaces))
        return interfaces

    def _read_counters(self) -> Dict[str, InterfacePartial]:
        result = self.run_chain('interface_counters', COUNTER_CANDIDATES)
        if not result:
            return {}
        return {partial.name: partial for partial in result.records}

    @staticmethod
    def _interface_names(partials: List[InterfacePartial]) -> List[str]:
        names = []
        for partial in partials:
            if partial.name not in names:
                names.append(partial.name)
        return names

    def _host_wide_partials(self, names: List[str]) -> List[InterfacePartial]:
        """Gateway and resolvers apply to every non-loopback interface"""
        gateway_result = self.run_chain('gateway', GATEWAY_CANDIDATES)
        dns_result = self.run_chain('dns', DNS_CANDIDATES)

        gateway: Optional[str] = gateway_result.records[0] if gateway_result else None
        dns: Optional[List[str]] = list(dns_result.records) if dns_result else None
        if gateway is None and dns is None:
            return []

        return [
            InterfacePartial(name=name, source='route', gateway=gateway, dns=dns)
            for name in names if name != LOOPBACK
        ]

    def _rate_partials(self, before: Dict[str, InterfacePartial], sampled_at: float) -> List[InterfacePartial]:
        """Bytes/s from a second /proc/net/dev sample; skipped when the interval is 0"""
        interval = self.settings.rate_sample_interval
        if not before or interval <= 0:
            return []

        time.sleep(interval)
        after = self._read_counters()
        elapsed = time.monotonic() - sampled_at
        if not after or elapsed <= 0:
            return []

        rates = []
        for name, second in after.items():
            first = before.get(name)
            if first is None:
                continue
            # Counters can wrap or reset; a negative delta is not a rate
            rx_delta = second.rx_bytes - first.rx_bytes
            tx_delta = second.tx_bytes - first.tx_bytes
            rates.append(InterfacePartial(
                name=name,
                source='rate',
                rx_rate=round(rx_delta / elapsed, 1) if rx_delta >= 0 else None,
                tx_rate=round(tx_delta / elapsed, 1) if tx_delta >= 0 else None
            ))
        return rates
