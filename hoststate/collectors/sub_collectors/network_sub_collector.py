# hoststate/collectors/sub_collectors/network_sub_collector.py
"""
Network Sub-Collector
Composes interfaces, connections, ports and firewall into one snapshot and
adds bandwidth, latency, packet loss and alerts.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from .base_sub_collector import SubCollector
from .interface_sub_collector import InterfaceSubCollector, LOOPBACK
from .socket_sub_collector import ConnectionSubCollector, PortSubCollector
from .firewall_sub_collector import FirewallSubCollector
from ..fallback_chain import Candidate
from ...models import UNKNOWN, CONFIDENCE_ASSUMED, Alert, NetworkInterface, NetworkSnapshot

LATENCY_WARNING_MS = 100


def latency_candidates(host: str) -> List[Candidate]:
    # ping exits 1 when replies are lost but still prints the summary
    return [Candidate('ping', 'latency', ('ping', '-c', '3', '-W', '2', host), salvage=True)]


def primary_interface(interfaces: List[NetworkInterface]) -> Optional[NetworkInterface]:
    """First non-loopback interface that is up, else the first non-loopback one"""
    candidates = [interface for interface in interfaces
                  if interface.name != LOOPBACK and interface.confidence != CONFIDENCE_ASSUMED]
    for interface in candidates:
        if interface.status == 'up':
            return interface
    return candidates[0] if candidates else None


class NetworkSubCollector(SubCollector):
    """
    Collects a NetworkSnapshot.

    Returns data in the 'network' section with:
        - interfaces, connections, ports, firewall
        - bandwidth of the primary interface
        - latency and packet loss towards latency_probe_host
        - alerts for downed interfaces and high latency
    """

    def get_section_name(self) -> str:
        return "network"

    def collect(self) -> NetworkSnapshot:
        self.log_start()

        interfaces = self._run(InterfaceSubCollector)
        connections = self._run(ConnectionSubCollector)
        ports = self._run(PortSubCollector, connections=connections)
        firewall = self._run(FirewallSubCollector)

        latency, packet_loss = self._latency()
        bandwidth = self._bandwidth(interfaces)
        timestamp = datetime.now().isoformat()

        snapshot = NetworkSnapshot(
            interfaces=interfaces,
            connections=connections,
            ports=ports,
            firewall=firewall,
            bandwidth=bandwidth,
            latency=latency,
            packet_loss=packet_loss,
            alerts=self._alerts(interfaces, latency, bandwidth, timestamp),
            last_updated=timestamp
        )
        self.log_end(len(interfaces))
        return snapshot

    def _run(self, sub_collector_class, **kwargs):
        sub_collector = sub_collector_class(
            self.connector, self.prober, self.settings, self.system_name, **kwargs)
        try:
            return sub_collector.collect()
        finally:
            self.availability.extend(sub_collector.availability)

    def _latency(self):
        unknown = {'average': UNKNOWN, 'min': UNKNOWN, 'max': UNKNOWN}
        host = self.settings.latency_probe_host
        if not host:
            return unknown, UNKNOWN

        result = self.run_chain('latency', latency_candidates(host))
        if not result:
            return unknown, UNKNOWN

        stats = result.records[0]
        latency = {'average': stats['average'], 'min': stats['min'], 'max': stats['max']}
        return latency, stats['packet_loss']

    @staticmethod
    def _bandwidth(interfaces: List[NetworkInterface]) -> Dict[str, Any]:
        primary = primary_interface(interfaces)
        if primary is None:
            return {'interface': UNKNOWN, 'rx_rate': UNKNOWN, 'tx_rate': UNKNOWN,
                    'total_rx': UNKNOWN, 'total_tx': UNKNOWN}
        return {
            'interface': primary.name,
            'rx_rate': primary.rx_rate,
            'tx_rate': primary.tx_rate,
            'total_rx': primary.rx_bytes,
            'total_tx': primary.tx_bytes,
        }

    @staticmethod
    def _alerts(interfaces: List[NetworkInterface], latency: Dict[str, Any],
                bandwidth: Dict[str, Any], timestamp: str) -> List[Alert]:
        alerts = []
        for interface in interfaces:
            if interface.name == LOOPBACK or interface.status != 'down' \
                    or interface.confidence == CONFIDENCE_ASSUMED:
                continue
            alerts.append(Alert(
                id=f"alert-{len(alerts) + 1}",
                type='connectivity',
                severity='critical',
                message=f"Interface {interface.name} is down",
                interface=interface.name,
                timestamp=timestamp
            ))

        average = latency.get('average')
        if average != UNKNOWN and average is not None and average > LATENCY_WARNING_MS:
            alerts.append(Alert(
                id=f"alert-{len(alerts) + 1}",
                type='performance',
                severity='warning',
                message=f"High latency detected: {average}ms",
                interface=bandwidth.get('interface', UNKNOWN),
                timestamp=timestamp
            ))
        return alerts
