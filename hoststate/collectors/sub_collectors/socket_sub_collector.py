# hoststate/collectors/sub_collectors/socket_sub_collector.py
"""
Socket Sub-Collectors
Active connections and listening ports from ss or netstat.
"""

from typing import Dict, List, Optional, Tuple

from .base_sub_collector import SubCollector
from ..fallback_chain import Candidate
from ...models import UNKNOWN, CONFIDENCE_ASSUMED, Connection, ListeningPort
from ...processors.normalizer import build_connections, build_ports
from ...processors.placeholders import assumed_ports, connection_placeholder

CONNECTION_CANDIDATES = [
    Candidate('ss', 'connections', ('ss', '-tunap')),
    Candidate('netstat', 'connections', ('netstat', '-tunap')),
]
PORT_CANDIDATES = [
    Candidate('ss', 'ports', ('ss', '-tuln')),
    Candidate('netstat', 'ports', ('netstat', '-tuln')),
]
SERVICE_DB_CANDIDATES = [
    Candidate('getent', 'services', ('getent', 'services')),
    Candidate('etc_services', 'services', ('cat', '/etc/services'), probes=()),
]

WELL_KNOWN_TCP = {
    22: 'ssh', 80: 'http', 443: 'https', 21: 'ftp', 25: 'smtp', 53: 'dns',
    110: 'pop3', 143: 'imap', 993: 'imaps', 995: 'pop3s', 3306: 'mysql',
    5432: 'postgresql', 6379: 'redis', 27017: 'mongodb', 8080: 'http-alt',
    8443: 'https-alt', 3000: 'nodejs', 5000: 'dev-server',
}
WELL_KNOWN_UDP = {
    53: 'dns', 67: 'dhcp', 68: 'dhcpc', 123: 'ntp', 161: 'snmp',
    514: 'syslog', 520: 'rip', 1900: 'upnp', 5353: 'mdns',
}


class ServiceResolver:
    """
    Port -> service name lookup.

    Static well-known table first, then the OS service database, which is
    read at most once per resolver.
    """

    def __init__(self, sub_collector: SubCollector):
        self.sub_collector = sub_collector
        self._database: Optional[Dict[Tuple[int, str], str]] = None

    def resolve(self, port: int, protocol: str) -> str:
        table = WELL_KNOWN_TCP if protocol == 'tcp' else WELL_KNOWN_UDP
        if port in table:
            return table[port]
        return self._load_database().get((port, protocol), UNKNOWN)

    def _load_database(self) -> Dict[Tuple[int, str], str]:
        if self._database is None:
            self._database = {}
            result = self.sub_collector.run_chain('services', SERVICE_DB_CANDIDATES)
            if result:
                for name, port, protocol in result.records:
                    # First entry wins, aliases come later in the file
                    self._database.setdefault((port, protocol), name)
        return self._database


class ConnectionSubCollector(SubCollector):
    """
    Collects active sockets, limited to connection_limit entries.

    A single placeholder connection tagged with confidence 'assumed' is
    returned when no socket tool answers.
    """

    def get_section_name(self) -> str:
        return "connections"

    def collect(self) -> List[Connection]:
        self.log_start()

        result = self.run_chain('connections', CONNECTION_CANDIDATES)
        if not result:
            self.logger.warning("No socket tool produced connection data, returning placeholder")
            self.mark_placeholder('connections')
            return connection_placeholder()

        connections = build_connections(result.records, self.settings.connection_limit)
        self.log_end(len(connections))
        return connections


class PortSubCollector(SubCollector):
    """
    Collects listening ports.

    When no socket tool answers, the well-known assumed set is returned,
    tagged with confidence 'assumed'.
    """

    def __init__(self, connector, prober, settings=None, system_name: str = 'localhost',
                 connections: Optional[List[Connection]] = None):
        super().__init__(connector, prober, settings, system_name)
        self.connections = connections
        self.resolver = ServiceResolver(self)

    def get_section_name(self) -> str:
        return "ports"

    def collect(self) -> List[ListeningPort]:
        self.log_start()

        result = self.run_chain('ports', PORT_CANDIDATES)
        ports = build_ports(result.records, self.resolver.resolve) if result else []

        if not ports:
            self.logger.warning("No listening ports detected, reporting assumed well-known ports")
            ports = assumed_ports(self._connection_ports())
            self.mark_placeholder('ports')

        self.log_end(len(ports))
        return ports

    def _connection_ports(self) -> List[int]:
        connections = self.connections
        if connections is None:
            connections = ConnectionSubCollector(
                self.connector, self.prober, self.settings, self.system_name).collect()
        return [connection.local_port for connection in connections
                if connection.confidence != CONFIDENCE_ASSUMED]
