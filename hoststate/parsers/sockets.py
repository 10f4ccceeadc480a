# hoststate/parsers/sockets.py
"""
Socket table parser for `ss` and `netstat`.

Lines are tokenized by whitespace; the local and peer endpoints are
found by a trailing-port pattern instead of fixed column positions,
since column counts differ between tool versions and flag sets.
"""

import re
from typing import List, Optional, Tuple

from .base import BaseOutputParser, ParseMismatch, to_int
from ..models import SocketEntry

ENDPOINT = re.compile(r'^(?P<address>.*):(?P<port>\d+|\*)$')
SS_PROCESS = re.compile(r'\("([^"]+)",pid=(\d+)')
NETSTAT_PROCESS = re.compile(r'^(\d+)/(.+)$')

HEADER_WORDS = ('Netid', 'State', 'Proto', 'Active', 'Recv-Q')

STATE_MAP = {
    'LISTEN': 'listen',
    'UNCONN': 'unconnected',
    'ESTAB': 'established',
    'ESTABLISHED': 'established',
    'TIME-WAIT': 'time_wait',
    'TIME_WAIT': 'time_wait',
    'CLOSE-WAIT': 'close_wait',
    'CLOSE_WAIT': 'close_wait',
    'SYN-SENT': 'syn_sent',
    'SYN_SENT': 'syn_sent',
    'SYN-RECV': 'syn_recv',
    'SYN_RECV': 'syn_recv',
    'FIN-WAIT-1': 'fin_wait',
    'FIN-WAIT-2': 'fin_wait',
    'FIN_WAIT1': 'fin_wait',
    'FIN_WAIT2': 'fin_wait',
    'LAST-ACK': 'last_ack',
    'LAST_ACK': 'last_ack',
    'CLOSING': 'closing',
    'CLOSE': 'closed',
    'CLOSED': 'closed',
}

PROTOCOL_PREFIXES = ('tcp', 'udp', 'icmp', 'raw')


def split_endpoint(token: str) -> Optional[Tuple[str, int]]:
    """Split 'addr:port' into (address, port); '*' ports become 0"""
    match = ENDPOINT.match(token)
    if not match:
        return None
    address = match.group('address')
    if address.startswith('[') and address.endswith(']'):
        address = address[1:-1]
    # Drop scope suffixes such as 127.0.0.53%lo
    address = address.split('%')[0] or '*'
    port = match.group('port')
    return address, 0 if port == '*' else to_int(port)


class SocketTableParser(BaseOutputParser):
    """Parses listening and connected sockets from ss or netstat"""

    TOOLS = ('ss', 'netstat')
    FACTS = ('ports', 'connections')

    def parse(self, output: str) -> List[SocketEntry]:
        entries = []
        saw_header = False

        for line in self.lines(output):
            tokens = line.split()
            if tokens[0] in HEADER_WORDS:
                saw_header = True
                continue

            entry = self.parse_line(tokens)
            if entry:
                entries.append(entry)

        if output.strip() and not entries and not saw_header:
            raise ParseMismatch("no socket rows or table header found")
        return entries

    def parse_line(self, tokens: List[str]) -> Optional[SocketEntry]:
        """Parse one tokenized row; returns None for rows it cannot use"""
        protocol = None
        first = tokens[0].lower()
        if first.startswith(PROTOCOL_PREFIXES):
            protocol = first.rstrip('6')
            if protocol == 'raw':
                protocol = 'icmp'

        state = None
        for token in tokens:
            mapped = STATE_MAP.get(token.upper())
            if mapped:
                state = mapped
                break

        endpoints = []
        for token in tokens[1:] if protocol else tokens:
            if '(' in token or '/' in token and ':' not in token:
                continue
            endpoint = split_endpoint(token)
            if endpoint:
                endpoints.append(endpoint)
            if len(endpoints) == 2:
                break

        if not endpoints:
            return None

        local_address, local_port = endpoints[0]
        foreign_address, foreign_port = endpoints[1] if len(endpoints) > 1 else ('*', 0)

        if protocol is None:
            protocol = 'udp' if state == 'unconnected' else 'tcp'
        if state is None:
            # netstat leaves the state column blank for udp sockets
            state = 'unconnected' if protocol == 'udp' else 'established'

        process, pid = self._parse_process(tokens)

        return SocketEntry(
            protocol=protocol,
            state=state,
            local_address=local_address,
            local_port=local_port,
            foreign_address=foreign_address,
            foreign_port=foreign_port,
            process=process,
            pid=pid
        )

    def _parse_process(self, tokens: List[str]) -> Tuple[Optional[str], Optional[int]]:
        for token in tokens:
            ss_match = SS_PROCESS.search(token)
            if ss_match:
                return ss_match.group(1), to_int(ss_match.group(2), None)
            netstat_match = NETSTAT_PROCESS.match(token)
            if netstat_match:
                return netstat_match.group(2), to_int(netstat_match.group(1), None)
        return None, None
