# hoststate/parsers/routes.py
"""
Default gateway and resolver parsers.
"""

import re
from typing import List

from .base import BaseOutputParser

DEFAULT_VIA = re.compile(r'^default\s+via\s+([0-9.]+)')
IPV4 = re.compile(r'^\d{1,3}(?:\.\d{1,3}){3}$')


class IpRouteParser(BaseOutputParser):
    """Parses `ip route show default`"""

    TOOLS = ('ip',)
    FACTS = ('gateway',)

    def parse(self, output: str) -> List[str]:
        gateways = []
        for line in self.lines(output):
            match = DEFAULT_VIA.match(line.strip())
            if match:
                gateways.append(match.group(1))
        return gateways


class RouteTableParser(BaseOutputParser):
    """Parses the numeric kernel routing table from `route -n`"""

    TOOLS = ('route',)
    FACTS = ('gateway',)

    def parse(self, output: str) -> List[str]:
        gateways = []
        for line in self.lines(output):
            parts = line.split()
            if len(parts) >= 4 and parts[0] == '0.0.0.0' and 'G' in parts[3]:
                if IPV4.match(parts[1]):
                    gateways.append(parts[1])
        return gateways


class ResolvConfParser(BaseOutputParser):
    """Extracts nameservers from /etc/resolv.conf"""

    TOOLS = ('resolv_conf',)
    FACTS = ('dns',)

    def parse(self, output: str) -> List[str]:
        nameservers = []
        for line in self.lines(output):
            if line.strip().startswith('nameserver'):
                parts = line.split()
                if len(parts) >= 2:
                    nameservers.append(parts[1])
        return nameservers
