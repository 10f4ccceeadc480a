# hoststate/parsers/services.py
"""
Service name database parser (`getent services` or /etc/services).
"""

import re
from typing import List, Tuple

from .base import BaseOutputParser

SERVICE_LINE = re.compile(r'^([A-Za-z0-9][\w.+-]*)\s+(\d+)/(tcp|udp)\b')


class ServicesDbParser(BaseOutputParser):
    """Returns (service, port, protocol) triples in file order"""

    TOOLS = ('getent', 'etc_services')
    FACTS = ('services',)

    def parse(self, output: str) -> List[Tuple[str, int, str]]:
        services = []
        for line in self.lines(output):
            stripped = line.split('#', 1)[0].strip()
            match = SERVICE_LINE.match(stripped)
            if match:
                services.append((match.group(1), int(match.group(2)), match.group(3)))
        return services
