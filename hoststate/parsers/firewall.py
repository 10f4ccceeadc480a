# hoststate/parsers/firewall.py
"""
Firewall backend parsers.

Three very different shapes map onto one partial rule record:
- ufw: rule-numbered allow/deny list
- iptables: named chain tables
- firewalld: key: value zone summary plus rich rules
"""

import re
from typing import List, Optional, Tuple

from .base import BaseOutputParser, ParseMismatch, to_int
from ..models import FirewallRulePartial

BUILTIN_CHAINS = ('input', 'output', 'forward')
TERMINAL_TARGETS = {'ACCEPT': 'accept', 'DROP': 'drop', 'REJECT': 'reject'}

UFW_RULE = re.compile(
    r'^(?:\[\s*(?P<num>\d+)\]\s+)?(?P<to>.+?)\s+(?P<action>ALLOW|DENY|REJECT|LIMIT)'
    r'(?:\s+(?P<direction>IN|OUT|FWD))?\s+(?P<source>.+?)\s*(?:#\s*(?P<comment>.*))?$'
)
UFW_ACTIONS = {'ALLOW': 'accept', 'LIMIT': 'accept', 'DENY': 'drop', 'REJECT': 'reject'}
UFW_DIRECTIONS = {'IN': 'input', 'OUT': 'output', 'FWD': 'forward'}
UFW_PORT = re.compile(r'^(?P<port>[\d,:]+)(?:/(?P<proto>tcp|udp))?$')

IPT_CHAIN = re.compile(r'^Chain\s+(\S+)')
IPT_COUNTER = re.compile(r'^\d+[KMGT]?$')
IPT_ADDRESS = re.compile(r'^!?(?:\d{1,3}(?:\.\d{1,3}){3}(?:/\d{1,2})?|[0-9a-fA-F:]*:[0-9a-fA-F:]*(?:/\d{1,3})?)$')
IPT_DPORT = re.compile(r'\bdpts?:(\S+)')
IPT_SPORT = re.compile(r'\bspts?:(\S+)')
IPT_MULTI_DPORT = re.compile(r'\bdports\s+(\S+)')
IPT_MULTI_SPORT = re.compile(r'\bsports\s+(\S+)')
IPT_PROTOCOLS = {'all': 'any', '0': 'any', 'tcp': 'tcp', '6': 'tcp', 'udp': 'udp', '17': 'udp',
                 'icmp': 'icmp', '1': 'icmp', 'ipv6-icmp': 'icmp', 'icmpv6': 'icmp'}
COUNTER_UNITS = {'K': 1000, 'M': 1000 ** 2, 'G': 1000 ** 3, 'T': 1000 ** 4}

FIREWALLD_KEY = re.compile(r'^\s+([a-z][a-z -]*):\s*(.*)$')
FIREWALLD_SERVICE_PORTS = {
    'ssh': ('22', 'tcp'), 'http': ('80', 'tcp'), 'https': ('443', 'tcp'),
    'dns': ('53', 'any'), 'dhcpv6-client': ('546', 'udp'), 'dhcp': ('67', 'udp'),
    'cockpit': ('9090', 'tcp'), 'mdns': ('5353', 'udp'), 'samba-client': ('137-138', 'udp'),
    'mysql': ('3306', 'tcp'), 'postgresql': ('5432', 'tcp'), 'ntp': ('123', 'udp'),
}


def _counter(value: str) -> int:
    """Expand iptables abbreviated counters such as 12K"""
    if value and value[-1] in COUNTER_UNITS:
        return to_int(value[:-1]) * COUNTER_UNITS[value[-1]]
    return to_int(value)


class UfwStatusParser(BaseOutputParser):
    """Parses `ufw status` and `ufw status numbered`"""

    TOOLS = ('ufw',)
    FACTS = ('firewall',)

    def parse(self, output: str) -> List[FirewallRulePartial]:
        lines = self.lines(output)
        if not any(line.strip().startswith('Status:') for line in lines):
            raise ParseMismatch("ufw output has no 'Status:' line")

        rules = []
        for line in lines:
            trimmed = line.strip()
            if trimmed.startswith(('Status:', 'To ', '--')):
                continue

            match = UFW_RULE.match(trimmed)
            if not match:
                continue

            destination, destination_port, to_proto = self._endpoint(match.group('to'))
            source_field = re.sub(r'\s*\(out\)\s*$', '', match.group('source'))
            source, source_port, from_proto = self._endpoint(source_field)

            rules.append(FirewallRulePartial(
                chain=UFW_DIRECTIONS.get(match.group('direction') or 'IN'),
                action=UFW_ACTIONS[match.group('action')],
                protocol=to_proto or from_proto or 'any',
                source=source,
                destination=destination,
                source_port=source_port,
                destination_port=destination_port,
                description=match.group('comment') or trimmed,
                rule_number=to_int(match.group('num'), None)
            ))

        return rules

    def _endpoint(self, field: str) -> Tuple[str, str, Optional[str]]:
        """Split a ufw To/From column into (address, port, protocol)"""
        address, port, protocol = 'any', 'any', None
        tokens = field.split()
        skip_next = False

        for token in tokens:
            if skip_next:
                skip_next = False
                continue
            if token == 'on':
                skip_next = True
                continue
            if token in ('Anywhere', '(v6)'):
                continue
            port_match = UFW_PORT.match(token)
            if port_match and not IPT_ADDRESS.match(token):
                port = port_match.group('port')
                protocol = port_match.group('proto')
            elif IPT_ADDRESS.match(token):
                address = token
            else:
                # Application profile names such as "OpenSSH"
                port = token if port == 'any' else f"{port} {token}"

        return address, port, protocol


class IptablesParser(BaseOutputParser):
    """Parses `iptables -L -n` with or without -v and --line-numbers"""

    TOOLS = ('iptables',)
    FACTS = ('firewall',)

    def parse(self, output: str) -> List[FirewallRulePartial]:
        lines = self.lines(output)
        if not any(line.startswith('Chain') for line in lines):
            raise ParseMismatch("iptables output has no 'Chain' headers")

        rules = []
        chain = None

        for line in lines:
            trimmed = line.strip()

            chain_match = IPT_CHAIN.match(trimmed)
            if chain_match:
                chain = chain_match.group(1).lower()
                continue

            if chain not in BUILTIN_CHAINS:
                continue
            if trimmed.startswith(('target', 'num', 'pkts')):
                continue

            rule = self._parse_rule(trimmed.split(), trimmed)
            if rule:
                rule.chain = chain
                rules.append(rule)

        return rules

    def _parse_rule(self, tokens: List[str], line: str) -> Optional[FirewallRulePartial]:
        counters = []
        index = 0
        while index < len(tokens) and IPT_COUNTER.match(tokens[index]):
            counters.append(tokens[index])
            index += 1

        if index >= len(tokens):
            return None

        target = tokens[index].upper()
        action = TERMINAL_TARGETS.get(target)
        if action is None:
            # Jumps to user chains, LOG, RETURN and friends carry no verdict
            return None

        rule_number, hits = None, None
        if len(counters) == 1:
            rule_number = to_int(counters[0], None)
        elif len(counters) == 2:
            hits = _counter(counters[0])
        elif len(counters) >= 3:
            rule_number = to_int(counters[0], None)
            hits = _counter(counters[1])

        rest = tokens[index + 1:]
        protocol = IPT_PROTOCOLS.get(rest[0].lower(), 'any') if rest else 'any'

        addresses = []
        address_end = index + 1
        for offset, token in enumerate(rest[1:], start=index + 2):
            if IPT_ADDRESS.match(token):
                addresses.append(token)
                address_end = offset + 1
                if len(addresses) == 2:
                    break

        extras = ' '.join(tokens[address_end:])
        destination_port = self._port(IPT_DPORT, IPT_MULTI_DPORT, extras)
        source_port = self._port(IPT_SPORT, IPT_MULTI_SPORT, extras)

        return FirewallRulePartial(
            action=action,
            protocol=protocol,
            source=addresses[0] if addresses else 'any',
            destination=addresses[1] if len(addresses) > 1 else 'any',
            source_port=source_port,
            destination_port=destination_port,
            description=line,
            hits=hits,
            rule_number=rule_number
        )

    @staticmethod
    def _port(single, multi, extras: str) -> str:
        match = single.search(extras) or multi.search(extras)
        return match.group(1) if match else 'any'


class FirewalldParser(BaseOutputParser):
    """Parses `firewall-cmd --list-all` zone summaries"""

    TOOLS = ('firewalld',)
    FACTS = ('firewall',)

    def parse(self, output: str) -> List[FirewallRulePartial]:
        values = {}
        rich_rules = []
        in_rich = False

        for line in output.splitlines():
            if not line.strip():
                continue
            key_match = FIREWALLD_KEY.match(line)
            if key_match and not line.strip().startswith('rule '):
                key, value = key_match.group(1).strip(), key_match.group(2).strip()
                values[key] = value
                in_rich = key == 'rich rules'
                if in_rich and value.startswith('rule '):
                    rich_rules.append(value)
                continue
            if in_rich and line.strip().startswith('rule '):
                rich_rules.append(line.strip())

        if 'services' not in values and 'ports' not in values:
            raise ParseMismatch("firewall-cmd output has no services/ports keys")

        rules = []
        for service in values.get('services', '').split():
            port, protocol = FIREWALLD_SERVICE_PORTS.get(service, (service, 'any'))
            rules.append(FirewallRulePartial(
                chain='input', action='accept', protocol=protocol,
                destination_port=port, description=f"service {service}"
            ))

        for port_spec in values.get('ports', '').split():
            port, _, protocol = port_spec.partition('/')
            rules.append(FirewallRulePartial(
                chain='input', action='accept', protocol=protocol or 'any',
                destination_port=port, description=f"port {port_spec}"
            ))

        for rich in rich_rules:
            rules.append(self._parse_rich_rule(rich))

        return rules

    def _parse_rich_rule(self, rule: str) -> FirewallRulePartial:
        def attr(pattern: str) -> Optional[str]:
            match = re.search(pattern, rule)
            return match.group(1) if match else None

        action = 'accept'
        for verdict in ('reject', 'drop', 'accept'):
            if re.search(rf'\b{verdict}\b', rule):
                action = verdict
                break

        port = attr(r'port port="([^"]+)"')
        protocol = attr(r'protocol="([^"]+)"') or attr(r'protocol value="([^"]+)"')
        service = attr(r'service name="([^"]+)"')
        if service and not port:
            port, service_proto = FIREWALLD_SERVICE_PORTS.get(service, (service, 'any'))
            protocol = protocol or service_proto

        return FirewallRulePartial(
            chain='input',
            action=action,
            protocol=protocol or 'any',
            source=attr(r'source address="([^"]+)"') or 'any',
            destination=attr(r'destination address="([^"]+)"') or 'any',
            destination_port=port or 'any',
            description=rule
        )
