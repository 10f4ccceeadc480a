# tests/test_firewall_parsers.py
"""
Tests for ufw, iptables and firewalld output parsers.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from hoststate.parsers import ParseMismatch
from hoststate.parsers.firewall import UfwStatusParser, IptablesParser, FirewalldParser
from hoststate.processors.normalizer import build_firewall_rules


class TestUfwStatusParser:
    """Tests for `ufw status numbered`"""

    @pytest.fixture
    def parser(self):
        return UfwStatusParser()

    @pytest.fixture
    def sample_ufw_numbered(self):
        return """Status: active

     To                         Action      From
     --                         ------      ----
[ 1] 22/tcp                     ALLOW IN    Anywhere
[ 2] 80,443/tcp                 ALLOW IN    192.168.1.0/24
[ 3] OpenSSH                    DENY IN     Anywhere                   # legacy access
[ 4] 22/tcp (v6)                ALLOW IN    Anywhere (v6)
"""

    def test_can_process(self, parser):
        assert parser.can_process('ufw', 'firewall') is True
        assert parser.can_process('iptables', 'firewall') is False

    def test_parse_rules(self, parser, sample_ufw_numbered):
        rules = parser.parse(sample_ufw_numbered)

        assert len(rules) == 4
        first = rules[0]
        assert first.chain == 'input'
        assert first.action == 'accept'
        assert first.protocol == 'tcp'
        assert first.destination_port == '22'
        assert first.source == 'any'
        assert first.rule_number == 1

    def test_source_network_and_port_list(self, parser, sample_ufw_numbered):
        rule = parser.parse(sample_ufw_numbered)[1]

        assert rule.source == '192.168.1.0/24'
        assert rule.destination_port == '80,443'

    def test_application_profile_and_comment(self, parser, sample_ufw_numbered):
        rule = parser.parse(sample_ufw_numbered)[2]

        assert rule.action == 'drop'
        assert rule.destination_port == 'OpenSSH'
        assert rule.protocol == 'any'
        assert rule.description == 'legacy access'

    def test_ipv6_rule(self, parser, sample_ufw_numbered):
        rule = parser.parse(sample_ufw_numbered)[3]

        assert rule.destination_port == '22'
        assert rule.source == 'any'
        assert rule.rule_number == 4

    def test_outbound_and_reject(self, parser):
        output = """Status: active

To                         Action      From
--                         ------      ----
53/udp                     REJECT OUT  Anywhere (out)
"""
        rule = parser.parse(output)[0]

        assert rule.chain == 'output'
        assert rule.action == 'reject'
        assert rule.protocol == 'udp'
        assert rule.rule_number is None

    def test_inactive(self, parser):
        assert parser.parse('Status: inactive\n') == []

    def test_unrecognized_output(self, parser):
        with pytest.raises(ParseMismatch):
            parser.parse('ERROR: You need to be root to run this script\n')


class TestIptablesParser:
    """Tests for `iptables -L -n` in its several layouts"""

    @pytest.fixture
    def parser(self):
        return IptablesParser()

    @pytest.fixture
    def sample_iptables_verbose(self):
        return """Chain INPUT (policy ACCEPT 0 packets, 0 bytes)
num   pkts bytes target     prot opt in     out     source               destination
1      120  7200 ACCEPT     tcp  --  *      *       0.0.0.0/0            0.0.0.0/0            tcp dpt:22
2       5K  300K DROP       all  --  *      *       10.0.0.0/8           0.0.0.0/0
3        0     0 DOCKER-USER  all  --  *      *       0.0.0.0/0            0.0.0.0/0

Chain FORWARD (policy DROP 0 packets, 0 bytes)
num   pkts bytes target     prot opt in     out     source               destination
1        0     0 REJECT     udp  --  *      *       0.0.0.0/0            192.168.1.5          udp dpt:53 reject-with icmp-port-unreachable

Chain OUTPUT (policy ACCEPT 0 packets, 0 bytes)
num   pkts bytes target     prot opt in     out     source               destination

Chain DOCKER-USER (1 references)
num   pkts bytes target     prot opt in     out     source               destination
1        0     0 ACCEPT     all  --  *      *       0.0.0.0/0            0.0.0.0/0
"""

    def test_single_rule(self, parser):
        rules = parser.parse("Chain INPUT\n1 ACCEPT tcp 0.0.0.0/0 0.0.0.0/0 dpt:22\n")

        assert len(rules) == 1
        rule = rules[0]
        assert rule.chain == 'input'
        assert rule.action == 'accept'
        assert rule.protocol == 'tcp'
        assert rule.destination_port == '22'
        assert rule.source == '0.0.0.0/0'
        assert rule.rule_number == 1

        normalized = build_firewall_rules(rules, backend='iptables')[0]
        assert normalized.id == 'input-1'
        assert normalized.backend == 'iptables'

    def test_verbose_numbered_listing(self, parser, sample_iptables_verbose):
        rules = parser.parse(sample_iptables_verbose)

        # Jumps to user chains and rules inside user chains are not verdicts
        assert [(rule.chain, rule.rule_number) for rule in rules] == [
            ('input', 1), ('input', 2), ('forward', 1)
        ]

        ssh, drop, reject = rules
        assert ssh.hits == 120
        assert drop.hits == 5000
        assert drop.protocol == 'any'
        assert drop.source == '10.0.0.0/8'
        assert drop.destination_port == 'any'
        assert reject.action == 'reject'
        assert reject.protocol == 'udp'
        assert reject.destination == '192.168.1.5'
        assert reject.destination_port == '53'

    def test_plain_listing(self, parser):
        output = """Chain INPUT (policy DROP)
target     prot opt source               destination
ACCEPT     all  --  0.0.0.0/0            0.0.0.0/0            state RELATED,ESTABLISHED
ACCEPT     tcp  --  192.168.0.0/16       0.0.0.0/0            multiport dports 80,443
"""
        rules = parser.parse(output)

        assert len(rules) == 2
        assert rules[0].rule_number is None
        assert rules[0].hits is None
        assert rules[1].destination_port == '80,443'
        assert rules[1].source == '192.168.0.0/16'

        normalized = build_firewall_rules(rules, backend='iptables')
        assert [rule.id for rule in normalized] == ['iptables-1', 'iptables-2']

    def test_empty_chains(self, parser):
        output = "Chain INPUT (policy ACCEPT)\ntarget     prot opt source               destination\n"
        assert parser.parse(output) == []

    def test_unrecognized_output(self, parser):
        with pytest.raises(ParseMismatch):
            parser.parse('iptables v1.8.7 (nf_tables): Permission denied (you must be root)\n')


class TestFirewalldParser:
    """Tests for `firewall-cmd --list-all`"""

    @pytest.fixture
    def parser(self):
        return FirewalldParser()

    @pytest.fixture
    def sample_firewalld(self):
        return """public (active)
  target: default
  icmp-block-inversion: no
  interfaces: eth0
  sources:
  services: ssh dhcpv6-client http
  ports: 8080/tcp 9000-9010/udp
  protocols:
  forward: yes
  masquerade: no
  forward-ports:
  source-ports:
  icmp-blocks:
  rich rules:
\trule family="ipv4" source address="10.0.0.0/8" port port="5432" protocol="tcp" accept
\trule family="ipv4" source address="192.168.5.5" reject
"""

    def test_services_and_ports(self, parser, sample_firewalld):
        rules = parser.parse(sample_firewalld)

        assert len(rules) == 7
        assert [(rule.destination_port, rule.protocol) for rule in rules[:5]] == [
            ('22', 'tcp'), ('546', 'udp'), ('80', 'tcp'), ('8080', 'tcp'), ('9000-9010', 'udp')
        ]
        assert all(rule.chain == 'input' and rule.action == 'accept' for rule in rules[:5])

    def test_rich_rules(self, parser, sample_firewalld):
        postgres, blocked = parser.parse(sample_firewalld)[5:]

        assert postgres.source == '10.0.0.0/8'
        assert postgres.destination_port == '5432'
        assert postgres.protocol == 'tcp'
        assert postgres.action == 'accept'

        assert blocked.source == '192.168.5.5'
        assert blocked.action == 'reject'
        assert blocked.destination_port == 'any'

    def test_normalized_ids(self, parser, sample_firewalld):
        rules = build_firewall_rules(parser.parse(sample_firewalld), backend='firewalld')
        assert rules[0].id == 'firewalld-1'
        assert rules[-1].id == 'firewalld-7'

    def test_unrecognized_output(self, parser):
        with pytest.raises(ParseMismatch):
            parser.parse('FirewallD is not running\n')


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
