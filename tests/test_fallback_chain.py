# tests/test_fallback_chain.py
"""
Tests for ordered candidate fallback.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from hoststate.collectors.fallback_chain import Candidate, FallbackChain, NoDataAvailable

SS_OUTPUT = """Netid State  Recv-Q Send-Q Local Address:Port Peer Address:Port Process
tcp   LISTEN 0      128          0.0.0.0:22        0.0.0.0:*
"""

NETSTAT_OUTPUT = """Active Internet connections (only servers)
Proto Recv-Q Send-Q Local Address           Foreign Address         State
tcp        0      0 0.0.0.0:22              0.0.0.0:*               LISTEN
"""

SOCKET_CANDIDATES = [
    Candidate('ss', 'ports', ('ss', '-tuln')),
    Candidate('netstat', 'ports', ('netstat', '-tuln')),
]


def outcomes(availability):
    return [attempt['outcome'] for attempt in availability.attempts]


class TestFallbackChain:
    """Candidate ordering and outcome recording"""

    def test_first_candidate_wins(self, connector, prober):
        connector.add(('ss', '-tuln'), SS_OUTPUT)
        connector.add(('netstat', '-tuln'), NETSTAT_OUTPUT)

        result = FallbackChain('ports', SOCKET_CANDIDATES, connector, prober).run()

        assert result.candidate.tool == 'ss'
        assert result.availability.backend == 'ss'
        assert connector.executed('netstat') == []

    def test_missing_tool_is_not_executed(self, connector, prober):
        connector.missing('ss')
        connector.add(('netstat', '-tuln'), NETSTAT_OUTPUT)

        result = FallbackChain('ports', SOCKET_CANDIDATES, connector, prober).run()

        assert result.candidate.tool == 'netstat'
        assert connector.executed('ss') == []
        assert outcomes(result.availability) == ['missing', 'ok']

    def test_non_zero_exit_advances(self, connector, prober):
        connector.add(('ss', '-tuln'), '', exit_code=1, error='Cannot open netlink socket')
        connector.add(('netstat', '-tuln'), NETSTAT_OUTPUT)

        result = FallbackChain('ports', SOCKET_CANDIDATES, connector, prober).run()

        assert result.candidate.tool == 'netstat'
        assert outcomes(result.availability) == ['non_zero_exit', 'ok']

    def test_empty_output_advances(self, connector, prober):
        connector.add(('ss', '-tuln'), '   \n')
        connector.add(('netstat', '-tuln'), NETSTAT_OUTPUT)

        result = FallbackChain('ports', SOCKET_CANDIDATES, connector, prober).run()

        assert outcomes(result.availability) == ['empty_output', 'ok']

    def test_parse_mismatch_advances(self, connector, prober):
        candidates = [
            Candidate('ip', 'interfaces', ('ip', 'addr', 'show')),
            Candidate('ifconfig', 'interfaces', ('ifconfig', '-a')),
        ]
        connector.add(('ip', 'addr', 'show'), 'Object "addr" is unknown, try "ip help".\n')
        connector.add(('ifconfig', '-a'), 'eth0: flags=4163<UP,BROADCAST,RUNNING,MULTICAST>  mtu 1500\n')

        result = FallbackChain('interfaces', candidates, connector, prober).run()

        assert result.candidate.tool == 'ifconfig'
        assert outcomes(result.availability) == ['parse_mismatch', 'ok']

    def test_empty_parse_result_advances(self, connector, prober):
        candidates = [
            Candidate('ufw', 'firewall', ('ufw', 'status', 'numbered')),
            Candidate('iptables', 'firewall', ('iptables', '-L', '-n')),
        ]
        connector.add(('ufw', 'status', 'numbered'), 'Status: inactive\n')
        connector.add(('iptables', '-L', '-n'),
                      'Chain INPUT (policy ACCEPT)\n'
                      'target     prot opt source               destination\n'
                      'ACCEPT     tcp  --  0.0.0.0/0            0.0.0.0/0            tcp dpt:22\n')

        result = FallbackChain('firewall', candidates, connector, prober).run()

        assert result.candidate.tool == 'iptables'
        assert outcomes(result.availability) == ['empty_result', 'ok']

    def test_salvage_parses_failed_command_output(self, connector, prober):
        candidates = [Candidate('ping', 'latency', ('ping', '-c', '1', 'example.org'), salvage=True)]
        connector.add(('ping', '-c', '1', 'example.org'),
                      '1 packets transmitted, 0 received, 100% packet loss, time 0ms\n', exit_code=1)

        result = FallbackChain('latency', candidates, connector, prober).run()

        assert result.records[0]['packet_loss'] == 100.0

    def test_probe_can_be_skipped(self, connector, prober):
        candidates = [Candidate('proc_loadavg', 'load_average', ('cat', '/proc/loadavg'), probes=())]
        connector.missing('cat')
        connector.add(('cat', '/proc/loadavg'), '0.10 0.20 0.30 1/100 999\n')

        result = FallbackChain('load_average', candidates, connector, prober).run()

        assert result.records[0]['1m'] == 0.10
        assert ('which', 'cat') not in connector.calls

    def test_unregistered_parser(self, connector, prober):
        candidates = [Candidate('mystery', 'ports', ('mystery',))]

        with pytest.raises(NoDataAvailable) as excinfo:
            FallbackChain('ports', candidates, connector, prober).run()

        assert outcomes(excinfo.value.availability) == ['no_parser']
        assert connector.executed('mystery') == []

    def test_exhausted_chain_raises(self, connector, prober):
        with pytest.raises(NoDataAvailable) as excinfo:
            FallbackChain('ports', SOCKET_CANDIDATES, connector, prober).run()

        error = excinfo.value
        assert error.family == 'ports'
        assert outcomes(error.availability) == ['tool_missing', 'tool_missing']
        assert error.availability.backend is None
        assert 'ss=tool_missing' in str(error)

    def test_commands_are_tried_in_order(self, connector, prober):
        connector.add(('netstat', '-tuln'), NETSTAT_OUTPUT)
        FallbackChain('ports', SOCKET_CANDIDATES, connector, prober).run()

        commands = [call for call in connector.calls if call[0] != 'which']
        assert commands == [('ss', '-tuln'), ('netstat', '-tuln')]


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
