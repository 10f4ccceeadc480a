# tests/test_normalizer.py
"""
Tests for partial record merging and snapshot conversion.
"""

import itertools

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from hoststate.models import (
    UNKNOWN, UNKNOWN_LINK, InterfacePartial, SocketEntry, FirewallRulePartial, VolumePartial,
    ComputeUnitPartial
)
from hoststate.processors.normalizer import (
    merge_interfaces, build_connections, build_ports, build_firewall_rules, build_volumes,
    build_compute_units, volume_kind, volume_status, host_status
)
from hoststate.processors import placeholders

GIB = 1024 ** 3


class TestMergeInterfaces:
    """Interfaces joined by name with fixed source precedence"""

    @pytest.fixture
    def eth0_partials(self):
        return [
            InterfacePartial(name='eth0', source='ip', kind='ethernet', status='up',
                             mac='52:54:00:12:34:56', ip='192.168.1.10', netmask='255.255.255.0', mtu=1500),
            InterfacePartial(name='eth0', source='proc_net_dev', rx_bytes=5000000, tx_bytes=3000000,
                             rx_packets=4000, tx_packets=2500, rx_errors=0, tx_errors=0,
                             rx_dropped=0, tx_dropped=0),
            InterfacePartial(name='eth0', source='ethtool', speed='1000Mb/s', duplex='Full'),
            InterfacePartial(name='eth0', source='route', gateway='192.168.1.1', dns=['1.1.1.1']),
        ]

    def test_merge_by_name(self, eth0_partials):
        interfaces = merge_interfaces(eth0_partials)

        assert len(interfaces) == 1
        eth0 = interfaces[0]
        assert eth0.name == 'eth0'
        assert eth0.status == 'up'
        assert eth0.ip == '192.168.1.10'
        assert eth0.gateway == '192.168.1.1'
        assert eth0.dns == ['1.1.1.1']
        assert eth0.speed == '1000Mb/s'
        assert eth0.rx_bytes == 5000000
        assert eth0.rx_rate == UNKNOWN

    def test_merge_is_independent_of_order(self, eth0_partials):
        expected = merge_interfaces(eth0_partials)
        for ordering in itertools.permutations(eth0_partials):
            assert merge_interfaces(list(ordering)) == expected

    def test_merge_is_idempotent(self, eth0_partials):
        assert merge_interfaces(eth0_partials) == merge_interfaces(eth0_partials + eth0_partials)

    def test_higher_precedence_source_wins(self):
        ifconfig = InterfacePartial(name='eth0', source='ifconfig', ip='10.0.0.1', rx_bytes=10)
        ip = InterfacePartial(name='eth0', source='ip', ip='10.0.0.2')
        counters = InterfacePartial(name='eth0', source='proc_net_dev', rx_bytes=99)

        for partials in ([ifconfig, ip, counters], [counters, ip, ifconfig]):
            eth0 = merge_interfaces(partials)[0]
            assert eth0.ip == '10.0.0.2'
            assert eth0.rx_bytes == 99

    def test_missing_fields_are_unknown(self):
        eth1 = merge_interfaces([InterfacePartial(name='eth1', source='proc_net_dev', rx_bytes=1)])[0]

        assert eth1.ip == UNKNOWN
        assert eth1.mac == UNKNOWN
        assert eth1.speed == UNKNOWN_LINK
        assert eth1.status == 'down'
        assert eth1.kind == 'ethernet'

    def test_enums_are_constrained(self):
        tun = merge_interfaces([InterfacePartial(name='tun0', source='ip', kind='tunnel', status='dormant')])[0]

        assert tun.kind == 'ethernet'
        assert tun.status == 'down'

    def test_names_keep_first_seen_order(self):
        partials = [
            InterfacePartial(name='lo', source='ip', status='up'),
            InterfacePartial(name='eth0', source='ip', status='up'),
        ]
        assert [interface.name for interface in merge_interfaces(partials)] == ['lo', 'eth0']


class TestBuildSockets:

    @pytest.fixture
    def entries(self):
        return [
            SocketEntry('tcp', 'listen', '0.0.0.0', 80),
            SocketEntry('tcp', 'listen', '0.0.0.0', 80),
            SocketEntry('tcp', 'established', '192.168.1.10', 22, '192.168.1.50', 51234, 'sshd', 1234),
            SocketEntry('udp', 'unconnected', '0.0.0.0', 68),
            SocketEntry('icmp', 'unconnected', '0.0.0.0', 0),
            SocketEntry('udp', 'unconnected', '0.0.0.0', 0),
        ]

    def test_build_ports(self, entries):
        ports = build_ports(entries, lambda port, protocol: {80: 'http', 22: 'ssh'}.get(port, UNKNOWN))

        assert [(port.port, port.protocol, port.state, port.service) for port in ports] == [
            (80, 'tcp', 'listening', 'http'),
            (22, 'tcp', 'open', 'ssh'),
            (68, 'udp', 'listening', UNKNOWN),
        ]
        assert all(port.confidence == 'probed' for port in ports)
        assert ports[1].process == 'sshd'

    def test_build_connections(self, entries):
        connections = build_connections(entries, limit=3)

        assert [connection.id for connection in connections] == ['conn-1', 'conn-2', 'conn-3']
        assert connections[2].process == 'sshd'
        assert connections[0].process == 'Unknown'


class TestBuildFirewallRules:

    def test_ids_per_backend(self):
        partials = [FirewallRulePartial(chain='input', action='accept', rule_number=3)]

        assert build_firewall_rules(partials, 'iptables')[0].id == 'input-3'
        assert build_firewall_rules(partials, 'ufw')[0].id == 'ufw-3'

    def test_defaults(self):
        rule = build_firewall_rules([FirewallRulePartial(chain='PREROUTING', action='LOG')], 'iptables')[0]

        assert rule.chain == 'input'
        assert rule.action == 'accept'
        assert rule.protocol == 'any'
        assert rule.hits == 0
        assert rule.last_hit == 'N/A'
        assert rule.enabled is True


class TestBuildVolumes:
    """Volume filtering, classification and usage status"""

    @pytest.fixture
    def partials(self):
        return [
            VolumePartial('/dev/sda1', '/', 'ext4', 100 * GIB, 50 * GIB, 50 * GIB, 50.0),
            VolumePartial('tmpfs', '/dev/shm', 'tmpfs', GIB, 0, GIB, 0.0),
            VolumePartial('/dev/sdb1', '/mnt/backup', 'ext4', 500 * GIB, 475 * GIB, 25 * GIB, 95.0),
            VolumePartial('server:/export', '/mnt/nfs', 'nfs4', 200 * GIB, 100 * GIB, 100 * GIB, 50.0),
            VolumePartial('/dev/loop0', '/snap/core/1', 'squashfs', GIB, GIB, 0, 100.0),
        ]

    def test_filters_and_converts(self, partials):
        volumes = build_volumes(partials)

        assert [volume.device for volume in volumes] == ['/dev/sda1', '/dev/sdb1', 'server:/export']
        root = volumes[0]
        assert root.total_gb == 100.0
        assert root.used_gb == 50.0
        assert root.kind == 'local'
        assert root.status == 'mounted'
        assert root.iops == {'reads': UNKNOWN, 'writes': UNKNOWN}

    def test_nearly_full_volume_is_error(self, partials):
        backup = build_volumes(partials)[1]
        assert backup.status == 'error'

    def test_kinds_without_lsblk(self, partials):
        kinds = [volume.kind for volume in build_volumes(partials)]
        assert kinds == ['local', 'external', 'network']

    def test_kinds_with_lsblk(self, partials):
        assert volume_kind(partials[2], external_devices=set()) == 'local'
        assert volume_kind(partials[0], external_devices={'sda1'}) == 'external'

    def test_limit(self, partials):
        assert len(build_volumes(partials, limit=1)) == 1

    def test_disk_io_attached_by_device_name(self, partials):
        disk_io = {'sda1': {'device': 'sda1', 'reads': 900, 'writes': 1800, 'read_kb': 9000, 'write_kb': 18000}}
        root = build_volumes(partials, disk_io=disk_io)[0]

        assert root.iops == {'reads': 900, 'writes': 1800}
        assert root.throughput == {'read_kb': 9000, 'write_kb': 18000}

    def test_percentage_computed_when_missing(self):
        volume = build_volumes([VolumePartial('/dev/vda1', '/', None, 4 * GIB, GIB, 3 * GIB)])[0]

        assert volume.percentage == 25.0
        assert volume.filesystem == UNKNOWN

    @pytest.mark.parametrize('percentage, status', [(90.0, 'error'), (89.9, 'mounted'), (None, 'mounted')])
    def test_volume_status(self, percentage, status):
        assert volume_status(percentage) == status


class TestHostStatus:

    @pytest.mark.parametrize('percentages, status', [
        ([8.8, 50.0, 50.0], 'online'),
        ([90.0, 10.0], 'online'),
        ([95.0, 10.0], 'warning'),
        ([], 'online'),
    ])
    def test_host_status(self, percentages, status):
        assert host_status(percentages) == status


class TestBuildComputeUnits:

    def test_ids(self):
        units = build_compute_units([
            ComputeUnitPartial(name='web', backend='docker', kind='container', unit_id='a1b2', status='running'),
            ComputeUnitPartial(name='web01', backend='virsh', kind='vm', unit_id='web01', status='paused'),
            ComputeUnitPartial(name='stress', backend='ps', kind='process', unit_id='4242', cpu=45.0),
        ])

        assert [unit.id for unit in units] == ['docker-a1b2', 'virsh-web01', 'proc-4242']
        assert units[1].status == 'paused'

    def test_process_cpu_is_capped(self):
        unit = build_compute_units([
            ComputeUnitPartial(name='burn', backend='ps', kind='process', unit_id='1', cpu=387.6)
        ])[0]
        assert unit.cpu == 100

    def test_unknown_values(self):
        unit = build_compute_units([ComputeUnitPartial(name='db01', backend='virsh', kind='vm')])[0]

        assert unit.status == 'stopped'
        assert unit.cpu == UNKNOWN
        assert unit.vcpus == UNKNOWN
        assert unit.ip == 'N/A'


class TestPlaceholders:
    """Fallback records"""

    def test_assumed_ports(self):
        ports = placeholders.assumed_ports([22])
        by_port = {port.port: port for port in ports}

        assert set(by_port) == {22, 80, 443, 3000, 53}
        assert all(port.confidence == 'assumed' for port in ports)
        assert by_port[22].state == 'open'
        assert by_port[80].state == 'listening'
        assert by_port[53].protocol == 'udp'

    def test_default_firewall_rule(self):
        rule = placeholders.default_firewall_rules()[0]

        assert rule.id == 'default-1'
        assert rule.action == 'accept'
        assert rule.description == 'Default accept rule'

    def test_storage_placeholder(self):
        snapshot = placeholders.storage_placeholder()
        volume = snapshot.filesystems[0]

        assert volume.device == 'unavailable'
        assert volume.status == 'error'
        assert volume.total_gb == UNKNOWN

    @pytest.mark.parametrize('in_container, tools_present, name', [
        (True, False, 'Container Environment - No VMs Available'),
        (True, True, 'Container Environment - No VMs Available'),
        (False, True, 'Virtualization Tools Available - No VMs Running'),
        (False, False, 'No Virtualization Tools Installed'),
    ])
    def test_compute_placeholder(self, in_container, tools_present, name):
        unit = placeholders.compute_placeholder(in_container, tools_present)

        assert unit.name == name
        assert unit.kind == 'placeholder'
        assert unit.id == 'placeholder-1'

    def test_host_load_placeholder(self):
        load = placeholders.host_load_placeholder()

        assert load.name == 'Main Server'
        assert load.cpu == UNKNOWN
        assert load.load_average == {'1m': UNKNOWN, '5m': UNKNOWN, '15m': UNKNOWN}

    def test_interface_placeholder(self):
        interfaces = placeholders.interface_placeholder()

        assert len(interfaces) == 1
        interface = interfaces[0]
        assert interface.name == 'unavailable'
        assert interface.status == 'down'
        assert interface.confidence == 'assumed'
        assert interface.rx_bytes == UNKNOWN
        assert interface.speed == UNKNOWN_LINK

    def test_connection_placeholder(self):
        connections = placeholders.connection_placeholder()

        assert len(connections) == 1
        connection = connections[0]
        assert connection.confidence == 'assumed'
        assert connection.state == 'closed'
        assert connection.local_port == UNKNOWN
        assert connection.to_dict()['foreign_address'] == UNKNOWN

    def test_network_placeholder_is_never_empty(self):
        snapshot = placeholders.network_placeholder()

        assert snapshot.interfaces and snapshot.connections and snapshot.ports and snapshot.firewall
        assert snapshot.alerts == []


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
