# tests/test_main_collector.py
"""
Tests for HostCollector orchestration and the command line entry point.
"""

import json
import logging

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from hoststate.config.settings import ConfigManager
from hoststate.collectors import HostCollector, DEFAULT_FAMILIES
from hoststate.collectors.sub_collectors import StorageSubCollector
from hoststate.connectors.ssh_connector import SSHConnector
import run_collection


@pytest.fixture
def parallel_config(tmp_path):
    config_file = tmp_path / 'parallel.yml'
    config_file.write_text(
        "engine:\n"
        "  rate_sample_interval: 0\n"
        "  latency_probe_host: null\n"
        "  parallel_families: true\n"
        "  max_workers: 3\n"
    )
    return ConfigManager(str(config_file))


class TestHostCollector:
    """Per-request orchestration over a scripted connector"""

    def test_default_families(self, config_manager, connector):
        collector = HostCollector(config_manager=config_manager, connector=connector)
        assert collector.families == list(DEFAULT_FAMILIES)

    def test_envelope(self, config_manager, connector):
        collector = HostCollector(config_manager=config_manager, connector=connector, families=['firewall'])

        result = collector.collect()
        envelope = result.envelope()

        assert set(envelope) == {'success', 'data', 'timestamp'}
        assert envelope['success'] is True
        assert envelope['data']['firewall'][0]['id'] == 'default-1'

    def test_tool_availability_metadata(self, config_manager, connector):
        collector = HostCollector(config_manager=config_manager, connector=connector, families=['firewall'])

        availability = collector.collect().metadata['tool_availability']

        assert availability[0]['family'] == 'firewall'
        assert availability[0]['backend'] is None
        assert [attempt['tool'] for attempt in availability[0]['attempts']][:2] == ['ufw', 'ufw']

    def test_full_collection_without_tools(self, config_manager, connector):
        result = HostCollector(config_manager=config_manager, connector=connector).collect()

        assert result.success is True
        data = result.data
        assert list(data) == ['network', 'storage', 'compute_units', 'host_load']
        assert all(port['confidence'] == 'assumed' for port in data['network']['ports'])
        assert data['storage']['filesystems'][0]['device'] == 'unavailable'
        assert data['compute_units'][0]['kind'] == 'placeholder'
        assert data['host_load']['name'] == 'Main Server'
        assert [i['confidence'] for i in data['network']['interfaces']] == ['assumed']
        assert [c['confidence'] for c in data['network']['connections']] == ['assumed']

        flagged = {entry['family'] for entry in result.metadata['tool_availability'] if entry['placeholder']}
        assert flagged >= {'interfaces', 'connections', 'ports', 'firewall', 'storage', 'compute_units',
                           'host_load'}

    @pytest.mark.parametrize("family", ['interfaces', 'connections'])
    def test_single_family_placeholder_is_not_empty(self, config_manager, connector, family):
        result = HostCollector(config_manager=config_manager, connector=connector).collect_family(family)

        assert result.success is True
        assert len(result.data) == 1
        assert result.data[0]['confidence'] == 'assumed'

    def test_family_exception_becomes_placeholder(self, config_manager, connector, monkeypatch):
        def broken(self):
            raise RuntimeError("unexpected df layout")

        monkeypatch.setattr(StorageSubCollector, 'collect', broken)
        collector = HostCollector(config_manager=config_manager, connector=connector,
                                  families=['storage', 'firewall'])

        result = collector.collect()

        assert result.success is True
        assert result.data['storage']['filesystems'][0]['device'] == 'unavailable'
        assert result.data['firewall'][0]['id'] == 'default-1'
        storage = [entry for entry in result.metadata['tool_availability'] if entry['family'] == 'storage']
        assert storage[-1]['placeholder'] is True

    def test_ssh_connector_timeouts(self, tmp_path):
        config_file = tmp_path / 'ssh.yml'
        config_file.write_text(
            "engine:\n"
            "  target: ssh\n"
            "  command_timeout: 25\n"
            "ssh:\n"
            "  host: 192.168.1.20\n"
            "  timeout: 4\n"
        )

        connector = HostCollector(config_manager=ConfigManager(str(config_file))).connector

        assert isinstance(connector, SSHConnector)
        assert connector.connect_timeout == 4
        assert connector.timeout == 25

    def test_collect_family(self, config_manager, connector):
        collector = HostCollector(config_manager=config_manager, connector=connector)

        result = collector.collect_family('ports')

        assert result.success is True
        assert len(result.data) == 5
        assert result.metadata['family'] == 'ports'
        assert connector.cancelled == 1

    def test_collect_unknown_family(self, config_manager, connector):
        result = HostCollector(config_manager=config_manager, connector=connector).collect_family('bogus')

        assert result.success is False
        assert result.error == 'Unknown family: bogus'

    def test_unknown_family_in_request(self, config_manager, connector):
        collector = HostCollector(config_manager=config_manager, connector=connector, families=['bogus'])

        result = collector.collect()

        assert result.success is False
        assert result.error == 'Invalid configuration'
        assert connector.calls == []

    def test_parallel_families(self, parallel_config, connector):
        families = ['firewall', 'ports', 'host_load']
        collector = HostCollector(config_manager=parallel_config, connector=connector, families=families)

        result = collector.collect()

        assert result.success is True
        assert list(result.data) == families
        assert result.data['host_load']['name'] == 'Main Server'

    def test_probes_shared_within_request(self, config_manager, connector):
        collector = HostCollector(config_manager=config_manager, connector=connector,
                                  families=['ports', 'connections'])
        collector.collect()

        assert connector.calls.count(('which', 'ss')) == 1

    def test_probes_not_shared_across_requests(self, config_manager, connector):
        collector = HostCollector(config_manager=config_manager, connector=connector, families=['ports'])
        collector.collect()
        collector.collect()

        assert connector.calls.count(('which', 'ss')) == 2
        assert connector.cancelled == 2

    def test_ssh_target_requires_host(self, tmp_path):
        config_file = tmp_path / 'ssh.yml'
        config_file.write_text("engine:\n  target: ssh\n")

        with pytest.raises(ValueError):
            ConfigManager(str(config_file))


class TestCommandLine:
    """run_collection.main argument handling"""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_invalid_yaml_config(self, tmp_path):
        config_file = tmp_path / 'broken.yml'
        config_file.write_text("engine: [unclosed\n")

        assert run_collection.main(['collect', '--config', str(config_file)]) == 2

    def test_invalid_config_value(self, tmp_path):
        config_file = tmp_path / 'invalid.yml'
        config_file.write_text("engine:\n  target: telnet\n")

        assert run_collection.main(['collect', '--config', str(config_file)]) == 2

    def test_action_params_must_be_object(self, config_manager, capsys):
        code = run_collection.main(['action', '--config', str(config_manager.config_file),
                                    '--action', 'execute', '--params', '[1, 2]'])

        envelope = json.loads(capsys.readouterr().out)
        assert code == 1
        assert envelope['success'] is False
        assert envelope['error'] == '--params must be a JSON object'

    def test_action_params_invalid_json(self, config_manager, capsys):
        code = run_collection.main(['action', '--config', str(config_manager.config_file),
                                    '--action', 'execute', '--params', '{not json'])

        envelope = json.loads(capsys.readouterr().out)
        assert code == 1
        assert envelope['error'].startswith('Invalid --params JSON')

    def test_action_requires_name(self, config_manager):
        with pytest.raises(SystemExit):
            run_collection.main(['action', '--config', str(config_manager.config_file)])

    def test_unknown_family_rejected(self):
        with pytest.raises(SystemExit):
            run_collection.main(['collect', '--family', 'bogus'])


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
