# tests/test_settings.py
"""
Tests for hoststate.yml loading, validation and logging setup.
"""

import logging

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from hoststate.config.settings import ConfigManager, EngineConfig, LoggingSettings
from hoststate.utils.logging_config import setup_logging


def write_config(tmp_path, text, name='hoststate.yml'):
    config_file = tmp_path / name
    config_file.write_text(text)
    return str(config_file)


class TestConfigManager:

    def test_defaults_without_config_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv('HOME', str(tmp_path))

        config = ConfigManager()

        assert config.config_file is None
        assert config.engine.target == 'local'
        assert config.engine.rate_sample_interval == 1.0
        assert config.engine.latency_probe_host == '8.8.8.8'
        assert config.logging.level == 'INFO'

    def test_discovers_config_in_working_directory(self, tmp_path, monkeypatch):
        (tmp_path / 'config').mkdir()
        (tmp_path / 'config' / 'hoststate.yml').write_text("engine:\n  connection_limit: 7\n")
        monkeypatch.chdir(tmp_path)

        config = ConfigManager()

        assert config.engine.connection_limit == 7

    def test_load_values(self, tmp_path):
        config = ConfigManager(write_config(tmp_path, """
engine:
  target: ssh
  command_timeout: 5
  parallel_families: true
  use_sudo: true
ssh:
  host: 192.168.1.20
  username: monitor
  password_env: HOSTSTATE_TEST_PASSWORD
logging:
  level: debug
"""))

        assert config.engine.target == 'ssh'
        assert config.engine.command_timeout == 5
        assert config.engine.parallel_families is True
        assert config.engine.use_sudo is True
        assert config.ssh.host == '192.168.1.20'
        assert config.ssh.port == 22
        assert config.logging.level == 'DEBUG'

    def test_password_from_environment(self, tmp_path, monkeypatch):
        config = ConfigManager(write_config(tmp_path, "ssh:\n  password_env: HOSTSTATE_TEST_PASSWORD\n"))

        monkeypatch.delenv('HOSTSTATE_TEST_PASSWORD', raising=False)
        assert config.ssh.password is None

        monkeypatch.setenv('HOSTSTATE_TEST_PASSWORD', 's3cret')
        assert config.ssh.password == 's3cret'

    def test_empty_file_gives_defaults(self, tmp_path):
        config = ConfigManager(write_config(tmp_path, ""))
        assert config.engine == EngineConfig()

    @pytest.mark.parametrize('text', [
        "engine:\n  target: telnet\n",
        "engine:\n  bogus_key: 1\n",
        "engine:\n  target: ssh\n",
        "engine:\n  command_timeout: 0\n",
        "engine:\n  rate_sample_interval: -1\n",
        "engine:\n  storage_limit: 0\n",
        "engine: 5\n",
        "logging:\n  level: LOUD\n",
        "- engine\n- ssh\n",
    ])
    def test_invalid_config(self, tmp_path, text):
        with pytest.raises(ValueError):
            ConfigManager(write_config(tmp_path, text))

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(OSError):
            ConfigManager(str(tmp_path / 'absent.yml'))

    def test_to_dict(self, config_manager):
        data = config_manager.to_dict()

        assert set(data) == {'engine', 'ssh', 'logging'}
        assert data['engine']['rate_sample_interval'] == 0
        assert data['engine']['latency_probe_host'] is None
        assert data['logging']['level'] == 'DEBUG'

    def test_reload(self, tmp_path):
        path = write_config(tmp_path, "engine:\n  max_workers: 2\n")
        config = ConfigManager(path)

        Path(path).write_text("engine:\n  max_workers: 6\n")
        config.reload_config()

        assert config.engine.max_workers == 6


class TestLoggingSetup:

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_level_normalized(self):
        assert LoggingSettings(level='warning').level == 'WARNING'

    def test_console_only(self):
        setup_logging(log_level='WARNING')

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert logging.getLogger('paramiko').level == logging.WARNING

    def test_log_files(self, tmp_path):
        log_dir = tmp_path / 'logs'

        setup_logging(log_level='INFO', log_to_file=True, log_dir=str(log_dir))
        logging.getLogger('collector.test').error("disk probe failed")

        assert (log_dir / 'hoststate.log').exists()
        assert 'disk probe failed' in (log_dir / 'errors.log').read_text()


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
