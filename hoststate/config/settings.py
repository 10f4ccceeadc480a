# hoststate/config/settings.py
"""
Configuration management for the introspection engine.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict
import logging

TARGETS = ('local', 'ssh')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclass
class EngineConfig:
    """Collection behavior configuration"""
    target: str = 'local'  # 'local', 'ssh'
    command_timeout: float = 10
    rate_sample_interval: float = 1.0
    parallel_families: bool = False
    max_workers: int = 4
    connection_limit: int = 20
    storage_limit: int = 10
    top_process_limit: int = 5
    latency_probe_host: Optional[str] = '8.8.8.8'
    use_sudo: bool = False

    def __post_init__(self):
        """Validate configuration after initialization"""
        if self.target not in TARGETS:
            raise ValueError(f"engine.target must be one of {TARGETS}, got {self.target!r}")
        if self.command_timeout <= 0:
            raise ValueError("engine.command_timeout must be positive")
        if self.rate_sample_interval < 0:
            raise ValueError("engine.rate_sample_interval cannot be negative")
        if self.max_workers < 1:
            raise ValueError("engine.max_workers must be at least 1")
        for name in ('connection_limit', 'storage_limit', 'top_process_limit'):
            if getattr(self, name) < 1:
                raise ValueError(f"engine.{name} must be at least 1")


@dataclass
class SSHTargetConfig:
    """Remote target reached over SSH"""
    host: Optional[str] = None
    port: int = 22
    username: str = 'root'
    ssh_key_path: Optional[str] = None
    password_env: Optional[str] = None
    timeout: int = 10

    @property
    def password(self) -> Optional[str]:
        return os.getenv(self.password_env) if self.password_env else None


@dataclass
class LoggingSettings:
    level: str = 'INFO'
    debug: bool = False
    log_to_file: bool = False
    log_dir: str = 'logs'

    def __post_init__(self):
        self.level = self.level.upper()
        if self.level not in LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {LOG_LEVELS}, got {self.level!r}")


class ConfigManager:
    """Loads hoststate.yml, falling back to defaults when none is found"""

    def __init__(self, config_file: str = None):
        self.logger = logging.getLogger('config_manager')

        if config_file:
            self.config_file = Path(config_file)
        else:
            self.config_file = self._find_config_file()

        self.engine = EngineConfig()
        self.ssh = SSHTargetConfig()
        self.logging = LoggingSettings()

        if self.config_file is not None:
            self._load_config()
        else:
            self.logger.info("No configuration file found, using defaults")

        self._validate_target()

    def _find_config_file(self) -> Optional[Path]:
        """Find configuration file in standard locations"""
        possible_locations = [
            Path('config/hoststate.yml'),
            Path('hoststate/config/hoststate.yml'),
            Path('/etc/hoststate/hoststate.yml'),
            Path.home() / '.config' / 'hoststate' / 'hoststate.yml'
        ]

        for location in possible_locations:
            if location.exists():
                self.logger.info(f"Found config file at {location}")
                return location
        return None

    def _load_config(self):
        """Load configuration from file"""
        try:
            with open(self.config_file, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            self.logger.error(f"Failed to load configuration: {e}")
            raise

        if not isinstance(config_data, dict):
            raise ValueError(f"{self.config_file}: top level must be a mapping")

        self.engine = self._build(EngineConfig, config_data.get('engine'), 'engine')
        self.ssh = self._build(SSHTargetConfig, config_data.get('ssh'), 'ssh')
        self.logging = self._build(LoggingSettings, config_data.get('logging'), 'logging')

        self.logger.info(f"Loaded configuration from {self.config_file}")

    @staticmethod
    def _build(config_class, data: Optional[Dict[str, Any]], section: str):
        if data is None:
            return config_class()
        if not isinstance(data, dict):
            raise ValueError(f"'{section}' section must be a mapping")
        try:
            return config_class(**data)
        except TypeError as e:
            raise ValueError(f"Invalid '{section}' section: {e}")

    def _validate_target(self):
        if self.engine.target == 'ssh' and not self.ssh.host:
            raise ValueError("engine.target is 'ssh' but ssh.host is not set")
        if self.ssh.ssh_key_path and not Path(self.ssh.ssh_key_path).expanduser().exists():
            self.logger.warning(f"SSH key not found: {self.ssh.ssh_key_path}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'engine': asdict(self.engine),
            'ssh': asdict(self.ssh),
            'logging': asdict(self.logging),
        }

    def reload_config(self):
        """Reload configuration from file"""
        self.logger.info("Reloading configuration")
        if self.config_file is not None:
            self._load_config()
            self._validate_target()


# Global configuration instance
config_manager = None


def get_config() -> ConfigManager:
    """Get global configuration manager instance"""
    global config_manager
    if config_manager is None:
        config_manager = ConfigManager()
    return config_manager


def initialize_config(config_file: str = None) -> ConfigManager:
    """Initialize configuration manager with specific config file"""
    global config_manager
    config_manager = ConfigManager(config_file)
    return config_manager
