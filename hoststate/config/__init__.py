"""
Engine configuration loaded from hoststate.yml.
"""

from .settings import (
    EngineConfig, SSHTargetConfig, LoggingSettings, ConfigManager,
    get_config, initialize_config
)

__all__ = [
    'EngineConfig',
    'SSHTargetConfig',
    'LoggingSettings',
    'ConfigManager',
    'get_config',
    'initialize_config',
]
