"""
Command connectors: run one argument vector on the target host and
classify the outcome instead of raising.
"""

from .base_connector import BaseConnector, CommandResult, CommandFailure
from .local_connector import LocalConnector
from .ssh_connector import SSHConnector

__all__ = [
    'BaseConnector',
    'CommandResult',
    'CommandFailure',
    'LocalConnector',
    'SSHConnector'
]
