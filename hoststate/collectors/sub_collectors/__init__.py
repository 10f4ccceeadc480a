"""
Sub-collectors for the host introspection engine.
Each sub-collector is responsible for collecting one fact family.
"""

from .base_sub_collector import SubCollector
from .interface_sub_collector import InterfaceSubCollector
from .socket_sub_collector import ConnectionSubCollector, PortSubCollector, ServiceResolver
from .firewall_sub_collector import FirewallSubCollector
from .network_sub_collector import NetworkSubCollector
from .storage_sub_collector import StorageSubCollector
from .compute_unit_sub_collector import ComputeUnitSubCollector
from .host_load_sub_collector import HostLoadSubCollector

__all__ = [
    'SubCollector',
    'InterfaceSubCollector',
    'ConnectionSubCollector',
    'PortSubCollector',
    'ServiceResolver',
    'FirewallSubCollector',
    'NetworkSubCollector',
    'StorageSubCollector',
    'ComputeUnitSubCollector',
    'HostLoadSubCollector'
]
