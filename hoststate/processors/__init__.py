"""
Normalization of partial records into snapshots, and fallback records.
"""

from .normalizer import (
    merge_interfaces, build_connections, build_ports, build_firewall_rules,
    build_volumes, build_compute_units
)
from . import placeholders

__all__ = [
    'merge_interfaces',
    'build_connections',
    'build_ports',
    'build_firewall_rules',
    'build_volumes',
    'build_compute_units',
    'placeholders',
]
