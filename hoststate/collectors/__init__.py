"""
Collectors: per-request orchestration of fact families over a connector.
"""

from .base_collector import CollectionResult, BaseCollector, SystemStateCollector
from .capability_detector import ToolProber, ToolStatus, HostCapabilities, FAMILY_CANDIDATE_TOOLS
from .fallback_chain import Candidate, ChainResult, FallbackChain, NoDataAvailable
from .main_collector import HostCollector, FAMILY_COLLECTORS, DEFAULT_FAMILIES

__all__ = [
    'CollectionResult',
    'BaseCollector',
    'SystemStateCollector',
    'ToolProber',
    'ToolStatus',
    'HostCapabilities',
    'FAMILY_CANDIDATE_TOOLS',
    'Candidate',
    'ChainResult',
    'FallbackChain',
    'NoDataAvailable',
    'HostCollector',
    'FAMILY_COLLECTORS',
    'DEFAULT_FAMILIES',
]
