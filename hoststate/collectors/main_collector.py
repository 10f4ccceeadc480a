# hoststate/collectors/main_collector.py
"""
Host Collector
Orchestrates fact-family sub-collectors against one target host and
assembles their snapshots into a single result.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

from .base_collector import SystemStateCollector, CollectionResult
from .capability_detector import ToolProber
from .sub_collectors import (
    InterfaceSubCollector,
    ConnectionSubCollector,
    PortSubCollector,
    FirewallSubCollector,
    NetworkSubCollector,
    StorageSubCollector,
    ComputeUnitSubCollector,
    HostLoadSubCollector
)
from ..config.settings import ConfigManager
from ..connectors.local_connector import LocalConnector
from ..connectors.ssh_connector import SSHConnector
from ..processors import placeholders

FAMILY_COLLECTORS = {
    'interfaces': InterfaceSubCollector,
    'connections': ConnectionSubCollector,
    'ports': PortSubCollector,
    'firewall': FirewallSubCollector,
    'network': NetworkSubCollector,
    'storage': StorageSubCollector,
    'compute_units': ComputeUnitSubCollector,
    'host_load': HostLoadSubCollector,
}

FAMILY_PLACEHOLDERS = {
    'interfaces': placeholders.interface_placeholder,
    'connections': placeholders.connection_placeholder,
    'ports': placeholders.assumed_ports,
    'firewall': placeholders.default_firewall_rules,
    'network': placeholders.network_placeholder,
    'storage': placeholders.storage_placeholder,
    'compute_units': lambda: [placeholders.compute_placeholder(False, False)],
    'host_load': placeholders.host_load_placeholder,
}

# 'network' already contains interfaces, connections, ports and firewall
DEFAULT_FAMILIES = ('network', 'storage', 'compute_units', 'host_load')


def serialize(snapshot: Any) -> Any:
    if isinstance(snapshot, list):
        return [serialize(item) for item in snapshot]
    if hasattr(snapshot, 'to_dict'):
        return snapshot.to_dict()
    return snapshot


class HostCollector(SystemStateCollector):
    """
    Collects live host state family by family.

    Every request gets a fresh ToolProber, so tool availability is probed
    at most once per request and never shared across requests. A failing
    family is replaced by its placeholder; the collection as a whole still
    succeeds.
    """

    def __init__(self, name: str = 'localhost', config_manager: ConfigManager = None,
                 connector=None, families: Optional[List[str]] = None):
        self.config_manager = config_manager or ConfigManager()
        self.engine = self.config_manager.engine
        ssh = self.config_manager.ssh

        target = {'kind': self.engine.target}
        if self.engine.target == 'ssh':
            target.update(host=ssh.host, port=ssh.port, username=ssh.username)
        super().__init__(name, target)

        self.connector = connector or self._build_connector()
        self.families = list(families) if families else list(DEFAULT_FAMILIES)

    def _build_connector(self):
        if self.engine.target == 'ssh':
            ssh = self.config_manager.ssh
            return SSHConnector(
                host=ssh.host,
                port=ssh.port,
                username=ssh.username,
                password=ssh.password,
                ssh_key_path=ssh.ssh_key_path,
                timeout=self.engine.command_timeout,
                connect_timeout=ssh.timeout
            )
        return LocalConnector(timeout=self.engine.command_timeout)

    def validate_config(self) -> bool:
        unknown = [family for family in self.families if family not in FAMILY_COLLECTORS]
        if unknown:
            self.logger.error(f"Unknown families requested: {', '.join(unknown)}")
            return False
        if self.engine.target == 'ssh' and not self.config_manager.ssh.host:
            self.logger.error("Host required for ssh target")
            return False
        return True

    def collect_family(self, family: str) -> CollectionResult:
        """Collect a single family; data is that family's serialized snapshot"""
        if family not in FAMILY_COLLECTORS:
            return CollectionResult(False, error=f"Unknown family: {family}",
                                    metadata=self.create_metadata())
        try:
            self.connect()
            try:
                prober = ToolProber(self.connector)
                data, availability = self._run_family(family, prober)
            finally:
                self.connector.close()
        except Exception as e:
            return self.handle_collection_error(e, f"{family} collection")

        return CollectionResult(
            success=True,
            data=data,
            metadata=self.create_metadata({'family': family, 'tool_availability': availability})
        )

    def get_system_state(self) -> Dict[str, Any]:
        """
        Collection orchestration:
        1. Connect to the target
        2. Run the requested families, in parallel when configured
        3. Assemble family snapshots keyed by family name
        """
        self.connect()
        try:
            prober = ToolProber(self.connector)
            results = self._run_families(prober)
        finally:
            self.connector.close()

        state = {}
        availability = []
        for family, (data, family_availability) in zip(self.families, results):
            state[family] = data
            availability.extend(family_availability)
        self.last_tool_availability = availability
        return state

    def collect(self) -> CollectionResult:
        self.last_tool_availability = []
        result = super().collect()
        result.metadata['tool_availability'] = self.last_tool_availability
        return result

    def connect(self):
        if isinstance(self.connector, SSHConnector) and self.connector.client is None:
            self.logger.info(f"Connecting to {self.connector.host}...")
            if not self.connector.connect():
                raise ConnectionError(f"Failed to establish SSH connection to {self.connector.host}")
            if not self.connector.test_connection():
                raise ConnectionError(f"SSH connection to {self.connector.host} does not run commands")

    def _run_families(self, prober: ToolProber) -> List[Tuple[Any, List[Dict]]]:
        if self.engine.parallel_families and len(self.families) > 1:
            workers = min(self.engine.max_workers, len(self.families))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                return list(executor.map(lambda family: self._run_family(family, prober), self.families))
        return [self._run_family(family, prober) for family in self.families]

    def _run_family(self, family: str, prober: ToolProber) -> Tuple[Any, List[Dict]]:
        """Run one sub-collector; unexpected errors become that family's placeholder"""
        collector = FAMILY_COLLECTORS[family](self.connector, prober, self.engine, self.name)
        try:
            snapshot = collector.collect()
        except Exception as e:
            self.logger.exception(f"{family} sub-collector failed: {e}")
            snapshot = FAMILY_PLACEHOLDERS[family]()
            collector.mark_placeholder(family)

        availability = [entry.to_dict() for entry in collector.availability]
        return serialize(snapshot), availability
