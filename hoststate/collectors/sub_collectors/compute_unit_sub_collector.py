# hoststate/collectors/sub_collectors/compute_unit_sub_collector.py
"""
Compute Unit Sub-Collector
Virtual machines and containers, falling back to the busiest processes.
"""

from typing import Callable, Dict, List

from .base_sub_collector import SubCollector
from ..capability_detector import ToolStatus
from ..fallback_chain import Candidate
from ...models import ComputeUnit, ComputeUnitPartial
from ...processors.normalizer import build_compute_units
from ...processors.placeholders import compute_placeholder

VIRTUALIZATION_BACKENDS = ('virsh', 'vboxmanage', 'docker', 'podman')

CONTAINER_PS_FORMAT = '{{.ID}}|{{.Names}}|{{.Status}}|{{.Image}}'
CONTAINER_STATS_FORMAT = '{{.Name}}|{{.CPUPerc}}|{{.MemPerc}}'

PROCESS_CANDIDATES = [
    Candidate('ps', 'processes', ('ps', 'aux', '--sort=-%cpu')),
    Candidate('ps_eo', 'processes', ('ps', '-eo', 'pid,pcpu,pmem,etime,comm'), probes=('ps',)),
]

# Processes under this share of cpu and memory are not reported
PROCESS_ACTIVITY_THRESHOLD = 1.0
PROCESS_OS_LABEL = 'System Process'


class ComputeUnitSubCollector(SubCollector):
    """
    Collects compute units.

    Backends are tried in order virsh, vboxmanage, docker, podman; the
    first one that lists any unit wins. Outside a container the top cpu
    processes are reported when no backend has units.
    """

    def get_section_name(self) -> str:
        return "compute_units"

    def collect(self) -> List[ComputeUnit]:
        self.log_start()

        collectors: Dict[str, Callable[[], List[ComputeUnitPartial]]] = {
            'virsh': self._collect_virsh,
            'vboxmanage': self._collect_vbox,
            'docker': lambda: self._collect_containers('docker'),
            'podman': lambda: self._collect_containers('podman'),
        }

        for backend in VIRTUALIZATION_BACKENDS:
            if not self.prober.is_available(backend):
                continue
            partials = collectors[backend]()
            if partials:
                units = build_compute_units(partials)
                self.log_end(len(units))
                return units

        in_container = self.prober.in_container()
        if not in_container:
            processes = self._collect_processes()
            if processes:
                units = build_compute_units(processes)
                self.log_end(len(units))
                return units

        tools_present = any(self.prober.status(backend) == ToolStatus.AVAILABLE
                            for backend in VIRTUALIZATION_BACKENDS)
        self.logger.info("No compute units found, returning placeholder")
        self.mark_placeholder('compute_units')
        return [compute_placeholder(in_container, tools_present)]

    def _collect_virsh(self) -> List[ComputeUnitPartial]:
        result = self.run_chain('compute_units', [
            Candidate('virsh', 'compute_units', ('virsh', 'list', '--all')),
        ])
        if not result:
            return []

        for unit in result.records:
            details = self.run_chain('compute_details', [
                Candidate('virsh', 'compute_details', ('virsh', 'dominfo', unit.name)),
            ])
            if details:
                self._apply_details(unit, details.records[0])
        return result.records

    def _collect_vbox(self) -> List[ComputeUnitPartial]:
        result = self.run_chain('compute_units', [
            Candidate('vboxmanage', 'compute_units', ('vboxmanage', 'list', 'vms')),
        ])
        if not result:
            return []

        for unit in result.records:
            details = self.run_chain('compute_details', [
                Candidate('vboxmanage', 'compute_details',
                          ('vboxmanage', 'showvminfo', unit.unit_id or unit.name, '--machinereadable')),
            ])
            if details:
                self._apply_details(unit, details.records[0])
        return result.records

    def _collect_containers(self, engine: str) -> List[ComputeUnitPartial]:
        result = self.run_chain('compute_units', [
            Candidate(engine, 'compute_units', (engine, 'ps', '-a', '--format', CONTAINER_PS_FORMAT)),
        ])
        if not result:
            return []

        units = result.records
        for unit in units:
            unit.backend = engine

        # Resource usage is best effort; only running containers appear
        stats = self.run_chain('compute_stats', [
            Candidate(engine, 'compute_stats',
                      (engine, 'stats', '--no-stream', '--format', CONTAINER_STATS_FORMAT)),
        ])
        if stats:
            usage = {entry.name: entry for entry in stats.records}
            for unit in units:
                entry = usage.get(unit.name)
                if entry:
                    unit.cpu = entry.cpu
                    unit.memory = entry.memory
        return units

    def _collect_processes(self) -> List[ComputeUnitPartial]:
        result = self.run_chain('processes', PROCESS_CANDIDATES)
        if not result:
            return []

        active = [
            process for process in result.records
            if process.cpu > PROCESS_ACTIVITY_THRESHOLD or process.memory > PROCESS_ACTIVITY_THRESHOLD
        ]
        active.sort(key=lambda process: process.cpu, reverse=True)
        for process in active:
            process.os = PROCESS_OS_LABEL
        return active[:self.settings.top_process_limit]

    @staticmethod
    def _apply_details(unit: ComputeUnitPartial, details: ComputeUnitPartial):
        for name in ('status', 'vcpus', 'memory_mb', 'os'):
            value = getattr(details, name)
            if value is not None:
                setattr(unit, name, value)

