# hoststate/parsers/compute.py
"""
Compute unit parsers: hypervisors (virsh, VirtualBox), container engines
(docker, podman) and the process table.
"""

import re
from typing import List, Optional

from .base import BaseOutputParser, ParseMismatch, to_int, to_float
from ..models import ComputeUnitPartial

VIRSH_STATES = {
    'running': 'running',
    'idle': 'running',
    'blocked': 'running',
    'paused': 'paused',
    'pmsuspended': 'paused',
    'in shutdown': 'running',
    'shut off': 'stopped',
    'crashed': 'stopped',
}

VBOX_STATES = {
    'running': 'running',
    'paused': 'paused',
    'poweroff': 'stopped',
    'aborted': 'stopped',
    'saved': 'stopped',
}

VBOX_VM_LINE = re.compile(r'^"(?P<name>.+)"\s+\{(?P<uuid>[0-9a-fA-F-]+)\}$')
VBOX_KEY_VALUE = re.compile(r'^"?([\w-]+)"?="?([^"]*)"?$')
DOMINFO_MEMORY = re.compile(r'(\d+)\s*KiB')
CONTAINER_UP = re.compile(r'^Up\s+(.+?)(?:\s+\((?:Paused|healthy|unhealthy|health: [^)]*)\))*$')

PROCESS_NAME_LIMIT = 20


def process_name(command: str) -> str:
    """Short display name for a process command token"""
    name = command
    if name.startswith('/'):
        name = name.rstrip('/').rsplit('/', 1)[-1] or name
    if len(name) > PROCESS_NAME_LIMIT:
        name = name[:PROCESS_NAME_LIMIT] + '...'
    return name


class VirshListParser(BaseOutputParser):
    """Parses `virsh list --all`"""

    TOOLS = ('virsh',)
    FACTS = ('compute_units',)

    def parse(self, output: str) -> List[ComputeUnitPartial]:
        lines = self.lines(output)
        if not any(line.split()[:2] == ['Id', 'Name'] for line in lines):
            raise ParseMismatch("virsh output has no 'Id Name State' header")

        units = []
        for line in lines:
            parts = line.split()
            if parts[:2] == ['Id', 'Name'] or set(line.strip()) == {'-'}:
                continue
            if len(parts) < 3:
                continue
            state = ' '.join(parts[2:]).lower()
            units.append(ComputeUnitPartial(
                name=parts[1],
                backend='virsh',
                kind='vm',
                status=VIRSH_STATES.get(state, 'stopped'),
                unit_id=parts[1]
            ))
        return units


class VirshDominfoParser(BaseOutputParser):
    """Parses `virsh dominfo <domain>` key/value details"""

    TOOLS = ('virsh',)
    FACTS = ('compute_details',)

    def parse(self, output: str) -> List[ComputeUnitPartial]:
        values = {}
        for line in self.lines(output):
            key, sep, value = line.partition(':')
            if sep:
                values[key.strip()] = value.strip()

        if 'Name' not in values:
            raise ParseMismatch("virsh dominfo output has no Name field")

        partial = ComputeUnitPartial(name=values['Name'], backend='virsh', kind='vm')
        if 'State' in values:
            partial.status = VIRSH_STATES.get(values['State'].lower(), 'stopped')
        if 'CPU(s)' in values:
            partial.vcpus = to_int(values['CPU(s)'], None)
        memory = DOMINFO_MEMORY.search(values.get('Max memory', ''))
        if memory:
            partial.memory_mb = to_int(memory.group(1)) // 1024
        return [partial]


class VBoxListParser(BaseOutputParser):
    """Parses `vboxmanage list vms`"""

    TOOLS = ('vboxmanage',)
    FACTS = ('compute_units',)

    def parse(self, output: str) -> List[ComputeUnitPartial]:
        units = []
        for line in self.lines(output):
            match = VBOX_VM_LINE.match(line.strip())
            if match:
                units.append(ComputeUnitPartial(
                    name=match.group('name'),
                    backend='vboxmanage',
                    kind='vm',
                    unit_id=match.group('uuid')
                ))
        if output.strip() and not units:
            raise ParseMismatch('no "name" {uuid} rows in vboxmanage output')
        return units


class VBoxInfoParser(BaseOutputParser):
    """Parses `vboxmanage showvminfo <vm> --machinereadable`"""

    TOOLS = ('vboxmanage',)
    FACTS = ('compute_details',)

    def parse(self, output: str) -> List[ComputeUnitPartial]:
        values = {}
        for line in self.lines(output):
            match = VBOX_KEY_VALUE.match(line.strip())
            if match:
                values[match.group(1)] = match.group(2)

        if 'name' not in values and 'VMState' not in values:
            raise ParseMismatch("showvminfo output has no name/VMState keys")

        partial = ComputeUnitPartial(name=values.get('name', ''), backend='vboxmanage', kind='vm')
        if 'VMState' in values:
            partial.status = VBOX_STATES.get(values['VMState'].lower(), 'stopped')
        if values.get('ostype'):
            partial.os = values['ostype']
        if 'memory' in values:
            partial.memory_mb = to_int(values['memory'], None)
        if 'cpus' in values:
            partial.vcpus = to_int(values['cpus'], None)
        return [partial]


class ContainerPsParser(BaseOutputParser):
    """
    Parses `docker|podman ps -a --format '{{.ID}}|{{.Names}}|{{.Status}}|{{.Image}}'`.

    The backend field is left for the caller, since both engines share
    the same format.
    """

    TOOLS = ('docker', 'podman')
    FACTS = ('compute_units',)

    def parse(self, output: str) -> List[ComputeUnitPartial]:
        units = []
        for line in self.lines(output):
            parts = [part.strip() for part in line.split('|')]
            if len(parts) < 3:
                raise ParseMismatch(f"unexpected container row: {line!r}")

            container_id, name, status_text = parts[0], parts[1], parts[2]
            image = parts[3] if len(parts) > 3 else None

            units.append(ComputeUnitPartial(
                name=name,
                backend='',
                kind='container',
                status=self._status(status_text),
                unit_id=container_id,
                os=image or None,
                uptime=self._uptime(status_text)
            ))
        return units

    @staticmethod
    def _status(text: str) -> str:
        if text.startswith('Up'):
            return 'paused' if '(Paused)' in text else 'running'
        return 'stopped'

    @staticmethod
    def _uptime(text: str) -> Optional[str]:
        match = CONTAINER_UP.match(text)
        return match.group(1) if match else None


class ContainerStatsParser(BaseOutputParser):
    """Parses `stats --no-stream --format '{{.Name}}|{{.CPUPerc}}|{{.MemPerc}}'`"""

    TOOLS = ('docker', 'podman')
    FACTS = ('compute_stats',)

    def parse(self, output: str) -> List[ComputeUnitPartial]:
        stats = []
        for line in self.lines(output):
            parts = [part.strip() for part in line.split('|')]
            if len(parts) < 3:
                continue
            stats.append(ComputeUnitPartial(
                name=parts[0],
                backend='',
                kind='container',
                cpu=to_float(parts[1], None),
                memory=to_float(parts[2], None)
            ))
        return stats


class PsAuxParser(BaseOutputParser):
    """Parses BSD-style `ps aux` rows"""

    TOOLS = ('ps',)
    FACTS = ('processes',)

    def parse(self, output: str) -> List[ComputeUnitPartial]:
        lines = self.lines(output)
        if lines and lines[0].split()[0] != 'USER':
            raise ParseMismatch("ps aux output has no USER header")

        processes = []
        for line in lines[1:]:
            parts = line.split(None, 10)
            if len(parts) <= 10:
                continue
            command = parts[10].split()[0]
            processes.append(ComputeUnitPartial(
                name=process_name(command),
                backend='ps',
                kind='process',
                status='running',
                unit_id=parts[1],
                cpu=to_float(parts[2]),
                memory=to_float(parts[3]),
                memory_mb=to_int(parts[5]) // 1024
            ))
        return processes


class PsEoParser(BaseOutputParser):
    """Parses `ps -eo pid,pcpu,pmem,etime,comm` for systems without BSD ps flags"""

    TOOLS = ('ps_eo',)
    FACTS = ('processes',)

    def parse(self, output: str) -> List[ComputeUnitPartial]:
        lines = self.lines(output)
        if lines and lines[0].split()[0] != 'PID':
            raise ParseMismatch("ps -eo output has no PID header")

        processes = []
        for line in lines[1:]:
            parts = line.split(None, 4)
            if len(parts) < 5:
                continue
            processes.append(ComputeUnitPartial(
                name=process_name(parts[4].strip()),
                backend='ps',
                kind='process',
                status='running',
                unit_id=parts[0],
                cpu=to_float(parts[1]),
                memory=to_float(parts[2]),
                uptime=parts[3]
            ))
        return processes
