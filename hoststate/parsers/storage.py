# hoststate/parsers/storage.py
"""
Storage parsers: df (space and inodes), /proc/diskstats, lsblk and du.
"""

import json
import re
from typing import Any, Dict, List

from .base import BaseOutputParser, ParseMismatch, to_int, to_float
from ..models import VolumePartial

# GNU prints "1-blocks" for -B1, "1K-blocks" for -k; POSIX -P prints "1024-blocks"
BLOCK_HEADER_PATTERN = re.compile(r'^(\d+)([KMG]?)B?-blocks$')
UNIT_MULTIPLIERS = {'': 1, 'K': 1024, 'M': 1024 ** 2, 'G': 1024 ** 3}
DEFAULT_BLOCK_SIZE = 1024

SECTOR_BYTES = 512


def block_size_from_header(column: str) -> int:
    """Bytes per block for a df size column header such as '1K-blocks'"""
    match = BLOCK_HEADER_PATTERN.match(column)
    if not match:
        return DEFAULT_BLOCK_SIZE
    return int(match.group(1)) * UNIT_MULTIPLIERS[match.group(2)]


class DfParser(BaseOutputParser):
    """
    Parses POSIX `df -P` output, with or without the -T type column.

    The block size is read from the header so `-B1` and `-k` runs give
    the same byte values.
    """

    TOOLS = ('df',)
    FACTS = ('storage',)

    def parse(self, output: str) -> List[VolumePartial]:
        lines = self.lines(output)
        header_index = next(
            (i for i, line in enumerate(lines) if line.startswith('Filesystem')), None)
        if header_index is None:
            raise ParseMismatch("df output has no 'Filesystem' header")

        header = lines[header_index].split()
        has_type = len(header) > 1 and header[1] == 'Type'
        block_column = header[2] if has_type else header[1]
        block_size = block_size_from_header(block_column)

        volumes = []
        for line in lines[header_index + 1:]:
            parts = line.split()
            numeric_start = 2 if has_type else 1
            if len(parts) < numeric_start + 5:
                continue

            total, used, available = (to_int(v, None) for v in parts[numeric_start:numeric_start + 3])
            if total is None:
                continue

            volumes.append(VolumePartial(
                device=parts[0],
                mount_point=' '.join(parts[numeric_start + 4:]),
                filesystem=parts[1] if has_type else None,
                total_bytes=total * block_size,
                used_bytes=used * block_size if used is not None else None,
                available_bytes=available * block_size if available is not None else None,
                percentage=to_float(parts[numeric_start + 3], None)
            ))

        return volumes


class DfInodeParser(BaseOutputParser):
    """Parses `df -P -i <path>`"""

    TOOLS = ('df',)
    FACTS = ('inodes',)

    def parse(self, output: str) -> List[Dict[str, Any]]:
        lines = self.lines(output)
        if not lines or not lines[0].startswith('Filesystem'):
            raise ParseMismatch("df -i output has no 'Filesystem' header")

        inodes = []
        for line in lines[1:]:
            parts = line.split()
            if len(parts) < 6:
                continue
            inodes.append({
                'mount_point': ' '.join(parts[5:]),
                'total': to_int(parts[1]),
                'used': to_int(parts[2]),
                'available': to_int(parts[3]),
                # Filesystems without fixed inode tables report '-'
                'percentage': to_float(parts[4], 0.0),
            })
        return inodes


class DiskstatsParser(BaseOutputParser):
    """Parses /proc/diskstats into cumulative per-device I/O counters"""

    TOOLS = ('proc_diskstats',)
    FACTS = ('disk_io',)

    def parse(self, output: str) -> List[Dict[str, Any]]:
        devices = []
        for line in self.lines(output):
            parts = line.split()
            if len(parts) < 10:
                continue
            devices.append({
                'device': parts[2],
                'reads': to_int(parts[3]),
                'read_kb': to_int(parts[5]) * SECTOR_BYTES // 1024,
                'writes': to_int(parts[7]),
                'write_kb': to_int(parts[9]) * SECTOR_BYTES // 1024,
            })
        return devices


class LsblkParser(BaseOutputParser):
    """Parses `lsblk -J -o NAME,TRAN,RM,TYPE` to flag external devices"""

    TOOLS = ('lsblk',)
    FACTS = ('block_devices',)

    def parse(self, output: str) -> List[Dict[str, Any]]:
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise ParseMismatch(f"lsblk output is not JSON: {e}")
        if not isinstance(data, dict) or not isinstance(data.get('blockdevices', []), list):
            raise ParseMismatch("lsblk output has no blockdevices list")

        devices = []
        for device in data.get('blockdevices', []):
            self._walk(device, None, False, devices)
        return devices

    def _walk(self, device: Dict[str, Any], parent_tran, parent_removable: bool, out: List[Dict[str, Any]]):
        if not isinstance(device, dict):
            raise ParseMismatch(f"Unexpected lsblk entry: {device!r}")
        transport = device.get('tran') or parent_tran
        removable = parent_removable or device.get('rm') in (True, 1, '1', 'true')
        out.append({
            'name': device.get('name', ''),
            'transport': transport,
            'external': transport == 'usb' or removable,
        })
        for child in device.get('children', []) or []:
            self._walk(child, transport, removable, out)


class DuParser(BaseOutputParser):
    """Parses `du -k -d 1 <path>` into (kilobytes, path) pairs"""

    TOOLS = ('du',)
    FACTS = ('disk_usage',)

    def parse(self, output: str) -> List[Dict[str, Any]]:
        entries = []
        for line in self.lines(output):
            size, _, path = line.partition('\t')
            if not path or not size.strip().isdigit():
                raise ParseMismatch(f"Unexpected du line: {line!r}")
            entries.append({'size_kb': int(size), 'path': path})
        return entries
