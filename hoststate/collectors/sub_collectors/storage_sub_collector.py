# hoststate/collectors/sub_collectors/storage_sub_collector.py
"""
Storage Sub-Collector
Mounted volumes with usage, per-device I/O counters and root inode usage.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from .base_sub_collector import SubCollector
from ..fallback_chain import Candidate
from ...models import UNKNOWN, StorageSnapshot, StorageVolume
from ...processors.normalizer import build_volumes
from ...processors.placeholders import storage_placeholder

DF_CANDIDATES = [
    Candidate('df', 'storage', ('df', '-P', '-T', '-B1')),
    # BusyBox and BSD df lack -T and -B
    Candidate('df', 'storage', ('df', '-P', '-k')),
]
LSBLK_CANDIDATES = [
    Candidate('lsblk', 'block_devices', ('lsblk', '-J', '-o', 'NAME,TRAN,RM,TYPE')),
]
DISKSTATS_CANDIDATES = [
    Candidate('proc_diskstats', 'disk_io', ('cat', '/proc/diskstats'), probes=()),
]
INODE_CANDIDATES = [
    Candidate('df', 'inodes', ('df', '-P', '-i', '/')),
]

IO_FIELDS = ('reads', 'writes', 'read_kb', 'write_kb')


class StorageSubCollector(SubCollector):
    """Collects a StorageSnapshot; a placeholder volume when df gives nothing usable"""

    def get_section_name(self) -> str:
        return "storage"

    def collect(self) -> StorageSnapshot:
        self.log_start()

        df_result = self.run_chain('storage', DF_CANDIDATES)
        if not df_result:
            self.logger.warning("df produced no usable output, returning placeholder volume")
            self.mark_placeholder('storage')
            return storage_placeholder()

        volumes = build_volumes(
            df_result.records,
            limit=self.settings.storage_limit,
            external_devices=self._external_devices(),
            disk_io=self._disk_io()
        )
        if not volumes:
            self.logger.warning("No reportable volumes found, returning placeholder volume")
            self.mark_placeholder('storage')
            return storage_placeholder()

        snapshot = StorageSnapshot(
            filesystems=volumes,
            inodes=self._inodes(),
            iops=self._io_totals(volumes),
            last_updated=datetime.now().isoformat()
        )
        self.log_end(len(volumes))
        return snapshot

    def _external_devices(self) -> Optional[Set[str]]:
        """Device names flagged external by lsblk; None when lsblk is unavailable"""
        result = self.run_chain('block_devices', LSBLK_CANDIDATES)
        if not result:
            return None
        return {device['name'] for device in result.records if device['external']}

    def _disk_io(self) -> Dict[str, Dict[str, Any]]:
        result = self.run_chain('disk_io', DISKSTATS_CANDIDATES)
        if not result:
            return {}
        return {device['device']: device for device in result.records}

    def _inodes(self) -> Dict[str, Any]:
        result = self.run_chain('inodes', INODE_CANDIDATES)
        if not result:
            return {'total': UNKNOWN, 'used': UNKNOWN, 'available': UNKNOWN, 'percentage': UNKNOWN}
        root = result.records[0]
        return {key: root[key] for key in ('total', 'used', 'available', 'percentage')}

    @staticmethod
    def _io_totals(volumes: List[StorageVolume]) -> Dict[str, Any]:
        totals = {name: 0 for name in IO_FIELDS}
        counted = False
        for volume in volumes:
            values = {**volume.iops, **volume.throughput}
            if any(values[name] == UNKNOWN for name in IO_FIELDS):
                continue
            counted = True
            for name in IO_FIELDS:
                totals[name] += values[name]
        if not counted:
            return {name: UNKNOWN for name in IO_FIELDS}
        return totals
