# hoststate/collectors/sub_collectors/host_load_sub_collector.py
"""
Host Load Sub-Collector
Hostname, cpu, memory, root disk, network volume, load average and uptime.
"""

import time
from datetime import datetime
from typing import Any, Dict, Optional

from .base_sub_collector import SubCollector
from ..fallback_chain import Candidate
from ...models import UNKNOWN, HostLoad
from ...parsers.host_load import cpu_percent
from ...processors.normalizer import host_status
from ...processors.placeholders import host_load_placeholder, DEFAULT_HOST_NAME

HOSTNAME_CANDIDATES = [
    Candidate('hostname', 'hostname', ('hostname',)),
    Candidate('etc_hostname', 'hostname', ('cat', '/etc/hostname'), probes=()),
]
PROC_STAT_CANDIDATES = [
    Candidate('proc_stat', 'cpu_times', ('cat', '/proc/stat'), probes=()),
]
TOP_CANDIDATES = [
    Candidate('top', 'cpu', ('top', '-bn1')),
]
MEMORY_CANDIDATES = [
    Candidate('proc_meminfo', 'memory', ('cat', '/proc/meminfo'), probes=()),
    Candidate('free', 'memory', ('free', '-b')),
]
ROOT_DISK_CANDIDATES = [
    Candidate('df', 'storage', ('df', '-P', '-k', '/')),
]
NETWORK_CANDIDATES = [
    Candidate('proc_net_dev', 'interface_counters', ('cat', '/proc/net/dev'), probes=()),
]
LOAD_CANDIDATES = [
    Candidate('proc_loadavg', 'load_average', ('cat', '/proc/loadavg'), probes=()),
    Candidate('uptime', 'load_average', ('uptime',)),
]
UPTIME_CANDIDATES = [
    Candidate('proc_uptime', 'uptime', ('cat', '/proc/uptime'), probes=()),
    Candidate('uptime_pretty', 'uptime', ('uptime', '-p'), probes=('uptime',)),
]

MIB = 1024 * 1024


class HostLoadSubCollector(SubCollector):
    """Collects a HostLoad summary; the 'Main Server' placeholder when every source failed"""

    def get_section_name(self) -> str:
        return "host_load"

    def collect(self) -> HostLoad:
        self.log_start()

        hostname = self._first('hostname', HOSTNAME_CANDIDATES)
        metrics = {
            'cpu': self._cpu(),
            'memory': self._memory(),
            'disk': self._disk(),
            'network_mb': self._network_mb(),
        }
        load_average = self._first('load_average', LOAD_CANDIDATES)
        uptime = self._first('uptime', UPTIME_CANDIDATES)

        if hostname is None and load_average is None and uptime is None \
                and all(value == UNKNOWN for value in metrics.values()):
            self.logger.warning("No host load source answered, returning placeholder")
            self.mark_placeholder('host_load')
            return host_load_placeholder()

        percentages = [metrics[name] for name in ('cpu', 'memory', 'disk') if metrics[name] != UNKNOWN]
        status = host_status(percentages)

        load = HostLoad(
            name=hostname or DEFAULT_HOST_NAME,
            status=status,
            load_average=load_average or {'1m': UNKNOWN, '5m': UNKNOWN, '15m': UNKNOWN},
            uptime=uptime or UNKNOWN,
            last_updated=datetime.now().isoformat(),
            **metrics
        )
        self.log_end()
        return load

    def _first(self, fact: str, candidates) -> Optional[Any]:
        result = self.run_chain(fact, candidates)
        return result.records[0] if result else None

    def _cpu(self):
        first = self._first('cpu_times', PROC_STAT_CANDIDATES)
        interval = self.settings.rate_sample_interval
        if first is not None and interval > 0:
            time.sleep(interval)
            second = self._first('cpu_times', PROC_STAT_CANDIDATES)
            if second is not None:
                busy = cpu_percent(first, second)
                if busy != UNKNOWN:
                    return busy

        busy = self._first('cpu', TOP_CANDIDATES)
        return busy if busy is not None else UNKNOWN

    def _memory(self):
        memory: Optional[Dict[str, int]] = self._first('memory', MEMORY_CANDIDATES)
        if not memory or not memory['total']:
            return UNKNOWN
        used = memory['total'] - memory['available']
        return round(100.0 * used / memory['total'], 1)

    def _disk(self):
        root = self._first('storage', ROOT_DISK_CANDIDATES)
        if root is None:
            return UNKNOWN
        if root.percentage is not None:
            return root.percentage
        if root.total_bytes and root.used_bytes is not None:
            return round(100.0 * root.used_bytes / root.total_bytes, 1)
        return UNKNOWN

    def _network_mb(self):
        result = self.run_chain('interface_counters', NETWORK_CANDIDATES)
        if not result:
            return UNKNOWN
        total = sum(
            (partial.rx_bytes or 0) + (partial.tx_bytes or 0)
            for partial in result.records if partial.name != 'lo'
        )
        return round(total / MIB, 2)
