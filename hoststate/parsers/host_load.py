# hoststate/parsers/host_load.py
"""
Host load parsers: cpu, memory, load average, uptime, hostname and ping.
"""

import re
from typing import Any, Dict, List

from .base import BaseOutputParser, ParseMismatch, to_int, to_float
from ..models import UNKNOWN

TOP_CPU_IDLE = re.compile(r'Cpu\(s\):.*?([\d.]+)\s*%?\s*id')
LOAD_AVERAGE = re.compile(r'load averages?:\s*([\d.]+),?\s+([\d.]+),?\s+([\d.]+)')
PING_RTT = re.compile(r'(?:rtt|round-trip)\s+min/avg/max(?:/\w+)?\s*=\s*([\d.]+)/([\d.]+)/([\d.]+)')
PING_LOSS = re.compile(r'([\d.]+)%\s+packet loss')


def format_uptime(seconds: float) -> str:
    """Render seconds as 'X days, Y hours, Z minutes'"""
    total = int(seconds)
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60
    return f"{days} days, {hours} hours, {minutes} minutes"


class HostnameParser(BaseOutputParser):
    """First non-blank line of `hostname` or /etc/hostname"""

    TOOLS = ('hostname', 'etc_hostname')
    FACTS = ('hostname',)

    def parse(self, output: str) -> List[str]:
        lines = self.lines(output)
        return [lines[0].strip()] if lines else []


class ProcStatParser(BaseOutputParser):
    """Aggregate cpu jiffies from /proc/stat as {'total', 'idle'}"""

    TOOLS = ('proc_stat',)
    FACTS = ('cpu_times',)

    def parse(self, output: str) -> List[Dict[str, int]]:
        for line in self.lines(output):
            parts = line.split()
            if parts[0] != 'cpu':
                continue
            values = [to_int(v) for v in parts[1:]]
            if len(values) < 4:
                raise ParseMismatch("short cpu line in /proc/stat")
            # idle + iowait
            idle = values[3] + (values[4] if len(values) > 4 else 0)
            # guest time is already counted in user/nice
            total = sum(values[:8])
            return [{'total': total, 'idle': idle}]
        raise ParseMismatch("no aggregate cpu line in /proc/stat")


def cpu_percent(first: Dict[str, int], second: Dict[str, int]) -> Any:
    """Busy percentage between two /proc/stat samples"""
    total = second['total'] - first['total']
    idle = second['idle'] - first['idle']
    if total <= 0:
        return UNKNOWN
    return round(100.0 * (total - idle) / total, 1)


class TopCpuParser(BaseOutputParser):
    """Busy cpu percentage from the `top -bn1` summary line"""

    TOOLS = ('top',)
    FACTS = ('cpu',)

    def parse(self, output: str) -> List[float]:
        match = TOP_CPU_IDLE.search(output)
        if not match:
            raise ParseMismatch("no Cpu(s) summary line in top output")
        return [round(100.0 - to_float(match.group(1)), 1)]


class MeminfoParser(BaseOutputParser):
    """Parses /proc/meminfo into total/available bytes"""

    TOOLS = ('proc_meminfo',)
    FACTS = ('memory',)

    def parse(self, output: str) -> List[Dict[str, int]]:
        values = {}
        for line in self.lines(output):
            key, sep, rest = line.partition(':')
            if sep:
                values[key.strip()] = to_int(rest.split()[0] if rest.split() else None) * 1024

        if 'MemTotal' not in values:
            raise ParseMismatch("no MemTotal in /proc/meminfo")

        available = values.get('MemAvailable')
        if available is None:
            # Kernels before 3.14
            available = values.get('MemFree', 0) + values.get('Buffers', 0) + values.get('Cached', 0)
        return [{'total': values['MemTotal'], 'available': available}]


class FreeParser(BaseOutputParser):
    """Parses `free -b`"""

    TOOLS = ('free',)
    FACTS = ('memory',)

    def parse(self, output: str) -> List[Dict[str, int]]:
        lines = self.lines(output)
        header = None
        for line in lines:
            parts = line.split()
            if parts[0] == 'total':
                header = parts
                continue
            if parts[0] == 'Mem:' and header:
                row = dict(zip(header, (to_int(v) for v in parts[1:])))
                available = row.get('available', row.get('free', 0))
                return [{'total': row.get('total', 0), 'available': available}]
        raise ParseMismatch("no Mem: row in free output")


class LoadavgParser(BaseOutputParser):
    """Parses /proc/loadavg"""

    TOOLS = ('proc_loadavg',)
    FACTS = ('load_average',)

    def parse(self, output: str) -> List[Dict[str, float]]:
        parts = output.split()
        if len(parts) < 3:
            raise ParseMismatch("/proc/loadavg has fewer than three fields")
        return [{'1m': to_float(parts[0]), '5m': to_float(parts[1]), '15m': to_float(parts[2])}]


class UptimeLoadParser(BaseOutputParser):
    """Load averages from the classic `uptime` line"""

    TOOLS = ('uptime',)
    FACTS = ('load_average',)

    def parse(self, output: str) -> List[Dict[str, float]]:
        match = LOAD_AVERAGE.search(output)
        if not match:
            raise ParseMismatch("no 'load average:' in uptime output")
        return [{'1m': to_float(match.group(1)), '5m': to_float(match.group(2)), '15m': to_float(match.group(3))}]


class ProcUptimeParser(BaseOutputParser):
    """Parses /proc/uptime seconds"""

    TOOLS = ('proc_uptime',)
    FACTS = ('uptime',)

    def parse(self, output: str) -> List[str]:
        parts = output.split()
        if not parts:
            return []
        seconds = to_float(parts[0], None)
        if seconds is None:
            raise ParseMismatch(f"/proc/uptime is not numeric: {parts[0]!r}")
        return [format_uptime(seconds)]


class UptimePrettyParser(BaseOutputParser):
    """Parses `uptime -p` ('up 3 days, 4 hours, 5 minutes')"""

    TOOLS = ('uptime_pretty',)
    FACTS = ('uptime',)

    def parse(self, output: str) -> List[str]:
        text = output.strip()
        if not text.startswith('up '):
            raise ParseMismatch("uptime -p output does not start with 'up '")
        return [text[3:].strip()]


class PingParser(BaseOutputParser):
    """Round-trip statistics and packet loss from iputils or busybox ping"""

    TOOLS = ('ping',)
    FACTS = ('latency',)

    def parse(self, output: str) -> List[Dict[str, Any]]:
        loss = PING_LOSS.search(output)
        if not loss:
            raise ParseMismatch("no packet loss summary in ping output")

        result = {
            'min': UNKNOWN,
            'average': UNKNOWN,
            'max': UNKNOWN,
            'packet_loss': to_float(loss.group(1)),
        }
        rtt = PING_RTT.search(output)
        if rtt:
            result['min'] = to_float(rtt.group(1))
            result['average'] = to_float(rtt.group(2))
            result['max'] = to_float(rtt.group(3))
        return [result]
