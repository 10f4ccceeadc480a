# hoststate/parsers/base.py
"""
Base class for tool output parsers.

Parsing is regex-per-field on each line rather than one grammar per tool:
a field that is missing on some distribution simply keeps its default.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple


class ParseMismatch(ValueError):
    """Raised when an entire tool output is not in any recognized shape"""


class BaseOutputParser(ABC):
    """
    Base class for tool-specific output parsing.

    Each parser handles the output of one or more tools for one fact
    (e.g. 'ip' output for 'interfaces') and returns partial records.
    """

    TOOLS: Tuple[str, ...] = ()
    FACTS: Tuple[str, ...] = ()

    def can_process(self, tool: str, fact: str) -> bool:
        """
        Determine if this parser can handle the given tool output.

        Args:
            tool: Tool that produced the output (e.g., 'ss', 'ufw')
            fact: Fact being extracted (e.g., 'ports', 'firewall')

        Returns:
            True if this parser handles this combination
        """
        return tool in self.TOOLS and fact in self.FACTS

    @abstractmethod
    def parse(self, output: str) -> List[Any]:
        """
        Parse raw tool output.

        Args:
            output: Raw stdout of the tool

        Returns:
            List of partial records; empty when nothing could be extracted

        Raises:
            ParseMismatch: output is not in a shape this parser knows
        """
        pass

    @staticmethod
    def lines(output: str) -> List[str]:
        return [line.rstrip() for line in output.splitlines() if line.strip()]


def to_int(value: Optional[str], default: Any = 0) -> Any:
    """Parse an integer, returning default instead of raising"""
    if value is None:
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def to_float(value: Optional[str], default: Any = 0.0) -> Any:
    """Parse a float (accepts a trailing %), returning default instead of raising"""
    if value is None:
        return default
    try:
        return float(str(value).strip().rstrip('%'))
    except ValueError:
        return default


def prefix_to_netmask(prefix_length: int) -> str:
    """Convert a CIDR prefix length to dotted netmask"""
    prefix_length = max(0, min(32, prefix_length))
    mask = (0xffffffff << (32 - prefix_length)) & 0xffffffff
    return '.'.join(str((mask >> shift) & 255) for shift in (24, 16, 8, 0))
