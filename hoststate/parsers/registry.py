# hoststate/parsers/registry.py
"""
Parser registry for tool output parsers.
Routes (tool, fact) pairs to the parser that understands that output.
"""

from typing import Optional, List
import logging

from .base import BaseOutputParser
from .interfaces import IpAddrParser, IfconfigParser, ProcNetDevParser, EthtoolParser, SysfsLinkParser
from .routes import IpRouteParser, RouteTableParser, ResolvConfParser
from .sockets import SocketTableParser
from .services import ServicesDbParser
from .firewall import UfwStatusParser, IptablesParser, FirewalldParser
from .storage import DfParser, DfInodeParser, DiskstatsParser, LsblkParser, DuParser
from .compute import (
    VirshListParser, VirshDominfoParser, VBoxListParser, VBoxInfoParser,
    ContainerPsParser, ContainerStatsParser, PsAuxParser, PsEoParser
)
from .host_load import (
    HostnameParser, ProcStatParser, TopCpuParser, MeminfoParser, FreeParser,
    LoadavgParser, UptimeLoadParser, ProcUptimeParser, UptimePrettyParser, PingParser
)


class ParserRegistry:
    """
    Registry for tool output parsers.

    Maintains a list of available parsers and provides lookup
    functionality to find the parser for a given tool and fact
    combination.
    """

    def __init__(self):
        """Initialize registry with available parsers."""
        self.logger = logging.getLogger('parser_registry')
        self.parsers: List[BaseOutputParser] = [
            # Network
            IpAddrParser(),
            IfconfigParser(),
            ProcNetDevParser(),
            EthtoolParser(),
            SysfsLinkParser(),
            IpRouteParser(),
            RouteTableParser(),
            ResolvConfParser(),
            SocketTableParser(),
            ServicesDbParser(),
            UfwStatusParser(),
            IptablesParser(),
            FirewalldParser(),
            PingParser(),
            # Storage
            DfParser(),
            DfInodeParser(),
            DiskstatsParser(),
            LsblkParser(),
            DuParser(),
            # Compute units
            VirshListParser(),
            VirshDominfoParser(),
            VBoxListParser(),
            VBoxInfoParser(),
            ContainerPsParser(),
            ContainerStatsParser(),
            PsAuxParser(),
            PsEoParser(),
            # Host load
            HostnameParser(),
            ProcStatParser(),
            TopCpuParser(),
            MeminfoParser(),
            FreeParser(),
            LoadavgParser(),
            UptimeLoadParser(),
            ProcUptimeParser(),
            UptimePrettyParser(),
        ]
        self.logger.debug(f"Initialized parser registry with {len(self.parsers)} parsers")

    def get_parser(self, tool: str, fact: str) -> Optional[BaseOutputParser]:
        """
        Find the parser for output of a tool.

        Args:
            tool: Tool that produced the output (e.g., 'ss', 'proc_net_dev')
            fact: Fact being extracted (e.g., 'ports', 'interface_counters')

        Returns:
            BaseOutputParser instance if a matching parser is found, None otherwise
        """
        for parser in self.parsers:
            if parser.can_process(tool, fact):
                self.logger.debug(
                    f"Found parser {parser.__class__.__name__} for tool={tool}, fact={fact}"
                )
                return parser

        self.logger.debug(f"No parser found for tool={tool}, fact={fact}")
        return None

    def list_parsers(self) -> List[str]:
        """
        Get list of registered parser names.

        Returns:
            List of parser class names
        """
        return [parser.__class__.__name__ for parser in self.parsers]


# Shared by every request; parsers are stateless
registry = ParserRegistry()
