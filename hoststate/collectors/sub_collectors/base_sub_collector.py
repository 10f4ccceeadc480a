# hoststate/collectors/sub_collectors/base_sub_collector.py
"""
Base class for all fact-family sub-collectors.
Sub-collectors gather one family (interfaces, ports, storage, ...) from the target.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional
import logging

from ...config.settings import EngineConfig
from ...models import ToolAvailability
from ..fallback_chain import Candidate, ChainResult, FallbackChain, NoDataAvailable


class SubCollector(ABC):
    """
    Abstract base class for all sub-collectors.

    Sub-collectors are lightweight components that collect one fact family.
    Unlike full collectors, they:
    - Don't manage connections (receive a ready connector)
    - Share the request's ToolProber so `which` answers are reused
    - Return snapshot records (not CollectionResult objects)
    - Are orchestrated by HostCollector
    """

    def __init__(self, connector, prober, settings: EngineConfig = None, system_name: str = 'localhost'):
        """
        Initialize sub-collector

        Args:
            connector: LocalConnector or connected SSHConnector
            prober: ToolProber for this request
            settings: Engine configuration (defaults when None)
            system_name: Name of the system being collected from
        """
        self.connector = connector
        self.prober = prober
        self.settings = settings or EngineConfig()
        self.system_name = system_name
        self.logger = logging.getLogger(f"subcollector.{self.__class__.__name__}")
        self.availability: List[ToolAvailability] = []

    @abstractmethod
    def collect(self) -> Any:
        """
        Collect this family.

        Returns:
            Snapshot records for the family. Tool failures are recovered
            here and turn into placeholders; only unexpected errors raise.
        """
        pass

    @abstractmethod
    def get_section_name(self) -> str:
        """
        Get the name of the family this sub-collector produces.

        Returns:
            String name used as the key in the collection result
        """
        pass

    def run_chain(self, fact: str, candidates: List[Candidate]) -> Optional[ChainResult]:
        """Run a fallback chain, recording availability; None when exhausted"""
        chain = FallbackChain(fact, candidates, self.connector, self.prober,
                              timeout=self.settings.command_timeout)
        try:
            result = chain.run()
        except NoDataAvailable as e:
            self.logger.debug(str(e))
            self.availability.append(e.availability)
            return None
        self.availability.append(result.availability)
        return result

    def mark_placeholder(self, family: str):
        """Flag in the diagnostics that 'family' was answered with placeholder records"""
        for entry in reversed(self.availability):
            if entry.family == family:
                entry.placeholder = True
                return
        self.availability.append(ToolAvailability(family=family, placeholder=True))

    def log_start(self):
        """Log the start of collection"""
        self.logger.info(f"Starting {self.get_section_name()} collection for {self.system_name}")

    def log_end(self, item_count: int = None):
        """Log the end of collection"""
        if item_count is not None:
            self.logger.info(f"Completed {self.get_section_name()} collection: {item_count} items")
        else:
            self.logger.info(f"Completed {self.get_section_name()} collection")
