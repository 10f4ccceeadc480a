# hoststate/collectors/fallback_chain.py
"""
Ordered fallback over alternative tools for one fact.

Each candidate is tried in turn: probe, run, parse. The first candidate
whose parser returns a non-empty list wins. Every attempt is logged into
a ToolAvailability record so callers can tell which backend answered.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple
import logging

from ..models import ToolAvailability
from ..parsers import registry as default_registry, ParseMismatch


@dataclass(frozen=True)
class Candidate:
    """One way of obtaining a fact"""
    tool: str
    fact: str
    command: Tuple[str, ...]
    # Binaries to check with `which`; None means the command's program,
    # an empty tuple skips probing (plain file reads)
    probes: Optional[Tuple[str, ...]] = None
    # Parse partial stdout even when the command failed
    salvage: bool = False

    @property
    def probe_tools(self) -> Tuple[str, ...]:
        if self.probes is None:
            return (self.command[0],)
        return self.probes


@dataclass
class ChainResult:
    candidate: Candidate
    records: List[Any]
    availability: ToolAvailability


class NoDataAvailable(Exception):
    """Every candidate of a chain failed, was missing, or returned nothing"""

    def __init__(self, family: str, availability: ToolAvailability):
        self.family = family
        self.availability = availability
        tried = ', '.join(f"{a['tool']}={a['outcome']}" for a in availability.attempts) or 'nothing'
        super().__init__(f"No data available for {family} (tried: {tried})")


class FallbackChain:
    """
    Runs candidates sequentially until one yields records.

    Transitions: TryCandidate -> Parse -> Done, or on any failure the next
    candidate; with none left NoDataAvailable is raised.
    """

    def __init__(self, family: str, candidates: List[Candidate], connector, prober,
                 parsers=None, timeout: float = None):
        self.family = family
        self.candidates = candidates
        self.connector = connector
        self.prober = prober
        self.parsers = parsers or default_registry
        self.timeout = timeout
        self.logger = logging.getLogger(f"collector.chain.{family}")

    def run(self) -> ChainResult:
        availability = ToolAvailability(family=self.family)

        for candidate in self.candidates:
            command_text = ' '.join(candidate.command)

            missing = [tool for tool in candidate.probe_tools if not self.prober.is_available(tool)]
            if missing:
                availability.record(candidate.tool, command_text, 'missing')
                continue

            parser = self.parsers.get_parser(candidate.tool, candidate.fact)
            if parser is None:
                self.logger.warning(f"No parser registered for {candidate.tool}/{candidate.fact}")
                availability.record(candidate.tool, command_text, 'no_parser')
                continue

            result = self.connector.execute_command(candidate.command, timeout=self.timeout)

            if not result.success and not (candidate.salvage and result.has_output):
                outcome = result.failure.value if result.failure else 'failed'
                availability.record(candidate.tool, command_text, outcome)
                continue
            if not result.has_output:
                availability.record(candidate.tool, command_text, 'empty_output')
                continue

            try:
                records = parser.parse(result.output)
            except ParseMismatch as e:
                self.logger.debug(f"{candidate.tool} output not recognized: {e}")
                availability.record(candidate.tool, command_text, 'parse_mismatch')
                continue

            if not records:
                availability.record(candidate.tool, command_text, 'empty_result')
                continue

            availability.record(candidate.tool, command_text, 'ok')
            availability.backend = candidate.tool
            self.logger.debug(f"{self.family}: {len(records)} records from {candidate.tool}")
            return ChainResult(candidate=candidate, records=records, availability=availability)

        self.logger.info(f"No candidate produced {self.family} data")
        raise NoDataAvailable(self.family, availability)
