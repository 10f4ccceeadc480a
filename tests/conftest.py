# tests/conftest.py
"""
Shared fixtures: a scripted connector and engine settings suited to tests.
"""

import sys
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from hoststate.connectors.base_connector import BaseConnector, CommandResult, CommandFailure
from hoststate.collectors.capability_detector import ToolProber
from hoststate.config.settings import ConfigManager, EngineConfig


class FakeConnector(BaseConnector):
    """
    Connector that answers from a table of argv -> (stdout, stderr, exit code).

    Unknown commands behave like a missing binary (exit 127). Every
    command is recorded in `calls` in the order it was attempted.
    """

    def __init__(self):
        super().__init__(timeout=5)
        self.responses: Dict[Tuple[str, ...], List[Tuple[str, str, int]]] = {}
        self.calls: List[Tuple[str, ...]] = []
        self.cancelled = 0

    def add(self, argv: Sequence[str], output: str = '', exit_code: int = 0, error: str = ''):
        self.responses[tuple(argv)] = [(output, error, exit_code)]
        return self

    def add_sequence(self, argv: Sequence[str], *outputs: str):
        """Successive calls get successive outputs; the last one repeats"""
        self.responses[tuple(argv)] = [(output, '', 0) for output in outputs]
        return self

    def available(self, *tools: str):
        for tool in tools:
            self.add(('which', tool), f'/usr/bin/{tool}\n')
        return self

    def missing(self, *tools: str):
        for tool in tools:
            self.add(('which', tool), '', exit_code=1)
        return self

    def execute_command(self, argv: Sequence[str], timeout: float = None,
                        log_command: bool = True) -> CommandResult:
        argv = tuple(argv)
        self.calls.append(argv)
        command = self.format_argv(argv)

        queued = self.responses.get(argv)
        if not queued:
            return CommandResult(False, error=f"{argv[0]}: command not found", exit_code=127,
                                 command=command, failure=CommandFailure.TOOL_MISSING)

        output, error, exit_code = queued[0] if len(queued) == 1 else queued.pop(0)
        return self.classify(command, output, error, exit_code, 0.0)

    def cancel(self):
        self.cancelled += 1

    def executed(self, program: str) -> List[Tuple[str, ...]]:
        """Commands run for a program, excluding `which` probes"""
        return [call for call in self.calls if call[0] == program]


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def prober(connector):
    return ToolProber(connector)


@pytest.fixture
def settings():
    """No counter sampling delay and no latency probe"""
    return EngineConfig(rate_sample_interval=0, latency_probe_host=None)


@pytest.fixture
def config_manager(tmp_path):
    config_file = tmp_path / 'hoststate.yml'
    config_file.write_text(
        "engine:\n"
        "  rate_sample_interval: 0\n"
        "  latency_probe_host: null\n"
        "logging:\n"
        "  level: DEBUG\n"
    )
    return ConfigManager(str(config_file))
