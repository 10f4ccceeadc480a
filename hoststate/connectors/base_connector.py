# hoststate/connectors/base_connector.py
"""
Common command execution contract shared by the local and SSH connectors.
Connectors never raise for command problems; they classify them instead.
"""

import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence
import logging


class CommandFailure(str, Enum):
    """Why a command did not produce usable output"""
    TOOL_MISSING = 'tool_missing'
    TIMEOUT = 'timeout'
    NON_ZERO_EXIT = 'non_zero_exit'
    EMPTY_OUTPUT = 'empty_output'


@dataclass
class CommandResult:
    """Result of command execution"""
    success: bool
    output: str = ""
    error: str = ""
    exit_code: int = 0
    execution_time: float = 0.0
    command: str = ""
    failure: Optional[CommandFailure] = None

    @property
    def has_output(self) -> bool:
        return bool(self.output.strip())


class BaseConnector(ABC):
    """
    Runs one argument vector per call with a bounded timeout.

    Implementations must return a CommandResult for every outcome,
    including partial stdout captured before a timeout or failing exit.
    """

    # Common exit codes and their meanings
    EXIT_CODE_MEANINGS = {
        1: "General error",
        2: "Misuse of shell builtin",
        126: "Command not executable",
        127: "Command not found",
        128: "Invalid exit argument",
        130: "Script terminated by Ctrl+C"
    }

    def __init__(self, timeout: float = 10):
        self.timeout = timeout
        self.logger = logging.getLogger(f'connector.{self.__class__.__name__}')

    @abstractmethod
    def execute_command(self, argv: Sequence[str], timeout: float = None,
                        log_command: bool = True) -> CommandResult:
        """
        Execute a command given as an argument vector.

        Args:
            argv: Program and arguments; never interpreted by a shell
            timeout: Command timeout (uses connector default if None)
            log_command: Whether to log the command being executed

        Returns:
            CommandResult: classified execution result
        """
        pass

    @abstractmethod
    def cancel(self):
        """Kill every command still in flight"""
        pass

    def close(self):
        """Release connector resources"""
        self.cancel()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @staticmethod
    def format_argv(argv: Sequence[str]) -> str:
        return shlex.join(list(argv))

    def classify(self, command: str, output: str, error: str, exit_code: int,
                 execution_time: float) -> CommandResult:
        """Build a CommandResult from a finished process"""
        if exit_code == 127:
            failure = CommandFailure.TOOL_MISSING
        elif exit_code != 0:
            failure = CommandFailure.NON_ZERO_EXIT
        elif not output.strip():
            failure = CommandFailure.EMPTY_OUTPUT
        else:
            failure = None

        success = exit_code == 0

        if success:
            self.logger.debug(
                f"Command '{self._truncate_command(command)}' completed successfully in {execution_time:.2f}s")
        elif failure == CommandFailure.TOOL_MISSING:
            self.logger.debug(f"Command not found: {self._truncate_command(command)}")
        else:
            self.logger.warning(self._format_command_error(command, exit_code, error, execution_time))

        return CommandResult(
            success=success,
            output=output,
            error=error,
            exit_code=exit_code,
            execution_time=execution_time,
            command=command,
            failure=failure
        )

    def _truncate_command(self, command: str, max_length: int = 80) -> str:
        """Truncate command for logging if it's too long"""
        if len(command) <= max_length:
            return command
        return command[:max_length - 3] + "..."

    def _format_command_error(self, command: str, exit_code: int, error: str, execution_time: float) -> str:
        """Format command error message with context"""
        truncated_cmd = self._truncate_command(command)
        meaning = self.EXIT_CODE_MEANINGS.get(exit_code, "Unknown error")

        error_parts = [f"Command '{truncated_cmd}' failed"]
        error_parts.append(f"exit code {exit_code} ({meaning})")
        error_parts.append(f"time {execution_time:.2f}s")

        if error.strip():
            # Only show first line of error to avoid log spam
            first_error_line = error.strip().split('\n')[0]
            if first_error_line:
                error_parts.append(f"stderr: {first_error_line}")

        return " | ".join(error_parts)
