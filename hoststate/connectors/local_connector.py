# hoststate/connectors/local_connector.py
"""
Local command connector.
Runs introspection tools on the host the engine itself is running on.
"""

import os
import subprocess
import threading
import time
from typing import Sequence, Set

from .base_connector import BaseConnector, CommandResult, CommandFailure


class LocalConnector(BaseConnector):
    """
    Executes argument vectors with subprocess, never through a shell.

    Children are tracked so that an abandoned request can kill them
    instead of leaving orphans behind.
    """

    def __init__(self, timeout: float = 10):
        super().__init__(timeout)
        self._running: Set[subprocess.Popen] = set()
        self._lock = threading.Lock()
        # Tool output is parsed with English keywords
        self._env = dict(os.environ, LC_ALL='C', LANG='C')

    def execute_command(self, argv: Sequence[str], timeout: float = None,
                        log_command: bool = True) -> CommandResult:
        command = self.format_argv(argv)

        if timeout is None:
            timeout = self.timeout

        if log_command:
            self.logger.debug(f"Executing: {command}")

        start_time = time.time()

        try:
            process = subprocess.Popen(
                list(argv),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                env=self._env
            )
        except FileNotFoundError:
            self.logger.debug(f"Command not found: {self._truncate_command(command)}")
            return CommandResult(False, error=f"{argv[0]}: command not found", exit_code=127,
                                 command=command, failure=CommandFailure.TOOL_MISSING)
        except OSError as e:
            error_msg = f"Command '{self._truncate_command(command)}' could not be started: {e}"
            self.logger.error(error_msg)
            return CommandResult(False, error=error_msg, exit_code=126,
                                 command=command, failure=CommandFailure.TOOL_MISSING)

        with self._lock:
            self._running.add(process)

        try:
            try:
                stdout, stderr = process.communicate(timeout=timeout)
            except subprocess.TimeoutExpired:
                process.kill()
                stdout, stderr = process.communicate()
                execution_time = time.time() - start_time
                error_msg = (f"Command '{self._truncate_command(command)}' timed out after "
                             f"{execution_time:.2f}s (timeout: {timeout}s)")
                self.logger.error(error_msg)
                return CommandResult(
                    False,
                    output=self._decode(stdout),
                    error=error_msg,
                    exit_code=-1,
                    execution_time=execution_time,
                    command=command,
                    failure=CommandFailure.TIMEOUT
                )
            except BaseException:
                # Interrupted while waiting: do not leave the child running
                process.kill()
                process.wait()
                raise
        finally:
            with self._lock:
                self._running.discard(process)

        return self.classify(command, self._decode(stdout), self._decode(stderr),
                             process.returncode, time.time() - start_time)

    def cancel(self):
        with self._lock:
            running = list(self._running)
        for process in running:
            if process.poll() is None:
                self.logger.warning(f"Killing in-flight command (pid {process.pid})")
                process.kill()

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._running)

    @staticmethod
    def _decode(data: bytes) -> str:
        if not data:
            return ""
        return data.decode('utf-8', errors='replace')
