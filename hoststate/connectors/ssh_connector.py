# hoststate/connectors/ssh_connector.py
"""
SSH connector for remote system access.
Lets the engine introspect a host other than the one it runs on.
"""

import paramiko
import socket
import threading
import time
from typing import Optional, Sequence, Set
from pathlib import Path

from .base_connector import BaseConnector, CommandResult, CommandFailure


class SSHConnector(BaseConnector):
    """
    SSH connector for executing commands on remote systems.
    Supports key-based and password authentication.
    """

    def __init__(self, host: str, port: int = 22, username: str = 'root',
                 password: str = None, ssh_key_path: str = None, timeout: float = 10,
                 connect_timeout: float = None):
        super().__init__(timeout)
        self.connect_timeout = connect_timeout if connect_timeout is not None else timeout
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.ssh_key_path = ssh_key_path

        self.client: Optional[paramiko.SSHClient] = None
        self._channels: Set[paramiko.Channel] = set()
        self._lock = threading.Lock()

    def connect(self) -> bool:
        """
        Establish SSH connection to the remote host.

        Returns:
            bool: True if connection successful, False otherwise
        """
        try:
            self.client = paramiko.SSHClient()
            self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

            connect_params = {
                'hostname': self.host,
                'port': self.port,
                'username': self.username,
                'timeout': self.connect_timeout
            }

            if self.ssh_key_path:
                key_path = Path(self.ssh_key_path).expanduser()
                if key_path.exists():
                    connect_params['key_filename'] = str(key_path)
                    self.logger.debug(f"Using SSH key: {key_path}")
                else:
                    self.logger.warning(f"SSH key not found: {key_path}")
                    if not self.password:
                        return False

            if self.password:
                connect_params['password'] = self.password

            self.client.connect(**connect_params)
            self.logger.info(f"SSH connection established to {self.host}:{self.port}")
            return True

        except paramiko.AuthenticationException:
            self.logger.error(f"Authentication failed for {self.host}")
            return False
        except paramiko.SSHException as e:
            self.logger.error(f"SSH connection failed to {self.host}: {e}")
            return False
        except socket.timeout:
            self.logger.error(f"Connection timeout to {self.host}:{self.port}")
            return False
        except OSError as e:
            self.logger.error(f"Unexpected error connecting to {self.host}: {e}")
            return False

    def disconnect(self):
        """Close the SSH connection"""
        self.cancel()
        if self.client:
            self.client.close()
            self.client = None
            self.logger.debug(f"SSH connection closed to {self.host}")

    def close(self):
        self.disconnect()

    def execute_command(self, argv: Sequence[str], timeout: float = None,
                        log_command: bool = True) -> CommandResult:
        # The remote side always goes through a login shell, so quote every argument
        command = self.format_argv(argv)

        if not self.client:
            return CommandResult(False, error="No SSH connection established", exit_code=-1,
                                 command=command, failure=CommandFailure.NON_ZERO_EXIT)

        if timeout is None:
            timeout = self.timeout

        if log_command:
            self.logger.debug(f"Executing on {self.host}: {command}")

        start_time = time.time()
        output_chunks = []
        error_chunks = []

        try:
            channel = self.client.get_transport().open_session()
        except (paramiko.SSHException, AttributeError) as e:
            error_msg = f"Command '{self._truncate_command(command)}' could not open a channel: {e}"
            self.logger.error(error_msg)
            return CommandResult(False, error=error_msg, exit_code=-1, command=command,
                                 failure=CommandFailure.NON_ZERO_EXIT)

        with self._lock:
            self._channels.add(channel)

        try:
            channel.exec_command(command)
            deadline = start_time + timeout

            while True:
                if channel.recv_ready():
                    output_chunks.append(channel.recv(32768))
                if channel.recv_stderr_ready():
                    error_chunks.append(channel.recv_stderr(32768))
                if channel.exit_status_ready() and not channel.recv_ready() \
                        and not channel.recv_stderr_ready():
                    break
                if channel.closed and not channel.exit_status_ready():
                    break
                if time.time() > deadline:
                    channel.close()
                    execution_time = time.time() - start_time
                    error_msg = (f"Command '{self._truncate_command(command)}' timed out after "
                                 f"{execution_time:.2f}s (timeout: {timeout}s)")
                    self.logger.error(error_msg)
                    return CommandResult(
                        False,
                        output=b''.join(output_chunks).decode('utf-8', errors='replace'),
                        error=error_msg,
                        exit_code=-1,
                        execution_time=execution_time,
                        command=command,
                        failure=CommandFailure.TIMEOUT
                    )
                time.sleep(0.01)

            exit_code = channel.recv_exit_status()

        except (paramiko.SSHException, socket.error) as e:
            execution_time = time.time() - start_time
            error_msg = f"Command '{self._truncate_command(command)}' execution failed: {str(e)}"
            self.logger.error(error_msg)
            return CommandResult(
                False,
                output=b''.join(output_chunks).decode('utf-8', errors='replace'),
                error=error_msg,
                exit_code=-1,
                execution_time=execution_time,
                command=command,
                failure=CommandFailure.NON_ZERO_EXIT
            )
        finally:
            with self._lock:
                self._channels.discard(channel)
            channel.close()

        return self.classify(
            command,
            b''.join(output_chunks).decode('utf-8', errors='replace'),
            b''.join(error_chunks).decode('utf-8', errors='replace'),
            exit_code,
            time.time() - start_time
        )

    def cancel(self):
        with self._lock:
            channels = list(self._channels)
        for channel in channels:
            self.logger.warning(f"Closing in-flight channel on {self.host}")
            channel.close()

    def test_connection(self) -> bool:
        """Test the SSH connection with a simple command"""
        result = self.execute_command(['echo', 'connection_test'], log_command=False)
        return result.success and 'connection_test' in result.output

    def __enter__(self):
        """Context manager entry"""
        if self.connect():
            return self
        raise ConnectionError(f"Failed to connect to {self.host}")

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.disconnect()
