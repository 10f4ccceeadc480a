# hoststate/actions/action_runner.py
"""
Validated actions against the target host.

Every parameter is checked before any command is built, and commands are
always argument vectors, so request values never reach a shell.
"""

import ipaddress
import re
import shlex
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import logging

from ..collectors.capability_detector import ToolProber
from ..config.settings import EngineConfig
from ..connectors.base_connector import CommandFailure
from ..parsers import registry, ParseMismatch

INTERFACE_NAME = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.:@-]{0,14}$')
HOSTNAME = re.compile(
    r'^(?=.{1,253}$)[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?'
    r'(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$'
)
UNIT_ID = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.:-]{0,127}$')
SAFE_PATH = re.compile(r'^/[A-Za-z0-9._@+/-]{0,4095}$')

EXECUTE_ALLOW_LIST = ('ls', 'pwd', 'whoami', 'date', 'uname', 'df', 'du', 'free', 'top', 'ps')

COMPUTE_ACTIONS = ('start', 'stop', 'pause', 'resume', 'restart')
COMPUTE_BACKENDS = ('virsh', 'vboxmanage', 'docker', 'podman')

FIREWALL_TARGETS = {'accept': 'ACCEPT', 'drop': 'DROP', 'reject': 'REJECT'}
FIREWALL_CHAINS = {'input': 'INPUT', 'output': 'OUTPUT', 'forward': 'FORWARD'}

SCAN_WAIT_SECONDS = 2
ANALYZE_LIMIT = 20

DNS_FLUSH_COMMANDS = (
    ('resolvectl', 'flush-caches'),
    ('systemd-resolve', '--flush-caches'),
)


class ActionValidationError(ValueError):
    """Rejected action or parameter; maps to HTTP 400 in the route layer"""


@dataclass
class ActionResult:
    success: bool
    action: str
    message: str = ''
    error: str = ''
    result: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def require(params: Dict[str, Any], key: str) -> Any:
    value = params.get(key)
    if value is None or value == '':
        raise ActionValidationError(f"Missing parameter: {key}")
    return value


def validate_interface(name: Any) -> str:
    if not isinstance(name, str) or not INTERFACE_NAME.match(name):
        raise ActionValidationError(f"Invalid interface name: {name!r}")
    return name


def validate_port(port: Any) -> int:
    if isinstance(port, bool):
        raise ActionValidationError(f"Invalid port: {port!r}")
    try:
        value = int(str(port).strip())
    except ValueError:
        raise ActionValidationError(f"Invalid port: {port!r}")
    if not 1 <= value <= 65535:
        raise ActionValidationError(f"Port out of range: {value}")
    return value


def validate_choice(value: Any, choices: Sequence[str], label: str) -> str:
    normalized = str(value).lower()
    if normalized not in choices:
        raise ActionValidationError(f"Invalid {label}: {value!r} (expected one of {', '.join(choices)})")
    return normalized


def validate_host(host: Any) -> str:
    if not isinstance(host, str):
        raise ActionValidationError(f"Invalid host: {host!r}")
    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        pass
    if not HOSTNAME.match(host):
        raise ActionValidationError(f"Invalid host: {host!r}")
    return host


def validate_network(value: Any) -> str:
    try:
        return str(ipaddress.ip_network(str(value), strict=False))
    except ValueError:
        raise ActionValidationError(f"Invalid address or network: {value!r}")


def validate_unit_id(unit_id: Any) -> str:
    if not isinstance(unit_id, str) or not UNIT_ID.match(unit_id):
        raise ActionValidationError(f"Invalid unit id: {unit_id!r}")
    if unit_id.startswith(('proc-', 'placeholder-')):
        raise ActionValidationError(f"Unit {unit_id} cannot be controlled")
    return unit_id


def validate_path(path: Any) -> str:
    """Absolute path without parent references or shell metacharacters"""
    if not isinstance(path, str) or not SAFE_PATH.match(path):
        raise ActionValidationError(f"Invalid path: {path!r}")
    if '..' in path.split('/'):
        raise ActionValidationError(f"Parent references not allowed: {path!r}")
    return path


def human_size(kilobytes: int) -> str:
    """du -h style size such as 512K, 1.5M or 12G"""
    size = float(kilobytes)
    for unit in ('K', 'M', 'G', 'T'):
        if size < 1024 or unit == 'T':
            break
        size /= 1024
    if unit == 'K' or size >= 10:
        return f"{size:.0f}{unit}"
    return f"{size:.1f}{unit}"


def compute_command(backend: str, action: str, unit: str) -> Tuple[str, ...]:
    """Argument vector for a lifecycle action on one backend"""
    if backend == 'virsh':
        verbs = {'start': 'start', 'stop': 'shutdown', 'pause': 'suspend',
                 'resume': 'resume', 'restart': 'reboot'}
        return ('virsh', verbs[action], unit)
    if backend == 'vboxmanage':
        if action == 'start':
            return ('vboxmanage', 'startvm', unit, '--type', 'headless')
        verbs = {'stop': 'poweroff', 'pause': 'pause', 'resume': 'resume', 'restart': 'reset'}
        return ('vboxmanage', 'controlvm', unit, verbs[action])
    verbs = {'start': 'start', 'stop': 'stop', 'pause': 'pause',
             'resume': 'unpause', 'restart': 'restart'}
    return (backend, verbs[action], unit)


class ActionRunner:
    """
    Runs dashboard actions against the target host.

    Tool failures come back as ActionResult(success=False); invalid input
    raises ActionValidationError before anything is executed.
    """

    def __init__(self, connector, prober: ToolProber = None, settings: EngineConfig = None):
        self.connector = connector
        self.prober = prober or ToolProber(connector)
        self.settings = settings or EngineConfig()
        self.logger = logging.getLogger('actions')

        self.handlers: Dict[str, Callable[[Dict[str, Any]], ActionResult]] = {
            'bringInterfaceUp': self._bring_interface_up,
            'bringInterfaceDown': self._bring_interface_down,
            'restartInterface': self._restart_interface,
            'addPortRule': self._add_port_rule,
            'addFirewallRule': self._add_firewall_rule,
            'flushDNS': self._flush_dns,
            'testConnection': self._test_connection,
            'scanPort': self._scan_port,
            'execute': self._execute,
            'analyze': self._analyze,
        }
        for compute_action in COMPUTE_ACTIONS:
            self.handlers[compute_action] = self._compute_handler(compute_action)

    def run(self, action: str, params: Optional[Dict[str, Any]] = None) -> ActionResult:
        """
        Validate and run one action.

        Raises:
            ActionValidationError: unknown action or invalid parameters
        """
        handler = self.handlers.get(action)
        if handler is None:
            raise ActionValidationError(f"Unknown action: {action!r}")

        self.logger.info(f"Running action {action}")
        result = handler(params or {})
        if result.success:
            self.logger.info(result.message)
        else:
            self.logger.warning(f"Action {action} failed: {result.error}")
        return result

    def _privileged(self, argv: Tuple[str, ...]) -> Tuple[str, ...]:
        if self.settings.use_sudo:
            return ('sudo', '-n') + argv
        return argv

    def _run_steps(self, action: str, steps: List[Tuple[str, ...]], message: str) -> ActionResult:
        """Run commands in order, stopping at the first failure"""
        for argv in steps:
            result = self.connector.execute_command(argv, timeout=self.settings.command_timeout)
            if not result.success:
                detail = result.error.strip() or (result.failure.value if result.failure else 'failed')
                return ActionResult(False, action, error=f"{shlex.join(argv)}: {detail}")
        return ActionResult(True, action, message=message)

    # -- interfaces ---------------------------------------------------------

    def _bring_interface_up(self, params: Dict[str, Any]) -> ActionResult:
        name = validate_interface(require(params, 'interface'))
        return self._run_steps('bringInterfaceUp', [self._privileged(('ip', 'link', 'set', name, 'up'))],
                               f"Interface {name} brought up successfully")

    def _bring_interface_down(self, params: Dict[str, Any]) -> ActionResult:
        name = validate_interface(require(params, 'interface'))
        return self._run_steps('bringInterfaceDown', [self._privileged(('ip', 'link', 'set', name, 'down'))],
                               f"Interface {name} brought down successfully")

    def _restart_interface(self, params: Dict[str, Any]) -> ActionResult:
        name = validate_interface(require(params, 'interface'))
        steps = [
            self._privileged(('ip', 'link', 'set', name, 'down')),
            self._privileged(('ip', 'link', 'set', name, 'up')),
        ]
        return self._run_steps('restartInterface', steps, f"Interface {name} restarted successfully")

    # -- firewall -------------------------------------------------------------

    def _add_port_rule(self, params: Dict[str, Any]) -> ActionResult:
        port = validate_port(require(params, 'port'))
        protocol = validate_choice(require(params, 'protocol'), ('tcp', 'udp'), 'protocol')
        mode = validate_choice(params.get('action', 'open'), ('open', 'close'), 'port action')
        target = 'ACCEPT' if mode == 'open' else 'DROP'

        argv = self._privileged(('iptables', '-A', 'INPUT', '-p', protocol, '--dport', str(port), '-j', target))
        verb = 'opened' if mode == 'open' else 'closed'
        return self._run_steps('addPortRule', [argv], f"Port {port}/{protocol} {verb} successfully")

    def _add_firewall_rule(self, params: Dict[str, Any]) -> ActionResult:
        chain = validate_choice(params.get('chain', 'input'), tuple(FIREWALL_CHAINS), 'chain')
        target = validate_choice(params.get('action', 'accept'), tuple(FIREWALL_TARGETS), 'action')
        protocol = validate_choice(params.get('protocol', 'any'), ('tcp', 'udp', 'icmp', 'any'), 'protocol')

        argv = ['iptables', '-A', FIREWALL_CHAINS[chain]]
        if protocol != 'any':
            argv += ['-p', protocol]

        source = params.get('source')
        if source and source != 'any':
            argv += ['-s', validate_network(source)]
        destination = params.get('destination')
        if destination and destination != 'any':
            argv += ['-d', validate_network(destination)]

        destination_port = params.get('destination_port')
        if destination_port and destination_port != 'any':
            if protocol not in ('tcp', 'udp'):
                raise ActionValidationError("A destination port requires protocol tcp or udp")
            argv += ['--dport', str(validate_port(destination_port))]

        argv += ['-j', FIREWALL_TARGETS[target]]
        return self._run_steps('addFirewallRule', [self._privileged(tuple(argv))],
                               f"Rule added to {chain} chain")

    # -- diagnostics ----------------------------------------------------------

    def _flush_dns(self, params: Dict[str, Any]) -> ActionResult:
        errors = []
        for command in DNS_FLUSH_COMMANDS:
            if not self.prober.is_available(command[0]):
                errors.append(f"{command[0]}: not installed")
                continue
            argv = self._privileged(command)
            result = self.connector.execute_command(argv, timeout=self.settings.command_timeout)
            if result.success:
                return ActionResult(True, 'flushDNS', message='DNS cache flushed successfully')
            errors.append(f"{command[0]}: {result.error.strip() or result.failure.value}")
        return ActionResult(False, 'flushDNS', error='; '.join(errors) or 'No DNS cache service found')

    def _test_connection(self, params: Dict[str, Any]) -> ActionResult:
        host = validate_host(require(params, 'host'))
        result = self.connector.execute_command(('ping', '-c', '3', '-W', '2', host),
                                                timeout=self.settings.command_timeout)
        if not result.has_output:
            return ActionResult(False, 'testConnection',
                                error=result.error.strip() or f"ping failed ({result.failure.value})")

        try:
            stats = registry.get_parser('ping', 'latency').parse(result.output)[0]
        except ParseMismatch as e:
            return ActionResult(False, 'testConnection', error=f"Unrecognized ping output: {e}")

        return ActionResult(
            stats['packet_loss'] < 100,
            'testConnection',
            message=f"Connection test to {host} completed",
            error='' if stats['packet_loss'] < 100 else f"No replies from {host}",
            result=stats
        )

    def _scan_port(self, params: Dict[str, Any]) -> ActionResult:
        host = validate_host(require(params, 'target'))
        port = validate_port(require(params, 'port'))
        protocol = validate_choice(params.get('protocol', 'tcp'), ('tcp', 'udp'), 'protocol')

        if not self.prober.is_available('nc'):
            return ActionResult(False, 'scanPort', error='nc: not installed')

        argv = ['nc', '-z', '-w', str(SCAN_WAIT_SECONDS)]
        if protocol == 'udp':
            argv.append('-u')
        argv += [host, str(port)]
        result = self.connector.execute_command(tuple(argv), timeout=self.settings.command_timeout)
        if result.failure in (CommandFailure.TOOL_MISSING, CommandFailure.TIMEOUT):
            return ActionResult(False, 'scanPort', error=f"nc failed ({result.failure.value})")

        is_open = result.exit_code == 0
        return ActionResult(
            True,
            'scanPort',
            message=f"Port {port}/{protocol} on {host} is {'open' if is_open else 'closed'}",
            result={'is_open': is_open, 'output': (result.output + result.error).strip()}
        )

    def _execute(self, params: Dict[str, Any]) -> ActionResult:
        command = require(params, 'command')
        try:
            argv = shlex.split(command) if isinstance(command, str) else [str(part) for part in command]
        except ValueError as e:
            raise ActionValidationError(f"Invalid command: {e}")
        if not argv or argv[0] not in EXECUTE_ALLOW_LIST:
            raise ActionValidationError(
                f"Command not allowed: {argv[0] if argv else ''!r} (allowed: {', '.join(EXECUTE_ALLOW_LIST)})")

        result = self.connector.execute_command(tuple(argv), timeout=self.settings.command_timeout)
        return ActionResult(
            result.success,
            'execute',
            message=f"{argv[0]} exited with {result.exit_code}",
            error=result.error if not result.success else '',
            result={'output': result.output, 'exit_code': result.exit_code}
        )

    # -- storage --------------------------------------------------------------

    def _analyze(self, params: Dict[str, Any]) -> ActionResult:
        path = validate_path(params.get('path') or '/')
        result = self.connector.execute_command(('du', '-k', '-d', '1', path),
                                                timeout=self.settings.command_timeout)
        # du exits 1 when some entries are unreadable but still reports the rest
        if not result.has_output:
            return ActionResult(False, 'analyze',
                                error=result.error.strip() or 'du produced no output')

        try:
            entries = registry.get_parser('du', 'disk_usage').parse(result.output)
        except ParseMismatch as e:
            return ActionResult(False, 'analyze', error=f"Unrecognized du output: {e}")

        children = [entry for entry in entries if entry['path'].rstrip('/') != path.rstrip('/')]
        children.sort(key=lambda entry: entry['size_kb'], reverse=True)
        analysis = [
            {'size': human_size(entry['size_kb']), 'size_kb': entry['size_kb'], 'path': entry['path']}
            for entry in children[:ANALYZE_LIMIT]
        ]
        return ActionResult(True, 'analyze', message=f"Disk analysis completed for {path}",
                            result={'path': path, 'analysis': analysis})

    # -- compute units --------------------------------------------------------

    def _compute_handler(self, action: str) -> Callable[[Dict[str, Any]], ActionResult]:
        def handler(params: Dict[str, Any]) -> ActionResult:
            return self._control_unit(action, params)
        return handler

    def _control_unit(self, action: str, params: Dict[str, Any]) -> ActionResult:
        unit_id = validate_unit_id(require(params, 'id'))
        backend = params.get('backend')
        if backend is not None:
            backends = (validate_choice(backend, COMPUTE_BACKENDS, 'backend'),)
        else:
            prefixed = [b for b in COMPUTE_BACKENDS if unit_id.startswith(f"{b}-")]
            backends = tuple(prefixed) or COMPUTE_BACKENDS

        errors = []
        for candidate in backends:
            if not self.prober.is_available(candidate):
                continue
            unit = unit_id[len(candidate) + 1:] if unit_id.startswith(f"{candidate}-") else unit_id
            argv = compute_command(candidate, action, unit)
            result = self.connector.execute_command(argv, timeout=self.settings.command_timeout)
            if result.success:
                return ActionResult(True, action, message=f"{unit} {action} via {candidate} succeeded")
            errors.append(f"{candidate}: {result.error.strip() or result.failure.value}")

        return ActionResult(False, action, error='; '.join(errors) or 'No virtualization backend available')
