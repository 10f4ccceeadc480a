"""
Mutating host actions (interfaces, firewall, DNS, compute units).
"""

from .action_runner import ActionRunner, ActionResult, ActionValidationError, EXECUTE_ALLOW_LIST

__all__ = [
    'ActionRunner',
    'ActionResult',
    'ActionValidationError',
    'EXECUTE_ALLOW_LIST',
]
