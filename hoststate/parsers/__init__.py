"""
Tool output parsers.

Each parser turns the stdout of one introspection tool into partial
records for one fact. Lookup goes through the registry:

    from hoststate.parsers import registry

    parser = registry.get_parser('ss', 'ports')
    if parser:
        entries = parser.parse(output)
"""

from .base import BaseOutputParser, ParseMismatch
from .registry import registry, ParserRegistry

__all__ = [
    'BaseOutputParser',
    'ParseMismatch',
    'registry',
    'ParserRegistry',
]
