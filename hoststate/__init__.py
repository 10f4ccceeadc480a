"""
Host introspection and normalization engine.

Invokes operating-system tools, falls back across alternatives, and
normalizes their output into typed snapshots for a dashboard backend.
"""

__version__ = '0.3.0'
