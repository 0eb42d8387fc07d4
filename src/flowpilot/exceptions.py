"""
FlowPilot exceptions.

The analyzers are pure functions over in-memory records, so the only
failures they raise are caused by malformed input.
"""

from __future__ import annotations


class FlowPilotError(Exception):
    """Base exception for all FlowPilot errors."""


class DataError(FlowPilotError):
    """Input records are malformed (e.g. an unparseable transaction date)."""


class ConfigError(FlowPilotError):
    """A configuration file could not be read or validated."""
