"""Error kinds raised by the revision diff engine."""

from __future__ import annotations


class DiffEngineError(RuntimeError):
    """Base class for every diff engine failure."""


class ConfigurationError(DiffEngineError):
    """Missing workspace context or invalid algorithm selector."""


class ResolutionError(DiffEngineError):
    """Depot file cannot be mapped to a workspace path."""


class DiffIOError(DiffEngineError):
    """File open, read or remove failure."""


class ExternalToolError(DiffEngineError):
    """p4 could not be located, timed out or exited non-zero."""


class ParseFormatError(DiffEngineError):
    """p4 output does not have the expected shape."""
