"""Exception types surfaced to callers of the parsers and the ingest helpers."""
from __future__ import annotations


class ReplayError(Exception):
    """Base class for agentreplay errors."""


class UnrecognizedFormatError(ReplayError, ValueError):
    """Structured input did not match any known conversation shape."""


class UnsupportedFileError(ReplayError, ValueError):
    """A dropped file was rejected before parsing (wrong extension)."""
