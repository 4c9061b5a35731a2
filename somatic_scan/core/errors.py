"""
Error Types

Structural errors surfaced to callers. Per-frame measurement problems are
represented as None/False in the data model and never raised.
"""


class SomaticScanError(Exception):
    """Base class for package errors."""


class InvalidInputError(SomaticScanError, ValueError):
    """Caller supplied malformed input (e.g. wrong questionnaire length)."""


class PreconditionError(SomaticScanError, RuntimeError):
    """A pipeline step was invoked before its required data was present."""
