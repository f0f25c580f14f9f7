"""Exceptions raised by the alignment package."""


class ScanAlignmentError(Exception):
    """Base class for scan alignment errors."""


class InvalidInputError(ScanAlignmentError, ValueError):
    """Raised when inputs cannot be aligned at all (e.g. empty reference cloud)."""
