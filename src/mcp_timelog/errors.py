"""Exception hierarchy for time log operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import IndexResult


class TimeLogError(Exception):
    """Base exception for time log operations."""
    pass


class FormatError(TimeLogError):
    """Raised when a log file's section structure is unsound."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        super().__init__(message)
        self.line_number = line_number


class ConflictError(TimeLogError):
    """Raised when starting an entry while another one is still active."""
    pass


class NotFoundError(TimeLogError):
    """Raised when an operation needs an active entry and none exists."""
    pass


class ValidationError(TimeLogError):
    """Raised for invalid user-supplied values (times, dates, ranges)."""
    pass


class PartialIndexError(TimeLogError):
    """Raised by a strict reindex when some files or records failed."""

    def __init__(self, message: str, result: "IndexResult"):
        super().__init__(message)
        self.result = result
