"""Exception taxonomy.

Validation failures are not exceptions: they are reported as
:class:`grideditor.validation.ValidationMessage` values and turned into
field-error envelopes by the editor.
"""

from __future__ import annotations

from typing import Optional


class GridEditorError(Exception):
    """Base class for every error raised by grideditor."""


class ConfigurationError(GridEditorError):
    """A descriptor, table or key is missing or inconsistent."""


class InsufficientDataError(GridEditorError):
    """Data needed to resolve a request was never fetched.

    Raised when a link-table join is resolved before its backing query ran;
    ``query`` holds the SQL that should have been executed.
    """

    def __init__(self, message: str, query: Optional[str] = None):
        super().__init__(message if query is None else f"{message}\nQuery: {query}")
        self.query = query


class DatabaseError(GridEditorError):
    """A statement failed; ``query`` is the SQL that was being executed."""

    def __init__(self, message: str, query: Optional[str] = None):
        super().__init__(message)
        self.query = query


class BindTypeError(GridEditorError, TypeError):
    """A bound value's runtime type does not match its column type."""
