"""Exceptions raised by the journal core.

Everything derives from DoingError so callers can catch the whole family;
the tool layer maps each subclass to a structured error result.
"""

from __future__ import annotations


class DoingError(Exception):
    """Base exception for journal operations."""
    pass


class ParseError(DoingError):
    """Raised when a journal file cannot be read as text."""
    pass


class InvalidTimeExpression(DoingError):
    """Raised when a date, time or duration string cannot be resolved."""
    pass


class ItemNotFound(DoingError):
    """Raised when an item reference is not present in the store."""
    pass


class InvalidSection(DoingError):
    """Raised when a section name matches nothing and creation was not requested."""
    pass


class InvalidView(DoingError):
    """Raised when a view name matches no configured view."""
    pass


class EmptyInput(DoingError):
    """Raised when input has no usable content."""
    pass


class DoingRuntimeError(DoingError):
    """Raised when an internal invariant is violated."""
    pass


class InvalidArgument(DoingError):
    """Raised for unusable option combinations or unknown formats."""
    pass


class NoResults(DoingError):
    """Raised when a selection matched no items."""
    pass


class MissingEditor(DoingError):
    """Raised when no editor is configured in the environment."""
    pass


class UserCancelled(DoingError):
    """Raised when the user aborts an operation (e.g. editor exits non-zero)."""
    pass
