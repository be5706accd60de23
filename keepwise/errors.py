"""
Error taxonomy shared by the managers, the action boundary and the HTTP layer.
"""

from typing import Dict, Optional


class KeepwiseError(Exception):
    """Base class for all Keepwise errors."""


class ValidationError(KeepwiseError):
    """Malformed or missing input, raised before the store is touched."""

    def __init__(self, message: str = "Invalid input", field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


class AuthenticationError(KeepwiseError):
    """No verified caller identity."""


class NotFoundOrForbidden(KeepwiseError):
    """
    The record does not exist, belongs to another owner, or is of another kind.

    All three cases share one message so callers cannot probe for records
    owned by someone else.
    """

    def __init__(self, message: str = "Memory not found"):
        super().__init__(message)


class UpstreamFetchError(KeepwiseError):
    """Fetching or parsing a remote page for metadata failed."""


class PersistenceError(KeepwiseError):
    """The store rejected or failed an operation."""
