"""
Exception hierarchy for orgpilot.

Transport, authentication and query failures propagate to the caller with a
human-readable message. Partial metadata failures (layouts, record counts,
related lists) are recovered where they happen and never use these types
past their component.
"""

from typing import Optional


class OrgPilotError(Exception):
    """Base class for all orgpilot errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TransportError(OrgPilotError):
    """
    Raised when a call to the platform fails.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status, when the server answered at all.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(TransportError):
    """Raised when the session is missing, expired or rejected."""


class DescribeError(TransportError):
    """
    Raised when an entity cannot be described.

    Attributes:
        entity_name: The entity whose describe failed.
    """

    def __init__(self, entity_name: str, message: str, status_code: Optional[int] = None):
        self.entity_name = entity_name
        super().__init__(f"Failed to describe {entity_name}: {message}", status_code)


class QueryError(TransportError):
    """
    Raised when a query is rejected.

    The message is the platform's own text, unmodified, because query
    errors are usually fixable by editing the query.
    """

    def __init__(self, message: str, query: str = "", status_code: Optional[int] = None):
        self.query = query
        super().__init__(message, status_code)


class GenerationError(OrgPilotError):
    """Raised when the diagram generation service cannot be reached."""
