"""Domain exception classes for TaskFlow.

These exceptions are raised by service-layer code and translated into
HTTP error responses by exception handlers registered in ``main.py``.
"""

from __future__ import annotations


class NotFoundError(Exception):
    """Raised when a requested resource does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ForbiddenError(Exception):
    """Raised when the user is not allowed to act on a resource."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConflictError(Exception):
    """Raised when an action conflicts with current state (e.g., duplicate assignment)."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(Exception):
    """Raised when credentials are missing or wrong."""

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)
        self.message = message
