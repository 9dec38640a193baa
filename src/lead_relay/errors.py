# errors.py
"""Caller-visible relay errors."""

from typing import Optional


class RelayError(Exception):
    """Base exception for errors surfaced to the relay caller.

    Attributes:
        status_code: HTTP status returned to the caller.
        details: Optional diagnostic text returned alongside the message.
    """

    status_code: int = 500

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class RelayAuthError(RelayError):
    """Raised when the bearer credential is missing or cannot be resolved."""

    status_code = 401


class RelayValidationError(RelayError):
    """Raised when required search fields are missing from the request."""

    status_code = 400
