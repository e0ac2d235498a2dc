from __future__ import annotations


class DeathRollError(Exception):
    """Base exception for tournament bot failures."""


class ValidationError(DeathRollError, ValueError):
    """Raised when user supplied input is malformed or out of range."""


class PreconditionError(DeathRollError):
    """Raised when an action is not allowed in the current status or role."""


class ProviderError(DeathRollError):
    """Raised when a bracket provider call returns a non-success response."""

    def __init__(
        self, message: str, *, status: int | None = None, body: str = ""
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class PersistenceError(DeathRollError):
    """Raised when the guild document could not be written to storage."""


__all__ = [
    "DeathRollError",
    "ValidationError",
    "PreconditionError",
    "ProviderError",
    "PersistenceError",
]
