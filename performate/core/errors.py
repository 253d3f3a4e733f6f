from __future__ import annotations


class ValidationError(ValueError):
    """Rejected input; raised before any storage call is made."""


class ReferentialError(ValidationError):
    """A referenced student, reason, class or mentor does not exist."""


class StorageError(RuntimeError):
    """The persistence layer failed (connectivity or constraint). Safe to retry."""


class PartialFailureError(StorageError):
    """A compound write applied its first step but could not finish or roll back."""

    def __init__(self, message: str, *, completed_steps: list[str] | None = None) -> None:
        super().__init__(message)
        self.completed_steps = list(completed_steps or [])
