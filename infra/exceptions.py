"""Custom exceptions for the storage layer."""

from __future__ import annotations


class StoreError(Exception):
    """Raised when a document cannot be read, decoded or written."""


class LockTimeout(StoreError):
    """Raised when the document lock is not obtained within the retry budget.

    Transient: the caller may retry the whole operation.
    """

    def __init__(self, target: str, attempts: int, owner: str = "") -> None:
        self.target = target
        self.attempts = attempts
        self.owner = owner
        message = f"Failed to acquire lock on {target} after {attempts} attempts"
        if owner:
            message = f"{message} (held by {owner})"
        super().__init__(message)
