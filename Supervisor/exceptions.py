"""Custom exceptions for the health supervisor."""

from __future__ import annotations


class SupervisorError(Exception):
    """Base exception for supervisor errors."""


class ProcessManagerError(SupervisorError):
    """Raised when a pm2 command fails or returns unusable output.

    Carries the command and its stderr so the cycle log shows what pm2
    actually said.
    """

    def __init__(self, command: str, detail: str = "") -> None:
        self.command = command
        self.detail = detail
        message = f"{command} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PortInspectionError(SupervisorError):
    """Raised when the listening-socket tool cannot be run."""
