from __future__ import annotations

from typing import Optional


class BackupRunError(Exception):
    """Base class for errors that end a backup run."""

    def __init__(self, message: str, notification: Optional[str] = None) -> None:
        super().__init__(message)
        self.notification = notification or message


class ConfigurationError(BackupRunError):
    """Raised when the inventory or the host layout is invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, notification=f"configuration error: {message}")


class DumpExhausted(BackupRunError):
    """Raised when a database dump keeps failing after every retry."""

    def __init__(self, service_name: str, attempts: int) -> None:
        super().__init__(
            f"Database dump for {service_name} failed after {attempts} attempts",
            notification=f"database dump FAILED for {service_name}",
        )
        self.service_name = service_name
        self.attempts = attempts


class BackendInvocationFailed(BackupRunError):
    """Raised when a restic backup, forget or prune call exits non-zero."""

    def __init__(self, phase: str, exit_code: int, tag: Optional[str] = None) -> None:
        subject = f"restic {phase} for {tag}" if tag else f"restic {phase}"
        super().__init__(
            f"{subject} exited with status {exit_code}",
            notification=f"restic {phase} FAILED",
        )
        self.phase = phase
        self.exit_code = exit_code
        self.tag = tag


class FilesystemError(BackupRunError):
    """Raised when a local file operation fails in the middle of a run."""

    def __init__(self, error: OSError) -> None:
        super().__init__(
            f"File operation failed: {error}",
            notification=f"filesystem error: {error.strerror or error}",
        )
        self.error = error
