"""Exception hierarchy for KB-Ledger."""

from typing import Any


class KBLedgerError(Exception):
    """Base error for KB-Ledger.

    Carries a human-readable message plus a ``details`` dict naming the
    operation and the resolved target, never internal stack state.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigurationError(KBLedgerError):
    """Invalid or conflicting configuration (duplicate name, unknown alias)."""


class ValidationError(KBLedgerError):
    """A request or record failed validation."""


class NotFoundError(KBLedgerError):
    """A repository, file, change or ledger entry does not exist."""


class PathProhibitedError(KBLedgerError):
    """Access to a reserved control directory was attempted."""


class RepositoryError(KBLedgerError):
    """A repository operation failed."""


class GitCommandError(RepositoryError):
    """A git subprocess exited with a non-zero status."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        stderr: str = "",
        returncode: int | None = None,
    ) -> None:
        super().__init__(message, details)
        self.stderr = stderr
        self.returncode = returncode


class RevertConflictError(RepositoryError):
    """Inverse of one or more commits could not be applied cleanly."""

    def __init__(
        self,
        message: str,
        paths: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.paths = paths or []


class SyncError(KBLedgerError):
    """Base for synchronisation problems with a remote."""


class SyncConflictError(SyncError):
    """Local state cannot be fast-forwarded to the remote branch."""


class SyncFailureError(SyncError):
    """The remote could not be reached or refused the operation."""


class AmbiguousRevertTargetError(ValidationError):
    """Zero or several revert selectors were supplied."""


class LedgerError(KBLedgerError):
    """The timeline ledger rejected an entry or could not be read."""


class SummarizerError(KBLedgerError):
    """The content summarizer failed or timed out."""
