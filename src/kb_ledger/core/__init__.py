"""Core domain models and exceptions for KB-Ledger."""

from kb_ledger.core.exceptions import (
    AmbiguousRevertTargetError,
    ConfigurationError,
    KBLedgerError,
    NotFoundError,
    PathProhibitedError,
    RepositoryError,
    RevertConflictError,
    SyncConflictError,
    SyncFailureError,
    ValidationError,
)
from kb_ledger.core.models import (
    Change,
    ChangeType,
    IngestRequest,
    IngestResult,
    RepositoryConfig,
    RevertRequest,
    RevertResult,
    RevertType,
    TimelineEntry,
)

__all__ = [
    # Models
    "RepositoryConfig",
    "TimelineEntry",
    "Change",
    "ChangeType",
    "RevertRequest",
    "RevertResult",
    "RevertType",
    "IngestRequest",
    "IngestResult",
    # Exceptions
    "KBLedgerError",
    "ConfigurationError",
    "ValidationError",
    "NotFoundError",
    "PathProhibitedError",
    "RepositoryError",
    "RevertConflictError",
    "SyncConflictError",
    "SyncFailureError",
    "AmbiguousRevertTargetError",
]
