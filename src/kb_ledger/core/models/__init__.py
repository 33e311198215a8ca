"""Domain models for KB-Ledger."""

from kb_ledger.core.models.content import (
    BrowseOperation,
    BrowseResult,
    IngestKind,
    IngestRequest,
    IngestResult,
    SearchAnswer,
    SearchSource,
)
from kb_ledger.core.models.history import (
    Change,
    ChangeOperation,
    ChangeType,
    RevertKind,
    RevertPlan,
    RevertRequest,
    RevertResult,
    RevertStep,
    RevertType,
)
from kb_ledger.core.models.repository import (
    CommitInfo,
    FileEntry,
    LocalRepositoryConfig,
    RemoteRepositoryConfig,
    RepositoryConfig,
    SyncOutcome,
    repository_config_adapter,
)
from kb_ledger.core.models.timeline import Actor, Operation, Stage, Timeline, TimelineEntry

__all__ = [
    "LocalRepositoryConfig",
    "RemoteRepositoryConfig",
    "RepositoryConfig",
    "repository_config_adapter",
    "FileEntry",
    "CommitInfo",
    "SyncOutcome",
    "Actor",
    "Operation",
    "Stage",
    "Timeline",
    "TimelineEntry",
    "Change",
    "ChangeOperation",
    "ChangeType",
    "RevertKind",
    "RevertPlan",
    "RevertRequest",
    "RevertResult",
    "RevertStep",
    "RevertType",
    "IngestKind",
    "IngestRequest",
    "IngestResult",
    "BrowseOperation",
    "BrowseResult",
    "SearchAnswer",
    "SearchSource",
]
