"""Derived history views and revert request/plan models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class ChangeType(str, Enum):
    """Human-meaningful category of a change."""

    FILE_UPLOAD = "file_upload"
    KNOWLEDGE_BASE_GENERATION = "knowledge_base_generation"


class ChangeOperation(str, Enum):
    """What a change did to its target."""

    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


class RevertType(str, Enum):
    """Which side of an ingest to undo."""

    FILE_UPLOAD = "file_upload"
    KNOWLEDGE_BASE_GENERATION = "knowledge_base_generation"
    BOTH = "both"

    def covers(self, change_type: ChangeType) -> bool:
        return self is RevertType.BOTH or self.value == change_type.value


class RevertKind(str, Enum):
    """Planned effect of one revert step."""

    REMOVE_SOURCE = "remove_source"
    REMOVE_KB_ONLY = "remove_kb_only"
    REMOVE_BOTH = "remove_both"


class Change(BaseModel):
    """A group of ledger entries shown as one item in history."""

    id: str
    change_type: ChangeType
    description: str
    operation: ChangeOperation
    files_affected: list[str] = Field(default_factory=list)
    timestamp: datetime
    relative_time: str = ""
    source_path: str | None = None
    entry_ids: list[str] = Field(default_factory=list)
    commit_ids: list[str] = Field(default_factory=list)
    correlation_id: str | None = None
    related_change_id: str | None = None
    reverted: bool = False
    details: dict[str, Any] = Field(default_factory=dict)


class RevertRequest(BaseModel):
    """A human-friendly undo request.

    Exactly one of ``change_id``, ``filename`` or ``last_n_changes`` selects
    the target. The check lives in the engine so that a bad request still
    reaches it and fails with a typed error.
    """

    change_id: str | None = None
    filename: str | None = None
    last_n_changes: int | None = Field(default=None, ge=1)
    revert_type: RevertType = RevertType.BOTH
    regenerate_after_revert: bool = False

    def selectors(self) -> list[str]:
        chosen = []
        if self.change_id:
            chosen.append("change_id")
        if self.filename:
            chosen.append("filename")
        if self.last_n_changes is not None:
            chosen.append("last_n_changes")
        return chosen


class RevertStep(BaseModel):
    """One ledger entry whose commit will be inverted."""

    target_entry_id: str
    revert_kind: RevertKind
    commit: str
    change_id: str
    change_type: ChangeType
    source_path: str | None = None

    class Config:
        frozen = True


class RevertPlan(BaseModel):
    """Ordered revert steps, computed without touching the repository."""

    steps: list[RevertStep] = Field(default_factory=list)
    changes: list[Change] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.steps

    @property
    def commits(self) -> list[str]:
        """Planned commits, oldest first, without duplicates."""
        return list(dict.fromkeys(step.commit for step in self.steps))

    @property
    def removes_source(self) -> bool:
        return any(step.change_type is ChangeType.FILE_UPLOAD for step in self.steps)


class RevertResult(BaseModel):
    """Outcome of an undo request, reflecting the true post-state."""

    success: bool
    message: str
    revert_commit_ids: list[str] = Field(default_factory=list)
    changes_reverted: list[Change] = Field(default_factory=list)
    regeneration_triggered: bool = False

    @model_validator(mode="after")
    def _failed_reverts_have_no_commits(self) -> "RevertResult":
        if not self.success and self.revert_commit_ids:
            raise ValueError("A failed revert cannot report revert commits")
        return self
