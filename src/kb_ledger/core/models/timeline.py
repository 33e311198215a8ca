"""Timeline ledger entry models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class Actor(str, Enum):
    """Who initiated an event."""

    USER = "user"
    SYSTEM = "system"


class Operation(str, Enum):
    """Kind of event recorded in the ledger."""

    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"
    REGEN = "regen"
    ERROR = "error"


class Stage(str, Enum):
    """Which part of the pipeline an entry belongs to (``meta["stage"]``)."""

    SOURCE = "source"
    KNOWLEDGE_BASE = "knowledge_base"
    REVERT = "revert"


class TimelineEntry(BaseModel):
    """An immutable, commit-linked event in a repository's history.

    ``commit`` names the revision holding the event's effects. It may only be
    empty for ``error`` entries.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    actor: Actor = Actor.USER
    operation: Operation
    source_path: str | None = None
    commit: str = ""
    affected_knowledge_base_paths: list[str] = Field(default_factory=list)
    bulk: bool = False
    meta: dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True

    @field_validator("timestamp")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @field_validator("affected_knowledge_base_paths")
    @classmethod
    def _dedupe_paths(cls, value: list[str]) -> list[str]:
        # Ordered set semantics
        return list(dict.fromkeys(value))

    @property
    def stage(self) -> Stage | None:
        raw = self.meta.get("stage")
        try:
            return Stage(raw) if raw is not None else None
        except ValueError:
            return None

    @property
    def ingest_id(self) -> str | None:
        return self.meta.get("ingest_id")

    @property
    def reverted_entry_ids(self) -> list[str]:
        return list(self.meta.get("reverted_entry_ids", []))


class Timeline(BaseModel):
    """On-disk layout of the ledger file."""

    version: int = 1
    entries: list[TimelineEntry] = Field(default_factory=list)
