"""Append-only timeline ledger persisted inside the repository."""

from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from kb_ledger.core.exceptions import LedgerError, NotFoundError
from kb_ledger.core.models.timeline import Actor, Operation, Timeline, TimelineEntry
from kb_ledger.repositories.base import METADATA_DIR, RepositoryAdapter

logger = structlog.get_logger(__name__)

TIMELINE_FILE = "timeline.json"


class TimelineLedger:
    """Ordered, commit-linked record of every content-affecting event.

    The ledger file lives in the repository's metadata directory and is
    committed on its own after each entry, so reverting content commits
    never rewrites it. An entry must be appended after the commit it
    references exists; a crash in between leaves a content commit with no
    entry, which ``unrecorded_commits`` reports.
    """

    def __init__(self, adapter: RepositoryAdapter, bulk_threshold: int = 10) -> None:
        self._adapter = adapter
        self._bulk_threshold = bulk_threshold

    @property
    def adapter(self) -> RepositoryAdapter:
        return self._adapter

    async def read_all(self) -> list[TimelineEntry]:
        """Return every entry, oldest first. A missing ledger is empty."""
        raw = await self._adapter.read_metadata(TIMELINE_FILE)
        if raw is None or not raw.strip():
            return []
        try:
            return Timeline.model_validate_json(raw).entries
        except PydanticValidationError as exc:
            raise LedgerError(
                "Timeline ledger is unreadable",
                details={"path": f"{METADATA_DIR}/{TIMELINE_FILE}", "errors": exc.error_count()},
            ) from exc

    async def get(self, entry_id: str) -> TimelineEntry:
        for entry in await self.read_all():
            if entry.id == entry_id:
                return entry
        raise NotFoundError(f"Timeline entry not found: {entry_id}", details={"entry_id": entry_id})

    async def append(self, entry: TimelineEntry) -> TimelineEntry:
        """Validate ``entry`` and persist it as the new last element."""
        entries = await self.read_all()
        await self._validate(entry, entries)

        timeline = Timeline(entries=[*entries, entry])
        await self._adapter.write_metadata(TIMELINE_FILE, timeline.model_dump_json(indent=2) + "\n")
        await self._adapter.commit_metadata(
            TIMELINE_FILE,
            f"Record {entry.operation.value} in timeline",
        )
        logger.debug(
            "Timeline entry appended",
            repository=self._adapter.config.name,
            operation=entry.operation.value,
            commit=entry.commit[:8],
            entry_id=entry.id,
        )
        return entry

    async def record(
        self,
        operation: Operation,
        commit: str = "",
        source_path: str | None = None,
        affected_knowledge_base_paths: list[str] | None = None,
        actor: Actor = Actor.USER,
        meta: dict[str, Any] | None = None,
    ) -> TimelineEntry:
        """Build an entry stamped no earlier than the last one and append it."""
        entries = await self.read_all()
        timestamp = datetime.now(timezone.utc)
        if entries and entries[-1].timestamp > timestamp:
            timestamp = entries[-1].timestamp

        affected = affected_knowledge_base_paths or []
        touched = len(affected) + (1 if source_path else 0)
        entry = TimelineEntry(
            timestamp=timestamp,
            actor=actor,
            operation=operation,
            source_path=source_path,
            commit=commit,
            affected_knowledge_base_paths=affected,
            bulk=touched > self._bulk_threshold,
            meta=meta or {},
        )
        return await self.append(entry)

    async def unrecorded_commits(self, limit: int = 200) -> list[str]:
        """Content commits that no entry references, oldest first."""
        referenced = {entry.commit for entry in await self.read_all() if entry.commit}
        missing = []
        for commit in await self._adapter.list_commits(limit):
            content_paths = [
                path for path in commit.paths if not path.startswith(f"{METADATA_DIR}/")
            ]
            if content_paths and commit.sha not in referenced:
                missing.append(commit.sha)
        return list(reversed(missing))

    async def _validate(self, entry: TimelineEntry, entries: list[TimelineEntry]) -> None:
        if entry.operation is not Operation.ERROR:
            if not entry.commit:
                raise LedgerError(
                    f"A {entry.operation.value} entry must reference a commit",
                    details={"operation": entry.operation.value, "entry_id": entry.id},
                )
            if not await self._adapter.commit_exists(entry.commit):
                raise LedgerError(
                    f"Commit {entry.commit} does not exist",
                    details={"operation": entry.operation.value, "commit": entry.commit},
                )
        if any(existing.id == entry.id for existing in entries):
            raise LedgerError(f"Duplicate timeline entry id: {entry.id}", details={"entry_id": entry.id})
        if entries and entry.timestamp < entries[-1].timestamp:
            raise LedgerError(
                "Timeline entries must not go back in time",
                details={
                    "entry_id": entry.id,
                    "timestamp": entry.timestamp.isoformat(),
                    "last_timestamp": entries[-1].timestamp.isoformat(),
                },
            )
