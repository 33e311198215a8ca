"""History index: folds ledger entries into human-meaningful changes."""

import posixpath
from datetime import datetime, timezone

import structlog

from kb_ledger.core.exceptions import NotFoundError, ValidationError
from kb_ledger.core.models.history import Change, ChangeOperation, ChangeType
from kb_ledger.core.models.timeline import Operation, Stage, TimelineEntry
from kb_ledger.services.context import ContextProvider
from kb_ledger.utils.time import relative_time

logger = structlog.get_logger(__name__)

_OPERATION_MAP = {
    Operation.ADD: ChangeOperation.ADDED,
    Operation.UPDATE: ChangeOperation.UPDATED,
    Operation.REGEN: ChangeOperation.UPDATED,
    Operation.DELETE: ChangeOperation.REMOVED,
}

_UPLOAD_VERBS = {
    ChangeOperation.ADDED: "Uploaded",
    ChangeOperation.UPDATED: "Updated",
    ChangeOperation.REMOVED: "Removed",
}

_EDIT_VERBS = {
    ChangeOperation.ADDED: "Created",
    ChangeOperation.UPDATED: "Edited",
    ChangeOperation.REMOVED: "Deleted",
}


def parse_change_type(value: str | ChangeType | None) -> ChangeType | None:
    """Parse a change-type filter; ``None`` and ``"both"`` mean no filter."""
    if value is None or isinstance(value, ChangeType):
        return value
    if value == "both":
        return None
    try:
        return ChangeType(value)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown change type: {value}",
            details={"change_type": value},
        ) from exc


def classify(entry: TimelineEntry) -> ChangeType:
    """Which kind of change an entry belongs to."""
    stage = entry.stage
    if stage is Stage.SOURCE:
        return ChangeType.FILE_UPLOAD
    if stage is Stage.KNOWLEDGE_BASE or entry.operation is Operation.REGEN:
        return ChangeType.KNOWLEDGE_BASE_GENERATION
    if entry.affected_knowledge_base_paths:
        return ChangeType.KNOWLEDGE_BASE_GENERATION
    return ChangeType.FILE_UPLOAD


def reverted_entry_ids(entries: list[TimelineEntry]) -> set[str]:
    """Ids of every entry referenced by a revert record."""
    reverted: set[str] = set()
    for entry in entries:
        if entry.stage is Stage.REVERT:
            reverted.update(entry.reverted_entry_ids)
    return reverted


def fold_entries(entries: list[TimelineEntry], now: datetime | None = None) -> list[Change]:
    """Fold ledger entries into changes, in ledger order.

    Entries sharing an ``ingest_id`` and a change type form one change.
    Each regeneration stays its own change, correlated with the ingest
    that produced the raw artifact. Revert records only mark the entries
    they list as reverted, and error entries are ignored.
    """
    now = now or datetime.now(timezone.utc)
    reverted = reverted_entry_ids(entries)

    groups: dict[tuple[str, ChangeType, str], list[TimelineEntry]] = {}
    for entry in entries:
        if entry.operation is Operation.ERROR or entry.stage is Stage.REVERT:
            continue
        change_type = classify(entry)
        correlation = entry.ingest_id or entry.id
        discriminator = entry.id if entry.operation is Operation.REGEN else ""
        groups.setdefault((correlation, change_type, discriminator), []).append(entry)

    changes = [_build_change(group, change_type, correlation, reverted, now)
               for (correlation, change_type, _), group in groups.items()]

    # Link the upload and generation sides of the same ingest
    first_by_side: dict[tuple[str, ChangeType], str] = {}
    for change in changes:
        first_by_side.setdefault((change.correlation_id, change.change_type), change.id)
    for change in changes:
        other = (
            ChangeType.KNOWLEDGE_BASE_GENERATION
            if change.change_type is ChangeType.FILE_UPLOAD
            else ChangeType.FILE_UPLOAD
        )
        change.related_change_id = first_by_side.get((change.correlation_id, other))
    return changes


def _build_change(
    group: list[TimelineEntry],
    change_type: ChangeType,
    correlation_id: str,
    reverted: set[str],
    now: datetime,
) -> Change:
    first, last = group[0], group[-1]
    source_path = next((entry.source_path for entry in group if entry.source_path), None)
    title = first.meta.get("title") or (posixpath.basename(source_path) if source_path else "content")
    operation = _OPERATION_MAP[last.operation if change_type is ChangeType.FILE_UPLOAD else first.operation]

    if change_type is ChangeType.FILE_UPLOAD:
        files = [source_path] if source_path else []
        verbs = _UPLOAD_VERBS
        if first.meta.get("item_operation"):
            verbs = _EDIT_VERBS
            files += [path for entry in group for path in entry.affected_knowledge_base_paths if path not in files]
        description = f"{verbs[operation]} {title}"
    else:
        files = list(dict.fromkeys(
            path for entry in group for path in entry.affected_knowledge_base_paths
        ))
        verb = "Regenerated" if first.operation is Operation.REGEN else "Generated"
        noun = "KB file" if len(files) == 1 else "KB files"
        description = f"{verb} knowledge base from {title} ({len(files)} {noun} updated)"

    return Change(
        id=first.id,
        change_type=change_type,
        description=description,
        operation=operation,
        files_affected=files,
        timestamp=first.timestamp,
        relative_time=relative_time(first.timestamp, now),
        source_path=source_path,
        entry_ids=[entry.id for entry in group],
        commit_ids=list(dict.fromkeys(entry.commit for entry in group if entry.commit)),
        correlation_id=correlation_id,
        reverted=all(entry.id in reverted for entry in group),
        details={
            "title": title,
            "user": first.meta.get("user"),
            "actor": first.actor.value,
            "source_file": posixpath.basename(source_path) if source_path else None,
            "bulk": any(entry.bulk for entry in group),
        },
    )


def most_recent_first(changes: list[Change]) -> list[Change]:
    """Sort newest first; of two changes with equal timestamps the later ledger one comes first."""
    return sorted(reversed(changes), key=lambda change: change.timestamp, reverse=True)


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def matches_file(change: Change, filename: str) -> bool:
    if not change.source_path:
        return change.details.get("title") == filename
    return filename in {
        change.source_path,
        posixpath.basename(change.source_path),
        change.details.get("title"),
    }


class HistoryIndex:
    """Read-side queries over a repository's ledger."""

    def __init__(self, contexts: ContextProvider) -> None:
        self._contexts = contexts

    async def all_changes(self, repository_id: str) -> list[Change]:
        """Every change, reverted ones included, in ledger order."""
        context = await self._contexts.get_context(repository_id)
        return fold_entries(await context.ledger.read_all())

    async def list_changes(
        self,
        repository_id: str,
        limit: int | None = None,
        change_type: str | ChangeType | None = None,
        include_reverted: bool = False,
        offset: int = 0,
        path: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[Change]:
        """Changes, most recent first.

        Filters apply before paging: ``offset`` skips that many matching
        changes and ``limit`` caps the page. ``path`` matches the raw
        artifact (full path, base name or title) or any page the change
        touched. ``since`` and ``until`` bound the timestamp, inclusive.
        """
        wanted = parse_change_type(change_type)
        if limit is not None and limit < 1:
            raise ValidationError("limit must be at least 1", details={"limit": limit})
        if offset < 0:
            raise ValidationError("offset must not be negative", details={"offset": offset})

        changes = most_recent_first(await self.all_changes(repository_id))
        changes = [
            change for change in changes
            if (include_reverted or not change.reverted)
            and (wanted is None or change.change_type is wanted)
            and (path is None or matches_file(change, path) or path in change.files_affected)
            and (since is None or change.timestamp >= _aware(since))
            and (until is None or change.timestamp <= _aware(until))
        ]
        page = changes[offset:]
        return page[:limit] if limit is not None else page

    async def get_change(self, repository_id: str, change_id: str) -> Change:
        for change in await self.all_changes(repository_id):
            if change.id == change_id:
                return change
        raise NotFoundError(
            f"Change not found: {change_id}",
            details={"repository_id": repository_id, "change_id": change_id},
        )

    async def changes_for_file(
        self,
        repository_id: str,
        filename: str,
        include_reverted: bool = False,
    ) -> list[Change]:
        """Changes concerning ``filename``, most recent first."""
        changes = most_recent_first(await self.all_changes(repository_id))
        return [
            change for change in changes
            if matches_file(change, filename) and (include_reverted or not change.reverted)
        ]
