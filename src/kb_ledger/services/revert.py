"""Revert engine: Resolve, Plan, Execute, Record."""

import structlog

from kb_ledger.core.exceptions import (
    AmbiguousRevertTargetError,
    NotFoundError,
    RevertConflictError,
    SummarizerError,
)
from kb_ledger.core.models.history import (
    Change,
    ChangeType,
    RevertPlan,
    RevertRequest,
    RevertResult,
    RevertType,
)
from kb_ledger.core.models.timeline import Actor, Operation, Stage
from kb_ledger.services.context import ContextProvider, RepositoryContext
from kb_ledger.services.generation import generate_pages
from kb_ledger.services.history import fold_entries, matches_file, most_recent_first
from kb_ledger.services.planning import build_revert_plan
from kb_ledger.services.sync import SyncCoordinator
from kb_ledger.summarizer.base import ContentSummarizer

logger = structlog.get_logger(__name__)


class RevertEngine:
    """Turns undo requests into one inverse revision plus a ledger record.

    The whole request runs under the repository lock. Planning is pure and
    happens before any mutation; execution is a single ``revert_commits``
    call, so a conflict leaves nothing applied.
    """

    def __init__(
        self,
        contexts: ContextProvider,
        summarizer: ContentSummarizer,
        sync: SyncCoordinator | None = None,
        summarizer_timeout: float = 120.0,
    ) -> None:
        self._contexts = contexts
        self._summarizer = summarizer
        self._sync = sync or SyncCoordinator()
        self._summarizer_timeout = summarizer_timeout

    async def undo(self, repository_id: str, request: RevertRequest) -> RevertResult:
        selectors = request.selectors()
        if len(selectors) != 1:
            raise AmbiguousRevertTargetError(
                "Exactly one of change_id, filename or last_n_changes is required",
                details={"operation": "undo", "selectors": selectors},
            )

        context = await self._contexts.get_context(repository_id)
        async with context.lock:
            outcome = await self._sync.sync_for_write(context.adapter)
            result = await self._undo_locked(context, request)
            if outcome.warning:
                result.message = f"{result.message} (warning: {outcome.warning})"
            return result

    async def _undo_locked(self, context: RepositoryContext, request: RevertRequest) -> RevertResult:
        target = self._describe_target(request)
        log = logger.bind(repository=context.config.name, target=target, revert_type=request.revert_type.value)

        # Resolve
        entries = await context.ledger.read_all()
        all_changes = fold_entries(entries)
        resolved = self.resolve(request, all_changes, context.config.id)
        if resolved is None:
            return RevertResult(success=False, message=f"No changes found for {target}")

        # Plan
        plan = build_revert_plan(resolved, all_changes, entries, request.revert_type)
        if plan.is_empty:
            log.info("Nothing to revert")
            return RevertResult(success=True, message=f"Nothing to revert for {target}; already reverted")

        # Execute
        try:
            revert_commit = await context.adapter.revert_commits(
                plan.commits,
                message=f"Revert {len(plan.changes)} change(s): {target}",
            )
        except RevertConflictError as exc:
            log.warning("Revert aborted on conflict", paths=exc.paths)
            return RevertResult(
                success=False,
                message=f"Cannot revert {target}: conflicting changes in {', '.join(exc.paths)}. Nothing was changed.",
            )

        # Record
        await self._record(context, plan, revert_commit, request)
        log.info("Reverted changes", commit=revert_commit[:8], changes=len(plan.changes))

        message = f"Reverted {len(plan.changes)} change(s) for {target}"
        regeneration_triggered = False
        if request.regenerate_after_revert and request.revert_type is not RevertType.FILE_UPLOAD:
            regeneration_triggered, note = await self._regenerate(context, plan)
            if note:
                message = f"{message}; {note}"

        return RevertResult(
            success=True,
            message=message,
            revert_commit_ids=[revert_commit],
            changes_reverted=plan.changes,
            regeneration_triggered=regeneration_triggered,
        )

    def resolve(self, request: RevertRequest, all_changes: list[Change], repository_id: str) -> list[Change] | None:
        """Select target changes; None when a filename matches nothing."""
        if request.change_id:
            for change in all_changes:
                if change.id == request.change_id:
                    return [change]
            raise NotFoundError(
                f"Change not found: {request.change_id}",
                details={"operation": "undo", "repository_id": repository_id, "change_id": request.change_id},
            )

        ordered = most_recent_first(all_changes)
        if request.filename:
            matching = [change for change in ordered if matches_file(change, request.filename)]
            return matching or None

        active = [
            change for change in ordered
            if not change.reverted and request.revert_type.covers(change.change_type)
        ]
        return active[: request.last_n_changes]

    async def _record(
        self,
        context: RepositoryContext,
        plan: RevertPlan,
        revert_commit: str,
        request: RevertRequest,
    ) -> None:
        sources = list(dict.fromkeys(step.source_path for step in plan.steps if step.source_path))
        affected = list(dict.fromkeys(
            path
            for change in plan.changes
            if change.change_type is ChangeType.KNOWLEDGE_BASE_GENERATION
            for path in change.files_affected
        ))
        await context.ledger.record(
            Operation.DELETE if plan.removes_source else Operation.UPDATE,
            commit=revert_commit,
            source_path=sources[0] if len(sources) == 1 else None,
            affected_knowledge_base_paths=affected,
            actor=Actor.USER,
            meta={
                "stage": Stage.REVERT.value,
                "reverted_entry_ids": [step.target_entry_id for step in plan.steps],
                "reverted_change_ids": [change.id for change in plan.changes],
                "revert_type": request.revert_type.value,
            },
        )

    async def _regenerate(self, context: RepositoryContext, plan: RevertPlan) -> tuple[bool, str | None]:
        """Rebuild pages for raw artifacts that survived the revert."""
        candidates: dict[str, Change] = {}
        for change in plan.changes:
            if change.change_type is ChangeType.KNOWLEDGE_BASE_GENERATION and change.source_path:
                candidates.setdefault(change.source_path, change)

        surviving = [
            change for path, change in candidates.items()
            if await context.adapter.file_exists(path)
        ]
        if not surviving:
            return False, None

        regenerated, failures = 0, []
        for change in surviving:
            source_path = change.source_path
            assert source_path is not None
            title = change.details.get("title")
            meta = {
                "ingest_id": change.correlation_id,
                "stage": Stage.KNOWLEDGE_BASE.value,
                "title": title,
            }
            try:
                content = await context.adapter.read_file(source_path)
                await generate_pages(
                    self._summarizer,
                    context.adapter,
                    source_path,
                    content,
                    context.knowledge_base_root,
                    title,
                    self._summarizer_timeout,
                )
            except SummarizerError as exc:
                failures.append(source_path)
                await context.ledger.record(
                    Operation.ERROR,
                    source_path=source_path,
                    actor=Actor.SYSTEM,
                    meta={**meta, "error": exc.message, "step": "regenerate"},
                )
                continue

            changed = await context.adapter.changed_paths()
            if not changed:
                continue
            commit = await context.adapter.commit(f"Regenerate knowledge base from {title or source_path}")
            await context.ledger.record(
                Operation.REGEN,
                commit=commit,
                source_path=source_path,
                affected_knowledge_base_paths=changed,
                actor=Actor.SYSTEM,
                meta=meta,
            )
            regenerated += 1

        note = f"regenerated pages for {regenerated} source(s)"
        if failures:
            note += f"; regeneration failed for {', '.join(failures)}"
        return True, note

    @staticmethod
    def _describe_target(request: RevertRequest) -> str:
        if request.change_id:
            return f"change {request.change_id}"
        if request.filename:
            return f"file {request.filename}"
        return f"last {request.last_n_changes} change(s)"
