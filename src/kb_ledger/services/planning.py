"""Pure revert planning.

Nothing here touches a repository: a plan is derived from the changes a
request resolved to and the ledger as it stands, so it can be inspected
and tested before any commit is inverted.
"""

from kb_ledger.core.models.history import (
    Change,
    RevertKind,
    RevertPlan,
    RevertStep,
    RevertType,
)
from kb_ledger.core.models.timeline import TimelineEntry
from kb_ledger.services.history import reverted_entry_ids

REVERT_KINDS = {
    RevertType.FILE_UPLOAD: RevertKind.REMOVE_SOURCE,
    RevertType.KNOWLEDGE_BASE_GENERATION: RevertKind.REMOVE_KB_ONLY,
    RevertType.BOTH: RevertKind.REMOVE_BOTH,
}


def correlation_group(change: Change, all_changes: list[Change]) -> list[Change]:
    """Every change produced by the same ingest as ``change``."""
    if change.correlation_id is None:
        return [change]
    return [other for other in all_changes if other.correlation_id == change.correlation_id]


def build_revert_plan(
    resolved: list[Change],
    all_changes: list[Change],
    entries: list[TimelineEntry],
    revert_type: RevertType,
) -> RevertPlan:
    """Compute the steps needed to undo ``resolved`` for ``revert_type``.

    Each resolved change expands to its correlation group, and the group
    members whose type ``revert_type`` covers are selected. Entries already
    named by a revert record are skipped, which makes a repeated request a
    no-op. Steps come out in ledger order, oldest first.
    """
    position = {entry.id: index for index, entry in enumerate(entries)}
    commit_of = {entry.id: entry.commit for entry in entries}
    already_reverted = reverted_entry_ids(entries)
    kind = REVERT_KINDS[revert_type]

    selected: dict[str, Change] = {}
    for change in resolved:
        for member in correlation_group(change, all_changes):
            if revert_type.covers(member.change_type):
                selected.setdefault(member.id, member)

    steps: dict[str, RevertStep] = {}
    covered: list[Change] = []
    skipped: list[str] = []
    for change in selected.values():
        pending = [
            entry_id for entry_id in change.entry_ids
            if entry_id not in already_reverted and commit_of.get(entry_id)
        ]
        if not pending:
            skipped.append(change.id)
            continue
        covered.append(change)
        for entry_id in pending:
            steps.setdefault(
                entry_id,
                RevertStep(
                    target_entry_id=entry_id,
                    revert_kind=kind,
                    commit=commit_of[entry_id],
                    change_id=change.id,
                    change_type=change.change_type,
                    source_path=change.source_path,
                ),
            )

    ordered = sorted(steps.values(), key=lambda step: position[step.target_entry_id])
    covered.sort(key=lambda change: position[change.entry_ids[0]])
    return RevertPlan(steps=ordered, changes=covered, skipped=skipped)
