"""Sync policy applied before reads and writes."""

import structlog

from kb_ledger.core.exceptions import SyncConflictError, SyncError, SyncFailureError
from kb_ledger.core.models.repository import SyncOutcome
from kb_ledger.repositories.base import RepositoryAdapter

logger = structlog.get_logger(__name__)


class SyncCoordinator:
    """Decides how sync failures affect the surrounding operation.

    Reads tolerate stale data: any sync error becomes a warning. Writes
    refuse to proceed on a diverged clone but continue when the remote is
    merely unreachable, since the push after the commit still guards the
    tracked branch.
    """

    async def sync_for_read(self, adapter: RepositoryAdapter) -> SyncOutcome:
        try:
            return await adapter.sync()
        except SyncError as exc:
            return self._soft_failure(adapter, exc, "read")

    async def sync_for_write(self, adapter: RepositoryAdapter) -> SyncOutcome:
        try:
            return await adapter.sync()
        except SyncConflictError:
            logger.error("Sync conflict before write", repository=adapter.config.name)
            raise
        except SyncFailureError as exc:
            return self._soft_failure(adapter, exc, "write")

    @staticmethod
    def _soft_failure(adapter: RepositoryAdapter, exc: SyncError, purpose: str) -> SyncOutcome:
        warning = f"Sync failed for {adapter.config.name}; using local state ({exc.message})"
        logger.warning(
            "Sync failed, continuing with local state",
            repository=adapter.config.name,
            purpose=purpose,
            error=exc.message,
        )
        return SyncOutcome(pulled=False, warning=warning)
