"""Tests for the sync policy."""

import pytest

from factories import RemoteRepositoryConfigFactory
from kb_ledger.core.exceptions import SyncConflictError, SyncFailureError
from kb_ledger.core.models.repository import SyncOutcome
from kb_ledger.services.sync import SyncCoordinator


class StubAdapter:
    """Only what the coordinator touches: ``config`` and ``sync``."""

    def __init__(self, error: Exception | None = None) -> None:
        self.config = RemoteRepositoryConfigFactory(name="handbook")
        self._error = error

    async def sync(self) -> SyncOutcome:
        if self._error is not None:
            raise self._error
        return SyncOutcome(pulled=True)


@pytest.mark.unit
class TestSyncCoordinator:
    """Tests for SyncCoordinator."""

    @pytest.mark.asyncio
    async def test_successful_sync_passes_through(self) -> None:
        outcome = await SyncCoordinator().sync_for_read(StubAdapter())
        assert outcome.pulled is True
        assert outcome.warning is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [SyncFailureError("remote unreachable"), SyncConflictError("diverged")],
    )
    async def test_read_tolerates_any_sync_error(self, error: Exception) -> None:
        outcome = await SyncCoordinator().sync_for_read(StubAdapter(error))
        assert outcome.pulled is False
        assert "handbook" in outcome.warning
        assert error.message in outcome.warning

    @pytest.mark.asyncio
    async def test_write_tolerates_unreachable_remote(self) -> None:
        outcome = await SyncCoordinator().sync_for_write(StubAdapter(SyncFailureError("remote unreachable")))
        assert outcome.warning is not None

    @pytest.mark.asyncio
    async def test_write_refuses_diverged_clone(self) -> None:
        with pytest.raises(SyncConflictError):
            await SyncCoordinator().sync_for_write(StubAdapter(SyncConflictError("diverged")))
