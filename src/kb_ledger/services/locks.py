"""Per-repository serialization."""

import asyncio


class RepositoryLocks:
    """One asyncio.Lock per repository id.

    Ingest, revert and pre-read syncs hold the lock for a repository, so a
    revert never plans against a ledger that an ingest is still extending.
    Different repositories never wait on each other.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, repository_id: str) -> asyncio.Lock:
        lock = self._locks.get(repository_id)
        if lock is None:
            lock = self._locks[repository_id] = asyncio.Lock()
        return lock
