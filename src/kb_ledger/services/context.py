"""Per-repository collaborators handed to services."""

import asyncio
from dataclasses import dataclass
from typing import Protocol

from kb_ledger.core.models.repository import RepositoryConfig
from kb_ledger.ledger.timeline import TimelineLedger
from kb_ledger.repositories.base import RepositoryAdapter


@dataclass(frozen=True)
class RepositoryContext:
    """Everything an operation needs to act on one repository."""

    config: RepositoryConfig
    adapter: RepositoryAdapter
    ledger: TimelineLedger
    lock: asyncio.Lock

    @property
    def knowledge_base_root(self) -> str:
        return self.config.knowledge_base_root


class ContextProvider(Protocol):
    async def get_context(self, repository_id: str) -> RepositoryContext:
        ...
