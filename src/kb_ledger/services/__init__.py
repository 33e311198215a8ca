"""Business logic services for KB-Ledger."""

from kb_ledger.services.context import ContextProvider, RepositoryContext
from kb_ledger.services.history import HistoryIndex
from kb_ledger.services.ingestion import ContentIngestionOrchestrator
from kb_ledger.services.locks import RepositoryLocks
from kb_ledger.services.planning import build_revert_plan
from kb_ledger.services.repository import RepositoryService
from kb_ledger.services.revert import RevertEngine
from kb_ledger.services.search import SearchService
from kb_ledger.services.sync import SyncCoordinator

__all__ = [
    "ContextProvider",
    "RepositoryContext",
    "HistoryIndex",
    "ContentIngestionOrchestrator",
    "RepositoryLocks",
    "build_revert_plan",
    "RepositoryService",
    "RevertEngine",
    "SearchService",
    "SyncCoordinator",
]
