"""Composition root wiring repositories, ledgers and services together."""

from datetime import datetime
from typing import Any

import httpx
import structlog

from kb_ledger.config.settings import Settings, get_settings
from kb_ledger.core.exceptions import NotFoundError
from kb_ledger.core.models.content import (
    BrowseOperation,
    BrowseResult,
    IngestRequest,
    IngestResult,
    ManageItemRequest,
    ManageItemResult,
    SearchAnswer,
)
from kb_ledger.core.models.history import Change, ChangeType, RevertRequest, RevertResult
from kb_ledger.core.models.repository import RepositoryConfig, repository_config_adapter
from kb_ledger.ledger.timeline import TimelineLedger
from kb_ledger.repositories.factory import AdapterFactory
from kb_ledger.repositories.registry.sqlite import SQLiteRegistry
from kb_ledger.services.context import RepositoryContext
from kb_ledger.services.history import HistoryIndex
from kb_ledger.services.ingestion import ContentIngestionOrchestrator
from kb_ledger.services.locks import RepositoryLocks
from kb_ledger.services.repository import RepositoryService
from kb_ledger.services.revert import RevertEngine
from kb_ledger.services.search import SearchService
from kb_ledger.services.sync import SyncCoordinator
from kb_ledger.summarizer.base import ContentSummarizer
from kb_ledger.summarizer.config import SummarizerConfig
from kb_ledger.summarizer.factory import SummarizerFactory

logger = structlog.get_logger(__name__)


class KnowledgeBaseApp:
    """Explicitly constructed registry of every exposed operation.

    Build one per process and pass it by reference to whatever routes
    requests (the CLI, a protocol server, tests). There is no module-level
    state: two apps with different settings are fully independent.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        summarizer: ContentSummarizer | None = None,
        adapter_factory: AdapterFactory | None = None,
        registry: SQLiteRegistry | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.registry = registry or SQLiteRegistry(self.settings.registry_path)
        self.adapters = adapter_factory or AdapterFactory(self.settings)
        self.summarizer = summarizer or SummarizerFactory(
            SummarizerConfig(
                provider=self.settings.summarizer_provider,
                max_sentences=self.settings.summary_max_sentences,
            )
        ).create_provider()
        self.locks = RepositoryLocks()
        self._ledgers: dict[str, TimelineLedger] = {}

        sync = SyncCoordinator()
        timeout = self.settings.summarizer_timeout_seconds
        self.repositories = RepositoryService(self.registry, self.adapters, self, self.settings, sync)
        self.history = HistoryIndex(self)
        self.reverts = RevertEngine(self, self.summarizer, sync, summarizer_timeout=timeout)
        self.ingestion = ContentIngestionOrchestrator(
            self,
            self.summarizer,
            sync,
            summarizer_timeout=timeout,
            url_fetch_timeout=self.settings.url_fetch_timeout_seconds,
            http_client=http_client,
        )
        self.search = SearchService(
            self,
            self.summarizer,
            sync,
            web_template=self.settings.remote_web_template,
            summarizer_timeout=timeout,
        )

    async def start(self) -> "KnowledgeBaseApp":
        await self.registry.initialize()
        logger.info("Knowledge base app started", registry=self.settings.registry_path)
        return self

    async def close(self) -> None:
        await self.adapters.close()
        await self.registry.close()
        self._ledgers.clear()

    async def __aenter__(self) -> "KnowledgeBaseApp":
        return await self.start()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def get_context(self, repository_id: str) -> RepositoryContext:
        """Resolve a repository by id (or, failing that, by name)."""
        config = await self.registry.get(repository_id) or await self.registry.get_by_name(repository_id)
        if config is None:
            raise NotFoundError(f"Repository not found: {repository_id}", details={"repository_id": repository_id})

        adapter = await self.adapters.get_adapter(config)
        ledger = self._ledgers.get(config.id)
        if ledger is None or ledger.adapter is not adapter:
            ledger = self._ledgers[config.id] = TimelineLedger(adapter, self.settings.bulk_threshold)
        return RepositoryContext(config=config, adapter=adapter, ledger=ledger, lock=self.locks.get(config.id))

    # --- Operations ---

    async def list_repositories(self) -> list[RepositoryConfig]:
        return await self.repositories.list_repositories()

    async def get_repository_details(self, name: str) -> RepositoryConfig:
        return await self.repositories.get_repository_details(name)

    async def register_repository(self, config: RepositoryConfig | dict[str, Any]) -> str:
        if isinstance(config, dict):
            config = repository_config_adapter.validate_python(config)
        return await self.repositories.register_repository(config)

    async def ingest_content(self, repository_id: str, request: IngestRequest) -> IngestResult:
        return await self.ingestion.ingest(repository_id, request)

    async def browse(self, repository_id: str, operation: str | BrowseOperation, path: str = ".") -> BrowseResult:
        return await self.repositories.browse(repository_id, operation, path)

    async def manage_item(self, repository_id: str, request: ManageItemRequest) -> ManageItemResult:
        return await self.repositories.manage_item(repository_id, request)

    async def search_knowledge_base(self, repository_id: str, query: str) -> SearchAnswer:
        return await self.search.search(repository_id, query)

    async def list_history(
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
        return await self.history.list_changes(
            repository_id,
            limit=limit,
            change_type=change_type,
            include_reverted=include_reverted,
            offset=offset,
            path=path,
            since=since,
            until=until,
        )

    async def undo_changes(self, repository_id: str, request: RevertRequest) -> RevertResult:
        return await self.reverts.undo(repository_id, request)

    async def reconcile(self, repository_id: str) -> list[str]:
        """Content commits the ledger has no record of, oldest first."""
        context = await self.get_context(repository_id)
        async with context.lock:
            missing = await context.ledger.unrecorded_commits()
        if missing:
            logger.warning("Unrecorded commits found", repository=context.config.name, commits=len(missing))
        return missing
