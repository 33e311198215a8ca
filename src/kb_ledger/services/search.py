"""Knowledge-base search after a soft sync."""

import structlog

from kb_ledger.core.exceptions import ValidationError
from kb_ledger.core.models.content import SearchAnswer
from kb_ledger.git.url_resolver import URLResolver
from kb_ledger.services.context import ContextProvider
from kb_ledger.services.generation import answer_query
from kb_ledger.services.sync import SyncCoordinator
from kb_ledger.summarizer.base import ContentSummarizer

logger = structlog.get_logger(__name__)


class SearchService:
    """Answers queries from the pages in a repository.

    A failed sync never fails the search: the answer is computed from the
    last-known local state and the sync problem is returned as a warning.
    """

    def __init__(
        self,
        contexts: ContextProvider,
        summarizer: ContentSummarizer,
        sync: SyncCoordinator | None = None,
        web_template: str = "https://github.com/{owner}/{repo}",
        summarizer_timeout: float = 120.0,
    ) -> None:
        self._contexts = contexts
        self._summarizer = summarizer
        self._sync = sync or SyncCoordinator()
        self._web_template = web_template
        self._summarizer_timeout = summarizer_timeout

    async def search(self, repository_id: str, query: str) -> SearchAnswer:
        if not query.strip():
            raise ValidationError("Query must not be empty", details={"operation": "search"})

        context = await self._contexts.get_context(repository_id)
        async with context.lock:
            outcome = await self._sync.sync_for_read(context.adapter)

        answer = await answer_query(
            self._summarizer,
            context.adapter,
            query,
            context.knowledge_base_root,
            self._summarizer_timeout,
        )

        resolver = URLResolver(context.config, web_template=self._web_template)
        sources = [
            source.model_copy(update={"url": source.url or resolver.resolve(source.path)})
            for source in answer.sources
        ]
        warnings = list(answer.warnings)
        if outcome.warning:
            warnings.append(outcome.warning)

        logger.info(
            "Search completed",
            repository=context.config.name,
            sources=len(sources),
            stale=bool(outcome.warning),
        )
        return answer.model_copy(update={"sources": sources, "warnings": warnings})
