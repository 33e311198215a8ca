"""Tests for knowledge-base search."""

import pytest

from fakes import SlowSummarizer
from kb_ledger.app import KnowledgeBaseApp
from kb_ledger.config.settings import Settings
from kb_ledger.core.exceptions import SummarizerError, ValidationError
from kb_ledger.core.models.content import IngestKind, IngestRequest
from kb_ledger.core.models.repository import LocalRepositoryConfig


@pytest.mark.unit
class TestSearchService:
    """Tests for SearchService through the app."""

    @pytest.mark.asyncio
    async def test_answer_with_sources(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        await app.ingest_content(
            repository_id,
            IngestRequest(kind=IngestKind.TEXT, content="Deploys happen every Tuesday.", title="Release process"),
        )
        await app.ingest_content(
            repository_id,
            IngestRequest(kind=IngestKind.TEXT, content="Lunch is at noon.", title="Office"),
        )

        answer = await app.search_knowledge_base(repository_id, "When do deploys happen?")
        assert answer.answer.startswith("From Release process:")
        assert [source.path for source in answer.sources] == ["knowledge-base/release-process.md"]
        assert answer.sources[0].url.startswith("file://")
        assert answer.sources[0].url.endswith("/notes/knowledge-base/release-process.md")
        assert answer.warnings == []

    @pytest.mark.asyncio
    async def test_no_match(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        answer = await app.search_knowledge_base(repository_id, "quarterly revenue")
        assert answer.sources == []
        assert "No knowledge-base pages match" in answer.answer

    @pytest.mark.asyncio
    async def test_empty_query(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        with pytest.raises(ValidationError):
            await app.search_knowledge_base(repository_id, "   ")

    @pytest.mark.asyncio
    async def test_summarizer_timeout(self, settings: Settings, tmp_path) -> None:
        settings.summarizer_timeout_seconds = 0.2
        app = KnowledgeBaseApp(settings=settings, summarizer=SlowSummarizer())
        await app.start()
        try:
            repository_id = await app.register_repository(
                LocalRepositoryConfig(name="notes", path=str(tmp_path / "notes"))
            )
            with pytest.raises(SummarizerError, match="timed out"):
                await app.search_knowledge_base(repository_id, "anything")
        finally:
            await app.close()
