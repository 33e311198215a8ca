"""Content summarizer interface."""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from kb_ledger.core.models.content import SearchAnswer
from kb_ledger.repositories.base import RepositoryAdapter


class SummaryResult(BaseModel):
    """Pages a summarizer wrote into the working tree."""

    pages: list[str] = Field(default_factory=list)
    title: str | None = None


class ContentSummarizer(ABC):
    """Authors knowledge-base pages from raw artifacts and answers queries.

    Implementations write pages through the adapter and never commit; the
    caller decides what becomes a revision and what gets recorded.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def generate(
        self,
        adapter: RepositoryAdapter,
        source_path: str,
        content: str,
        knowledge_base_root: str = ".",
        title: str | None = None,
    ) -> SummaryResult:
        """Write or update pages derived from one raw artifact."""
        ...

    @abstractmethod
    async def answer(
        self,
        adapter: RepositoryAdapter,
        query: str,
        knowledge_base_root: str = ".",
    ) -> SearchAnswer:
        """Answer ``query`` from the pages currently in the working tree."""
        ...
