"""Bounded calls into the content summarizer."""

import asyncio

import structlog

from kb_ledger.core.exceptions import SummarizerError
from kb_ledger.core.models.content import SearchAnswer
from kb_ledger.repositories.base import RepositoryAdapter
from kb_ledger.summarizer.base import ContentSummarizer, SummaryResult

logger = structlog.get_logger(__name__)


async def generate_pages(
    summarizer: ContentSummarizer,
    adapter: RepositoryAdapter,
    source_path: str,
    content: str,
    knowledge_base_root: str,
    title: str | None,
    timeout: float,
) -> SummaryResult:
    """Run the summarizer under ``timeout``.

    Any failure surfaces as SummarizerError, and whatever the summarizer
    left uncommitted in the working tree is discarded.
    """
    try:
        return await asyncio.wait_for(
            summarizer.generate(
                adapter,
                source_path,
                content,
                knowledge_base_root=knowledge_base_root,
                title=title,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        await adapter.discard_changes()
        raise SummarizerError(
            f"Summarizer timed out after {timeout:g}s for {source_path}",
            details={"operation": "generate", "source_path": source_path, "timeout": timeout},
        ) from exc
    except Exception as exc:
        await adapter.discard_changes()
        logger.warning("Summarizer failed", source_path=source_path, error=str(exc))
        if isinstance(exc, SummarizerError):
            raise
        raise SummarizerError(
            f"Summarizer failed for {source_path}: {exc}",
            details={"operation": "generate", "source_path": source_path, "summarizer": summarizer.name},
        ) from exc


async def answer_query(
    summarizer: ContentSummarizer,
    adapter: RepositoryAdapter,
    query: str,
    knowledge_base_root: str,
    timeout: float,
) -> SearchAnswer:
    """Ask the summarizer for an answer under ``timeout``."""
    try:
        return await asyncio.wait_for(
            summarizer.answer(adapter, query, knowledge_base_root=knowledge_base_root),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise SummarizerError(
            f"Summarizer timed out after {timeout:g}s answering a query",
            details={"operation": "search", "timeout": timeout},
        ) from exc
    except SummarizerError:
        raise
    except Exception as exc:
        logger.warning("Summarizer failed to answer", error=str(exc))
        raise SummarizerError(
            f"Summarizer failed to answer: {exc}",
            details={"operation": "search", "summarizer": summarizer.name},
        ) from exc
