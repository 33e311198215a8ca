"""Content ingestion: raw artifact, then generated pages, both on the ledger."""

import posixpath
import secrets

import httpx
import structlog

from kb_ledger.core.exceptions import (
    KBLedgerError,
    LedgerError,
    NotFoundError,
    RepositoryError,
    SummarizerError,
    SyncError,
    ValidationError,
)
from kb_ledger.core.models.content import IngestKind, IngestRequest, IngestResult
from kb_ledger.core.models.timeline import Actor, Operation, Stage
from kb_ledger.ledger.timeline import TimelineLedger
from kb_ledger.repositories.base import join_path
from kb_ledger.services.context import ContextProvider
from kb_ledger.services.generation import generate_pages
from kb_ledger.services.sync import SyncCoordinator
from kb_ledger.summarizer.base import ContentSummarizer
from kb_ledger.utils.html import html_to_text
from kb_ledger.utils.markdown import sanitize_file_name, slugify

logger = structlog.get_logger(__name__)

RAW_DIR = "raw"


class ContentIngestionOrchestrator:
    """Writes a canonical raw artifact and asks the summarizer for pages.

    Each step that changes content is committed and then recorded, so the
    ledger always trails a real revision. If page generation fails the raw
    artifact stays committed and the result says so.
    """

    def __init__(
        self,
        contexts: ContextProvider,
        summarizer: ContentSummarizer,
        sync: SyncCoordinator | None = None,
        summarizer_timeout: float = 120.0,
        url_fetch_timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._contexts = contexts
        self._summarizer = summarizer
        self._sync = sync or SyncCoordinator()
        self._summarizer_timeout = summarizer_timeout
        self._url_fetch_timeout = url_fetch_timeout
        self._http_client = http_client

    async def ingest(self, repository_id: str, request: IngestRequest) -> IngestResult:
        title, content, file_name = await self._canonicalize(request)
        ingest_id = secrets.token_hex(4)

        context = await self._contexts.get_context(repository_id)
        adapter, ledger = context.adapter, context.ledger
        raw_path = join_path(context.knowledge_base_root, RAW_DIR, f"{ingest_id}-{file_name}")
        log = logger.bind(repository=context.config.name, ingest_id=ingest_id, raw_path=raw_path)
        meta = {**request.metadata, "ingest_id": ingest_id, "title": title, "user": request.user}

        async with context.lock:
            warnings: list[str] = []
            outcome = await self._sync.sync_for_write(adapter)
            if outcome.warning:
                warnings.append(outcome.warning)

            await adapter.write_file(raw_path, content)
            source_commit = await adapter.commit(f"Add {title}")
            await ledger.record(
                Operation.ADD,
                commit=source_commit,
                source_path=raw_path,
                actor=Actor.USER,
                meta={**meta, "stage": Stage.SOURCE.value},
            )
            log.info("Raw artifact committed", commit=source_commit[:8])

            try:
                await generate_pages(
                    self._summarizer,
                    adapter,
                    raw_path,
                    content,
                    context.knowledge_base_root,
                    title,
                    self._summarizer_timeout,
                )
            except SummarizerError as exc:
                await self._record_failure(ledger, raw_path, meta, "generate", exc, warnings)
                return IngestResult(
                    raw_path=raw_path,
                    knowledge_base_updated=False,
                    message=f"Stored {raw_path}, but knowledge-base generation failed: {exc.message}",
                    ingest_id=ingest_id,
                    warnings=warnings,
                )

            changed = await adapter.changed_paths()
            if not changed:
                return IngestResult(
                    raw_path=raw_path,
                    knowledge_base_updated=False,
                    message=f"Stored {raw_path}; knowledge base already up to date",
                    ingest_id=ingest_id,
                    warnings=warnings,
                )

            try:
                pages_commit = await adapter.commit(f"Generate knowledge base from {title}")
            except (RepositoryError, SyncError) as exc:
                await adapter.discard_changes()
                log.warning("Knowledge-base commit failed", error=exc.message)
                await self._record_failure(ledger, raw_path, meta, "commit_pages", exc, warnings)
                return IngestResult(
                    raw_path=raw_path,
                    knowledge_base_updated=False,
                    message=f"Stored {raw_path}, but committing knowledge-base pages failed: {exc.message}",
                    ingest_id=ingest_id,
                    warnings=warnings,
                )

            try:
                await ledger.record(
                    Operation.UPDATE,
                    commit=pages_commit,
                    source_path=raw_path,
                    affected_knowledge_base_paths=changed,
                    actor=Actor.SYSTEM,
                    meta={**meta, "stage": Stage.KNOWLEDGE_BASE.value},
                )
            except (LedgerError, RepositoryError, SyncError) as exc:
                log.warning("Knowledge-base commit not recorded", commit=pages_commit[:8], error=exc.message)
                warnings.append(
                    f"Commit {pages_commit[:8]} is not in the timeline ({exc.message}); run reconcile"
                )
            log.info("Knowledge base updated", commit=pages_commit[:8], pages=len(changed))

        return IngestResult(
            raw_path=raw_path,
            knowledge_base_updated=True,
            knowledge_base_paths=changed,
            message=f"Stored {raw_path} and updated {len(changed)} knowledge-base file(s)",
            ingest_id=ingest_id,
            warnings=warnings,
        )

    @staticmethod
    async def _record_failure(
        ledger: TimelineLedger,
        raw_path: str,
        meta: dict,
        step: str,
        exc: KBLedgerError,
        warnings: list[str],
    ) -> None:
        """Append an error entry; a ledger that cannot be written becomes a warning."""
        try:
            await ledger.record(
                Operation.ERROR,
                source_path=raw_path,
                actor=Actor.SYSTEM,
                meta={**meta, "stage": Stage.KNOWLEDGE_BASE.value, "error": exc.message, "step": step},
            )
        except (LedgerError, RepositoryError, SyncError) as record_exc:
            logger.warning("Failure not recorded", raw_path=raw_path, step=step, error=record_exc.message)
            warnings.append(f"Failure of step {step} was not recorded: {record_exc.message}")

    async def _canonicalize(self, request: IngestRequest) -> tuple[str, str, str]:
        """Return (title, content, file name) for the raw artifact."""
        if request.kind is IngestKind.TEXT:
            content = request.content or ""
            title = request.title or _first_line(content) or "Untitled note"
            return title, content, f"{slugify(title)}.txt"

        if request.kind is IngestKind.FILE:
            assert request.file_name is not None
            file_name = sanitize_file_name(request.file_name)
            title = request.title or posixpath.basename(request.file_name.replace("\\", "/"))
            return title, request.content or "", file_name

        assert request.url is not None
        page_title, text = await self._fetch_url(request.url)
        title = request.title or page_title or request.url
        content = f"Source: {request.url}\n\n{text}\n"
        stem = posixpath.basename(httpx.URL(request.url).path.rstrip("/")) or httpx.URL(request.url).host
        file_name = sanitize_file_name(stem)
        if "." not in file_name:
            file_name = f"{file_name}.txt"
        return title, content, file_name

    async def _fetch_url(self, url: str) -> tuple[str | None, str]:
        if self._http_client is not None:
            return await self._get(self._http_client, url)
        async with httpx.AsyncClient(timeout=self._url_fetch_timeout, follow_redirects=True) as client:
            return await self._get(client, url)

    async def _get(self, client: httpx.AsyncClient, url: str) -> tuple[str | None, str]:
        try:
            response = await client.get(url, timeout=self._url_fetch_timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                raise NotFoundError(f"URL not found: {url}", details={"operation": "ingest", "url": url}) from exc
            raise ValidationError(
                f"Fetching {url} failed with status {exc.response.status_code}",
                details={"operation": "ingest", "url": url},
            ) from exc
        except httpx.HTTPError as exc:
            raise ValidationError(
                f"Fetching {url} failed: {exc}",
                details={"operation": "ingest", "url": url},
            ) from exc

        if "html" in response.headers.get("content-type", ""):
            return html_to_text(response.text)
        return None, response.text


def _first_line(content: str) -> str | None:
    for line in content.splitlines():
        line = line.strip().lstrip("#").strip()
        if line:
            return line[:80]
    return None
