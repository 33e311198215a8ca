"""Extractive summarizer: deterministic pages built from the source text."""

import hashlib
import posixpath
import re

import structlog

from kb_ledger.core.exceptions import NotFoundError
from kb_ledger.core.models.content import SearchAnswer, SearchSource
from kb_ledger.repositories.base import RepositoryAdapter, join_path
from kb_ledger.summarizer.base import ContentSummarizer, SummaryResult
from kb_ledger.utils.markdown import (
    extract_frontmatter,
    extract_snippet,
    extract_title,
    render_page,
    slugify,
    split_sentences,
    strip_markdown,
)

logger = structlog.get_logger(__name__)

PAGES_DIR = "knowledge-base"

_WORD_RE = re.compile(r"[a-z0-9]{3,}")
_STOPWORDS = frozenset(
    "the and for are but not you all any can had her was one our out has have "
    "what when where which who why how this that with from they them then than "
    "into about there their been were will would should could does did".split()
)


def _terms(text: str) -> list[str]:
    return [word for word in _WORD_RE.findall(text.lower()) if word not in _STOPWORDS]


class ExtractiveSummarizer(ContentSummarizer):
    """Writes one page per raw artifact from its leading sentences and headings.

    No model is involved, so output depends only on the input. Each artifact
    gets its own page and there is no shared index page, which keeps the
    commits of different ingests independent of one another.
    """

    def __init__(
        self,
        max_sentences: int = 5,
        max_key_points: int = 8,
        snippet_length: int = 200,
        max_sources: int = 3,
    ) -> None:
        self._max_sentences = max_sentences
        self._max_key_points = max_key_points
        self._snippet_length = snippet_length
        self._max_sources = max_sources

    @property
    def name(self) -> str:
        return "extractive"

    async def page_path(
        self,
        adapter: RepositoryAdapter,
        knowledge_base_root: str,
        title: str,
        source_path: str,
    ) -> str:
        """Page named after the title, suffixed when another source already owns that name."""
        path = join_path(knowledge_base_root, PAGES_DIR, f"{slugify(title)}.md")
        if not await adapter.file_exists(path):
            return path
        metadata, _ = extract_frontmatter(await adapter.read_file(path))
        if metadata.get("source") == source_path:
            return path
        digest = hashlib.sha1(source_path.encode("utf-8")).hexdigest()[:8]
        return join_path(knowledge_base_root, PAGES_DIR, f"{slugify(title)}-{digest}.md")

    async def generate(
        self,
        adapter: RepositoryAdapter,
        source_path: str,
        content: str,
        knowledge_base_root: str = ".",
        title: str | None = None,
    ) -> SummaryResult:
        _, body = extract_frontmatter(content)
        stem = posixpath.splitext(posixpath.basename(source_path))[0]
        title = title or extract_title(body) or stem

        sentences = split_sentences(strip_markdown(body))
        summary = " ".join(sentences[: self._max_sentences]) or "(empty source)"

        headings = [
            line.lstrip("#").strip()
            for line in body.splitlines()
            if re.match(r"^#{2,6}\s+\S", line)
        ]
        key_points = headings or sentences[self._max_sentences:]
        key_points = key_points[: self._max_key_points]

        lines = [f"# {title}", "", summary, ""]
        if key_points:
            lines += ["## Key points", ""]
            lines += [f"- {point}" for point in key_points]
            lines.append("")
        lines.append(f"Source: `{source_path}`")

        path = await self.page_path(adapter, knowledge_base_root, title, source_path)
        page = render_page({"title": title, "source": source_path, "summarizer": self.name}, "\n".join(lines))
        await adapter.write_file(path, page)
        logger.debug("Knowledge-base page written", path=path, source=source_path)
        return SummaryResult(pages=[path], title=title)

    async def answer(
        self,
        adapter: RepositoryAdapter,
        query: str,
        knowledge_base_root: str = ".",
    ) -> SearchAnswer:
        query_terms = set(_terms(query))
        pages_dir = join_path(knowledge_base_root, PAGES_DIR)
        try:
            entries = await adapter.list_files(pages_dir, recursive=True)
        except NotFoundError:
            entries = []

        scored: list[SearchSource] = []
        for entry in entries:
            if entry.type != "file" or not entry.path.endswith(".md"):
                continue
            metadata, body = extract_frontmatter(await adapter.read_file(entry.path))
            page_terms = _terms(f"{metadata.get('title', '')} {body}")
            score = float(sum(page_terms.count(term) for term in query_terms))
            if score <= 0:
                continue
            scored.append(
                SearchSource(
                    path=entry.path,
                    title=metadata.get("title") or extract_title(body),
                    snippet=extract_snippet(body, self._snippet_length),
                    score=score,
                )
            )

        scored.sort(key=lambda source: (-source.score, source.path))
        sources = scored[: self._max_sources]
        if not sources:
            return SearchAnswer(answer=f"No knowledge-base pages match '{query}'.")

        best = sources[0]
        answer = f"From {best.title or best.path}: {best.snippet}"
        if len(sources) > 1:
            others = ", ".join(source.title or source.path for source in sources[1:])
            answer += f" (see also: {others})"
        return SearchAnswer(answer=answer, sources=sources)
