"""Markdown and naming utilities."""

import re
import unicodedata
from typing import Any

import frontmatter


def extract_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter from markdown content.

    Returns a tuple of (metadata dict, content without frontmatter).
    """
    try:
        post = frontmatter.loads(content)
        return dict(post.metadata), post.content
    except Exception:
        return {}, content


def render_page(metadata: dict[str, Any], body: str) -> str:
    """Render a markdown page with a YAML frontmatter header."""
    post = frontmatter.Post(body, **metadata)
    return frontmatter.dumps(post) + "\n"


def extract_title(content: str) -> str | None:
    """Return the first level-one heading, if any."""
    match = re.search(r"^#\s+(.+?)\s*#*\s*$", content, flags=re.MULTILINE)
    return match.group(1).strip() if match else None


def slugify(text: str, max_length: int = 60) -> str:
    """Convert text to a lowercase, hyphenated file-name stem.

    Examples:
        "Meeting Notes (v2)" -> "meeting-notes-v2"
        "Café résumé" -> "cafe-resume"
    """
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_-]+", "-", text)
    text = text.strip("-")
    return text[:max_length].rstrip("-") or "untitled"


def sanitize_file_name(name: str) -> str:
    """Keep a file name's extension and reduce the stem to a safe slug."""
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    stem, dot, extension = base.rpartition(".")
    if not dot or not stem:
        return slugify(base)
    extension = re.sub(r"[^A-Za-z0-9]", "", extension).lower()
    return f"{slugify(stem)}.{extension}" if extension else slugify(stem)


def split_sentences(text: str) -> list[str]:
    """Split plain text into sentences on terminal punctuation."""
    text = re.sub(r"\s+", " ", text).strip()
    if not text:
        return []
    parts = re.split(r"(?<=[.!?])\s+(?=[A-Z0-9\"'(\[])", text)
    return [part.strip() for part in parts if part.strip()]


def strip_markdown(content: str) -> str:
    """Remove common markdown markup, keeping the text."""
    text = content.strip()
    text = re.sub(r"```.*?```", " ", text, flags=re.DOTALL)
    text = re.sub(r"^#+\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^\s*[-*+]\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"\*\*([^*]+)\*\*", r"\1", text)
    text = re.sub(r"\*([^*]+)\*", r"\1", text)
    text = re.sub(r"`([^`]+)`", r"\1", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)
    return text


def extract_snippet(content: str, max_length: int = 200) -> str:
    """Extract a snippet for preview from content.

    Truncates at sentence or word boundary, adds ellipsis if truncated.
    """
    text = re.sub(r"\s+", " ", strip_markdown(content)).strip()

    if len(text) <= max_length:
        return text

    # Try to break at sentence boundary
    truncated = text[:max_length]
    last_period = truncated.rfind(". ")
    if last_period > max_length // 2:
        return truncated[: last_period + 1]

    # Break at word boundary
    last_space = truncated.rfind(" ")
    if last_space > max_length // 2:
        return truncated[:last_space] + "..."

    return truncated + "..."

