"""Repository adapter contract shared by every backend.

Public methods normalise and check paths once, then delegate to the
underscore hooks implemented by each backend. Hooks only ever receive a
clean, repository-relative POSIX path ("." for the root).
"""

import posixpath
from abc import ABC, abstractmethod

from kb_ledger.core.exceptions import PathProhibitedError, ValidationError
from kb_ledger.core.models.repository import (
    CommitInfo,
    FileEntry,
    RepositoryConfig,
    SyncOutcome,
)

METADATA_DIR = ".kbledger"
RESERVED_NAMES = frozenset({".git", METADATA_DIR})


def normalize_path(path: str, operation: str = "access") -> str:
    """Return a repository-relative POSIX path, or raise PathProhibitedError.

    Rejects paths that escape the repository root and any path with a
    reserved control directory as one of its segments.
    """
    raw = (path or "").replace("\\", "/").strip()
    raw = raw.lstrip("/")
    normalized = posixpath.normpath(raw) if raw else "."

    if normalized == ".." or normalized.startswith("../"):
        raise PathProhibitedError(
            f"Cannot {operation} '{path}': path escapes the repository root",
            details={"operation": operation, "path": path},
        )
    if any(segment in RESERVED_NAMES for segment in normalized.split("/")):
        raise PathProhibitedError(
            f"Cannot {operation} '{path}': reserved control directory",
            details={"operation": operation, "path": path},
        )
    return normalized


def is_reserved(name: str) -> bool:
    return name in RESERVED_NAMES


def join_path(root: str, *parts: str) -> str:
    """Join path segments under a knowledge-base root ("." is the repository root)."""
    return posixpath.normpath(posixpath.join(root or ".", *parts))


class RepositoryAdapter(ABC):
    """Uniform file I/O and commit primitive over one repository."""

    def __init__(self, config: RepositoryConfig) -> None:
        self._config = config

    @property
    def config(self) -> RepositoryConfig:
        return self._config

    @property
    def repository_id(self) -> str:
        return self._config.id

    async def initialize(self) -> None:
        """Prepare the backing store (create, clone, ...)."""

    async def close(self) -> None:
        """Release backend resources."""

    # --- File operations ---

    async def read_file(self, path: str) -> str:
        return await self._read_file(normalize_path(path, "read"))

    async def write_file(self, path: str, content: str) -> None:
        target = normalize_path(path, "write")
        if target == ".":
            raise ValidationError("Cannot write to the repository root", details={"path": path})
        await self._write_file(target, content)

    async def delete_file(self, path: str) -> None:
        await self._delete_file(normalize_path(path, "delete"))

    async def create_directory(self, path: str) -> None:
        await self._create_directory(normalize_path(path, "create"))

    async def delete_directory(self, path: str, recursive: bool = False) -> None:
        target = normalize_path(path, "delete")
        if target == ".":
            raise ValidationError("Cannot delete the repository root", details={"path": path})
        await self._delete_directory(target, recursive)

    async def list_files(self, path: str = ".", recursive: bool = False) -> list[FileEntry]:
        """List entries under ``path``, sorted by path. Reserved directories are never listed."""
        entries = await self._list_files(normalize_path(path, "list"), recursive)
        return sorted(entries, key=lambda entry: entry.path)

    async def file_exists(self, path: str) -> bool:
        return await self._file_exists(normalize_path(path, "access"))

    # --- Metadata (the only way into the reserved metadata directory) ---

    async def read_metadata(self, name: str) -> str | None:
        return await self._read_metadata(self._metadata_name(name))

    async def write_metadata(self, name: str, content: str) -> None:
        await self._write_metadata(self._metadata_name(name), content)

    async def commit_metadata(self, name: str, message: str) -> str:
        """Commit a single metadata file, independent of content changes."""
        return await self._commit_metadata(self._metadata_name(name), message)

    @staticmethod
    def _metadata_name(name: str) -> str:
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            raise ValidationError(f"Invalid metadata file name: {name!r}", details={"name": name})
        return name

    # --- Version control ---

    @abstractmethod
    async def commit(self, message: str) -> str:
        """Record every content change as one revision and return its id."""
        ...

    @abstractmethod
    async def sync(self) -> SyncOutcome:
        ...

    @abstractmethod
    async def revert_commits(self, commit_ids: list[str], message: str | None = None) -> str:
        """Apply the inverse of ``commit_ids`` (oldest first) as one revision."""
        ...

    @abstractmethod
    async def changed_paths(self) -> list[str]:
        """Content paths with uncommitted changes."""
        ...

    @abstractmethod
    async def discard_changes(self) -> None:
        """Drop uncommitted content changes, leaving metadata untouched."""
        ...

    @abstractmethod
    async def commit_exists(self, commit_id: str) -> bool:
        ...

    @abstractmethod
    async def list_commits(self, limit: int = 100) -> list[CommitInfo]:
        """Most recent revisions first."""
        ...

    # --- Backend hooks ---

    @abstractmethod
    async def _read_file(self, path: str) -> str:
        ...

    @abstractmethod
    async def _write_file(self, path: str, content: str) -> None:
        ...

    @abstractmethod
    async def _delete_file(self, path: str) -> None:
        ...

    @abstractmethod
    async def _create_directory(self, path: str) -> None:
        ...

    @abstractmethod
    async def _delete_directory(self, path: str, recursive: bool) -> None:
        ...

    @abstractmethod
    async def _list_files(self, path: str, recursive: bool) -> list[FileEntry]:
        ...

    @abstractmethod
    async def _file_exists(self, path: str) -> bool:
        ...

    @abstractmethod
    async def _read_metadata(self, name: str) -> str | None:
        ...

    @abstractmethod
    async def _write_metadata(self, name: str, content: str) -> None:
        ...

    @abstractmethod
    async def _commit_metadata(self, name: str, message: str) -> str:
        ...
