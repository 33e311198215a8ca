"""Repository adapter over a git working tree."""

import asyncio
import shutil
from pathlib import Path

import structlog

from kb_ledger.core.exceptions import (
    GitCommandError,
    NotFoundError,
    PathProhibitedError,
    RepositoryError,
    RevertConflictError,
    ValidationError,
)
from kb_ledger.core.models.repository import CommitInfo, FileEntry, RepositoryConfig
from kb_ledger.git.runner import GitClient
from kb_ledger.repositories.base import METADATA_DIR, RepositoryAdapter, is_reserved

logger = structlog.get_logger(__name__)

# Pathspec that stages content but never the ledger's own directory
CONTENT_PATHSPEC = ("--", ".", f":(exclude){METADATA_DIR}")


class GitRepositoryAdapter(RepositoryAdapter):
    """File operations and commits on a local git working tree.

    Filesystem calls run in worker threads, git runs as async subprocesses.
    Subclasses decide how the tree is created and whether commits are
    published somewhere after they are made.
    """

    def __init__(
        self,
        config: RepositoryConfig,
        work_tree: str | Path,
        author_name: str = "KB-Ledger",
        author_email: str = "kb-ledger@localhost",
    ) -> None:
        super().__init__(config)
        self._root = Path(work_tree)
        self._git = GitClient(self._root, author_name=author_name, author_email=author_email)

    @property
    def work_tree(self) -> Path:
        return self._root

    @property
    def git(self) -> GitClient:
        return self._git

    def _resolve(self, path: str) -> Path:
        full = (self._root / path).resolve()
        root = self._root.resolve()
        if full != root and root not in full.parents:
            raise PathProhibitedError(
                f"Cannot access '{path}': resolves outside the repository",
                details={"path": path},
            )
        return full

    # --- File hooks ---

    async def _read_file(self, path: str) -> str:
        full = self._resolve(path)

        def _read() -> str:
            if not full.exists():
                raise NotFoundError(f"File not found: {path}", details={"operation": "read", "path": path})
            if full.is_dir():
                raise RepositoryError(f"Cannot read '{path}': is a directory", details={"path": path})
            return full.read_text(encoding="utf-8")

        return await asyncio.to_thread(_read)

    async def _write_file(self, path: str, content: str) -> None:
        full = self._resolve(path)

        def _write() -> None:
            if full.is_dir():
                raise RepositoryError(f"Cannot write '{path}': is a directory", details={"path": path})
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_write)

    async def _delete_file(self, path: str) -> None:
        full = self._resolve(path)

        def _delete() -> None:
            if not full.exists():
                raise NotFoundError(f"File not found: {path}", details={"operation": "delete", "path": path})
            if full.is_dir():
                raise RepositoryError(f"Cannot delete '{path}': is a directory", details={"path": path})
            full.unlink()

        await asyncio.to_thread(_delete)

    async def _create_directory(self, path: str) -> None:
        full = self._resolve(path)
        await asyncio.to_thread(full.mkdir, parents=True, exist_ok=True)

    async def _delete_directory(self, path: str, recursive: bool) -> None:
        full = self._resolve(path)

        def _delete() -> None:
            if not full.exists():
                raise NotFoundError(f"Directory not found: {path}", details={"operation": "delete", "path": path})
            if not full.is_dir():
                raise RepositoryError(f"Cannot delete '{path}': not a directory", details={"path": path})
            if recursive:
                shutil.rmtree(full)
            elif any(full.iterdir()):
                raise RepositoryError(
                    f"Cannot delete '{path}': directory is not empty",
                    details={"path": path, "recursive": recursive},
                )
            else:
                full.rmdir()

        await asyncio.to_thread(_delete)

    async def _list_files(self, path: str, recursive: bool) -> list[FileEntry]:
        full = self._resolve(path)
        root = self._root.resolve()

        def _list() -> list[FileEntry]:
            if not full.exists():
                raise NotFoundError(f"Directory not found: {path}", details={"operation": "list", "path": path})
            if not full.is_dir():
                raise RepositoryError(f"Cannot list '{path}': not a directory", details={"path": path})

            entries: list[FileEntry] = []
            pending = [full]
            while pending:
                current = pending.pop()
                for child in current.iterdir():
                    if is_reserved(child.name):
                        continue
                    relative = child.relative_to(root).as_posix()
                    if child.is_dir():
                        entries.append(FileEntry(path=relative, type="directory"))
                        if recursive:
                            pending.append(child)
                    else:
                        entries.append(FileEntry(path=relative, type="file", size=child.stat().st_size))
            return entries

        return await asyncio.to_thread(_list)

    async def _file_exists(self, path: str) -> bool:
        full = self._resolve(path)
        return await asyncio.to_thread(full.is_file)

    # --- Metadata hooks ---

    def _metadata_path(self, name: str) -> Path:
        return self._root / METADATA_DIR / name

    async def _read_metadata(self, name: str) -> str | None:
        target = self._metadata_path(name)

        def _read() -> str | None:
            if not target.is_file():
                return None
            return target.read_text(encoding="utf-8")

        return await asyncio.to_thread(_read)

    async def _write_metadata(self, name: str, content: str) -> None:
        target = self._metadata_path(name)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_write)

    async def _commit_metadata(self, name: str, message: str) -> str:
        relative = f"{METADATA_DIR}/{name}"
        await self._git.run("add", "--", relative)
        if not await self._git.run("diff", "--cached", "--name-only", "--", relative):
            raise RepositoryError(
                f"Nothing to commit for metadata file {name}",
                details={"operation": "commit_metadata", "path": relative},
            )
        await self._git.run("commit", "--only", "-m", message, "--", relative)
        sha = await self._git.head()
        await self._publish(sha)
        return sha

    # --- Version control ---

    async def commit(self, message: str) -> str:
        await self._git.run("add", "-A", *CONTENT_PATHSPEC)
        staged = await self._git.run("diff", "--cached", "--name-only", *CONTENT_PATHSPEC)
        if not staged:
            raise RepositoryError(
                "Nothing to commit",
                details={"operation": "commit", "repository": self._config.name},
            )
        await self._git.run("commit", "-m", message)
        sha = await self._git.head()
        logger.debug("Committed content", repository=self._config.name, commit=sha[:8], files=len(staged.splitlines()))
        await self._publish(sha)
        return sha

    async def _publish(self, commit_id: str) -> None:
        """Make a new local commit durable on the tracked branch."""

    async def changed_paths(self) -> list[str]:
        output = await self._git.run("status", "--porcelain", "-z", "-uall", *CONTENT_PATHSPEC, strip=False)
        records = [record for record in output.split("\0") if record]
        paths: list[str] = []
        index = 0
        while index < len(records):
            record = records[index]
            status, path = record[:2], record[3:]
            paths.append(path)
            # Renames and copies carry the original path as an extra record
            if status[0] in "RC":
                index += 1
            index += 1
        return list(dict.fromkeys(paths))

    async def discard_changes(self) -> None:
        if await self._git.has_head():
            await self._git.run("checkout", "HEAD", *CONTENT_PATHSPEC, check=False)
        await self._git.run("clean", "-fdq", *CONTENT_PATHSPEC)

    async def commit_exists(self, commit_id: str) -> bool:
        if not commit_id:
            return False
        return await self._git.succeeds("cat-file", "-e", f"{commit_id}^{{commit}}")

    async def list_commits(self, limit: int = 100) -> list[CommitInfo]:
        if not await self._git.has_head():
            return []
        output = await self._git.run(
            "log", f"-n{limit}", "--name-only", "--format=%x1e%H%x1f%s"
        )
        commits: list[CommitInfo] = []
        for chunk in output.split("\x1e"):
            lines = [line for line in chunk.splitlines() if line.strip()]
            if not lines:
                continue
            sha, _, subject = lines[0].partition("\x1f")
            commits.append(CommitInfo(sha=sha, subject=subject, paths=lines[1:]))
        return commits

    async def revert_commits(self, commit_ids: list[str], message: str | None = None) -> str:
        if not commit_ids:
            raise ValidationError("No commits to revert", details={"operation": "revert"})

        newest_first = list(reversed(commit_ids))
        try:
            await self._git.run("revert", "--no-commit", *newest_first)
        except GitCommandError as exc:
            conflicts = await self._git.run("diff", "--name-only", "--diff-filter=U", check=False)
            await self._abort_revert()
            paths = conflicts.splitlines() if conflicts else []
            if not paths:
                raise RepositoryError(
                    f"Revert failed: {exc.stderr or exc.message}",
                    details={"operation": "revert", "commits": commit_ids},
                ) from exc
            logger.warning("Revert conflict", repository=self._config.name, paths=paths)
            raise RevertConflictError(
                f"Revert conflicts in: {', '.join(paths)}",
                paths=paths,
                details={"operation": "revert", "commits": commit_ids},
            ) from exc

        subject = message or f"Revert {len(commit_ids)} change(s)"
        body = "\n".join(f"Reverts {sha}" for sha in newest_first)
        await self._git.run("commit", "--allow-empty", "-m", subject, "-m", body)
        await self._git.run("revert", "--quit", check=False)
        sha = await self._git.head()
        await self._publish(sha)
        return sha

    async def _abort_revert(self) -> None:
        if not await self._git.succeeds("revert", "--abort"):
            await self._git.run("reset", "--merge", check=False)
