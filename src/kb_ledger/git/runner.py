"""Async git runner using subprocess."""

import asyncio
from pathlib import Path

import structlog

from kb_ledger.core.exceptions import GitCommandError

logger = structlog.get_logger(__name__)


class GitClient:
    """Runs git commands inside one working tree.

    Uses the git CLI directly (no gitpython dependency). Every call carries
    an explicit commit identity so the host's global config is never needed.
    """

    def __init__(
        self,
        repo_path: str | Path,
        author_name: str = "KB-Ledger",
        author_email: str = "kb-ledger@localhost",
    ) -> None:
        self._repo_path = Path(repo_path)
        self._identity = (
            "-c", f"user.name={author_name}",
            "-c", f"user.email={author_email}",
            "-c", "commit.gpgsign=false",
        )

    @property
    def repo_path(self) -> Path:
        return self._repo_path

    async def run(
        self,
        *args: str,
        check: bool = True,
        cwd: Path | None = None,
        strip: bool = True,
    ) -> str:
        """Run a git command and return its stdout.

        Raises GitCommandError on a non-zero exit when ``check`` is set.
        Pass ``strip=False`` for formats where leading whitespace matters.
        """
        process = await asyncio.create_subprocess_exec(
            "git",
            *self._identity,
            *args,
            cwd=str(cwd or self._repo_path),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        out = stdout.decode("utf-8", errors="replace")
        if strip:
            out = out.strip()
        err = stderr.decode("utf-8", errors="replace").strip()

        if check and process.returncode != 0:
            logger.debug("git command failed", command=args[0], returncode=process.returncode)
            raise GitCommandError(
                f"git {args[0]} failed: {err or out.strip()}",
                details={"command": args[0], "repo_path": str(self._repo_path)},
                stderr=err,
                returncode=process.returncode,
            )
        return out

    async def succeeds(self, *args: str) -> bool:
        """Return True if the git command exits with status 0."""
        try:
            await self.run(*args)
            return True
        except GitCommandError:
            return False

    async def is_git_repo(self) -> bool:
        """Check that the path is the top level of a git working tree."""
        if not self._repo_path.is_dir():
            return False
        try:
            toplevel = await self.run("rev-parse", "--show-toplevel")
        except GitCommandError:
            return False
        return Path(toplevel).resolve() == self._repo_path.resolve()

    async def has_head(self) -> bool:
        return await self.succeeds("rev-parse", "--verify", "--quiet", "HEAD")

    async def head(self) -> str:
        """Get the current HEAD commit hash."""
        return await self.run("rev-parse", "HEAD")
