"""Remote git-hosted repository, cloned locally and pushed after every commit."""

import asyncio
from pathlib import Path

import structlog

from kb_ledger.core.exceptions import (
    GitCommandError,
    RepositoryError,
    SyncConflictError,
    SyncFailureError,
)
from kb_ledger.core.models.repository import RemoteRepositoryConfig, SyncOutcome
from kb_ledger.git.url_resolver import redact_url
from kb_ledger.repositories.git_adapter import GitRepositoryAdapter

logger = structlog.get_logger(__name__)


class RemoteRepositoryAdapter(GitRepositoryAdapter):
    """A clone of a remote project tracking one branch.

    Sync is fetch plus fast-forward only, so local commits are never
    discarded. A commit only counts once it is on the remote branch: when
    the push fails the local commit is rolled back.
    """

    def __init__(
        self,
        config: RemoteRepositoryConfig,
        clone_url: str,
        clone_base_dir: str | Path,
        author_name: str = "KB-Ledger",
        author_email: str = "kb-ledger@localhost",
    ) -> None:
        work_tree = Path(clone_base_dir) / config.owner / config.repo_name
        super().__init__(config, work_tree, author_name=author_name, author_email=author_email)
        self._clone_url = clone_url
        self._branch = config.branch

    @property
    def branch(self) -> str:
        return self._branch

    async def initialize(self) -> None:
        """Clone the remote, or refresh an existing clone."""
        if await self.git.is_git_repo():
            await self.git.run("remote", "set-url", "origin", self._clone_url)
            try:
                await self.sync()
            except (SyncFailureError, SyncConflictError) as exc:
                logger.warning("Initial sync failed, using local clone", repository=self._config.name, error=str(exc))
            return

        parent = self.work_tree.parent
        await asyncio.to_thread(parent.mkdir, parents=True, exist_ok=True)
        try:
            await self.git.run("clone", "--quiet", self._clone_url, self.work_tree.name, cwd=parent)
        except GitCommandError as exc:
            raise SyncFailureError(
                f"Failed to clone {self._config.owner}/{self._config.repo_name}: "
                f"{redact_url(exc.stderr)}",
                details={"operation": "clone", "repository": self._config.name},
            ) from exc

        remote_ref = f"origin/{self._branch}"
        if await self.git.succeeds("rev-parse", "--verify", "--quiet", remote_ref):
            await self.git.run("checkout", "--quiet", "-B", self._branch, remote_ref)
        elif await self.git.has_head():
            await self.git.run("checkout", "--quiet", "-B", self._branch)
            await self._publish(await self.git.head())
        else:
            # Empty remote: start the branch with an empty commit
            await self.git.run("symbolic-ref", "HEAD", f"refs/heads/{self._branch}")
            await self.git.run("commit", "--allow-empty", "-m", "Initialize knowledge base")
            await self._publish(await self.git.head())

        logger.info(
            "Cloned remote repository",
            repository=self._config.name,
            branch=self._branch,
            path=str(self.work_tree),
        )

    async def sync(self) -> SyncOutcome:
        before = await self.git.head() if await self.git.has_head() else None

        try:
            await self.git.run("fetch", "--quiet", "origin", self._branch)
        except GitCommandError as exc:
            raise SyncFailureError(
                f"Failed to fetch {self._branch} for {self._config.name}: {redact_url(exc.stderr)}",
                details={"operation": "sync", "repository": self._config.name},
            ) from exc

        try:
            await self.git.run("merge", "--ff-only", "--quiet", f"origin/{self._branch}")
        except GitCommandError as exc:
            raise SyncConflictError(
                f"Cannot fast-forward {self._config.name} to origin/{self._branch}",
                details={"operation": "sync", "repository": self._config.name, "stderr": redact_url(exc.stderr)},
            ) from exc

        after = await self.git.head()
        pulled = before != after
        if pulled:
            logger.info("Pulled remote changes", repository=self._config.name, commit=after[:8])
        return SyncOutcome(pulled=pulled)

    async def _publish(self, commit_id: str) -> None:
        try:
            await self.git.run("push", "--quiet", "origin", f"HEAD:refs/heads/{self._branch}")
        except GitCommandError as exc:
            await self._rollback(commit_id)
            raise SyncFailureError(
                f"Failed to push {commit_id[:8]} to {self._branch}; local commit rolled back",
                details={
                    "operation": "push",
                    "repository": self._config.name,
                    "stderr": redact_url(exc.stderr),
                },
            ) from exc
        logger.debug("Pushed commit", repository=self._config.name, commit=commit_id[:8])

    async def _rollback(self, commit_id: str) -> None:
        if not await self.git.succeeds("rev-parse", "--verify", "--quiet", f"{commit_id}~1"):
            # Root commit, nothing to roll back to
            return
        try:
            await self.git.run("reset", "--keep", f"{commit_id}~1")
        except GitCommandError as exc:
            raise RepositoryError(
                f"Failed to roll back unpublished commit {commit_id[:8]}",
                details={"operation": "push", "repository": self._config.name},
            ) from exc
