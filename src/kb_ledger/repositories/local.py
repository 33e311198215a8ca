"""Local filesystem repository backed by a git working tree."""

import asyncio
from pathlib import Path

import structlog

from kb_ledger.core.models.repository import LocalRepositoryConfig, SyncOutcome
from kb_ledger.repositories.git_adapter import GitRepositoryAdapter

logger = structlog.get_logger(__name__)


class LocalRepositoryAdapter(GitRepositoryAdapter):
    """A git working tree at a fixed path. Commits stay local."""

    def __init__(
        self,
        config: LocalRepositoryConfig,
        author_name: str = "KB-Ledger",
        author_email: str = "kb-ledger@localhost",
    ) -> None:
        super().__init__(config, Path(config.path), author_name=author_name, author_email=author_email)

    async def initialize(self) -> None:
        """Create the directory and git repository if they do not exist yet."""
        await asyncio.to_thread(self.work_tree.mkdir, parents=True, exist_ok=True)
        if not await self.git.is_git_repo():
            await self.git.run("init", "--quiet")
            await self.git.run("symbolic-ref", "HEAD", "refs/heads/main")
            logger.info("Initialized git repository", path=str(self.work_tree))
        if not await self.git.has_head():
            await self.git.run("commit", "--allow-empty", "-m", "Initialize knowledge base")

    async def sync(self) -> SyncOutcome:
        return SyncOutcome(pulled=False)
