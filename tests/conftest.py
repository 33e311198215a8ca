"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from fakes import git
from kb_ledger.app import KnowledgeBaseApp
from kb_ledger.config.settings import Settings
from kb_ledger.core.models.repository import LocalRepositoryConfig
from kb_ledger.ledger.timeline import TimelineLedger
from kb_ledger.repositories.local import LocalRepositoryAdapter


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated under a temporary data directory."""
    return Settings(
        _env_file=None,
        data_dir=str(tmp_path / "data"),
        remote_url_template=str(tmp_path / "remotes" / "{owner}" / "{repo}.git"),
        git_credentials={"test": "secret-token"},
        git_author_name="Test",
        git_author_email="test@test.com",
    )


@pytest.fixture
def bare_remote(tmp_path: Path) -> Path:
    """An empty bare repository where the remote template points for acme/handbook."""
    remote = tmp_path / "remotes" / "acme" / "handbook.git"
    remote.mkdir(parents=True)
    git("init", "--bare", "--quiet", str(remote), cwd=tmp_path)
    return remote


@pytest.fixture
async def app(settings: Settings) -> KnowledgeBaseApp:
    """A started app using the extractive summarizer."""
    app = KnowledgeBaseApp(settings=settings)
    await app.start()
    yield app
    await app.close()


@pytest.fixture
async def repository_id(app: KnowledgeBaseApp, tmp_path: Path) -> str:
    """Id of a freshly registered local repository named ``notes``."""
    config = LocalRepositoryConfig(name="notes", path=str(tmp_path / "notes"))
    return await app.register_repository(config)


@pytest.fixture
async def local_adapter(tmp_path: Path) -> LocalRepositoryAdapter:
    """An initialized local adapter on a new working tree."""
    config = LocalRepositoryConfig(name="scratch", path=str(tmp_path / "scratch"))
    adapter = LocalRepositoryAdapter(config, author_name="Test", author_email="test@test.com")
    await adapter.initialize()
    return adapter


@pytest.fixture
def ledger(local_adapter: LocalRepositoryAdapter) -> TimelineLedger:
    return TimelineLedger(local_adapter, bulk_threshold=3)
