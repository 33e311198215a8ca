"""Tests for repository registration and browsing."""

from pathlib import Path

import pytest

from kb_ledger.app import KnowledgeBaseApp
from kb_ledger.core.exceptions import (
    ConfigurationError,
    NotFoundError,
    PathProhibitedError,
    ValidationError,
)
from kb_ledger.core.models.content import (
    BrowseOperation,
    IngestKind,
    IngestRequest,
    ItemOperation,
    ManageItemRequest,
)
from kb_ledger.core.models.history import RevertRequest
from kb_ledger.core.models.repository import LocalRepositoryConfig, RemoteRepositoryConfig


@pytest.mark.unit
class TestRepositoryService:
    """Tests for RepositoryService through the app."""

    @pytest.mark.asyncio
    async def test_register_local_creates_repository(self, app: KnowledgeBaseApp, tmp_path: Path) -> None:
        config = LocalRepositoryConfig(name="notes", path=str(tmp_path / "notes"))
        repository_id = await app.register_repository(config)

        assert repository_id == config.id
        assert (tmp_path / "notes" / ".git").is_dir()
        assert [c.name for c in await app.list_repositories()] == ["notes"]
        assert await app.get_repository_details("notes") == config

    @pytest.mark.asyncio
    async def test_register_from_dict(self, app: KnowledgeBaseApp, tmp_path: Path) -> None:
        repository_id = await app.register_repository(
            {"kind": "local", "name": "notes", "path": str(tmp_path / "notes")}
        )
        assert (await app.get_context(repository_id)).config.name == "notes"

    @pytest.mark.asyncio
    async def test_duplicate_name(self, app: KnowledgeBaseApp, repository_id: str, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            await app.register_repository(LocalRepositoryConfig(name="notes", path=str(tmp_path / "elsewhere")))

    @pytest.mark.asyncio
    async def test_unknown_credential_alias(self, app: KnowledgeBaseApp) -> None:
        config = RemoteRepositoryConfig(name="handbook", owner="acme", repo_name="handbook", credential_alias="nope")
        with pytest.raises(ConfigurationError):
            await app.register_repository(config)
        assert await app.list_repositories() == []

    @pytest.mark.asyncio
    async def test_register_remote(self, app: KnowledgeBaseApp, bare_remote: Path, tmp_path: Path) -> None:
        config = RemoteRepositoryConfig(name="handbook", owner="acme", repo_name="handbook", credential_alias="test")
        await app.register_repository(config)
        assert (tmp_path / "data" / "clones" / "acme" / "handbook" / ".git").is_dir()

    @pytest.mark.asyncio
    async def test_unknown_repository(self, app: KnowledgeBaseApp) -> None:
        with pytest.raises(NotFoundError):
            await app.get_repository_details("missing")
        with pytest.raises(NotFoundError):
            await app.browse("missing", "list_directory")

    @pytest.mark.asyncio
    async def test_context_by_name_or_id(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        by_id = await app.get_context(repository_id)
        by_name = await app.get_context("notes")
        assert by_id.config == by_name.config
        assert by_id.adapter is by_name.adapter
        assert by_id.lock is by_name.lock

    @pytest.mark.asyncio
    async def test_browse_list_and_read(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        result = await app.ingest_content(
            repository_id, IngestRequest(kind=IngestKind.TEXT, content="Hello world", title="Note")
        )

        listing = await app.browse(repository_id, "list_directory", ".")
        assert listing.operation is BrowseOperation.LIST_DIRECTORY
        assert [entry.path for entry in listing.entries] == ["knowledge-base", "raw"]

        read = await app.browse(repository_id, BrowseOperation.READ_FILE, result.raw_path)
        assert read.content == "Hello world"
        assert read.warnings == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", [".git/config", ".kbledger/timeline.json", "../outside"])
    async def test_browse_reserved_paths(self, app: KnowledgeBaseApp, repository_id: str, path: str) -> None:
        with pytest.raises(PathProhibitedError):
            await app.browse(repository_id, "read_file", path)

    @pytest.mark.asyncio
    async def test_browse_unknown_operation(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        with pytest.raises(ValidationError):
            await app.browse(repository_id, "write_file", "a.md")

    @pytest.mark.asyncio
    async def test_browse_missing_file(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        with pytest.raises(NotFoundError):
            await app.browse(repository_id, "read_file", "missing.md")


@pytest.mark.unit
class TestManageItem:
    """Hand edits through RepositoryService.manage_item."""

    @pytest.mark.asyncio
    async def test_create_file_is_recorded(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        result = await app.manage_item(
            repository_id,
            ManageItemRequest(operation=ItemOperation.CREATE_FILE, path="notes/todo.md", content="- ship it\n"),
        )
        assert result.committed is True
        assert result.changed_paths == ["notes/todo.md"]

        context = await app.get_context(repository_id)
        assert await context.adapter.read_file("notes/todo.md") == "- ship it\n"
        assert await context.adapter.commit_exists(result.commit)

        history = await app.list_history(repository_id)
        assert len(history) == 1
        assert history[0].id == result.change_id
        assert history[0].description == "Created notes/todo.md"

    @pytest.mark.asyncio
    async def test_update_and_undo(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        await app.manage_item(
            repository_id, ManageItemRequest(operation=ItemOperation.CREATE_FILE, path="a.md", content="one\n")
        )
        updated = await app.manage_item(
            repository_id, ManageItemRequest(operation=ItemOperation.UPDATE_FILE, path="a.md", content="two\n")
        )
        assert (await app.list_history(repository_id))[0].description == "Edited a.md"

        undone = await app.undo_changes(repository_id, RevertRequest(change_id=updated.change_id))
        assert undone.success is True
        assert (await app.browse(repository_id, "read_file", "a.md")).content == "one\n"

    @pytest.mark.asyncio
    async def test_update_missing_file(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        with pytest.raises(NotFoundError):
            await app.manage_item(
                repository_id, ManageItemRequest(operation=ItemOperation.UPDATE_FILE, path="a.md", content="x")
            )
        assert await app.list_history(repository_id) == []

    @pytest.mark.asyncio
    async def test_create_existing_file(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        request = ManageItemRequest(operation=ItemOperation.CREATE_FILE, path="a.md", content="x")
        await app.manage_item(repository_id, request)
        with pytest.raises(ValidationError):
            await app.manage_item(repository_id, request)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", [".kbledger/timeline.json", ".git/HEAD", "../outside.md"])
    async def test_reserved_paths(self, app: KnowledgeBaseApp, repository_id: str, path: str) -> None:
        with pytest.raises(PathProhibitedError):
            await app.manage_item(
                repository_id, ManageItemRequest(operation=ItemOperation.CREATE_FILE, path=path, content="x")
            )

    @pytest.mark.asyncio
    async def test_repository_root_rejected(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        with pytest.raises(ValidationError):
            await app.manage_item(
                repository_id, ManageItemRequest(operation=ItemOperation.DELETE_DIRECTORY, path=".", recursive=True)
            )

    @pytest.mark.asyncio
    async def test_empty_directory_not_recorded(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        result = await app.manage_item(
            repository_id, ManageItemRequest(operation=ItemOperation.CREATE_DIRECTORY, path="drafts")
        )
        assert result.committed is False
        assert result.change_id is None
        assert "nothing to commit" in result.message
        assert await app.list_history(repository_id) == []

    @pytest.mark.asyncio
    async def test_recursive_directory_delete_is_undoable(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        for name in ("a.md", "b.md"):
            await app.manage_item(
                repository_id,
                ManageItemRequest(operation=ItemOperation.CREATE_FILE, path=f"drafts/{name}", content=name),
            )
        deleted = await app.manage_item(
            repository_id,
            ManageItemRequest(operation=ItemOperation.DELETE_DIRECTORY, path="drafts", recursive=True),
        )
        assert deleted.committed is True
        assert sorted(deleted.changed_paths) == ["drafts/a.md", "drafts/b.md"]

        latest = (await app.list_history(repository_id))[0]
        assert latest.description == "Deleted drafts"
        assert set(latest.files_affected) == {"drafts", "drafts/a.md", "drafts/b.md"}

        with pytest.raises(NotFoundError):
            await app.browse(repository_id, "read_file", "drafts/a.md")
        undone = await app.undo_changes(repository_id, RevertRequest(change_id=deleted.change_id))
        assert undone.success is True
        assert (await app.browse(repository_id, "read_file", "drafts/b.md")).content == "b.md"

    def test_content_required_for_file_writes(self) -> None:
        with pytest.raises(ValueError, match="content is required"):
            ManageItemRequest(operation=ItemOperation.UPDATE_FILE, path="a.md")
