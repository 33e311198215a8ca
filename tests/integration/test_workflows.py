"""End-to-end workflows against real git repositories."""

import shutil
from pathlib import Path

import pytest

from fakes import git
from kb_ledger.app import KnowledgeBaseApp
from kb_ledger.config.settings import Settings
from kb_ledger.core.exceptions import NotFoundError, PathProhibitedError
from kb_ledger.core.models.content import IngestKind, IngestRequest
from kb_ledger.core.models.history import ChangeType, RevertRequest, RevertType
from kb_ledger.core.models.repository import RemoteRepositoryConfig
from kb_ledger.core.models.timeline import Operation


# Rejects any push that touches generated pages
PAGES_FROZEN_HOOK = """#!/bin/sh
while read old new ref; do
    if git diff --name-only "$old" "$new" | grep -q "^knowledge-base/"; then
        echo "knowledge-base pages are frozen" >&2
        exit 1
    fi
done
"""


def text(content: str, title: str | None = None) -> IngestRequest:
    return IngestRequest(kind=IngestKind.TEXT, content=content, title=title)


@pytest.mark.integration
class TestLocalWorkflows:
    """Ingest, history and undo on a local repository."""

    @pytest.mark.asyncio
    async def test_timestamps_ordered_after_ingests(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        for n in range(3):
            await app.ingest_content(repository_id, text(f"Entry number {n}.", f"Entry {n}"))

        context = await app.get_context(repository_id)
        entries = await context.ledger.read_all()
        assert len(entries) == 6
        timestamps = [entry.timestamp for entry in entries]
        assert timestamps == sorted(timestamps)
        assert all(await context.adapter.commit_exists(entry.commit) for entry in entries)

    @pytest.mark.asyncio
    async def test_note_scenario(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        result = await app.ingest_content(repository_id, text("Hello world", "Note"))

        history = await app.list_history(repository_id)
        assert [change.change_type for change in history] == [
            ChangeType.KNOWLEDGE_BASE_GENERATION,
            ChangeType.FILE_UPLOAD,
        ]
        assert history[1].description == "Uploaded Note"
        assert history[0].description == "Generated knowledge base from Note (1 KB file updated)"
        assert history[0].relative_time == "just now"

        undone = await app.undo_changes(repository_id, RevertRequest(last_n_changes=2, revert_type=RevertType.BOTH))
        assert undone.success is True
        assert len(undone.changes_reverted) == 2
        assert await app.list_history(repository_id) == []

        with pytest.raises(NotFoundError):
            await app.browse(repository_id, "read_file", result.raw_path)

        everything = await app.list_history(repository_id, include_reverted=True)
        assert len(everything) == 2
        assert all(change.reverted for change in everything)

    @pytest.mark.asyncio
    async def test_history_limit(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        await app.ingest_content(repository_id, text("First body.", "First"))
        second = await app.ingest_content(repository_id, text("Second body.", "Second"))

        latest = await app.list_history(repository_id, limit=1)
        assert len(latest) == 1
        assert latest[0].correlation_id == second.ingest_id
        assert latest[0].change_type is ChangeType.KNOWLEDGE_BASE_GENERATION

        uploads = await app.list_history(repository_id, change_type="file_upload")
        assert [change.description for change in uploads] == ["Uploaded Second", "Uploaded First"]

    @pytest.mark.asyncio
    async def test_revert_both_removes_raw_file(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        result = await app.ingest_content(repository_id, text("Hello world", "Note"))
        upload = (await app.list_history(repository_id, change_type="file_upload"))[0]

        undone = await app.undo_changes(repository_id, RevertRequest(change_id=upload.id))
        assert undone.success is True
        with pytest.raises(NotFoundError):
            await app.browse(repository_id, "read_file", result.raw_path)
        with pytest.raises(NotFoundError):
            await app.browse(repository_id, "read_file", "knowledge-base/note.md")

    @pytest.mark.asyncio
    async def test_same_title_ingests_undo_independently(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        first = await app.ingest_content(repository_id, text("Alpha facts about apples.", "Note"))
        second = await app.ingest_content(repository_id, text("Beta facts about bananas.", "Note"))
        assert first.knowledge_base_paths != second.knowledge_base_paths

        first_page = first.knowledge_base_paths[0]
        assert "apples" in (await app.browse(repository_id, "read_file", first_page)).content

        uploads = await app.list_history(repository_id, change_type="file_upload")
        first_upload = next(change for change in uploads if change.correlation_id == first.ingest_id)
        undone = await app.undo_changes(repository_id, RevertRequest(change_id=first_upload.id))
        assert undone.success is True

        with pytest.raises(NotFoundError):
            await app.browse(repository_id, "read_file", first.raw_path)
        with pytest.raises(NotFoundError):
            await app.browse(repository_id, "read_file", first_page)
        second_page = second.knowledge_base_paths[0]
        assert "bananas" in (await app.browse(repository_id, "read_file", second_page)).content
        assert (await app.browse(repository_id, "read_file", second.raw_path)).content

    @pytest.mark.asyncio
    async def test_knowledge_base_revert_keeps_raw_file(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        result = await app.ingest_content(repository_id, text("Hello world", "Note"))
        before = (await app.browse(repository_id, "read_file", result.raw_path)).content
        generation = (await app.list_history(repository_id, change_type="knowledge_base_generation"))[0]

        undone = await app.undo_changes(
            repository_id,
            RevertRequest(change_id=generation.id, revert_type=RevertType.KNOWLEDGE_BASE_GENERATION),
        )
        assert undone.success is True
        assert (await app.browse(repository_id, "read_file", result.raw_path)).content == before

    @pytest.mark.asyncio
    async def test_undo_twice_is_noop(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        await app.ingest_content(repository_id, text("Hello world", "Note"))
        change = (await app.list_history(repository_id))[0]

        first = await app.undo_changes(repository_id, RevertRequest(change_id=change.id))
        context = await app.get_context(repository_id)
        entries_after_first = await context.ledger.read_all()

        second = await app.undo_changes(repository_id, RevertRequest(change_id=change.id))
        assert first.success and second.success
        assert second.revert_commit_ids == []
        assert await context.ledger.read_all() == entries_after_first

    @pytest.mark.asyncio
    async def test_control_directories_not_browsable(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        with pytest.raises(PathProhibitedError):
            await app.browse(repository_id, "read_file", ".git/config")
        with pytest.raises(PathProhibitedError):
            await app.browse(repository_id, "list_directory", ".kbledger")

        listing = await app.browse(repository_id, "list_directory", ".")
        assert all(not entry.path.startswith((".git", ".kbledger")) for entry in listing.entries)

    @pytest.mark.asyncio
    async def test_reconcile_reports_unrecorded_commit(self, app: KnowledgeBaseApp, repository_id: str) -> None:
        await app.ingest_content(repository_id, text("Hello world", "Note"))
        assert await app.reconcile(repository_id) == []

        context = await app.get_context(repository_id)
        (context.adapter.work_tree / "manual.md").write_text("edited by hand\n")
        git("add", "manual.md", cwd=context.adapter.work_tree)
        git("commit", "--quiet", "-m", "Manual edit", cwd=context.adapter.work_tree)
        manual = git("rev-parse", "HEAD", cwd=context.adapter.work_tree)

        assert await app.reconcile(repository_id) == [manual]


@pytest.mark.integration
class TestRemoteWorkflows:
    """Remote repositories backed by a local bare repository."""

    @pytest.fixture
    async def remote_id(self, app: KnowledgeBaseApp, bare_remote: Path) -> str:
        config = RemoteRepositoryConfig(name="handbook", owner="acme", repo_name="handbook", credential_alias="test")
        return await app.register_repository(config)

    @pytest.mark.asyncio
    async def test_ingest_publishes_content_and_ledger(
        self, app: KnowledgeBaseApp, remote_id: str, bare_remote: Path
    ) -> None:
        result = await app.ingest_content(remote_id, text("Hello world", "Note"))
        files = git("ls-tree", "-r", "--name-only", "refs/heads/main", cwd=bare_remote).splitlines()
        assert result.raw_path in files
        assert "knowledge-base/note.md" in files
        assert ".kbledger/timeline.json" in files

    @pytest.mark.asyncio
    async def test_search_survives_unreachable_remote(
        self, app: KnowledgeBaseApp, remote_id: str, bare_remote: Path, tmp_path: Path
    ) -> None:
        await app.ingest_content(remote_id, text("Hello world", "Note"))
        shutil.move(str(bare_remote), str(tmp_path / "offline.git"))

        answer = await app.search_knowledge_base(remote_id, "hello")
        assert answer.answer.startswith("From Note:")
        assert answer.sources[0].url == "https://github.com/acme/handbook/blob/main/knowledge-base/note.md"
        assert len(answer.warnings) == 1
        assert "Sync failed for handbook" in answer.warnings[0]

    @pytest.mark.asyncio
    async def test_browse_survives_unreachable_remote(
        self, app: KnowledgeBaseApp, remote_id: str, bare_remote: Path, tmp_path: Path
    ) -> None:
        shutil.move(str(bare_remote), str(tmp_path / "offline.git"))
        listing = await app.browse(remote_id, "list_directory", ".")
        assert listing.warnings

    @pytest.mark.asyncio
    async def test_pulls_collaborator_changes(
        self, app: KnowledgeBaseApp, remote_id: str, bare_remote: Path, tmp_path: Path
    ) -> None:
        other = tmp_path / "collaborator"
        git("clone", "--quiet", "--branch", "main", str(bare_remote), str(other), cwd=tmp_path)
        (other / "handwritten.md").write_text("# Handwritten\n")
        git("add", "handwritten.md", cwd=other)
        git("commit", "--quiet", "-m", "Add handwritten page", cwd=other)
        git("push", "--quiet", "origin", "HEAD:refs/heads/main", cwd=other)

        read = await app.browse(remote_id, "read_file", "handwritten.md")
        assert read.content == "# Handwritten\n"

    @pytest.mark.asyncio
    async def test_revert_is_published(
        self, app: KnowledgeBaseApp, remote_id: str, bare_remote: Path
    ) -> None:
        result = await app.ingest_content(remote_id, text("Hello world", "Note"))
        upload = (await app.list_history(remote_id, change_type="file_upload"))[0]

        undone = await app.undo_changes(remote_id, RevertRequest(change_id=upload.id))
        assert undone.success is True
        files = git("ls-tree", "-r", "--name-only", "refs/heads/main", cwd=bare_remote).splitlines()
        assert result.raw_path not in files
        assert "knowledge-base/note.md" not in files

    @pytest.mark.asyncio
    async def test_rejected_page_push_still_reports_raw_path(
        self, app: KnowledgeBaseApp, remote_id: str, bare_remote: Path
    ) -> None:
        hook = bare_remote / "hooks" / "pre-receive"
        hook.write_text(PAGES_FROZEN_HOOK)
        hook.chmod(0o755)

        result = await app.ingest_content(remote_id, text("Hello world", "Note"))
        assert result.knowledge_base_updated is False
        assert result.knowledge_base_paths == []
        assert "committing knowledge-base pages failed" in result.message

        files = git("ls-tree", "-r", "--name-only", "refs/heads/main", cwd=bare_remote).splitlines()
        assert result.raw_path in files
        assert "knowledge-base/note.md" not in files

        context = await app.get_context(remote_id)
        assert await context.adapter.changed_paths() == []
        entries = await context.ledger.read_all()
        assert [entry.operation for entry in entries] == [Operation.ADD, Operation.ERROR]
        assert entries[1].meta["step"] == "commit_pages"
        assert entries[1].ingest_id == result.ingest_id
