"""Tests for core domain models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from kb_ledger.core.models.content import IngestKind, IngestRequest
from kb_ledger.core.models.history import ChangeType, RevertRequest, RevertResult, RevertType
from kb_ledger.core.models.repository import (
    LocalRepositoryConfig,
    RemoteRepositoryConfig,
    repository_config_adapter,
)
from kb_ledger.core.models.timeline import Operation, Stage, Timeline, TimelineEntry


@pytest.mark.unit
class TestTimelineEntry:
    """Tests for TimelineEntry model."""

    def test_defaults(self) -> None:
        entry = TimelineEntry(operation=Operation.ADD, commit="abc")
        assert entry.id
        assert entry.timestamp.tzinfo is not None
        assert entry.affected_knowledge_base_paths == []
        assert entry.bulk is False

    def test_naive_timestamp_is_utc(self) -> None:
        entry = TimelineEntry(operation=Operation.ADD, timestamp=datetime(2024, 5, 1, 12, 0))
        assert entry.timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_offset_timestamp_converted_to_utc(self) -> None:
        tz = timezone(timedelta(hours=2))
        entry = TimelineEntry(operation=Operation.ADD, timestamp=datetime(2024, 5, 1, 14, 0, tzinfo=tz))
        assert entry.timestamp.hour == 12
        assert entry.timestamp.utcoffset() == timedelta(0)

    def test_affected_paths_deduplicated_in_order(self) -> None:
        entry = TimelineEntry(
            operation=Operation.UPDATE,
            affected_knowledge_base_paths=["b.md", "a.md", "b.md"],
        )
        assert entry.affected_knowledge_base_paths == ["b.md", "a.md"]

    def test_meta_accessors(self) -> None:
        entry = TimelineEntry(
            operation=Operation.DELETE,
            meta={"stage": "revert", "ingest_id": "1a2b3c4d", "reverted_entry_ids": ["x", "y"]},
        )
        assert entry.stage is Stage.REVERT
        assert entry.ingest_id == "1a2b3c4d"
        assert entry.reverted_entry_ids == ["x", "y"]

    def test_unknown_stage_is_none(self) -> None:
        entry = TimelineEntry(operation=Operation.ADD, meta={"stage": "draft"})
        assert entry.stage is None

    def test_entry_is_frozen(self) -> None:
        entry = TimelineEntry(operation=Operation.ADD)
        with pytest.raises(ValidationError):
            entry.commit = "other"

    def test_timeline_round_trip(self) -> None:
        timeline = Timeline(entries=[TimelineEntry(operation=Operation.ADD, commit="abc")])
        restored = Timeline.model_validate_json(timeline.model_dump_json())
        assert restored.version == 1
        assert restored.entries[0].operation is Operation.ADD


@pytest.mark.unit
class TestRepositoryConfig:
    """Tests for repository configuration models."""

    def test_local_requires_absolute_path(self) -> None:
        with pytest.raises(ValidationError):
            LocalRepositoryConfig(name="notes", path="relative/notes")

    def test_knowledge_base_root_normalized(self) -> None:
        config = LocalRepositoryConfig(name="notes", path="/tmp/notes", knowledge_base_root="/wiki/")
        assert config.knowledge_base_root == "wiki"
        assert LocalRepositoryConfig(name="n", path="/tmp/n", knowledge_base_root="/").knowledge_base_root == "."

    def test_discriminated_union(self) -> None:
        config = repository_config_adapter.validate_python(
            {"kind": "remote", "name": "handbook", "owner": "acme", "repo_name": "handbook", "credential_alias": "work"}
        )
        assert isinstance(config, RemoteRepositoryConfig)
        assert config.branch == "main"

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValidationError):
            repository_config_adapter.validate_python({"kind": "s3", "name": "bucket"})


@pytest.mark.unit
class TestRevertModels:
    """Tests for revert request and result models."""

    def test_revert_type_covers(self) -> None:
        assert RevertType.BOTH.covers(ChangeType.FILE_UPLOAD)
        assert RevertType.BOTH.covers(ChangeType.KNOWLEDGE_BASE_GENERATION)
        assert RevertType.FILE_UPLOAD.covers(ChangeType.FILE_UPLOAD)
        assert not RevertType.FILE_UPLOAD.covers(ChangeType.KNOWLEDGE_BASE_GENERATION)
        assert not RevertType.KNOWLEDGE_BASE_GENERATION.covers(ChangeType.FILE_UPLOAD)

    def test_selectors(self) -> None:
        assert RevertRequest(change_id="abc").selectors() == ["change_id"]
        assert RevertRequest(filename="note.txt", last_n_changes=2).selectors() == ["filename", "last_n_changes"]
        assert RevertRequest().selectors() == []

    def test_last_n_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            RevertRequest(last_n_changes=0)

    def test_default_revert_type_is_both(self) -> None:
        assert RevertRequest(change_id="abc").revert_type is RevertType.BOTH

    def test_failed_result_cannot_carry_commits(self) -> None:
        with pytest.raises(ValidationError):
            RevertResult(success=False, message="conflict", revert_commit_ids=["abc"])


@pytest.mark.unit
class TestIngestRequest:
    """Tests for IngestRequest validation."""

    def test_text_requires_content(self) -> None:
        with pytest.raises(ValidationError):
            IngestRequest(kind=IngestKind.TEXT)

    def test_file_requires_name(self) -> None:
        with pytest.raises(ValidationError):
            IngestRequest(kind=IngestKind.FILE, content="data")

    def test_url_requires_url(self) -> None:
        with pytest.raises(ValidationError):
            IngestRequest(kind=IngestKind.URL)

    def test_valid_text(self) -> None:
        request = IngestRequest(kind="text", content="Hello world", title="Note")
        assert request.kind is IngestKind.TEXT
        assert request.metadata == {}
