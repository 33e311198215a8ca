"""Request and response models for ingestion, browsing and search."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from kb_ledger.core.models.repository import FileEntry


class IngestKind(str, Enum):
    """Supported input kinds."""

    TEXT = "text"
    FILE = "file"
    URL = "url"


class IngestRequest(BaseModel):
    """Content submitted for ingestion."""

    kind: IngestKind
    content: str | None = None
    title: str | None = None
    file_name: str | None = None
    url: str | None = None
    user: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_payload(self) -> "IngestRequest":
        if self.kind is IngestKind.URL:
            if not self.url:
                raise ValueError("url is required for url ingestion")
        elif self.content is None:
            raise ValueError(f"content is required for {self.kind.value} ingestion")
        if self.kind is IngestKind.FILE and not self.file_name:
            raise ValueError("file_name is required for file ingestion")
        return self


class IngestResult(BaseModel):
    """Outcome of an ingestion; ``raw_path`` is set even when generation fails."""

    raw_path: str
    knowledge_base_updated: bool = False
    knowledge_base_paths: list[str] = Field(default_factory=list)
    message: str = ""
    ingest_id: str
    warnings: list[str] = Field(default_factory=list)


class BrowseOperation(str, Enum):
    LIST_DIRECTORY = "list_directory"
    READ_FILE = "read_file"


class BrowseResult(BaseModel):
    """Read-only view of a path in a repository."""

    operation: BrowseOperation
    path: str
    entries: list[FileEntry] | None = None
    content: str | None = None
    warnings: list[str] = Field(default_factory=list)


class ItemOperation(str, Enum):
    """Manual edits of files and directories in a repository."""

    CREATE_FILE = "create_file"
    UPDATE_FILE = "update_file"
    DELETE_FILE = "delete_file"
    CREATE_DIRECTORY = "create_directory"
    DELETE_DIRECTORY = "delete_directory"


class ManageItemRequest(BaseModel):
    """A hand edit; file creation and update need ``content``."""

    operation: ItemOperation
    path: str
    content: str | None = None
    recursive: bool = False
    user: str | None = None

    @model_validator(mode="after")
    def _check_content(self) -> "ManageItemRequest":
        if self.operation in (ItemOperation.CREATE_FILE, ItemOperation.UPDATE_FILE) and self.content is None:
            raise ValueError(f"content is required for {self.operation.value}")
        return self


class ManageItemResult(BaseModel):
    """Outcome of a hand edit. ``change_id`` is set when it was committed and recorded."""

    operation: ItemOperation
    path: str
    committed: bool = False
    message: str = ""
    commit: str | None = None
    change_id: str | None = None
    changed_paths: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class SearchSource(BaseModel):
    """A knowledge-base page backing a search answer."""

    path: str
    url: str | None = None
    title: str | None = None
    snippet: str | None = None
    score: float = 0.0


class SearchAnswer(BaseModel):
    """Answer to a knowledge-base query."""

    answer: str
    sources: list[SearchSource] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
