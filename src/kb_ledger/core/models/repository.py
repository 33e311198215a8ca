"""Repository configuration models."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter, field_validator


def _new_id() -> str:
    return str(uuid4())


class _BaseRepositoryConfig(BaseModel):
    """Fields shared by every repository backend."""

    id: str = Field(default_factory=_new_id)
    name: str = Field(..., min_length=1, max_length=255)
    knowledge_base_root: str = "."
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("knowledge_base_root")
    @classmethod
    def _normalize_root(cls, value: str) -> str:
        value = value.strip().strip("/")
        return value or "."

    class Config:
        frozen = True


class LocalRepositoryConfig(_BaseRepositoryConfig):
    """A git working tree on the local filesystem."""

    kind: Literal["local"] = "local"
    path: str

    @field_validator("path")
    @classmethod
    def _require_absolute(cls, value: str) -> str:
        if not Path(value).is_absolute():
            raise ValueError(f"Local repository path must be absolute: {value}")
        return value


class RemoteRepositoryConfig(_BaseRepositoryConfig):
    """A git-hosted project, cloned locally and pushed after every commit."""

    kind: Literal["remote"] = "remote"
    owner: str = Field(..., min_length=1)
    repo_name: str = Field(..., min_length=1)
    branch: str = "main"
    credential_alias: str = Field(..., min_length=1)


RepositoryConfig = Annotated[
    LocalRepositoryConfig | RemoteRepositoryConfig,
    Field(discriminator="kind"),
]

repository_config_adapter: TypeAdapter[RepositoryConfig] = TypeAdapter(RepositoryConfig)


class FileEntry(BaseModel):
    """A file or directory inside a repository working tree."""

    path: str
    type: Literal["file", "directory"]
    size: int | None = None


class CommitInfo(BaseModel):
    """A revision in the backing store."""

    sha: str
    subject: str
    paths: list[str] = Field(default_factory=list)


class SyncOutcome(BaseModel):
    """Result of synchronising a repository with its remote."""

    pulled: bool = False
    warning: str | None = None
