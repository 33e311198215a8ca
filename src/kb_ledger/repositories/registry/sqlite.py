"""SQLite registry of configured repositories."""

import sqlite3
from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from kb_ledger.core.exceptions import ConfigurationError
from kb_ledger.core.models.repository import (
    LocalRepositoryConfig,
    RemoteRepositoryConfig,
    RepositoryConfig,
    repository_config_adapter,
)

logger = structlog.get_logger(__name__)

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS repositories (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    kind TEXT NOT NULL,
    knowledge_base_root TEXT NOT NULL DEFAULT '.',
    path TEXT,
    owner TEXT,
    repo_name TEXT,
    branch TEXT,
    credential_alias TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_repositories_name ON repositories(name);
"""


class SQLiteRegistry:
    """Persists RepositoryConfig records.

    Uses aiosqlite for async SQLite operations. Records are created by
    explicit registration and never deleted automatically.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Initialize the database and create tables."""
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(CREATE_TABLES_SQL)
        await self._db.commit()
        logger.info("SQLite repository registry initialized", db_path=self._db_path)

    async def _ensure_connected(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.initialize()
        assert self._db is not None
        return self._db

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def register(self, config: RepositoryConfig) -> str:
        """Store a new configuration and return its id."""
        db = await self._ensure_connected()
        if await self.get_by_name(config.name) is not None:
            raise ConfigurationError(
                f"Repository name already in use: {config.name}",
                details={"operation": "register", "name": config.name},
            )

        local = config if isinstance(config, LocalRepositoryConfig) else None
        remote = config if isinstance(config, RemoteRepositoryConfig) else None
        try:
            await db.execute(
                """INSERT INTO repositories
                (id, name, kind, knowledge_base_root, path, owner, repo_name,
                 branch, credential_alias, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    config.id,
                    config.name,
                    config.kind,
                    config.knowledge_base_root,
                    local.path if local else None,
                    remote.owner if remote else None,
                    remote.repo_name if remote else None,
                    remote.branch if remote else None,
                    remote.credential_alias if remote else None,
                    config.created_at.isoformat(),
                ),
            )
            await db.commit()
        except sqlite3.IntegrityError as exc:
            raise ConfigurationError(
                f"Repository already registered: {config.name}",
                details={"operation": "register", "name": config.name, "id": config.id},
            ) from exc

        logger.info("Repository registered", name=config.name, kind=config.kind, id=config.id)
        return config.id

    async def get(self, repository_id: str) -> RepositoryConfig | None:
        db = await self._ensure_connected()
        cursor = await db.execute("SELECT * FROM repositories WHERE id = ?", (repository_id,))
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_config(row)

    async def get_by_name(self, name: str) -> RepositoryConfig | None:
        db = await self._ensure_connected()
        cursor = await db.execute("SELECT * FROM repositories WHERE name = ?", (name,))
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_config(row)

    async def list_all(self) -> list[RepositoryConfig]:
        db = await self._ensure_connected()
        cursor = await db.execute("SELECT * FROM repositories ORDER BY created_at, name")
        rows = await cursor.fetchall()
        return [self._row_to_config(row) for row in rows]

    @staticmethod
    def _row_to_config(row: aiosqlite.Row) -> RepositoryConfig:
        data = {
            "id": row["id"],
            "name": row["name"],
            "kind": row["kind"],
            "knowledge_base_root": row["knowledge_base_root"],
            "created_at": datetime.fromisoformat(row["created_at"]),
        }
        if row["kind"] == "local":
            data["path"] = row["path"]
        else:
            data.update(
                owner=row["owner"],
                repo_name=row["repo_name"],
                branch=row["branch"],
                credential_alias=row["credential_alias"],
            )
        return repository_config_adapter.validate_python(data)
