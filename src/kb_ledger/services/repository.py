"""Repository registration, lookup, browsing and recorded hand edits."""

import secrets
from typing import TYPE_CHECKING

import structlog

from kb_ledger.core.exceptions import (
    ConfigurationError,
    NotFoundError,
    RepositoryError,
    SyncError,
    ValidationError,
)
from kb_ledger.core.models.content import (
    BrowseOperation,
    BrowseResult,
    ItemOperation,
    ManageItemRequest,
    ManageItemResult,
)
from kb_ledger.core.models.repository import RemoteRepositoryConfig, RepositoryConfig
from kb_ledger.core.models.timeline import Actor, Operation, Stage
from kb_ledger.repositories.base import normalize_path
from kb_ledger.repositories.factory import AdapterFactory
from kb_ledger.repositories.registry.sqlite import SQLiteRegistry
from kb_ledger.services.context import ContextProvider
from kb_ledger.services.sync import SyncCoordinator

if TYPE_CHECKING:
    from kb_ledger.config.settings import Settings

logger = structlog.get_logger(__name__)

_LEDGER_OPERATIONS = {
    ItemOperation.CREATE_FILE: Operation.ADD,
    ItemOperation.UPDATE_FILE: Operation.UPDATE,
    ItemOperation.DELETE_FILE: Operation.DELETE,
    ItemOperation.CREATE_DIRECTORY: Operation.ADD,
    ItemOperation.DELETE_DIRECTORY: Operation.DELETE,
}

_COMMIT_VERBS = {
    ItemOperation.CREATE_FILE: "Create",
    ItemOperation.UPDATE_FILE: "Update",
    ItemOperation.DELETE_FILE: "Delete",
    ItemOperation.CREATE_DIRECTORY: "Create",
    ItemOperation.DELETE_DIRECTORY: "Delete",
}


class RepositoryService:
    """Service for repository configuration and browsing operations."""

    def __init__(
        self,
        registry: SQLiteRegistry,
        factory: AdapterFactory,
        contexts: ContextProvider,
        settings: "Settings",
        sync: SyncCoordinator | None = None,
    ) -> None:
        self._registry = registry
        self._factory = factory
        self._contexts = contexts
        self._settings = settings
        self._sync = sync or SyncCoordinator()

    async def list_repositories(self) -> list[RepositoryConfig]:
        return await self._registry.list_all()

    async def get_repository_details(self, name: str) -> RepositoryConfig:
        config = await self._registry.get_by_name(name)
        if config is None:
            raise NotFoundError(f"Repository not found: {name}", details={"name": name})
        return config

    async def register_repository(self, config: RepositoryConfig) -> str:
        """Validate, initialize and persist a new repository; return its id."""
        if await self._registry.get_by_name(config.name) is not None:
            raise ConfigurationError(
                f"Repository name already in use: {config.name}",
                details={"operation": "register", "name": config.name},
            )
        if isinstance(config, RemoteRepositoryConfig):
            if self._settings.resolve_credential(config.credential_alias) is None:
                raise ConfigurationError(
                    f"Credential alias cannot be resolved: {config.credential_alias}",
                    details={"operation": "register", "name": config.name, "credential_alias": config.credential_alias},
                )

        # Create or clone before persisting so a broken config is never registered
        await self._factory.get_adapter(config)
        return await self._registry.register(config)

    async def browse(self, repository_id: str, operation: str | BrowseOperation, path: str = ".") -> BrowseResult:
        """List a directory or read a file. Never writes."""
        try:
            operation = BrowseOperation(operation)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown browse operation: {operation}",
                details={"operation": str(operation), "path": path},
            ) from exc
        normalize_path(path, operation.value)

        context = await self._contexts.get_context(repository_id)
        async with context.lock:
            outcome = await self._sync.sync_for_read(context.adapter)
        warnings = [outcome.warning] if outcome.warning else []

        if operation is BrowseOperation.LIST_DIRECTORY:
            entries = await context.adapter.list_files(path)
            return BrowseResult(operation=operation, path=path, entries=entries, warnings=warnings)
        content = await context.adapter.read_file(path)
        return BrowseResult(operation=operation, path=path, content=content, warnings=warnings)

    async def manage_item(self, repository_id: str, request: ManageItemRequest) -> ManageItemResult:
        """Apply a hand edit, commit it and record it so it shows up in history and can be undone.

        An edit that leaves nothing to commit (an empty directory, an update
        with identical content) is not recorded.
        """
        operation = request.operation
        path = normalize_path(request.path, operation.value)
        if path == ".":
            raise ValidationError(
                f"Cannot {operation.value} the repository root",
                details={"operation": operation.value, "path": request.path},
            )

        context = await self._contexts.get_context(repository_id)
        adapter = context.adapter
        log = logger.bind(repository=context.config.name, operation=operation.value, path=path)

        async with context.lock:
            outcome = await self._sync.sync_for_write(adapter)
            warnings = [outcome.warning] if outcome.warning else []

            if operation is ItemOperation.CREATE_FILE:
                if await adapter.file_exists(path):
                    raise ValidationError(
                        f"Cannot create '{path}': file already exists",
                        details={"operation": operation.value, "path": path},
                    )
                await adapter.write_file(path, request.content)
            elif operation is ItemOperation.UPDATE_FILE:
                if not await adapter.file_exists(path):
                    raise NotFoundError(
                        f"Cannot update '{path}': file not found",
                        details={"operation": operation.value, "path": path},
                    )
                await adapter.write_file(path, request.content)
            elif operation is ItemOperation.DELETE_FILE:
                await adapter.delete_file(path)
            elif operation is ItemOperation.CREATE_DIRECTORY:
                await adapter.create_directory(path)
            else:
                await adapter.delete_directory(path, recursive=request.recursive)

            changed = await adapter.changed_paths()
            if not changed:
                log.info("Hand edit left nothing to commit")
                return ManageItemResult(
                    operation=operation,
                    path=path,
                    message=f"{operation.value} {path}: nothing to commit",
                    warnings=warnings,
                )

            try:
                commit = await adapter.commit(f"{_COMMIT_VERBS[operation]} {path}")
            except (RepositoryError, SyncError):
                await adapter.discard_changes()
                raise
            entry = await context.ledger.record(
                _LEDGER_OPERATIONS[operation],
                commit=commit,
                source_path=path,
                affected_knowledge_base_paths=[changed_path for changed_path in changed if changed_path != path],
                actor=Actor.USER,
                meta={
                    "ingest_id": secrets.token_hex(4),
                    "title": path,
                    "stage": Stage.SOURCE.value,
                    "item_operation": operation.value,
                    "user": request.user,
                },
            )
            log.info("Hand edit committed", commit=commit[:8], files=len(changed))

        return ManageItemResult(
            operation=operation,
            path=path,
            committed=True,
            message=f"{operation.value} {path}: committed {commit[:8]}",
            commit=commit,
            change_id=entry.id,
            changed_paths=changed,
            warnings=warnings,
        )
