"""Static capability table for a protocol layer to bind to.

Every operation a remote caller may invoke is listed here once, with a
pydantic model describing its arguments. The table is built from an app
instance at startup; duplicate names are a configuration error.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from kb_ledger.core.exceptions import ConfigurationError, NotFoundError
from kb_ledger.core.models.content import BrowseOperation, IngestRequest, ManageItemRequest
from kb_ledger.core.models.history import RevertRequest
from kb_ledger.core.models.repository import RepositoryConfig

if TYPE_CHECKING:
    from kb_ledger.app import KnowledgeBaseApp


class NoArguments(BaseModel):
    pass


class RepositoryNameArguments(BaseModel):
    name: str


class RegisterRepositoryArguments(BaseModel):
    config: RepositoryConfig


class IngestArguments(BaseModel):
    repository_id: str
    request: IngestRequest


class BrowseArguments(BaseModel):
    repository_id: str
    operation: BrowseOperation
    path: str = "."


class ManageItemArguments(BaseModel):
    repository_id: str
    request: ManageItemRequest


class SearchArguments(BaseModel):
    repository_id: str
    query: str = Field(..., min_length=1)


class HistoryArguments(BaseModel):
    repository_id: str
    limit: int | None = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)
    change_type: str | None = None
    path: str | None = None
    since: datetime | None = None
    until: datetime | None = None
    include_reverted: bool = False


class UndoArguments(BaseModel):
    repository_id: str
    request: RevertRequest


class ReconcileArguments(BaseModel):
    repository_id: str


Handler = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class Capability:
    name: str
    description: str
    arguments: type[BaseModel]
    handler: Handler

    async def invoke(self, raw_arguments: dict[str, Any] | None = None) -> Any:
        """Validate arguments, run the handler and return JSON-ready data."""
        arguments = self.arguments.model_validate(raw_arguments or {})
        return _to_json(await self.handler(arguments))


def _to_json(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_json(item) for item in value]
    return value


def build_capability_table(
    app: "KnowledgeBaseApp",
    extra: list[Capability] | None = None,
) -> dict[str, Capability]:
    """Map capability names to handlers bound to ``app``."""
    capabilities = [
        Capability(
            "list_repositories",
            "List every configured repository.",
            NoArguments,
            lambda args: app.list_repositories(),
        ),
        Capability(
            "get_repository_details",
            "Show one repository's configuration by name.",
            RepositoryNameArguments,
            lambda args: app.get_repository_details(args.name),
        ),
        Capability(
            "register_repository",
            "Register a local or remote repository and return its id.",
            RegisterRepositoryArguments,
            lambda args: app.register_repository(args.config),
        ),
        Capability(
            "ingest_content",
            "Store text, a file or a fetched URL and generate knowledge-base pages.",
            IngestArguments,
            lambda args: app.ingest_content(args.repository_id, args.request),
        ),
        Capability(
            "browse",
            "List a directory or read a file (read-only).",
            BrowseArguments,
            lambda args: app.browse(args.repository_id, args.operation, args.path),
        ),
        Capability(
            "manage_item",
            "Create, update or delete a file or directory as a recorded, undoable change.",
            ManageItemArguments,
            lambda args: app.manage_item(args.repository_id, args.request),
        ),
        Capability(
            "search_knowledge_base",
            "Answer a question from the knowledge-base pages.",
            SearchArguments,
            lambda args: app.search_knowledge_base(args.repository_id, args.query),
        ),
        Capability(
            "list_history",
            "List changes, most recent first, filtered by type, path or date and paged by offset.",
            HistoryArguments,
            lambda args: app.list_history(
                args.repository_id,
                limit=args.limit,
                change_type=args.change_type,
                include_reverted=args.include_reverted,
                offset=args.offset,
                path=args.path,
                since=args.since,
                until=args.until,
            ),
        ),
        Capability(
            "undo_changes",
            "Revert changes selected by change id, file name or count.",
            UndoArguments,
            lambda args: app.undo_changes(args.repository_id, args.request),
        ),
        Capability(
            "reconcile",
            "List content commits that have no ledger record.",
            ReconcileArguments,
            lambda args: app.reconcile(args.repository_id),
        ),
        *(extra or []),
    ]

    table: dict[str, Capability] = {}
    for capability in capabilities:
        if capability.name in table:
            raise ConfigurationError(
                f"Duplicate capability name: {capability.name}",
                details={"capability": capability.name},
            )
        table[capability.name] = capability
    return table


async def dispatch(table: dict[str, Capability], name: str, arguments: dict[str, Any] | None = None) -> Any:
    capability = table.get(name)
    if capability is None:
        raise NotFoundError(f"Unknown capability: {name}", details={"capability": name})
    return await capability.invoke(arguments)
