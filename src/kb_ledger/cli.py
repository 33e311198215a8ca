"""CLI for KB-Ledger."""

import asyncio
import sys
from datetime import datetime
from pathlib import Path

import click
import structlog

from kb_ledger.config.logging import configure_logging
from kb_ledger.core.exceptions import KBLedgerError
from kb_ledger.core.models.content import ItemOperation, ManageItemRequest

logger = structlog.get_logger(__name__)


def run_async(coro):
    """Run an async function synchronously, turning domain errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except KBLedgerError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)


async def _create_app():
    """Create and start the application."""
    from kb_ledger.app import KnowledgeBaseApp

    return await KnowledgeBaseApp().start()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON (to stderr)")
def cli(verbose: bool, json_logs: bool) -> None:
    """KB-Ledger: a version-controlled knowledge base with undo."""
    log_level = "DEBUG" if verbose else "WARNING"
    configure_logging(log_level=log_level, json_logs=json_logs)


# --- Repositories ---


@cli.group()
def repos() -> None:
    """Manage configured repositories."""


@repos.command("list")
def repos_list() -> None:
    """List configured repositories."""
    async def _list():
        app = await _create_app()
        try:
            configs = await app.list_repositories()
            if not configs:
                click.echo("No repositories configured.")
                return
            for config in configs:
                location = config.path if config.kind == "local" else f"{config.owner}/{config.repo_name}@{config.branch}"
                click.echo(f"  {config.name:<20} {config.kind:<7} {location}")
        finally:
            await app.close()

    run_async(_list())


@repos.command("show")
@click.argument("name")
def repos_show(name: str) -> None:
    """Show a repository's configuration."""
    async def _show():
        app = await _create_app()
        try:
            config = await app.get_repository_details(name)
            click.echo(config.model_dump_json(indent=2))
        finally:
            await app.close()

    run_async(_show())


@repos.command("add-local")
@click.argument("name")
@click.argument("path", default=".")
@click.option("--kb-root", default=".", help="Path prefix for knowledge-base content")
def repos_add_local(name: str, path: str, kb_root: str) -> None:
    """Register a local git working tree (created if missing)."""
    async def _add():
        from kb_ledger.core.models.repository import LocalRepositoryConfig

        config = LocalRepositoryConfig(name=name, path=str(Path(path).resolve()), knowledge_base_root=kb_root)
        app = await _create_app()
        try:
            repository_id = await app.register_repository(config)
            click.echo(f"Registered {name} ({repository_id})")
        finally:
            await app.close()

    run_async(_add())


@repos.command("add-remote")
@click.argument("name")
@click.argument("owner")
@click.argument("repo_name")
@click.option("--credential", "-c", "credential_alias", required=True, help="Credential alias from GIT_CREDENTIALS")
@click.option("--branch", "-b", default="main", help="Tracked branch")
@click.option("--kb-root", default=".", help="Path prefix for knowledge-base content")
def repos_add_remote(name: str, owner: str, repo_name: str, credential_alias: str, branch: str, kb_root: str) -> None:
    """Register and clone a remote git-hosted repository."""
    async def _add():
        from kb_ledger.core.models.repository import RemoteRepositoryConfig

        config = RemoteRepositoryConfig(
            name=name,
            owner=owner,
            repo_name=repo_name,
            branch=branch,
            credential_alias=credential_alias,
            knowledge_base_root=kb_root,
        )
        app = await _create_app()
        try:
            repository_id = await app.register_repository(config)
            click.echo(f"Registered {name} ({repository_id})")
        finally:
            await app.close()

    run_async(_add())


# --- Content ---


@cli.command()
@click.argument("repository")
@click.option("--text", "-t", help="Inline text to ingest")
@click.option("--file", "-f", "file_path", type=click.Path(exists=True, dir_okay=False), help="File to ingest")
@click.option("--url", "-u", help="URL to fetch and ingest")
@click.option("--title", help="Title for the content")
@click.option("--user", help="Who submitted the content")
def ingest(
    repository: str,
    text: str | None,
    file_path: str | None,
    url: str | None,
    title: str | None,
    user: str | None,
) -> None:
    """Ingest content and generate knowledge-base pages."""
    chosen = [value for value in (text, file_path, url) if value]
    if len(chosen) != 1:
        click.echo("Error: give exactly one of --text, --file or --url", err=True)
        sys.exit(1)

    async def _ingest():
        from kb_ledger.core.models.content import IngestKind, IngestRequest

        if text:
            request = IngestRequest(kind=IngestKind.TEXT, content=text, title=title, user=user)
        elif file_path:
            path = Path(file_path)
            request = IngestRequest(
                kind=IngestKind.FILE,
                content=path.read_text(encoding="utf-8"),
                file_name=path.name,
                title=title,
                user=user,
            )
        else:
            request = IngestRequest(kind=IngestKind.URL, url=url, title=title, user=user)

        app = await _create_app()
        try:
            result = await app.ingest_content(repository, request)
            click.echo(result.message)
            for page in result.knowledge_base_paths:
                click.echo(f"  - {page}")
            for warning in result.warnings:
                click.echo(f"Warning: {warning}", err=True)
        finally:
            await app.close()

    run_async(_ingest())


@cli.command()
@click.argument("repository")
@click.option("--limit", "-l", type=int, default=20, help="Max changes")
@click.option(
    "--type",
    "change_type",
    type=click.Choice(["file_upload", "knowledge_base_generation", "both"]),
    default="both",
)
@click.option("--all", "include_reverted", is_flag=True, help="Include reverted changes")
@click.option("--offset", "-o", type=int, default=0, help="Skip this many matching changes")
@click.option("--path", "-p", help="Only changes for this file, title or page")
@click.option("--since", type=click.DateTime(), help="Only changes at or after this time (UTC)")
@click.option("--until", type=click.DateTime(), help="Only changes at or before this time (UTC)")
def history(
    repository: str,
    limit: int,
    change_type: str,
    include_reverted: bool,
    offset: int,
    path: str | None,
    since: datetime | None,
    until: datetime | None,
) -> None:
    """Show recent changes, most recent first."""
    async def _history():
        app = await _create_app()
        try:
            changes = await app.list_history(
                repository,
                limit=limit,
                change_type=change_type,
                include_reverted=include_reverted,
                offset=offset,
                path=path,
                since=since,
                until=until,
            )
            if not changes:
                click.echo("No changes.")
                return
            for change in changes:
                marker = " (reverted)" if change.reverted else ""
                click.echo(f"  {change.id[:8]}  {change.relative_time:<16} {change.description}{marker}")
        finally:
            await app.close()

    run_async(_history())


@cli.command()
@click.argument("repository")
@click.option("--change-id", help="Change to revert")
@click.option("--file", "filename", help="Revert every change for this file")
@click.option("--last", "last_n", type=int, help="Revert the N most recent changes")
@click.option(
    "--type",
    "revert_type",
    type=click.Choice(["file_upload", "knowledge_base_generation", "both"]),
    default="both",
)
@click.option("--regenerate", is_flag=True, help="Regenerate pages for surviving sources")
def undo(
    repository: str,
    change_id: str | None,
    filename: str | None,
    last_n: int | None,
    revert_type: str,
    regenerate: bool,
) -> None:
    """Undo past changes."""
    async def _undo():
        from kb_ledger.core.models.history import RevertRequest

        request = RevertRequest(
            change_id=change_id,
            filename=filename,
            last_n_changes=last_n,
            revert_type=revert_type,
            regenerate_after_revert=regenerate,
        )
        app = await _create_app()
        try:
            # Short ids from `history` are expanded to the full change id
            if request.change_id and len(request.change_id) < 36:
                changes = await app.list_history(repository, include_reverted=True)
                matches = [change.id for change in changes if change.id.startswith(request.change_id)]
                if len(matches) == 1:
                    request = request.model_copy(update={"change_id": matches[0]})

            result = await app.undo_changes(repository, request)
            click.echo(result.message)
            for change in result.changes_reverted:
                click.echo(f"  - {change.description}")
            return result.success
        finally:
            await app.close()

    if not run_async(_undo()):
        sys.exit(1)


@cli.command()
@click.argument("repository")
@click.argument("path", default=".")
@click.option("--read", "-r", is_flag=True, help="Print the file instead of listing a directory")
def browse(repository: str, path: str, read: bool) -> None:
    """List a directory or read a file."""
    async def _browse():
        app = await _create_app()
        try:
            operation = "read_file" if read else "list_directory"
            result = await app.browse(repository, operation, path)
            if result.content is not None:
                click.echo(result.content, nl=False)
            for entry in result.entries or []:
                suffix = "/" if entry.type == "directory" else ""
                click.echo(f"  {entry.path}{suffix}")
            for warning in result.warnings:
                click.echo(f"Warning: {warning}", err=True)
        finally:
            await app.close()

    run_async(_browse())


@cli.command()
@click.argument("repository")
@click.argument("operation", type=click.Choice([operation.value for operation in ItemOperation]))
@click.argument("path")
@click.option("--content", "-c", help="New file content")
@click.option("--file", "-f", "file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Read the new file content from a local file")
@click.option("--recursive", is_flag=True, help="Delete a directory with its contents")
def edit(
    repository: str, operation: str, path: str, content: str | None, file_path: Path | None, recursive: bool
) -> None:
    """Create, update or delete a file or directory as a recorded change."""
    if content is not None and file_path is not None:
        click.echo("Error: pass at most one of --content or --file", err=True)
        sys.exit(1)
    if file_path is not None:
        content = file_path.read_text(encoding="utf-8")
    if operation in (ItemOperation.CREATE_FILE.value, ItemOperation.UPDATE_FILE.value) and content is None:
        click.echo(f"Error: {operation} needs --content or --file", err=True)
        sys.exit(1)

    async def _edit():
        app = await _create_app()
        try:
            request = ManageItemRequest(operation=operation, path=path, content=content, recursive=recursive)
            result = await app.manage_item(repository, request)
            click.echo(result.message)
            if result.change_id:
                click.echo(f"  change: {result.change_id}")
            for warning in result.warnings:
                click.echo(f"Warning: {warning}", err=True)
        finally:
            await app.close()

    run_async(_edit())


@cli.command()
@click.argument("repository")
@click.argument("query")
def search(repository: str, query: str) -> None:
    """Ask the knowledge base a question."""
    async def _search():
        app = await _create_app()
        try:
            answer = await app.search_knowledge_base(repository, query)
            click.echo(answer.answer)
            if answer.sources:
                click.echo("\nSources:")
                for source in answer.sources:
                    click.echo(f"  [{source.score:.0f}] {source.url or source.path}")
            for warning in answer.warnings:
                click.echo(f"Warning: {warning}", err=True)
        finally:
            await app.close()

    run_async(_search())


@cli.command()
@click.argument("repository")
def reconcile(repository: str) -> None:
    """List content commits missing from the timeline."""
    async def _reconcile():
        app = await _create_app()
        try:
            missing = await app.reconcile(repository)
            if not missing:
                click.echo("Timeline is consistent with the commit history.")
                return
            click.echo(f"{len(missing)} commit(s) without a timeline entry:")
            for sha in missing:
                click.echo(f"  {sha}")
        finally:
            await app.close()

    run_async(_reconcile())


if __name__ == "__main__":
    cli()
