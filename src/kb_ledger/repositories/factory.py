"""Adapter factory for creating repository adapters."""

from typing import TYPE_CHECKING, assert_never

import structlog

from kb_ledger.core.exceptions import ConfigurationError
from kb_ledger.core.models.repository import (
    LocalRepositoryConfig,
    RemoteRepositoryConfig,
    RepositoryConfig,
)
from kb_ledger.git.url_resolver import build_clone_url
from kb_ledger.repositories.base import RepositoryAdapter
from kb_ledger.repositories.local import LocalRepositoryAdapter
from kb_ledger.repositories.remote import RemoteRepositoryAdapter

if TYPE_CHECKING:
    from kb_ledger.config.settings import Settings

logger = structlog.get_logger(__name__)


class AdapterFactory:
    """Creates and caches one initialized adapter per repository id."""

    def __init__(self, settings: "Settings") -> None:
        self._settings = settings
        self._adapters: dict[str, RepositoryAdapter] = {}

    async def get_adapter(self, config: RepositoryConfig) -> RepositoryAdapter:
        """Get or create the adapter for ``config``."""
        adapter = self._adapters.get(config.id)
        if adapter is None:
            adapter = self.create_adapter(config)
            await adapter.initialize()
            self._adapters[config.id] = adapter
            logger.info("Repository adapter created", repository=config.name, kind=config.kind)
        return adapter

    def create_adapter(self, config: RepositoryConfig) -> RepositoryAdapter:
        """Build an uninitialized adapter for ``config``."""
        settings = self._settings
        if isinstance(config, LocalRepositoryConfig):
            return LocalRepositoryAdapter(
                config,
                author_name=settings.git_author_name,
                author_email=settings.git_author_email,
            )
        elif isinstance(config, RemoteRepositoryConfig):
            token = settings.resolve_credential(config.credential_alias)
            if token is None:
                raise ConfigurationError(
                    f"Unknown credential alias: {config.credential_alias}",
                    details={"repository": config.name, "credential_alias": config.credential_alias},
                )
            return RemoteRepositoryAdapter(
                config,
                clone_url=build_clone_url(settings.remote_url_template, config, token),
                clone_base_dir=settings.clone_base_dir,
                author_name=settings.git_author_name,
                author_email=settings.git_author_email,
            )
        else:
            assert_never(config)

    async def close(self) -> None:
        """Close all adapters."""
        for adapter in self._adapters.values():
            await adapter.close()
        self._adapters.clear()
