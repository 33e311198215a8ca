"""Repository adapters and registry for KB-Ledger."""

from kb_ledger.repositories.base import RepositoryAdapter, normalize_path
from kb_ledger.repositories.factory import AdapterFactory
from kb_ledger.repositories.git_adapter import GitRepositoryAdapter
from kb_ledger.repositories.local import LocalRepositoryAdapter
from kb_ledger.repositories.remote import RemoteRepositoryAdapter

__all__ = [
    "RepositoryAdapter",
    "normalize_path",
    "AdapterFactory",
    "GitRepositoryAdapter",
    "LocalRepositoryAdapter",
    "RemoteRepositoryAdapter",
]
