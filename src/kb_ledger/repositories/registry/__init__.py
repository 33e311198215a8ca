"""Repository registry storage."""

from kb_ledger.repositories.registry.sqlite import SQLiteRegistry

__all__ = ["SQLiteRegistry"]
