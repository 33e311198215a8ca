"""Configuration for KB-Ledger."""

from kb_ledger.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
