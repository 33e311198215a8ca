"""Git integration module for KB-Ledger."""

from kb_ledger.git.runner import GitClient
from kb_ledger.git.url_resolver import URLResolver, build_clone_url, redact_url

__all__ = ["GitClient", "URLResolver", "build_clone_url", "redact_url"]
