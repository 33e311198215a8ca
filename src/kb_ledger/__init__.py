"""KB-Ledger: version-controlled knowledge bases with selective undo."""

__version__ = "0.1.0"
