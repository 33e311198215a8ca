"""Timeline ledger for KB-Ledger."""

from kb_ledger.ledger.timeline import TIMELINE_FILE, TimelineLedger

__all__ = ["TIMELINE_FILE", "TimelineLedger"]
