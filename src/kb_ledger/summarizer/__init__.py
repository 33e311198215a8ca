"""Knowledge-base page generation and query answering."""

from kb_ledger.summarizer.base import ContentSummarizer, SummaryResult
from kb_ledger.summarizer.config import SummarizerConfig
from kb_ledger.summarizer.factory import SummarizerFactory

__all__ = [
    "ContentSummarizer",
    "SummaryResult",
    "SummarizerConfig",
    "SummarizerFactory",
]
