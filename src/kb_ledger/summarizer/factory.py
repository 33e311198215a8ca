"""Factory for creating summarizer providers."""

from kb_ledger.core.exceptions import ConfigurationError
from kb_ledger.summarizer.base import ContentSummarizer
from kb_ledger.summarizer.config import SummarizerConfig


class SummarizerFactory:
    """Factory for creating summarizer providers."""

    def __init__(self, config: SummarizerConfig | None = None) -> None:
        self._config = config or SummarizerConfig()

    def create_provider(self) -> ContentSummarizer:
        """Create a summarizer based on configuration."""
        provider = self._config.provider.lower()

        if provider == "extractive":
            from kb_ledger.summarizer.providers.extractive import ExtractiveSummarizer

            return ExtractiveSummarizer(
                max_sentences=self._config.max_sentences,
                max_key_points=self._config.max_key_points,
                snippet_length=self._config.snippet_length,
                max_sources=self._config.max_sources,
            )
        else:
            raise ConfigurationError(
                f"Unknown summarizer provider: {provider}",
                details={"provider": provider},
            )
