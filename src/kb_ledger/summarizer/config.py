"""Summarizer configuration."""

from pydantic import BaseModel, Field


class SummarizerConfig(BaseModel):
    """Configuration for knowledge-base page generation."""

    # Provider selection
    provider: str = Field(default="extractive", description="Summarizer provider (extractive)")

    # Extractive settings
    max_sentences: int = Field(default=5, ge=1, le=50, description="Sentences kept in a page summary")
    max_key_points: int = Field(default=8, ge=0, le=50, description="Bullet points listed per page")
    snippet_length: int = Field(default=200, ge=40, description="Characters per search snippet")
    max_sources: int = Field(default=3, ge=1, le=20, description="Pages cited in a search answer")

    class Config:
        frozen = True
