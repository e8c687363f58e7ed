"""Data models for the feed digest pipeline."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Article(BaseModel):
    """One fetched feed entry with its extracted plain text."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(..., min_length=1)
    published: Optional[str] = Field(
        None, description="ISO-8601 publication timestamp; optional if unknown."
    )
    extracted_content: str = Field(..., alias="extractedContent", min_length=1)


class Fact(BaseModel):
    """Structured record extracted from one article."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    url: str
    published: Optional[str]
    is_gaming_related: bool = Field(..., alias="isGamingRelated")
    categories: List[str]
    summary: str
    signals: List[str] = Field(..., max_length=6)
    companies: List[str]
    regions: List[str]
    confidence: float

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return min(1.0, max(0.0, value))

    def to_payload(self) -> dict:
        """Return the camelCase shape used in prompts and JSON dumps."""
        return self.model_dump(by_alias=True)


class FactsEnvelope(BaseModel):
    """Top-level object of a structured extraction response."""

    model_config = ConfigDict(extra="forbid")

    facts: List[Fact]
