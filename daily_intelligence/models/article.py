"""Article, Tag and Note - records owned by the external store."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class Tag(BaseModel):
    """User-defined label, many-to-many with articles."""

    id: str = Field(..., description="Stable tag identity")
    name: str = Field(..., description="Unique per system, compared case-insensitively")
    color: str = Field(default="#6B7280", description="Display color value")
    is_default: bool = Field(default=False, description="System-seeded tag")

    @field_validator("is_default", mode="before")
    @classmethod
    def none_is_false(cls, v):
        return bool(v)


class Note(BaseModel):
    """Free-text annotation, at most one per article."""

    id: str
    article_id: str
    content: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ArticleTag(BaseModel):
    """Row of the article_tags association table."""

    id: Optional[str] = None
    article_id: str
    tag_id: str


class Article(BaseModel):
    """One scored opportunity record produced by the ingestion pipeline.

    Read-only from the dashboard's perspective except for its tag and note
    associations.
    """

    # Identity
    id: str = Field(..., description="Opaque unique id")

    # Descriptive
    source: str = Field(default="", description="Source name")
    group_name: Optional[str] = Field(None, description="Group id, see GROUP_MAPPING")
    url: str = Field(default="", description="Link to the original article")
    title: str = Field(default="")
    company: str = Field(default="")
    buyer: str = Field(default="")
    solution: str = Field(default="")
    amount: str = Field(default="")

    # Classification
    sector: list[str] = Field(default_factory=list, description="Sector labels")
    trigger_signal: list[str] = Field(default_factory=list, description="Trigger-signal labels")

    # Scoring (0-10, produced externally)
    lead_score: Optional[int] = Field(None, description="Lead score 0-10")

    # Temporal
    created_at: Optional[datetime] = Field(None, description="Ingestion timestamp")
    processed_at: Optional[datetime] = Field(None, description="Last-processed timestamp")
    updated_at: Optional[datetime] = None
    date: Optional[datetime] = Field(None, description="Original publication date")

    # Location
    location_region: Optional[str] = None
    location_country: Optional[str] = None

    # Narrative
    why_this_matters: Optional[str] = None
    outreach_angle: Optional[str] = None
    additional_details: Optional[str] = None

    # Associations
    tags: list[Tag] = Field(default_factory=list)
    note: Optional[Note] = None

    @field_validator("sector", "trigger_signal", "tags", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v

    @field_validator("source", "url", "title", "company", "buyer", "solution", "amount", mode="before")
    @classmethod
    def none_as_blank(cls, v):
        return "" if v is None else v

    @field_validator("date", mode="before")
    @classmethod
    def date_only(cls, v):
        # Publication dates sometimes arrive as bare YYYY-MM-DD
        if isinstance(v, str) and len(v) == 10:
            return f"{v}T00:00:00"
        return v or None

    @property
    def tag_names(self) -> list[str]:
        return [t.name for t in self.tags]

    def has_tag_named(self, name: str) -> bool:
        """Case-insensitive tag name check."""
        wanted = name.strip().lower()
        return any(t.name.strip().lower() == wanted for t in self.tags)
