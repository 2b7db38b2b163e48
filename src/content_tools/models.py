"""Data models for the content tools service."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


HistoryType = Literal["title", "suggestion", "news", "outline"]
HISTORY_TYPES: tuple[str, ...] = ("title", "suggestion", "news", "outline")

Volume = Literal["High", "Medium", "Low"]


class HistoryRecord(BaseModel):
    """One row of the append-only generation history."""

    id: Optional[str] = Field(None, description="Server generated identifier.")
    created_at: Optional[datetime] = Field(None, description="Server generated timestamp.")
    input: str
    output: str = Field(..., description="Usually serialized JSON of the generation result.")
    type: HistoryType
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_metadata(cls, value):
        return value if value is not None else {}

    def insert_payload(self) -> Dict[str, Any]:
        """Columns sent on insert; id and created_at are left to the store."""
        return {
            "input": self.input,
            "output": self.output,
            "type": self.type,
            "metadata": self.metadata,
        }


class TitleSuggestion(BaseModel):
    """A scored blog-title candidate recovered from an LLM completion."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    news_score: int = Field(..., ge=0, le=100, alias="newsScore")
    search_score: int = Field(..., ge=0, le=100, alias="searchScore")
    score: int = Field(..., ge=0, le=100)
    reasoning: str


class OutlineSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    sub_sections: List[str] = Field(default_factory=list, alias="subSections")


class ArticleOutline(BaseModel):
    """User-editable outline produced before a full article."""

    title: str
    introduction: str
    sections: List[OutlineSection]
    conclusion: str

    def section_count(self) -> int:
        """Sections plus subsections plus introduction and conclusion."""
        return sum(1 + len(s.sub_sections) for s in self.sections) + 2


class ArticleSubSection(BaseModel):
    title: str
    content: str


class ArticleSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    content: str
    sub_sections: List[ArticleSubSection] = Field(
        default_factory=list, alias="subSections"
    )


class Article(BaseModel):
    """Full article expanded from an outline."""

    title: str
    introduction: str
    sections: List[ArticleSection]
    conclusion: str


class NewsArticle(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: Optional[str] = None
    url: Optional[str] = None
    source_name: Optional[str] = Field(None, alias="sourceName")
    published_at: Optional[str] = Field(None, alias="publishedAt")


class SearchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    source: Literal["google", "news"]
    search_volume: Volume = Field(..., alias="searchVolume")
    competition: Volume
