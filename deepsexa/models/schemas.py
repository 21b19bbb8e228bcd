from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentMode(str, Enum):
    TEXT = "text"
    HIGHLIGHTS = "highlights"
    SUMMARY = "summary"
    EXTERNAL_SUMMARY = "external_summary"


# --- Search settings ---


class TextContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["text"] = "text"
    max_characters: int | None = Field(default=None, ge=1)


class HighlightsContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["highlights"] = "highlights"
    num_sentences: int = Field(default=3, ge=1)
    highlights_per_url: int = Field(default=1, ge=1)
    query: str | None = None


class SummaryContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["summary"] = "summary"
    query: str | None = None


class ExternalSummaryContent(BaseModel):
    """Raw text is fetched and summarized by the summarization service."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["external_summary"] = "external_summary"
    max_characters: int | None = Field(default=None, ge=1)


ContentOptions = Annotated[
    Union[TextContent, HighlightsContent, SummaryContent, ExternalSummaryContent],
    Field(discriminator="mode"),
]


class SearchSettings(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["auto", "keyword", "neural"] = "auto"
    num_results: int = Field(default=5, ge=1, le=10, alias="numResults")
    livecrawl: Literal["never", "fallback", "always"] = "never"
    contents: ContentOptions = Field(default_factory=TextContent)
    include_domains: list[str] | None = Field(default=None, alias="includeDomains")
    exclude_domains: list[str] | None = Field(default=None, alias="excludeDomains")
    start_published_date: date | None = Field(default=None, alias="startPublishedDate")
    end_published_date: date | None = Field(default=None, alias="endPublishedDate")

    @property
    def custom_model_mode(self) -> bool:
        return self.contents.mode == ContentMode.EXTERNAL_SUMMARY

    def with_date_range(self, start: date | None, end: date | None) -> SearchSettings:
        return self.model_copy(update={"start_published_date": start, "end_published_date": end})

    def with_contents(self, contents: Any) -> SearchSettings:
        return self.model_copy(update={"contents": contents})

    def to_exa_payload(self, query: str) -> dict[str, Any]:
        """Build the Exa /search request body for `query`."""
        contents: dict[str, Any] = {"livecrawl": self.livecrawl}
        options = self.contents
        if isinstance(options, (TextContent, ExternalSummaryContent)):
            contents["text"] = (
                {"maxCharacters": options.max_characters} if options.max_characters else True
            )
        elif isinstance(options, HighlightsContent):
            highlights: dict[str, Any] = {
                "numSentences": options.num_sentences,
                "highlightsPerUrl": options.highlights_per_url,
            }
            if options.query:
                highlights["query"] = options.query
            contents["highlights"] = highlights
        elif isinstance(options, SummaryContent):
            contents["summary"] = {"query": options.query} if options.query else True

        payload: dict[str, Any] = {
            "query": query,
            "type": self.type,
            "numResults": self.num_results,
            "contents": contents,
        }
        if self.include_domains:
            payload["includeDomains"] = self.include_domains
        if self.exclude_domains:
            payload["excludeDomains"] = self.exclude_domains
        if self.start_published_date:
            payload["startPublishedDate"] = self.start_published_date.isoformat()
        if self.end_published_date:
            payload["endPublishedDate"] = self.end_published_date.isoformat()
        return payload


# --- Search results ---


class SearchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = ""
    url: str
    id: str | None = None
    author: str | None = None
    published_date: str | None = Field(default=None, alias="publishedDate")
    favicon: str | None = None
    image: str | None = None
    score: float | None = None
    text: str | None = None
    highlights: list[str] | None = None
    summary: str | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _none_title(cls, value: Any) -> Any:
        return value or ""


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=1)
    previous_queries: list[str] = Field(default_factory=list, alias="previousQueries")
    settings: SearchSettings = Field(default_factory=SearchSettings)

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Query is required")
        return value


class SearchResponse(BaseModel):
    results: list[SearchResult]


# --- Temporal range ---


class DateRange(BaseModel):
    start_date: date | None = Field(alias="startDate")
    end_date: date | None = Field(alias="endDate")
    rationale: str = ""

    model_config = ConfigDict(populate_by_name=True)


class TemporalContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    relative_time: Literal["recent", "historic", "specific_range"] | None = Field(
        default=None, alias="relativeTime"
    )
    reference_point: Literal["conversation_history", "current_date", "explicit_query"] | None = Field(
        default=None, alias="referencePoint"
    )


class DateRangeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date_range: DateRange = Field(alias="dateRange")
    confidence: Literal["low", "medium", "high"]
    temporal_context: TemporalContext = Field(default_factory=TemporalContext, alias="temporalContext")


class DateParserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=1)
    previous_queries: list[str] = Field(default_factory=list, alias="previousQueries")


# --- Summarization ---

Score = Literal["0", "1", "2", "3", "4", "5", "6", "7", "8", "9", "10"]


class PageMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    url: str
    published_date: str = Field(alias="publishedDate")


class Relevance(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query_relevance: Score = Field(alias="queryRelevance")
    timeliness_score: Score = Field(alias="timelinessScore")
    conversation_flow: str = Field(alias="conversationFlow")


class WebpageSummary(BaseModel):
    metadata: PageMetadata
    summary: str
    relevance: Relevance


class SummarizeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(min_length=1)
    query: str = ""
    previous_queries: list[str] = Field(default_factory=list, alias="previousQueries")


# --- Chat ---


class ChatTurn(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatTurn] = Field(min_length=1)


class ErrorResponse(BaseModel):
    error: str
