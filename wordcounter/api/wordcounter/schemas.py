"""Response schemas for the word count query endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class TotalsResponse(BaseModel):
    """Response schema for GET /v1/wordcounter/totals."""

    total_words: int = Field(ge=0, description="Words over all counted qualifying pages")
    total_pages: int = Field(ge=0, description="Number of counted qualifying pages")
    uncounted_pages: int = Field(ge=0, description="Qualifying pages without a count yet")
    average_words: int = Field(ge=0, description="Average words per counted page")
    computed_at: datetime = Field(description="When the cached totals were computed")

    model_config = {"json_schema_extra": {"example": {
        "total_words": 125400,
        "total_pages": 812,
        "uncounted_pages": 3,
        "average_words": 154,
        "computed_at": "2026-01-12T09:30:00Z",
    }}}


class ApiWarning(BaseModel):
    """Non-fatal problem with one requested page."""

    code: str = Field(description="Warning code, e.g. 'wc-invalid-title'")
    message: str
    value: str = Field(description="The title or page id the warning is about")


class PageWordsItem(BaseModel):
    page_id: int
    page_title: str
    namespace: int
    word_count: int = Field(ge=0)
    exists: bool = Field(description="True when the page has a stored non-zero count")


class PageWordsResponse(BaseModel):
    """Response schema for GET /v1/wordcounter/pagewords."""

    results: List[PageWordsItem] = Field(default_factory=list)
    count: int = Field(ge=0)
    total_words: int = Field(ge=0)
    warnings: List[ApiWarning] = Field(default_factory=list)


class RankedPageItem(BaseModel):
    page_id: int
    page_title: str
    namespace: int
    word_count: int = Field(ge=0)


class RankedPagesResponse(BaseModel):
    """Response schema for GET /v1/wordcounter/pages."""

    results: List[RankedPageItem] = Field(default_factory=list)
    count: int = Field(ge=0)
    limit: int
    offset: int
    sort: Literal["asc", "desc"]


class UncountedPageItem(BaseModel):
    page_id: int
    page_title: str
    namespace: int


class UncountedPagesResponse(BaseModel):
    """Response schema for GET /v1/wordcounter/uncounted."""

    results: List[UncountedPageItem] = Field(default_factory=list)
    count: int = Field(ge=0)
    limit: int
    offset: int
    total: int = Field(ge=0, description="All qualifying pages still waiting for a count")


class JobStatusResponse(BaseModel):
    """Response schema for GET /v1/wordcounter/jobs."""

    jobs: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    pending: List[str] = Field(default_factory=list)
    cache_service: Optional[str] = None
