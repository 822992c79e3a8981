"""Request and response schemas for document lifecycle webhooks."""

from pydantic import BaseModel, Field

from wordcounter.models.page import ContentKind


class DocumentSavedRequest(BaseModel):
    """Request schema for POST /v1/wordcounter/events/saved."""

    page_id: int = Field(..., ge=1, description="Id of the saved page")
    text: str = Field(default="", description="Content of the saved revision")
    content_kind: ContentKind = Field(default=ContentKind.WIKITEXT, description="Content model of the revision")
    rendered: bool = Field(default=False, description="True when text is already rendered plain text")

    model_config = {"json_schema_extra": {"example": {
        "page_id": 42,
        "text": "'''Hello''' [[world]]",
        "content_kind": "wikitext",
        "rendered": False,
    }}}


class DocumentDeletedRequest(BaseModel):
    """Request schema for POST /v1/wordcounter/events/deleted."""

    page_id: int = Field(..., ge=1, description="Id of the deleted page")


class EventAccepted(BaseModel):
    event: str
    page_id: int
