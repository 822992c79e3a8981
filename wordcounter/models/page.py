"""Host page table and the read-only page reference handed to the engine."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Optional

from sqlalchemy import Column, DateTime, Text
from sqlmodel import Field, SQLModel


class ContentKind(str, Enum):
    """Content models a page revision can carry."""

    WIKITEXT = "wikitext"
    TEXT = "text"
    CSS = "css"
    JAVASCRIPT = "javascript"
    JSON = "json"
    BINARY = "binary"


class Page(SQLModel, table=True):
    """A page as owned by the host CMS.

    WordCounter only ever reads this table; the host inserts, edits, moves
    and deletes rows.
    """

    __tablename__ = "pages"

    id: int = Field(primary_key=True)
    namespace: int = Field(default=0, index=True)
    title: str = Field(max_length=255, unique=True, index=True)
    is_redirect: bool = Field(default=False)
    content_model: str = Field(default=ContentKind.WIKITEXT.value, max_length=32)
    content: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    touched: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


@dataclass(frozen=True)
class QualifyingPredicate:
    """Namespace and content model set a page must match to be counted."""

    namespaces: FrozenSet[int]
    content_models: FrozenSet[str]

    @classmethod
    def from_settings(cls, settings) -> "QualifyingPredicate":
        return cls(
            namespaces=frozenset(settings.WORDCOUNTER_SUPPORTED_NAMESPACES),
            content_models=frozenset(settings.WORDCOUNTER_SUPPORTED_CONTENT_MODELS),
        )


@dataclass(frozen=True)
class DocumentRef:
    """Identity of a countable page, as seen at lookup time."""

    id: int
    namespace: int
    title: str
    is_redirect: bool
    exists: bool
    content_kind: str

    @classmethod
    def from_page(cls, page: Page) -> "DocumentRef":
        return cls(
            id=page.id,
            namespace=page.namespace,
            title=page.title,
            is_redirect=bool(page.is_redirect),
            exists=True,
            content_kind=page.content_model,
        )

    @classmethod
    def missing(cls, page_id: int, title: str = "") -> "DocumentRef":
        return cls(
            id=page_id,
            namespace=0,
            title=title,
            is_redirect=False,
            exists=False,
            content_kind="",
        )

    def disqualification(self, predicate: QualifyingPredicate) -> Optional[str]:
        """Return why this page does not qualify, or None if it does."""
        if not self.exists:
            return "does not exist"
        if self.is_redirect:
            return "is a redirect"
        if self.namespace not in predicate.namespaces:
            return "unsupported namespace"
        if self.content_kind not in predicate.content_models:
            return "unsupported content model"
        return None

    def qualifies(self, predicate: QualifyingPredicate) -> bool:
        return self.disqualification(predicate) is None
