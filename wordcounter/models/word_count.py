"""Persisted per-page word count."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel


class WordCount(SQLModel, table=True):
    """One row per counted page.

    No foreign key to ``pages``: rows for deleted or moved pages are expected
    and removed asynchronously by the orphan purge.
    """

    __tablename__ = "word_counts"

    page_id: int = Field(primary_key=True)
    word_count: int = Field(default=0, ge=0, index=True)
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
