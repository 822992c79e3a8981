"""Derived sitewide numbers and throttle markers kept in the cache."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class AggregateSnapshot(BaseModel):
    """Totals over all qualifying counted pages.

    Never authoritative: rebuilt from the count store whenever the cached
    copy is missing or expired.
    """

    total_words: int = Field(default=0, ge=0)
    total_documents: int = Field(default=0, ge=0)
    pending_count: int = Field(default=0, ge=0)
    computed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def average_words(self) -> int:
        if not self.total_documents:
            return 0
        return round(self.total_words / self.total_documents)


class ThrottleTicket(BaseModel):
    """Marker that blocks re-triggering a background task until it expires."""

    task_name: str
    last_triggered_at: float
    cooldown_seconds: int
