"""Models module - imports all models for SQLModel registration."""

# Import all table models so SQLModel can register them
from wordcounter.models.page import ContentKind, DocumentRef, Page, QualifyingPredicate
from wordcounter.models.word_count import WordCount
from wordcounter.models.cache_entry import CacheEntry
from wordcounter.models.aggregates import AggregateSnapshot, ThrottleTicket
from wordcounter.models.reconciliation import (
    CountMode,
    CountTaskOptions,
    CountResult,
    PurgeResult,
    ReconciliationCursor,
)

__all__ = [
    "AggregateSnapshot",
    "CacheEntry",
    "ContentKind",
    "CountMode",
    "CountTaskOptions",
    "CountResult",
    "DocumentRef",
    "Page",
    "PurgeResult",
    "QualifyingPredicate",
    "ReconciliationCursor",
    "ThrottleTicket",
    "WordCount",
]
