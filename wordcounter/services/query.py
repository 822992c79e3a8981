"""Read path used by templates and the HTTP API."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import AsyncIterator, List

from wordcounter.config.logger import app_logger
from wordcounter.errors import StoreUnavailableError
from wordcounter.models.aggregates import AggregateSnapshot
from wordcounter.models.page import DocumentRef, QualifyingPredicate
from wordcounter.services.aggregate_cache import AggregateCache
from wordcounter.services.count_store import CountStore, RankedEntry
from wordcounter.services.documents import DocumentSource


class QueryFacade:
    def __init__(
        self,
        store: CountStore,
        documents: DocumentSource,
        aggregates: AggregateCache,
        predicate: QualifyingPredicate,
    ):
        self.store = store
        self.documents = documents
        self.aggregates = aggregates
        self.predicate = predicate

    async def count_for(self, page_id: int) -> int:
        """Word count of a page, 0 when it does not qualify or is not counted yet."""
        try:
            return await self.count_for_ref(await self.documents.get(page_id))
        except StoreUnavailableError as e:
            app_logger.warning(f"Word count lookup for page {page_id} failed: {e}")
            return 0

    async def count_for_title(self, name: str) -> int:
        """Like ``count_for`` but by page title. Invalid titles raise InvalidIdentityError."""
        try:
            ref = await self.documents.find_by_title(name)
            return await self.count_for_ref(ref) if ref else 0
        except StoreUnavailableError as e:
            app_logger.warning(f"Word count lookup for '{name}' failed: {e}")
            return 0

    async def count_for_ref(self, ref: DocumentRef) -> int:
        if not ref.qualifies(self.predicate):
            return 0
        entry = await self.store.get(ref.id)
        return entry.word_count if entry else 0

    async def ranked_documents(
        self, limit: int, offset: int = 0, descending: bool = True
    ) -> AsyncIterator[RankedEntry]:
        async for entry in self.store.ranked(self.predicate, limit, offset, descending=descending):
            yield entry

    async def uncounted(self, limit: int, offset: int = 0) -> List[DocumentRef]:
        return await self.store.scan_needing_count(self.predicate, limit, offset)

    async def pending_count(self) -> int:
        return await self.aggregates.get_pending_count(lambda: self.store.count_needing(self.predicate))

    async def totals(self) -> AggregateSnapshot:
        return await self.aggregates.get_totals(self._compute_totals)

    async def _compute_totals(self) -> AggregateSnapshot:
        total_words, total_documents = await self.store.sum_and_count(self.predicate)
        pending = await self.pending_count()
        return AggregateSnapshot(
            total_words=total_words,
            total_documents=total_documents,
            pending_count=pending,
            computed_at=datetime.now(timezone.utc),
        )
