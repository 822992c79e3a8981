"""Count store: the durable page id -> word count mapping.

Each row is independent, so there are no cross-row transactions: every
operation opens its own short session. Qualification (namespace, redirect,
content model) is filtered server-side by joining the host ``pages`` table.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import and_, asc, delete, desc, func, or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import col, select

from wordcounter.config.logger import app_logger
from wordcounter.db.db import store_errors
from wordcounter.models.page import DocumentRef, Page, QualifyingPredicate
from wordcounter.models.word_count import WordCount

DELETE_CHUNK_SIZE = 500


@dataclass(frozen=True)
class RankedEntry:
    page_id: int
    word_count: int
    title: str
    namespace: int


def _chunked(values: Sequence[int], size: int) -> Iterator[List[int]]:
    for start in range(0, len(values), size):
        yield list(values[start : start + size])


def qualifying_clause(predicate: QualifyingPredicate):
    """SQL condition: the joined page currently qualifies."""
    return and_(
        col(Page.namespace).in_(sorted(predicate.namespaces)),
        col(Page.is_redirect).is_(False),
        col(Page.content_model).in_(sorted(predicate.content_models)),
    )


def disqualified_clause(predicate: QualifyingPredicate):
    """SQL condition: the joined page exists but no longer qualifies."""
    return or_(
        col(Page.namespace).not_in(sorted(predicate.namespaces)),
        col(Page.is_redirect).is_(True),
        col(Page.content_model).not_in(sorted(predicate.content_models)),
    )


class CountStore:
    """Async word count store backed by SQLModel."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession], dialect_name: str = "sqlite"):
        self._session_maker = session_maker
        self._dialect_name = dialect_name

    def _insert(self):
        if self._dialect_name == "postgresql":
            return postgresql.insert(WordCount.__table__)
        return sqlite.insert(WordCount.__table__)

    # --- writes ---------------------------------------------------------

    async def upsert(self, page_id: int, word_count: int, updated_at: Optional[datetime] = None) -> None:
        """Insert or update one count; an older ``updated_at`` never overwrites a newer one."""
        if word_count < 0:
            raise ValueError(f"word_count must be >= 0, got {word_count}")
        updated_at = updated_at or datetime.now(timezone.utc)
        table = WordCount.__table__

        stmt = self._insert().values(page_id=page_id, word_count=word_count, updated_at=updated_at)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.page_id],
            set_={"word_count": stmt.excluded.word_count, "updated_at": stmt.excluded.updated_at},
            where=table.c.updated_at <= stmt.excluded.updated_at,
        )

        with store_errors("count_store.upsert"):
            async with self._session_maker() as session:
                await session.execute(stmt)
                await session.commit()
        app_logger.debug(f"Stored word count {word_count} for page {page_id}")

    async def delete(self, page_id: int) -> int:
        """Delete one count. Deleting a missing row is not an error."""
        return await self.delete_many([page_id])

    async def delete_many(self, page_ids: Iterable[int]) -> int:
        ids = sorted(set(page_ids))
        if not ids:
            return 0

        deleted = 0
        with store_errors("count_store.delete_many"):
            async with self._session_maker() as session:
                for batch in _chunked(ids, DELETE_CHUNK_SIZE):
                    result = await session.execute(delete(WordCount).where(col(WordCount.page_id).in_(batch)))
                    deleted += result.rowcount or 0
                await session.commit()
        return deleted

    # --- point reads ----------------------------------------------------

    async def get(self, page_id: int) -> Optional[WordCount]:
        with store_errors("count_store.get"):
            async with self._session_maker() as session:
                return await session.get(WordCount, page_id)

    # --- bulk scans -----------------------------------------------------

    async def scan_qualifying(self, predicate: QualifyingPredicate, limit: int, offset: int = 0) -> List[WordCount]:
        """Counted rows whose page qualifies, ordered by page id."""
        stmt = (
            select(WordCount)
            .join(Page, col(Page.id) == col(WordCount.page_id))
            .where(qualifying_clause(predicate))
            .order_by(asc(WordCount.page_id))
            .limit(limit)
            .offset(offset)
        )
        with store_errors("count_store.scan_qualifying"):
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())

    async def scan_qualifying_pages(self, predicate: QualifyingPredicate, limit: int, offset: int = 0) -> List[DocumentRef]:
        """Every qualifying page, counted or not, ordered by page id."""
        stmt = select(Page).where(qualifying_clause(predicate)).order_by(asc(Page.id)).limit(limit).offset(offset)
        return await self._pages(stmt, "count_store.scan_qualifying_pages")

    async def scan_needing_count(self, predicate: QualifyingPredicate, limit: int, offset: int = 0) -> List[DocumentRef]:
        """Qualifying pages that have no count yet."""
        stmt = (
            select(Page)
            .outerjoin(WordCount, col(WordCount.page_id) == col(Page.id))
            .where(qualifying_clause(predicate), col(WordCount.page_id).is_(None))
            .order_by(asc(Page.id))
            .limit(limit)
            .offset(offset)
        )
        return await self._pages(stmt, "count_store.scan_needing_count")

    async def scan_outdated(self, predicate: QualifyingPredicate, limit: int, offset: int = 0) -> List[DocumentRef]:
        """Qualifying pages touched after their count was stored."""
        stmt = (
            select(Page)
            .join(WordCount, col(WordCount.page_id) == col(Page.id))
            .where(qualifying_clause(predicate), col(WordCount.updated_at) < col(Page.touched))
            .order_by(asc(Page.id))
            .limit(limit)
            .offset(offset)
        )
        return await self._pages(stmt, "count_store.scan_outdated")

    async def scan_missing(self, limit: int, offset: int = 0) -> List[int]:
        """Ids of counts whose page no longer exists."""
        stmt = (
            select(WordCount.page_id)
            .outerjoin(Page, col(Page.id) == col(WordCount.page_id))
            .where(col(Page.id).is_(None))
            .order_by(asc(WordCount.page_id))
            .limit(limit)
            .offset(offset)
        )
        return await self._ids(stmt, "count_store.scan_missing")

    async def scan_disqualified(self, predicate: QualifyingPredicate, limit: int, offset: int = 0) -> List[int]:
        """Ids of counts whose page exists but no longer qualifies."""
        stmt = (
            select(WordCount.page_id)
            .join(Page, col(Page.id) == col(WordCount.page_id))
            .where(disqualified_clause(predicate))
            .order_by(asc(WordCount.page_id))
            .limit(limit)
            .offset(offset)
        )
        return await self._ids(stmt, "count_store.scan_disqualified")

    async def scan_orphaned(self, predicate: QualifyingPredicate, limit: int) -> List[int]:
        """Orphaned ids: missing pages first, then disqualified ones, up to ``limit``."""
        ids = await self.scan_missing(limit)
        if len(ids) < limit:
            ids += await self.scan_disqualified(predicate, limit - len(ids))
        return ids

    # --- aggregates -----------------------------------------------------

    async def sum_and_count(self, predicate: QualifyingPredicate) -> Tuple[int, int]:
        """(total words, total pages) over qualifying counted pages."""
        stmt = (
            select(func.coalesce(func.sum(WordCount.word_count), 0), func.count(WordCount.page_id))
            .join(Page, col(Page.id) == col(WordCount.page_id))
            .where(qualifying_clause(predicate))
        )
        with store_errors("count_store.sum_and_count"):
            async with self._session_maker() as session:
                total_words, total_pages = (await session.execute(stmt)).one()
        return int(total_words or 0), int(total_pages or 0)

    async def count_needing(self, predicate: QualifyingPredicate) -> int:
        """Number of qualifying pages without a count."""
        stmt = (
            select(func.count(Page.id))
            .outerjoin(WordCount, col(WordCount.page_id) == col(Page.id))
            .where(qualifying_clause(predicate), col(WordCount.page_id).is_(None))
        )
        with store_errors("count_store.count_needing"):
            async with self._session_maker() as session:
                return int((await session.execute(stmt)).scalar() or 0)

    async def ranked(
        self,
        predicate: QualifyingPredicate,
        limit: int,
        offset: int = 0,
        descending: bool = True,
    ) -> AsyncIterator[RankedEntry]:
        """Qualifying counted pages ordered by word count, page id breaking ties."""
        order = desc(WordCount.word_count) if descending else asc(WordCount.word_count)
        stmt = (
            select(WordCount.page_id, WordCount.word_count, Page.title, Page.namespace)
            .join(Page, col(Page.id) == col(WordCount.page_id))
            .where(qualifying_clause(predicate))
            .order_by(order, asc(WordCount.page_id))
            .limit(limit)
            .offset(offset)
        )
        with store_errors("count_store.ranked"):
            async with self._session_maker() as session:
                rows = (await session.execute(stmt)).all()
        for page_id, word_count, title, namespace in rows:
            yield RankedEntry(page_id=page_id, word_count=word_count, title=title, namespace=namespace)

    # --- helpers --------------------------------------------------------

    async def _pages(self, stmt, operation: str) -> List[DocumentRef]:
        with store_errors(operation):
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                return [DocumentRef.from_page(page) for page in result.scalars().all()]

    async def _ids(self, stmt, operation: str) -> List[int]:
        with store_errors(operation):
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                return [int(page_id) for page_id in result.scalars().all()]
