"""Read-only access to the host's page table."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from wordcounter.db.db import store_errors
from wordcounter.errors import InvalidIdentityError
from wordcounter.models.page import DocumentRef, Page
from wordcounter.models.reconciliation import PageIdentity

# Characters a page title can never contain
_ILLEGAL_TITLE_RE = re.compile(r"[\[\]{}|#<>\x00-\x1f\x7f]")
MAX_TITLE_LENGTH = 255


def normalize_title(name: str) -> str:
    """Normalize an external page name: trim, underscores to spaces, capitalize.

    Raises:
        InvalidIdentityError: The name is empty, too long or contains
            characters no title may contain.
    """
    if not isinstance(name, str):
        raise InvalidIdentityError(name)
    title = re.sub(r"[\s_]+", " ", name).strip()
    if not title or len(title) > MAX_TITLE_LENGTH or _ILLEGAL_TITLE_RE.search(title):
        raise InvalidIdentityError(name)
    return title[0].upper() + title[1:]


@dataclass(frozen=True)
class PageContent:
    """Current content of a page."""

    page_id: int
    text: str
    content_kind: str


class DocumentSource:
    """Looks up pages and their current content. Never writes."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def get(self, page_id: int) -> DocumentRef:
        """Page reference by id; ``exists`` is False for unknown ids."""
        with store_errors("documents.get"):
            async with self._session_maker() as session:
                page = await session.get(Page, page_id)
        return DocumentRef.from_page(page) if page else DocumentRef.missing(page_id)

    async def get_many(self, page_ids: Iterable[int]) -> Dict[int, DocumentRef]:
        ids = list(dict.fromkeys(page_ids))
        if not ids:
            return {}
        with store_errors("documents.get_many"):
            async with self._session_maker() as session:
                result = await session.execute(select(Page).where(Page.id.in_(ids)))
                pages = {page.id: page for page in result.scalars().all()}
        return {
            page_id: DocumentRef.from_page(pages[page_id]) if page_id in pages else DocumentRef.missing(page_id)
            for page_id in ids
        }

    async def find_by_title(self, name: str) -> Optional[DocumentRef]:
        """Page reference by external name, None if no such page.

        Raises:
            InvalidIdentityError: The name can never be a valid title.
        """
        title = normalize_title(name)
        with store_errors("documents.find_by_title"):
            async with self._session_maker() as session:
                result = await session.execute(select(Page).where(Page.title == title))
                page = result.scalars().first()
        return DocumentRef.from_page(page) if page else None

    async def resolve(self, identity: PageIdentity) -> DocumentRef:
        """Resolve a page id or title.

        Unknown pages come back with ``exists=False``; malformed identities
        raise InvalidIdentityError.
        """
        if isinstance(identity, bool):
            raise InvalidIdentityError(identity)
        if isinstance(identity, int):
            if identity <= 0:
                raise InvalidIdentityError(identity)
            return await self.get(identity)

        ref = await self.find_by_title(identity)
        return ref or DocumentRef.missing(0, title=normalize_title(identity))

    async def get_content(self, page_id: int) -> Optional[PageContent]:
        with store_errors("documents.get_content"):
            async with self._session_maker() as session:
                page = await session.get(Page, page_id)
        if page is None:
            return None
        return PageContent(page_id=page.id, text=page.content or "", content_kind=page.content_model)
