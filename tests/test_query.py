"""Tests for the query facade and the template render helpers."""

import pytest

from wordcounter.errors import InvalidIdentityError, StoreUnavailableError
from wordcounter.services.render import (
    format_number,
    render_page_words,
    render_total_pages,
    render_total_words,
)


class TestQueryFacade:
    @pytest.mark.asyncio
    async def test_count_for_safe_defaults(self, engine, add_page):
        await add_page(1, "Counted")
        await add_page(2, "Uncounted")
        await add_page(3, "Redirect", is_redirect=True)
        await engine.store.upsert(1, 12)
        await engine.store.upsert(3, 40)

        assert await engine.facade.count_for(1) == 12
        assert await engine.facade.count_for(2) == 0
        assert await engine.facade.count_for(3) == 0
        assert await engine.facade.count_for(999) == 0

    @pytest.mark.asyncio
    async def test_count_for_title(self, engine, add_page):
        await add_page(1, "Main Page")
        await engine.store.upsert(1, 12)

        assert await engine.facade.count_for_title("main Page") == 12
        assert await engine.facade.count_for_title("Nowhere") == 0
        with pytest.raises(InvalidIdentityError):
            await engine.facade.count_for_title("   ")

    @pytest.mark.asyncio
    async def test_count_for_degrades_when_store_down(self, engine):
        async def broken_get(page_id):
            raise StoreUnavailableError("down")

        engine.documents.get = broken_get
        assert await engine.facade.count_for(1) == 0

    @pytest.mark.asyncio
    async def test_ranked_documents_reissue_scan(self, engine, add_page):
        for page_id, words in ((1, 5), (2, 9), (3, 7)):
            await add_page(page_id, f"P{page_id}")
            await engine.store.upsert(page_id, words)

        first = [e.page_id async for e in engine.facade.ranked_documents(2)]
        assert first == [2, 3]

        await engine.store.upsert(1, 100)
        again = [e.page_id async for e in engine.facade.ranked_documents(2)]
        assert again == [1, 2]

    @pytest.mark.asyncio
    async def test_uncounted_and_pending(self, engine, add_page):
        await add_page(1, "A")
        await add_page(2, "B")
        await engine.store.upsert(1, 1)

        assert [ref.id for ref in await engine.facade.uncounted(10)] == [2]
        assert await engine.facade.pending_count() == 1


class TestRenderHelpers:
    def test_format_number(self):
        assert format_number(1234567) == "1,234,567"
        assert format_number(1234567, "R") == "1234567"
        assert format_number(0) == "0"

    @pytest.mark.asyncio
    async def test_render_page_words(self, engine, add_page):
        await add_page(1, "Long Page")
        await engine.store.upsert(1, 2500)

        assert await render_page_words(engine.facade, 1) == "2,500"
        assert await render_page_words(engine.facade, "Long_Page", "R") == "2500"
        assert await render_page_words(engine.facade, "Bad|Title") == "0"

    @pytest.mark.asyncio
    async def test_render_totals(self, engine, add_page):
        await add_page(1, "A")
        await add_page(2, "B")
        await engine.store.upsert(1, 1000)
        await engine.store.upsert(2, 500)

        assert await render_total_words(engine.facade) == "1,500"
        assert await render_total_pages(engine.facade, "R") == "2"

    @pytest.mark.asyncio
    async def test_render_totals_never_raise(self, engine):
        async def broken_totals():
            raise StoreUnavailableError("down")

        engine.facade.totals = broken_totals
        assert await render_total_words(engine.facade) == "0"
        assert await render_total_pages(engine.facade) == "0"
