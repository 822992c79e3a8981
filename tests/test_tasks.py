"""Tests for the count and purge reconciliation tasks."""

import pytest

from wordcounter.errors import NotQualifyingError, StoreUnavailableError
from wordcounter.models.page import DocumentRef
from wordcounter.models.reconciliation import CountMode, CountTaskOptions


class TestCountWordsTask:
    @pytest.mark.asyncio
    async def test_incremental_counts_only_uncounted(self, engine, add_page):
        await add_page(1, "Alpha", "one two three")
        await add_page(2, "Beta", "four five")
        await engine.store.upsert(1, 99)

        result = await engine.count_task().run(CountTaskOptions(limit=10))
        assert (result.processed, result.errors, result.fetched) == (1, 0, 1)
        assert (await engine.store.get(1)).word_count == 99
        assert (await engine.store.get(2)).word_count == 2

    @pytest.mark.asyncio
    async def test_force_all_makes_totals_consistent(self, engine, add_page):
        await add_page(1, "Alpha", "one two three")
        await add_page(2, "Beta", "[[Link|four five]] six")
        await add_page(3, "Gamma", "ignored", is_redirect=True)
        await engine.store.upsert(1, 1)

        # Warm the cache with the stale numbers
        assert (await engine.facade.totals()).total_words == 1

        result = await engine.count_task().run(CountTaskOptions(mode=CountMode.FORCE_ALL, limit=10))
        assert (result.processed, result.errors) == (2, 0)

        totals = await engine.facade.totals()
        assert (totals.total_words, totals.total_documents) == (6, 2)
        assert totals.pending_count == 0

    @pytest.mark.asyncio
    async def test_limit_bounds_the_batch(self, engine, add_page):
        for page_id in range(1, 6):
            await add_page(page_id, f"Page {page_id}", "word")

        result = await engine.count_task().run(CountTaskOptions(limit=2))
        assert result.processed == 2
        assert await engine.store.count_needing(engine.predicate) == 3

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, engine, add_page):
        await add_page(1, "Alpha", "one two three")
        messages = []

        task = engine.count_task(output_callback=messages.append)
        result = await task.run(CountTaskOptions(limit=10, dry_run=True))

        assert result.processed == 1
        assert await engine.store.get(1) is None
        assert "Dry-run mode is enabled." in messages
        assert any(msg.startswith("Would process Alpha") for msg in messages)

    @pytest.mark.asyncio
    async def test_unsupported_content_deletes_existing_entry(self, engine, add_page, update_page):
        await add_page(1, "Alpha", "one two")
        await engine.store.upsert(1, 2)
        # Host setting allows json pages, tokenizer cannot count them
        engine.predicate = type(engine.predicate)(
            namespaces=engine.predicate.namespaces,
            content_models=engine.predicate.content_models | {"json"},
        )
        assert (await engine.facade.totals()).total_words == 2
        await update_page(1, content_model="json", content='{"a": 1}')

        task = engine.count_task()
        result = await task.run(CountTaskOptions(pages=["Alpha"]))
        assert (result.processed, result.errors, result.deleted) == (0, 1, 1)
        assert await engine.store.get(1) is None
        assert (await engine.facade.totals()).total_words == 0

    @pytest.mark.asyncio
    async def test_stale_batch_member_is_skipped(self, engine, add_page, update_page):
        await add_page(1, "Alpha", "one two")
        task = engine.count_task()

        ref = (await engine.store.scan_needing_count(engine.predicate, 10))[0]
        await update_page(1, is_redirect=True)

        with pytest.raises(NotQualifyingError) as excinfo:
            await task.process_page(ref)
        assert excinfo.value.reason == "is a redirect"
        assert await engine.store.get(1) is None

    @pytest.mark.asyncio
    async def test_explicit_pages_by_title_and_id(self, engine, add_page):
        await add_page(1, "Main Page", "welcome to the wiki")
        await add_page(2, "Other", "just two")

        result = await engine.count_task().run(
            CountTaskOptions(pages=["Main_Page", 2, "Does not exist", "Bad|Title"])
        )
        assert result.processed == 2
        assert result.errors == 2
        assert (await engine.store.get(1)).word_count == 4

    @pytest.mark.asyncio
    async def test_repeated_store_failures_abort(self, engine, add_page):
        for page_id in range(1, 5):
            await add_page(page_id, f"Page {page_id}", "word")

        async def broken_upsert(page_id, word_count, updated_at=None):
            raise StoreUnavailableError("database is locked")

        engine.store.upsert = broken_upsert
        task = engine.count_task()
        task.max_store_failures = 2

        with pytest.raises(StoreUnavailableError):
            await task.run(CountTaskOptions(limit=10))

    @pytest.mark.asyncio
    async def test_single_store_failure_is_counted(self, engine, add_page):
        await add_page(1, "Alpha", "one")
        await add_page(2, "Beta", "two")
        original = engine.store.upsert
        calls = []

        async def flaky_upsert(page_id, word_count, updated_at=None):
            calls.append(page_id)
            if len(calls) == 1:
                raise StoreUnavailableError("timeout")
            await original(page_id, word_count, updated_at)

        engine.store.upsert = flaky_upsert
        result = await engine.count_task().run(CountTaskOptions(limit=10))
        assert (result.processed, result.errors, result.failed_ids) == (1, 1, [1])


class TestPurgeOrphanedTask:
    async def _seed(self, engine, add_page):
        await add_page(1, "Keep", "text")
        await add_page(2, "Redirected", is_redirect=True)
        for page_id in (1, 2, 5):
            await engine.store.upsert(page_id, 7)

    @pytest.mark.asyncio
    async def test_purge_removes_only_orphans(self, engine, add_page):
        await self._seed(engine, add_page)

        result = await engine.purge_task().run(limit=10)
        assert (result.deleted, result.missing, result.disqualified) == (2, 1, 1)
        assert await engine.store.get(1) is not None
        assert await engine.store.get(2) is None
        assert await engine.store.get(5) is None

    @pytest.mark.asyncio
    async def test_dry_run_reports_same_count(self, engine, add_page):
        await self._seed(engine, add_page)

        dry = await engine.purge_task().run(limit=10, dry_run=True)
        assert await engine.store.get(5) is not None

        real = await engine.purge_task().run(limit=10)
        assert dry.deleted == real.deleted == 2

    @pytest.mark.asyncio
    async def test_missing_pages_are_purged_first(self, engine, add_page):
        await self._seed(engine, add_page)

        result = await engine.purge_task().run(limit=1)
        assert (result.missing, result.disqualified) == (1, 0)
        assert await engine.store.get(2) is not None

    @pytest.mark.asyncio
    async def test_purge_invalidates_totals(self, engine, add_page):
        await self._seed(engine, add_page)
        await add_page(5, "Back again")
        assert (await engine.facade.totals()).total_words == 14

        await engine.store.delete(5)
        await engine.purge_task().run(limit=10)
        assert (await engine.facade.totals()).total_words == 7

    @pytest.mark.asyncio
    async def test_nothing_to_purge(self, engine):
        messages = []
        result = await engine.purge_task(output_callback=messages.append).run(limit=10)
        assert result.deleted == 0
        assert "No entries to delete." in messages


class TestDocumentRef:
    def test_missing_never_qualifies(self, engine):
        assert DocumentRef.missing(3).disqualification(engine.predicate) == "does not exist"
