"""Reconciliation tasks: count uncounted/stale pages and purge orphaned counts.

A task run processes one bounded batch. Drivers (maintenance CLI, background
jobs) call ``run`` repeatedly; nothing about a run is persisted.
"""

from __future__ import annotations

import time
from typing import Callable, Iterable, List, Optional

from wordcounter.config.logger import app_logger, log_performance
from wordcounter.errors import (
    InvalidIdentityError,
    NotQualifyingError,
    StoreUnavailableError,
    UnsupportedContentError,
)
from wordcounter.models.page import DocumentRef, QualifyingPredicate
from wordcounter.models.reconciliation import (
    CountMode,
    CountResult,
    CountTaskOptions,
    PageIdentity,
    PurgeResult,
)
from wordcounter.services.aggregate_cache import AggregateCache
from wordcounter.services.count_store import CountStore
from wordcounter.services.documents import DocumentSource
from wordcounter.services.tokenizer import CountOptions, count_words

OutputCallback = Callable[[str], None]

DEFAULT_MAX_STORE_FAILURES = 3


class Task:
    """Base class for reconciliation tasks.

    Progress messages go to the application log and, when set, to an output
    callback (the CLI's progress stream).
    """

    def __init__(
        self,
        store: CountStore,
        aggregates: AggregateCache,
        predicate: QualifyingPredicate,
        output_callback: Optional[OutputCallback] = None,
    ):
        self.store = store
        self.aggregates = aggregates
        self.predicate = predicate
        self._output_callback = output_callback
        self._dry_run = False

    def set_dry_run(self, dry_run: bool) -> None:
        self._dry_run = dry_run
        self.output(f"Dry-run mode is {'enabled' if dry_run else 'disabled'}.")

    def is_dry_run(self) -> bool:
        return self._dry_run

    def set_output_callback(self, callback: Optional[OutputCallback]) -> None:
        self._output_callback = callback

    def output(self, msg: str, level: str = "INFO") -> None:
        app_logger.bind(task=type(self).__name__).log(level, msg)
        if self._output_callback is not None:
            self._output_callback(msg)


class CountWordsTask(Task):
    """Counts pages and stores the results."""

    def __init__(
        self,
        store: CountStore,
        aggregates: AggregateCache,
        predicate: QualifyingPredicate,
        documents: DocumentSource,
        count_options: Optional[CountOptions] = None,
        max_store_failures: int = DEFAULT_MAX_STORE_FAILURES,
        output_callback: Optional[OutputCallback] = None,
    ):
        super().__init__(store, aggregates, predicate, output_callback)
        self.documents = documents
        self.count_options = count_options or CountOptions()
        self.max_store_failures = max(1, max_store_failures)

    async def run(self, options: CountTaskOptions) -> CountResult:
        """Run one batch.

        Explicit ``options.pages`` are processed individually and ignore mode,
        limit and offset. Otherwise up to ``options.limit`` pages are fetched
        for ``options.mode`` starting at ``options.offset``.
        """
        started = time.perf_counter()
        self.output("Starting word counting task.")
        self.set_dry_run(options.dry_run)

        result = CountResult()
        if options.pages:
            refs = await self._resolve_pages(options.pages, result)
        else:
            refs = await self._fetch_batch(options.mode, options.limit, options.offset)
            if not refs:
                self.output("No pages to process.")
        result.fetched = len(refs)

        await self._process(refs, result)

        if (result.processed or result.deleted) and not self.is_dry_run():
            await self.aggregates.invalidate_all()
            self.output("Cache cleared.")

        self.output("Word counting task finished.")
        log_performance(
            "task.count_words",
            time.perf_counter() - started,
            processed=result.processed,
            errors=result.errors,
        )
        return result

    async def _fetch_batch(self, mode: CountMode, limit: int, offset: int) -> List[DocumentRef]:
        if limit <= 0:
            return []
        if mode is CountMode.FORCE_ALL:
            return await self.store.scan_qualifying_pages(self.predicate, limit, offset)
        if mode is CountMode.OUTDATED:
            return await self.store.scan_outdated(self.predicate, limit, offset)
        return await self.store.scan_needing_count(self.predicate, limit, offset)

    async def _resolve_pages(self, pages: Iterable[PageIdentity], result: CountResult) -> List[DocumentRef]:
        refs: List[DocumentRef] = []
        for identity in pages:
            try:
                refs.append(await self.documents.resolve(identity))
            except InvalidIdentityError:
                self.output(f"Invalid page title: {identity}", level="WARNING")
                result.errors += 1
        return refs

    async def _process(self, refs: List[DocumentRef], result: CountResult) -> None:
        consecutive_failures = 0
        for ref in refs:
            try:
                await self.process_page(ref)
            except StoreUnavailableError as e:
                consecutive_failures += 1
                result.errors += 1
                result.retained += 1
                result.failed_ids.append(ref.id)
                self.output(f"Error: store unavailable while processing {self._label(ref)}: {e}", level="ERROR")
                if consecutive_failures >= self.max_store_failures:
                    self.output("Aborting batch after repeated store failures.", level="ERROR")
                    raise
                continue
            except NotQualifyingError as e:
                self.output(f"Skipping: {self._label(ref)} ({e.reason})", level="WARNING")
                result.errors += 1
                result.retained += int(e.transient)
                result.failed_ids.append(ref.id)
            except UnsupportedContentError as e:
                self.output(f"Error: Could not count words for {self._label(ref)} ({e})", level="WARNING")
                result.errors += 1
                result.deleted += e.removed
                # Without a stored count the page is still waiting to be counted
                result.retained += int(not e.removed)
                result.failed_ids.append(ref.id)
            else:
                result.processed += 1
            consecutive_failures = 0

    @staticmethod
    def _label(ref: DocumentRef) -> str:
        return ref.title or f"#{ref.id}"

    async def process_page(self, ref: DocumentRef) -> int:
        """Count one page and store the result; returns the word count.

        Raises:
            NotQualifyingError: The page no longer qualifies or has no content.
            UnsupportedContentError: The content cannot be tokenized; any
                stored count for the page is removed.
        """
        # Batch membership may be stale; check the page as it is now
        current = await self.documents.get(ref.id) if ref.exists else ref
        reason = current.disqualification(self.predicate)
        if reason is not None:
            raise NotQualifyingError(ref.id, reason)

        content = await self.documents.get_content(current.id)
        if content is None:
            raise NotQualifyingError(ref.id, "could not load content", transient=True)

        try:
            word_count = count_words(content.text, self.count_options, content_kind=content.content_kind)
        except UnsupportedContentError as e:
            if not self.is_dry_run():
                e.removed = await self.store.delete(current.id)
            raise

        if not self.is_dry_run():
            await self.store.upsert(current.id, word_count)

        self.output(f"{'Would process' if self.is_dry_run() else 'Processed'} {self._label(ref)} ({word_count} words)")
        return word_count


class PurgeOrphanedTask(Task):
    """Deletes counts whose page is gone or no longer qualifies."""

    async def run(
        self,
        limit: int,
        dry_run: bool = False,
        missing_offset: int = 0,
        disqualified_offset: int = 0,
    ) -> PurgeResult:
        """Purge up to ``limit`` orphans: missing pages first, then disqualified ones.

        Offsets only matter for dry runs, where nothing is deleted and the
        same candidates would otherwise be reported again.
        """
        started = time.perf_counter()
        self.output("Starting orphaned wordcounter entry cleanup.")
        self.set_dry_run(dry_run)

        result = PurgeResult()
        if limit > 0:
            missing = await self.store.scan_missing(limit, missing_offset)
            if missing and not self.is_dry_run():
                await self.store.delete_many(missing)
            result.missing = len(missing)

            if result.missing < limit:
                disqualified = await self.store.scan_disqualified(
                    self.predicate, limit - result.missing, disqualified_offset
                )
                if disqualified and not self.is_dry_run():
                    await self.store.delete_many(disqualified)
                result.disqualified = len(disqualified)

        result.deleted = result.missing + result.disqualified

        if result.deleted == 0:
            self.output("No entries to delete.")
        else:
            self.output(f"{'Would delete' if self.is_dry_run() else 'Deleted'} {result.deleted} orphaned entries.")

        if result.deleted and not self.is_dry_run():
            await self.aggregates.invalidate_all()
            self.output("Cache cleared.")

        self.output("Cleanup orphaned wordcounter entry finished.")
        log_performance("task.purge_orphaned", time.perf_counter() - started, deleted=result.deleted)
        return result
