"""Document lifecycle events and their handlers.

The host delivers ``DocumentSaved`` / ``DocumentDeleted`` events; each handler
does one narrow job and is safe to run twice for the same event.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Awaitable, Callable, DefaultDict, List, Type, TypeVar, Union

from wordcounter.config.logger import app_logger
from wordcounter.errors import UnsupportedContentError
from wordcounter.models.page import ContentKind, QualifyingPredicate
from wordcounter.services.aggregate_cache import AggregateCache
from wordcounter.services.count_store import CountStore
from wordcounter.services.documents import DocumentSource
from wordcounter.services.scheduler import JobScheduler
from wordcounter.services.tokenizer import CountOptions, count_words


@dataclass(frozen=True)
class DocumentSaved:
    page_id: int
    text: str
    content_kind: str = ContentKind.WIKITEXT.value
    rendered: bool = False


@dataclass(frozen=True)
class DocumentDeleted:
    page_id: int


DocumentEvent = Union[DocumentSaved, DocumentDeleted]
E = TypeVar("E", DocumentSaved, DocumentDeleted)
Handler = Callable[[E], Awaitable[None]]


class EventBus:
    """Minimal async dispatcher keyed by event type."""

    def __init__(self):
        self._handlers: DefaultDict[type, List[Callable[..., Awaitable[None]]]] = defaultdict(list)

    def subscribe(self, event_type: Type[E], handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    async def publish(self, event: DocumentEvent) -> None:
        handlers = self._handlers.get(type(event), [])
        if not handlers:
            app_logger.debug(f"No handler for {type(event).__name__}")
        for handler in handlers:
            await handler(event)


class OnDocumentSaved:
    """Recount a page right after it is saved.

    Also gives the scheduler a chance to start background reconciliation.
    """

    def __init__(
        self,
        store: CountStore,
        documents: DocumentSource,
        aggregates: AggregateCache,
        scheduler: JobScheduler,
        predicate: QualifyingPredicate,
        count_options: CountOptions,
        count_on_save: bool = True,
    ):
        self.store = store
        self.documents = documents
        self.aggregates = aggregates
        self.scheduler = scheduler
        self.predicate = predicate
        self.count_options = count_options
        self.count_on_save = count_on_save

    async def __call__(self, event: DocumentSaved) -> None:
        await self.scheduler.maybe_schedule()

        if not self.count_on_save:
            return

        ref = await self.documents.get(event.page_id)
        reason = ref.disqualification(self.predicate)
        if reason is None:
            try:
                word_count = count_words(
                    event.text,
                    self.count_options,
                    content_kind=event.content_kind,
                    rendered=event.rendered,
                )
            except UnsupportedContentError as e:
                reason = str(e)
            else:
                await self.store.upsert(event.page_id, word_count)
                await self.aggregates.invalidate_all()
                return

        # The page must not carry a count (any more)
        app_logger.debug(f"Could not count words for page {event.page_id}: {reason}")
        if await self.store.delete(event.page_id):
            await self.aggregates.invalidate_all()


class OnDocumentDeleted:
    def __init__(self, store: CountStore, aggregates: AggregateCache, scheduler: JobScheduler):
        self.store = store
        self.aggregates = aggregates
        self.scheduler = scheduler

    async def __call__(self, event: DocumentDeleted) -> None:
        if event.page_id <= 0:
            return
        await self.store.delete(event.page_id)
        await self.aggregates.invalidate_all()
        await self.scheduler.maybe_schedule()
