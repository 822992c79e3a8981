"""Wires the engine's components together once per process.

Every component receives its collaborators explicitly; nothing looks them up
globally. The API keeps the built engine on ``app.state.engine``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from wordcounter.config.logger import app_logger
from wordcounter.config.settings import Settings
from wordcounter.db.db import close_db, create_engine_from_settings, create_session_maker
from wordcounter.models.page import QualifyingPredicate
from wordcounter.services.aggregate_cache import AggregateCache
from wordcounter.services.cache import CacheBackend, ObjectCache, create_cache
from wordcounter.services.count_store import CountStore
from wordcounter.services.documents import DocumentSource
from wordcounter.services.events import (
    DocumentDeleted,
    DocumentSaved,
    EventBus,
    OnDocumentDeleted,
    OnDocumentSaved,
)
from wordcounter.services.query import QueryFacade
from wordcounter.services.scheduler import (
    AsyncJobQueue,
    CountWordsJob,
    JobScheduler,
    PurgeOrphanedJob,
    ScheduledJob,
)
from wordcounter.services.tasks import CountWordsTask, OutputCallback, PurgeOrphanedTask
from wordcounter.services.tokenizer import CountOptions, word_pattern


@dataclass
class Engine:
    settings: Settings
    db_engine: AsyncEngine
    session_maker: async_sessionmaker[AsyncSession]
    predicate: QualifyingPredicate
    count_options: CountOptions
    store: CountStore
    documents: DocumentSource
    cache: ObjectCache
    aggregates: AggregateCache
    queue: AsyncJobQueue
    scheduler: JobScheduler
    facade: QueryFacade
    events: EventBus

    def count_task(self, output_callback: Optional[OutputCallback] = None) -> CountWordsTask:
        return CountWordsTask(
            self.store,
            self.aggregates,
            self.predicate,
            self.documents,
            count_options=self.count_options,
            max_store_failures=self.settings.WORDCOUNTER_MAX_STORE_FAILURES,
            output_callback=output_callback,
        )

    def purge_task(self, output_callback: Optional[OutputCallback] = None) -> PurgeOrphanedTask:
        return PurgeOrphanedTask(self.store, self.aggregates, self.predicate, output_callback=output_callback)

    async def close(self) -> None:
        await self.queue.close()
        await close_db(self.db_engine)


def build_engine(
    settings: Settings,
    db_engine: Optional[AsyncEngine] = None,
    clock: Callable[[], float] = time.time,
) -> Engine:
    """Build all components from ``settings``.

    Raises:
        ConfigurationError: Unknown cache backend or invalid word pattern.
    """
    # Fail fast on deployment mistakes
    backend = CacheBackend.parse(settings.WORDCOUNTER_CACHE_SERVICE)
    count_options = CountOptions.from_settings(settings)
    word_pattern(count_options)

    db_engine = db_engine or create_engine_from_settings(settings)
    session_maker = create_session_maker(db_engine)
    dialect_name = db_engine.dialect.name
    predicate = QualifyingPredicate.from_settings(settings)

    store = CountStore(session_maker, dialect_name=dialect_name)
    documents = DocumentSource(session_maker)
    cache = create_cache(backend, session_maker, dialect_name=dialect_name, clock=clock)
    aggregates = AggregateCache(cache, ttl=settings.WORDCOUNTER_CACHE_TTL)
    queue = AsyncJobQueue(clock=clock)
    scheduler = JobScheduler(cache, queue, clock=clock)

    engine = Engine(
        settings=settings,
        db_engine=db_engine,
        session_maker=session_maker,
        predicate=predicate,
        count_options=count_options,
        store=store,
        documents=documents,
        cache=cache,
        aggregates=aggregates,
        queue=queue,
        scheduler=scheduler,
        facade=QueryFacade(store, documents, aggregates, predicate),
        events=EventBus(),
    )

    scheduler.register(
        ScheduledJob(
            name=CountWordsJob.name,
            factory=lambda: CountWordsJob(engine.count_task, settings.WORDCOUNTER_COUNT_WORDS_JOB_LIMIT),
            limit=settings.WORDCOUNTER_COUNT_WORDS_JOB_LIMIT,
            interval=settings.WORDCOUNTER_COUNT_WORDS_JOB_INTERVAL,
        )
    )
    scheduler.register(
        ScheduledJob(
            name=PurgeOrphanedJob.name,
            factory=lambda: PurgeOrphanedJob(engine.purge_task, settings.WORDCOUNTER_PURGE_ORPHANED_JOB_LIMIT),
            limit=settings.WORDCOUNTER_PURGE_ORPHANED_JOB_LIMIT,
            interval=settings.WORDCOUNTER_PURGE_ORPHANED_JOB_INTERVAL,
        )
    )

    engine.events.subscribe(
        DocumentSaved,
        OnDocumentSaved(
            store,
            documents,
            aggregates,
            scheduler,
            predicate,
            count_options,
            count_on_save=settings.WORDCOUNTER_COUNT_ON_PAGE_SAVE,
        ),
    )
    engine.events.subscribe(DocumentDeleted, OnDocumentDeleted(store, aggregates, scheduler))

    app_logger.info(f"WordCounter engine ready (cache: {backend.value}, database: {dialect_name})")
    return engine
