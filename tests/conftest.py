"""Shared fixtures: a fresh SQLite database per test and a controllable clock."""

import os

# Keep test runs from writing log files
os.environ.setdefault("LOG_TO_FILE", "false")

from datetime import datetime, timezone
from typing import Optional

import pytest
import pytest_asyncio

from wordcounter.config.settings import Settings
from wordcounter.db.db import init_db
from wordcounter.engine import build_engine
from wordcounter.models.page import Page


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides) -> Settings:
        values = dict(
            DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'wordcounter.db'}",
            LOG_TO_FILE=False,
            WORDCOUNTER_CACHE_SERVICE="local",
            WORDCOUNTER_REPLICATION_WAIT=0,
            # Background jobs stay off unless a test turns them on
            WORDCOUNTER_COUNT_WORDS_JOB_LIMIT=0,
            WORDCOUNTER_PURGE_ORPHANED_JOB_LIMIT=0,
        )
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def test_settings(make_settings) -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def engine(test_settings, clock):
    engine = build_engine(test_settings, clock=clock)
    await init_db(engine.db_engine)
    yield engine
    await engine.close()


@pytest.fixture
def add_page(engine):
    """Insert a host page row directly, as the CMS would."""

    async def _add(
        page_id: int,
        title: str,
        content: str = "",
        namespace: int = 0,
        content_model: str = "wikitext",
        is_redirect: bool = False,
        touched: Optional[datetime] = None,
    ) -> Page:
        page = Page(
            id=page_id,
            title=title,
            content=content,
            namespace=namespace,
            content_model=content_model,
            is_redirect=is_redirect,
            touched=touched or datetime.now(timezone.utc),
        )
        async with engine.session_maker() as session:
            session.add(page)
            await session.commit()
        return page

    return _add


@pytest.fixture
def update_page(engine):
    async def _update(page_id: int, **changes) -> None:
        async with engine.session_maker() as session:
            page = await session.get(Page, page_id)
            for key, value in changes.items():
                setattr(page, key, value)
            session.add(page)
            await session.commit()

    return _update


@pytest.fixture
def remove_page(engine):
    async def _remove(page_id: int) -> None:
        async with engine.session_maker() as session:
            page = await session.get(Page, page_id)
            if page is not None:
                await session.delete(page)
                await session.commit()

    return _remove
