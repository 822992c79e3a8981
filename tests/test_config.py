"""Tests for settings resolution and fail-fast engine configuration."""

import pytest

from wordcounter.config.settings import Settings
from wordcounter.db.db import get_db_url
from wordcounter.engine import build_engine
from wordcounter.errors import ConfigurationError
from wordcounter.models.page import QualifyingPredicate
from wordcounter.services.cache import CacheBackend, DatabaseObjectCache, MemoryObjectCache, NullObjectCache


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.WORDCOUNTER_SUPPORTED_NAMESPACES == [0]
        assert settings.WORDCOUNTER_CACHE_SERVICE == "local"
        assert settings.WORDCOUNTER_COUNT_ON_PAGE_SAVE is True
        assert settings.WORDCOUNTER_CUSTOM_PATTERN is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("WORDCOUNTER_SUPPORTED_NAMESPACES", "[0, 4]")
        monkeypatch.setenv("WORDCOUNTER_PURGE_ORPHANED_JOB_LIMIT", "0")

        settings = Settings()
        assert settings.WORDCOUNTER_SUPPORTED_NAMESPACES == [0, 4]
        assert settings.WORDCOUNTER_PURGE_ORPHANED_JOB_LIMIT == 0
        assert QualifyingPredicate.from_settings(settings).namespaces == frozenset({0, 4})

    def test_database_url_falls_back_to_local_sqlite(self):
        settings = Settings(DATABASE_URL="  ", LOCAL_SQLITE_PATH="sqlite+aiosqlite:///./local.db")
        assert settings.effective_database_url == "sqlite+aiosqlite:///./local.db"


class TestDatabaseUrl:
    def test_sqlite_returned_as_is(self):
        url = "sqlite+aiosqlite:///./wordcounter.db"
        assert get_db_url(Settings(DATABASE_URL=url)) == url

    @pytest.mark.parametrize("scheme", ["postgres", "postgresql"])
    def test_postgres_uses_asyncpg_and_drops_sslmode(self, scheme):
        settings = Settings(DATABASE_URL=f"{scheme}://user:pw@db:5432/wiki?sslmode=require&application_name=wc")
        assert get_db_url(settings) == "postgresql+asyncpg://user:pw@db:5432/wiki?application_name=wc"


class TestBuildEngine:
    @pytest.mark.parametrize(
        "service, cache_type",
        [("local", MemoryObjectCache), ("database", DatabaseObjectCache), (" NONE ", NullObjectCache)],
    )
    @pytest.mark.asyncio
    async def test_cache_backend_selection(self, make_settings, service, cache_type):
        engine = build_engine(make_settings(WORDCOUNTER_CACHE_SERVICE=service))
        try:
            assert isinstance(engine.cache, cache_type)
        finally:
            await engine.close()

    def test_unknown_cache_service_fails_fast(self, make_settings):
        with pytest.raises(ConfigurationError, match="Valid options are: <local, database, none>"):
            build_engine(make_settings(WORDCOUNTER_CACHE_SERVICE="memcached"))

    def test_invalid_custom_pattern_fails_fast(self, make_settings):
        with pytest.raises(ConfigurationError, match="Invalid word pattern"):
            build_engine(make_settings(WORDCOUNTER_CUSTOM_PATTERN="[unclosed"))

    def test_backend_parse(self):
        assert CacheBackend.parse("Database") is CacheBackend.DATABASE
        with pytest.raises(ConfigurationError):
            CacheBackend.parse("")
