from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    """Base settings for the application."""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "WordCounter"
    APP_VERSION: str = "0.1.0"
    APP_DESCRIPTION: str = "Word count aggregation and reconciliation service"

    DATABASE_URL: str = ""
    LOCAL_SQLITE_PATH: str = "sqlite+aiosqlite:///./wordcounter.db"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """Resolve the database URL for the application.

        Priority:
        1. Explicit DATABASE_URL (Postgres, SQLite, etc.)
        2. Local SQLite fallback: LOCAL_SQLITE_PATH
        """
        if self.DATABASE_URL and self.DATABASE_URL.strip():
            return self.DATABASE_URL.strip()
        if self.LOCAL_SQLITE_PATH and self.LOCAL_SQLITE_PATH.strip():
            return self.LOCAL_SQLITE_PATH.strip()
        return "sqlite+aiosqlite:///./wordcounter.db"

    # Which pages qualify for counting
    WORDCOUNTER_SUPPORTED_NAMESPACES: List[int] = Field(
        default_factory=lambda: [0],
        description="Namespaces whose pages are counted (JSON list in env, e.g. [0,4])",
    )
    WORDCOUNTER_SUPPORTED_CONTENT_MODELS: List[str] = Field(
        default_factory=lambda: ["wikitext", "text"],
        description="Content models the tokenizer accepts",
    )

    # Tokenizer
    WORDCOUNTER_COUNT_NUMBERS: bool = False
    WORDCOUNTER_CUSTOM_PATTERN: Optional[str] = Field(
        default=None, description="Regex that replaces the built-in word pattern entirely"
    )

    # Cache
    WORDCOUNTER_CACHE_SERVICE: str = Field(
        default="local", description="Cache backend: local, database or none"
    )
    WORDCOUNTER_CACHE_TTL: int = 3600

    # Save hook
    WORDCOUNTER_COUNT_ON_PAGE_SAVE: bool = True

    # Background jobs (limit <= 0 disables the job)
    WORDCOUNTER_COUNT_WORDS_JOB_LIMIT: int = 50
    WORDCOUNTER_COUNT_WORDS_JOB_INTERVAL: int = 3600
    WORDCOUNTER_PURGE_ORPHANED_JOB_LIMIT: int = 1000
    WORDCOUNTER_PURGE_ORPHANED_JOB_INTERVAL: int = 3600

    # Maintenance runs
    WORDCOUNTER_COUNT_BATCH_SIZE: int = 100
    WORDCOUNTER_PURGE_BATCH_SIZE: int = 1000
    WORDCOUNTER_REPLICATION_WAIT: float = 0.5
    WORDCOUNTER_MAX_STORE_FAILURES: int = 3


settings = Settings()
