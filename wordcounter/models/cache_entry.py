"""Shared cache rows for the database cache backend."""

from sqlalchemy import Column, Float, JSON
from sqlmodel import Field, SQLModel


class CacheEntry(SQLModel, table=True):
    """Key/value row with an absolute expiry (epoch seconds)."""

    __tablename__ = "wordcounter_cache"

    key: str = Field(primary_key=True, max_length=255)
    # Generic JSON so this model works on both Postgres and SQLite
    value: dict = Field(default_factory=dict, sa_column=Column(JSON))
    expires_at: float = Field(sa_column=Column(Float, nullable=False, index=True))
