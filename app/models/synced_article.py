"""Local replica of published articles, with vector indexing bookkeeping."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel


class SyncedArticle(SQLModel, table=True):
    """One replica row per external article id."""

    __tablename__ = "synced_articles"

    id: Optional[int] = Field(default=None, primary_key=True)
    external_id: int = Field(unique=True, index=True)
    author_id: int = Field(index=True)
    title: str = Field(default="", sa_column=Column(Text))
    content: str = Field(default="", sa_column=Column(Text))
    status: int = Field(default=0)
    external_ctime: int = Field(default=0)
    external_utime: int = Field(default=0)
    # sha256 of the title/content snapshot currently held in the replica
    content_hash: str = Field(default="", max_length=64)
    is_indexed: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
