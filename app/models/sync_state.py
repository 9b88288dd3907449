"""Persistent sync watermark per external source table."""

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class SyncState(SQLModel, table=True):
    """Last external update time fully incorporated into the replica."""

    __tablename__ = "sync_states"

    id: Optional[int] = Field(default=None, primary_key=True)
    source_table: str = Field(max_length=100, unique=True, index=True)
    last_utime: int = Field(default=0, ge=0)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
