"""Request and response schemas for article sync endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ArticleSyncDetail(BaseModel):
    """Per-article sync result."""

    external_id: int
    action: str = Field(description="created, updated, or failed")


class IndexingSummary(BaseModel):
    """Outcome of one indexing pass."""

    pending: int = Field(ge=0)
    indexed: int = Field(ge=0)
    failed: int = Field(ge=0)


class SyncSummary(BaseModel):
    """Aggregate sync cycle stats."""

    fetched: int = Field(ge=0)
    created: int = Field(ge=0)
    updated: int = Field(ge=0)
    failed: int = Field(ge=0)
    previous_watermark: int = Field(ge=0)
    watermark: int = Field(ge=0)
    elapsed_seconds: float = Field(ge=0)


class SyncResponse(BaseModel):
    """Response payload for /v1/articles/sync."""

    summary: SyncSummary
    indexing: IndexingSummary
    details: List[ArticleSyncDetail] = Field(default_factory=list)


class SyncedArticleResponse(BaseModel):
    """Replica article as exposed over the API."""

    id: int
    external_id: int
    author_id: int
    title: str
    status: int
    external_utime: int
    is_indexed: bool
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
