"""Registry of vector indexes (Pinecone namespaces) and who may query them."""

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class IndexKind:
    ARTICLE = "article"
    UPLOAD = "upload"


class IndexRegistration(SQLModel, table=True):
    """Maps a requester identity to a vector index it owns."""

    __tablename__ = "index_registrations"

    id: Optional[int] = Field(default=None, primary_key=True)
    # Username for uploads, author id (as text) for synced articles
    owner: str = Field(max_length=255, index=True)
    index_name: str = Field(max_length=512, unique=True, index=True)
    kind: str = Field(max_length=20, index=True)
    source: str = Field(default="", max_length=1024)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
