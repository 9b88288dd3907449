"""Models module - imports all models for SQLModel registration."""

from app.models.published_article import ArticleStatus, PublishedArticle
from app.models.synced_article import SyncedArticle
from app.models.sync_state import SyncState
from app.models.index_registration import IndexKind, IndexRegistration

# Tables owned by this service; published_articles belongs to the external database
REPLICA_TABLES = [
    SyncedArticle.__table__,
    SyncState.__table__,
    IndexRegistration.__table__,
]

__all__ = [
    "ArticleStatus",
    "PublishedArticle",
    "SyncedArticle",
    "SyncState",
    "IndexKind",
    "IndexRegistration",
    "REPLICA_TABLES",
]
