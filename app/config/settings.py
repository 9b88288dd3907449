from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, computed_field

load_dotenv()


class Settings(BaseSettings):
    """Base settings for the application."""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "Article RAG Backend"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Article replication, vector indexing and multi-index retrieval API"

    # Local replica database
    DATABASE_URL: str = ""
    LOCAL_SQLITE_PATH: str = "sqlite+aiosqlite:///./local.db"

    # External (read-only) published content database
    SOURCE_DATABASE_URL: str = Field(
        default="",
        description="Connection URL of the external blog database; empty disables article sync",
    )

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """Resolve the replica database URL.

        Priority:
        1. Explicit DATABASE_URL (Postgres, SQLite, etc.)
        2. Local SQLite fallback for development: LOCAL_SQLITE_PATH
        """
        if self.DATABASE_URL and self.DATABASE_URL.strip():
            return self.DATABASE_URL.strip()
        if self.LOCAL_SQLITE_PATH and self.LOCAL_SQLITE_PATH.strip():
            return self.LOCAL_SQLITE_PATH.strip()
        return "sqlite+aiosqlite:///./local.db"

    # OpenAI embedding settings
    OPENAI_API_KEY: str = ""
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"

    # Pinecone / vector store settings
    PINECONE_API_KEY: str = ""
    PINECONE_INDEX_NAME: str = "article-rag"
    PINECONE_REGION: str = "us-east-1"

    # Article sync settings
    ARTICLE_SYNC_ENABLED: bool = True
    ARTICLE_SYNC_INTERVAL_SECONDS: float = 60.0
    ARTICLE_SYNC_CYCLE_TIMEOUT_SECONDS: float = Field(
        default=0.0,
        description="Upper bound for one sync cycle in seconds; 0 disables the timeout",
    )
    ARTICLE_SOURCE_TABLE: str = "published_articles"
    ARTICLE_STATUS_PUBLISHED: int = 2

    # Retrieval settings
    RAG_TOP_K: int = 3
    RAG_MAX_DOCUMENTS: int = 5
    RAG_QUERY_CONCURRENCY: int = 4
    RAG_QUERY_TIMEOUT_SECONDS: float = 10.0
    RAG_ARTICLE_INDEX_SCOPE: str = Field(
        default="owner",
        description="'owner' limits article indexes to the requester's own; 'shared' exposes all of them",
    )

    # User uploads
    UPLOADS_DIR: str = "uploads"


settings = Settings()
