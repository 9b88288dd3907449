"""Tests for database URL normalization and engine selection."""

from app.db.db import create_engine_for_url, normalize_async_url


class TestNormalizeAsyncUrl:

    def test_sqlite_unchanged(self):
        assert normalize_async_url("sqlite+aiosqlite:///./replica.db") == "sqlite+aiosqlite:///./replica.db"

    def test_postgres_uses_asyncpg_without_sslmode(self):
        url = normalize_async_url("postgres://user:pw@db.example.com:5432/app?sslmode=require")
        assert url == "postgresql+asyncpg://user:pw@db.example.com:5432/app"

    def test_mysql_uses_aiomysql(self):
        url = normalize_async_url("mysql://blog:pw@blog-db:3306/blog?charset=utf8mb4")
        assert url == "mysql+aiomysql://blog:pw@blog-db:3306/blog?charset=utf8mb4"

    def test_sync_mysql_driver_is_swapped(self):
        url = normalize_async_url("mysql+pymysql://blog:pw@blog-db/blog")
        assert url == "mysql+aiomysql://blog:pw@blog-db/blog"

    def test_async_mysql_url_kept(self):
        assert normalize_async_url("mysql+aiomysql://blog@blog-db/blog") == "mysql+aiomysql://blog@blog-db/blog"


class TestCreateEngine:

    def test_mysql_source_gets_async_engine(self):
        engine = create_engine_for_url("mysql://blog:pw@blog-db:3306/blog", pool_size=5)
        assert engine.dialect.name == "mysql"
        assert engine.dialect.driver == "aiomysql"
