"""Shared fixtures: in-memory replica/source databases and a fake vector store."""

from contextlib import asynccontextmanager
from typing import Dict, Iterable, List

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from app.db.db import create_engine_for_url, create_replica_tables
from app.models import ArticleStatus, PublishedArticle


class FakeVectorStore:
    """In-process stand-in for PineconeVectorStore.

    Namespaces listed in ``fail_upsert`` / ``fail_query`` raise on write / read.
    Setting ``fail_embed`` makes every embedding call raise.
    """

    def __init__(self):
        self.namespaces: Dict[str, Dict[str, dict]] = {}
        self.fail_upsert = set()
        self.fail_query = set()
        self.fail_embed = False
        self.embed_calls = 0
        self.list_calls = 0
        self.has_calls = 0
        self.upsert_calls: List[str] = []

    def embed(self, texts):
        self.embed_calls += 1
        if self.fail_embed:
            raise ConnectionError("embedding API down")
        return [[float(len(text)), 1.0] for text in texts]

    def list_namespaces(self):
        self.list_calls += 1
        return list(self.namespaces.keys())

    def has_namespace(self, namespace):
        self.has_calls += 1
        return namespace in self.namespaces

    def upsert(self, namespace, vectors):
        self.upsert_calls.append(namespace)
        if namespace in self.fail_upsert:
            raise ConnectionError(f"upsert to {namespace} refused")
        bucket = self.namespaces.setdefault(namespace, {})
        for vector in vectors:
            bucket[vector["id"]] = vector

    def query(self, namespace, vector, top_k):
        if namespace in self.fail_query:
            raise ConnectionError(f"query on {namespace} refused")
        matches = []
        for stored in list(self.namespaces.get(namespace, {}).values())[:top_k]:
            matches.append({"id": stored["id"], "score": 0.9, "metadata": dict(stored["metadata"])})
        return matches

    def delete_namespace(self, namespace):
        self.namespaces.pop(namespace, None)

    def seed(self, namespace: str, contents: Iterable[str]) -> None:
        """Put plain documents into ``namespace`` in the given order."""
        bucket = self.namespaces.setdefault(namespace, {})
        for i, content in enumerate(contents):
            doc_id = f"{namespace}#{i}"
            bucket[doc_id] = {
                "id": doc_id,
                "values": [1.0, 1.0],
                "metadata": {"content": content, "source": "seed"},
            }


@pytest.fixture
def store():
    return FakeVectorStore()


@asynccontextmanager
async def make_databases():
    """Yield ``(replica_sessionmaker, source_sessionmaker)`` over two in-memory SQLite databases."""
    replica_engine = create_engine_for_url("sqlite+aiosqlite://")
    source_engine = create_engine_for_url("sqlite+aiosqlite://")

    await create_replica_tables(replica_engine)
    async with source_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all, tables=[PublishedArticle.__table__])

    try:
        yield (
            async_sessionmaker(replica_engine, class_=AsyncSession, expire_on_commit=False),
            async_sessionmaker(source_engine, class_=AsyncSession, expire_on_commit=False),
        )
    finally:
        await replica_engine.dispose()
        await source_engine.dispose()


async def add_source_articles(source_maker, *articles: PublishedArticle) -> None:
    async with source_maker() as session:
        for article in articles:
            await session.merge(article)
        await session.commit()


def published(article_id: int, utime: int, title: str = "", content: str = "", author_id: int = 1,
              status: int = ArticleStatus.PUBLISHED.value) -> PublishedArticle:
    return PublishedArticle(
        id=article_id,
        title=title or f"Article {article_id}",
        content=content or f"Body of article {article_id}",
        author_id=author_id,
        status=status,
        ctime=utime,
        utime=utime,
    )
