"""Tests for the pending-article indexing pass."""

import asyncio
from unittest.mock import patch

from sqlalchemy import update
from sqlmodel import select

from app.models import IndexKind, IndexRegistration, SyncedArticle
from app.services import article_sync
from app.services.article_sync import index_pending_articles, list_local_articles
from app.services.index_registry import article_index_name
from conftest import make_databases


def _article(external_id, author_id=1, title=None, content=None, is_indexed=False):
    return SyncedArticle(
        external_id=external_id,
        author_id=author_id,
        title=title or f"Title {external_id}",
        content=content or f"Content {external_id}",
        status=2,
        external_utime=external_id * 10,
        content_hash=f"hash-{external_id}",
        is_indexed=is_indexed,
    )


async def _seed(replica, *articles):
    async with replica() as session:
        for article in articles:
            session.add(article)
        await session.commit()


async def _flags(replica):
    async with replica() as session:
        return {a.external_id: a.is_indexed for a in await list_local_articles(session)}


class TestIndexPendingArticles:

    def test_all_pending_articles_become_indexed(self, store):
        async def scenario():
            async with make_databases() as (replica, _):
                await _seed(replica, _article(1), _article(2, author_id=5), _article(3, is_indexed=True))
                async with replica() as session:
                    summary = await index_pending_articles(session, store)
                return summary, await _flags(replica)

        summary, flags = asyncio.run(scenario())
        assert summary == {"pending": 2, "indexed": 2, "failed": 0}
        assert flags == {1: True, 2: True, 3: True}
        # already-indexed article 3 is not re-stored
        assert set(store.upsert_calls) == {article_index_name(1, 1), article_index_name(5, 2)}

    def test_one_document_per_article_index(self, store):
        async def scenario():
            async with make_databases() as (replica, _):
                await _seed(replica, _article(9, author_id=4, title="Cache", content="LRU eviction"))
                async with replica() as session:
                    await index_pending_articles(session, store)

        asyncio.run(scenario())
        index_name = article_index_name(4, 9)
        assert index_name == "rag_docs:article_4_9:idx"
        stored = store.namespaces[index_name]
        assert list(stored) == [index_name]
        assert stored[index_name]["metadata"]["content"] == "Title: Cache\n\nLRU eviction"
        assert stored[index_name]["metadata"]["source"] == "database"

    def test_backend_failure_leaves_exactly_that_subset_pending(self, store):
        store.fail_upsert.add(article_index_name(1, 2))

        async def scenario():
            async with make_databases() as (replica, _):
                await _seed(replica, _article(1), _article(2), _article(3))
                async with replica() as session:
                    summary = await index_pending_articles(session, store)
                return summary, await _flags(replica)

        summary, flags = asyncio.run(scenario())
        assert summary == {"pending": 3, "indexed": 2, "failed": 1}
        assert flags == {1: True, 2: False, 3: True}

    def test_failed_article_is_retried_on_next_pass(self, store):
        failing = article_index_name(1, 2)
        store.fail_upsert.add(failing)

        async def scenario():
            async with make_databases() as (replica, _):
                await _seed(replica, _article(2))
                async with replica() as session:
                    first = await index_pending_articles(session, store)
                store.fail_upsert.discard(failing)
                async with replica() as session:
                    second = await index_pending_articles(session, store)
                return first, second, await _flags(replica)

        first, second, flags = asyncio.run(scenario())
        assert first["failed"] == 1
        assert second == {"pending": 1, "indexed": 1, "failed": 0}
        assert flags == {2: True}

    def test_indexing_registers_index_for_author(self, store):
        async def scenario():
            async with make_databases() as (replica, _):
                await _seed(replica, _article(11, author_id=42))
                async with replica() as session:
                    await index_pending_articles(session, store)
                async with replica() as session:
                    rows = (await session.execute(select(IndexRegistration))).scalars().all()
                    return [(r.owner, r.index_name, r.kind, r.source) for r in rows]

        rows = asyncio.run(scenario())
        assert rows == [("42", article_index_name(42, 11), IndexKind.ARTICLE, "article:11")]

    def test_nothing_pending(self, store):
        async def scenario():
            async with make_databases() as (replica, _):
                async with replica() as session:
                    return await index_pending_articles(session, store)

        assert asyncio.run(scenario()) == {"pending": 0, "indexed": 0, "failed": 0}
        assert store.upsert_calls == []

    def test_article_changed_during_indexing_stays_pending(self, store):
        original_register = article_sync.register_index

        async def register_then_change(session, owner, index_name, kind, source=""):
            registration = await original_register(session, owner, index_name, kind, source=source)
            # a concurrent sync rewrote the article after its snapshot was stored
            await session.execute(
                update(SyncedArticle)
                .where(SyncedArticle.external_id == 5)
                .values(content="rewritten", content_hash="hash-new")
            )
            return registration

        async def scenario():
            async with make_databases() as (replica, _):
                await _seed(replica, _article(5))
                with patch.object(article_sync, "register_index", register_then_change):
                    async with replica() as session:
                        summary = await index_pending_articles(session, store)
                return summary, await _flags(replica)

        summary, flags = asyncio.run(scenario())
        assert summary["indexed"] == 0
        assert flags == {5: False}
