"""Incremental article sync: external blog database -> local replica -> vector indexes."""

from __future__ import annotations

import asyncio
import hashlib
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.config.logger import app_logger, log_performance
from app.config.settings import settings
from app.models.index_registration import IndexKind
from app.models.published_article import PublishedArticle
from app.models.sync_state import SyncState
from app.models.synced_article import SyncedArticle
from app.services.index_registry import article_index_name, register_index
from app.services.rag_indexer import VectorIndexer


def _compute_hash(title: str, content: str) -> str:
    return hashlib.sha256(f"{title}\n\n{content}".encode("utf-8")).hexdigest()


def _article_document(title: str, content: str) -> str:
    return f"Title: {title}\n\n{content}"


# --------------------------------------------------------------------------- #
# Watermark
# --------------------------------------------------------------------------- #


async def get_watermark(session: AsyncSession, source_table: str) -> int:
    """Last processed update time for ``source_table``; 0 when never synced."""
    result = await session.execute(
        select(SyncState).where(SyncState.source_table == source_table)
    )
    state = result.scalars().first()
    return state.last_utime if state else 0


async def advance_watermark(session: AsyncSession, source_table: str, utime: int) -> int:
    """Persist ``utime`` as the new watermark unless it would move backwards.

    Returns the stored value.
    """
    result = await session.execute(
        select(SyncState).where(SyncState.source_table == source_table)
    )
    state = result.scalars().first()
    if state is None:
        state = SyncState(source_table=source_table, last_utime=0)

    if utime > state.last_utime:
        state.last_utime = utime
    state.updated_at = datetime.now(timezone.utc)

    session.add(state)
    await session.commit()
    return state.last_utime


# --------------------------------------------------------------------------- #
# Replica upsert
# --------------------------------------------------------------------------- #


async def fetch_changed_articles(
    source_session: AsyncSession,
    since: int,
    status: Optional[int] = None,
) -> List[PublishedArticle]:
    """Published articles updated after ``since``, oldest update first."""
    status = settings.ARTICLE_STATUS_PUBLISHED if status is None else status
    result = await source_session.execute(
        select(PublishedArticle)
        .where(PublishedArticle.status == status, PublishedArticle.utime > since)
        .order_by(PublishedArticle.utime.asc(), PublishedArticle.id.asc())
    )
    return list(result.scalars().all())


async def upsert_article(session: AsyncSession, article: PublishedArticle) -> str:
    """Create or overwrite the replica row for ``article`` and flag it for re-indexing.

    Returns ``"created"`` or ``"updated"``. The caller commits.
    """
    result = await session.execute(
        select(SyncedArticle).where(SyncedArticle.external_id == article.id)
    )
    local = result.scalars().first()
    now = datetime.now(timezone.utc)

    if local is None:
        local = SyncedArticle(
            external_id=article.id,
            author_id=article.author_id,
            external_ctime=article.ctime,
            created_at=now,
        )
        action = "created"
    else:
        action = "updated"

    local.title = article.title
    local.content = article.content
    local.status = article.status
    local.external_utime = article.utime
    local.content_hash = _compute_hash(article.title, article.content)
    local.is_indexed = False
    local.updated_at = now

    session.add(local)
    return action


async def sync_articles(
    session: AsyncSession,
    source_session: AsyncSession,
    store,
    source_table: Optional[str] = None,
) -> Dict[str, object]:
    """Run one sync cycle: delta pull, replica upsert, watermark advance, indexing pass.

    A failed external query propagates and leaves the watermark untouched. A
    failed upsert of one article is logged and skipped, and the watermark
    stays below its update time so it is fetched again next cycle.
    """
    source_table = source_table or settings.ARTICLE_SOURCE_TABLE
    start_time = time.time()

    watermark = await get_watermark(session, source_table)
    articles = await fetch_changed_articles(source_session, watermark)

    summary: Dict[str, object] = {
        "fetched": len(articles),
        "created": 0,
        "updated": 0,
        "failed": 0,
        "previous_watermark": watermark,
        "watermark": watermark,
        "details": [],
    }

    if not articles:
        app_logger.info("[ArticleSync] No new articles to sync")
    else:
        app_logger.info(f"[ArticleSync] Found {len(articles)} articles to sync from external database")

        persisted_utimes: List[int] = []
        first_failed_utime: Optional[int] = None
        for article in articles:
            external_id, title, utime = article.id, article.title, article.utime
            try:
                action = await upsert_article(session, article)
                await session.commit()
            except Exception as exc:
                await session.rollback()
                summary["failed"] += 1
                summary["details"].append({"external_id": external_id, "action": "failed"})
                app_logger.error(f"[ArticleSync] Failed to upsert local article {external_id}: {exc}")
                if first_failed_utime is None:
                    first_failed_utime = utime
            else:
                summary[action] += 1
                summary["details"].append({"external_id": external_id, "action": action})
                app_logger.info(f"[ArticleSync] {action.capitalize()} local article: external_id={external_id}, title={title}")
                persisted_utimes.append(utime)

        # Never move past a failed article; it and everything after it are pulled again next cycle
        max_utime = max(
            (u for u in persisted_utimes if first_failed_utime is None or u < first_failed_utime),
            default=0,
        )
        if first_failed_utime is not None:
            app_logger.warning(
                f"[ArticleSync] Watermark held below utime={first_failed_utime} after failed upserts"
            )
        if max_utime > 0:
            summary["watermark"] = await advance_watermark(session, source_table, max_utime)

    indexing = await index_pending_articles(session, store)
    summary["indexing"] = indexing
    summary["elapsed_seconds"] = round(time.time() - start_time, 2)

    log_performance("article_sync_cycle", summary["elapsed_seconds"], fetched=len(articles))
    app_logger.info(
        f"[ArticleSync] Cycle complete - created={summary['created']} updated={summary['updated']} "
        f"failed={summary['failed']} watermark={summary['watermark']} "
        f"indexed={indexing['indexed']} index_failed={indexing['failed']}"
    )
    return summary


# --------------------------------------------------------------------------- #
# Indexing dispatcher
# --------------------------------------------------------------------------- #


async def index_pending_articles(session: AsyncSession, store) -> Dict[str, int]:
    """Build one vector index per replica article still waiting for indexing.

    An article is marked indexed only if its content hash still matches the
    snapshot that was stored; failures leave it pending for the next pass.
    """
    summary = {"pending": 0, "indexed": 0, "failed": 0}

    try:
        result = await session.execute(
            select(SyncedArticle)
            .where(SyncedArticle.is_indexed == False)  # noqa: E712
            .order_by(SyncedArticle.id)
            .execution_options(populate_existing=True)
        )
        pending = [
            (a.id, a.external_id, a.author_id, a.title, a.content, a.content_hash)
            for a in result.scalars().all()
        ]
    except Exception as exc:
        app_logger.error(f"[ArticleSync] Failed to query pending articles: {exc}")
        return summary

    summary["pending"] = len(pending)
    if not pending:
        app_logger.info("[ArticleSync] No pending articles to index")
        return summary

    app_logger.info(f"[ArticleSync] Indexing {len(pending)} pending articles")

    for local_id, external_id, author_id, title, content, content_hash in pending:
        index_name = article_index_name(author_id, external_id)
        try:
            indexer = VectorIndexer(store, index_name)
            await asyncio.to_thread(
                indexer.index_content, index_name, _article_document(title, content)
            )
        except Exception as exc:
            summary["failed"] += 1
            app_logger.error(f"[ArticleSync] Failed to index article {local_id}: {exc}")
            continue

        try:
            await register_index(
                session, str(author_id), index_name, IndexKind.ARTICLE, source=f"article:{external_id}"
            )
            marked = await session.execute(
                update(SyncedArticle)
                .where(SyncedArticle.id == local_id, SyncedArticle.content_hash == content_hash)
                .values(is_indexed=True, updated_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        except Exception as exc:
            await session.rollback()
            summary["failed"] += 1
            app_logger.error(f"[ArticleSync] Failed to mark article {local_id} as indexed: {exc}")
            continue

        if marked.rowcount == 0:
            app_logger.info(f"[ArticleSync] Article {local_id} changed while indexing; left pending")
            continue

        summary["indexed"] += 1
        app_logger.info(
            f"[ArticleSync] Indexed article: id={local_id}, external_id={external_id}, title={title}"
        )

    return summary


async def list_local_articles(session: AsyncSession, author_id: Optional[int] = None) -> List[SyncedArticle]:
    """Replica articles, optionally limited to one author."""
    statement = select(SyncedArticle).order_by(SyncedArticle.id).execution_options(populate_existing=True)
    if author_id is not None:
        statement = statement.where(SyncedArticle.author_id == author_id)
    result = await session.execute(statement)
    return list(result.scalars().all())
