"""Background scheduling of article sync cycles."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncContextManager, Callable, Dict, Optional

from app.config.logger import app_logger
from app.config.settings import settings
from app.db.db import db_session
from app.db.source_db import is_source_initialized, source_session
from app.services.article_sync import index_pending_articles, sync_articles
from app.services.vector_store import get_vector_store

SessionFactory = Callable[[], AsyncContextManager[Any]]


class ArticleSyncService:
    """Runs one sync cycle at start, then one per interval, never two at once.

    A tick that arrives while a cycle is still running is skipped. A failed
    cycle is logged and the schedule continues.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        source_session_factory: SessionFactory,
        store_factory: Callable[[], Any],
        interval: Optional[float] = None,
        cycle_timeout: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._source_session_factory = source_session_factory
        self._store_factory = store_factory
        self.interval = interval if interval is not None else settings.ARTICLE_SYNC_INTERVAL_SECONDS
        timeout = settings.ARTICLE_SYNC_CYCLE_TIMEOUT_SECONDS if cycle_timeout is None else cycle_timeout
        self.cycle_timeout = timeout if timeout and timeout > 0 else None

        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self.cycles_completed = 0
        self.cycles_failed = 0
        self.cycles_skipped = 0
        self.last_summary: Optional[Dict[str, object]] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cycle_in_progress(self) -> bool:
        return self._lock.locked()

    async def _cycle(self) -> Dict[str, object]:
        store = self._store_factory()
        async with self._session_factory() as session, self._source_session_factory() as source:
            return await sync_articles(session, source, store)

    async def run_cycle(self) -> Optional[Dict[str, object]]:
        """Run one cycle now. Returns None if another cycle is in progress.

        Errors (including the cycle timeout) propagate to the caller.
        """
        if self._lock.locked():
            self.cycles_skipped += 1
            app_logger.warning("[ArticleSync] Previous cycle still running, skipping")
            return None

        async with self._lock:
            try:
                summary = await asyncio.wait_for(self._cycle(), timeout=self.cycle_timeout)
            except Exception:
                self.cycles_failed += 1
                raise
            self.cycles_completed += 1
            self.last_summary = summary
            return summary

    async def run_indexing(self) -> Dict[str, int]:
        """Run one indexing pass outside the regular cycle."""
        store = self._store_factory()
        async with self._session_factory() as session:
            return await index_pending_articles(session, store)

    async def _tick(self) -> None:
        try:
            await self.run_cycle()
        except asyncio.TimeoutError:
            app_logger.error(f"[ArticleSync] Sync cycle exceeded {self.cycle_timeout}s and was cancelled")
        except Exception as exc:
            app_logger.error(f"[ArticleSync] Sync failed: {exc}")

    async def _periodic(self) -> None:
        while True:
            await self._tick()
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        """Schedule the sync loop; the first cycle runs immediately."""
        if self.is_running:
            return self._task
        app_logger.info(f"[ArticleSync] Starting article sync service (interval={self.interval}s)")
        self._task = asyncio.create_task(self._periodic())
        return self._task

    async def stop(self) -> None:
        """Cancel the sync loop and wait for it to finish."""
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        app_logger.info("[ArticleSync] Article sync service stopped")


_service: Optional[ArticleSyncService] = None


def get_sync_service() -> ArticleSyncService:
    """Return the process-wide sync service, creating it (unstarted) on first use."""
    global _service

    if not is_source_initialized():
        raise RuntimeError("Source database not initialized. Set SOURCE_DATABASE_URL.")
    if _service is None:
        _service = ArticleSyncService(db_session, source_session, get_vector_store)
    return _service


def start_sync_service() -> Optional[ArticleSyncService]:
    """Start background sync when enabled and the external database is configured."""
    if not settings.ARTICLE_SYNC_ENABLED:
        app_logger.info("[ArticleSync] Disabled by ARTICLE_SYNC_ENABLED")
        return None
    if not is_source_initialized():
        app_logger.info("[ArticleSync] Blog database not configured, sync service disabled")
        return None

    service = get_sync_service()
    service.start()
    return service


async def stop_sync_service() -> None:
    global _service

    if _service is not None:
        await _service.stop()
        _service = None
