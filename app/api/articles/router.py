"""Article replication endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.articles.schemas import (
    ArticleSyncDetail,
    IndexingSummary,
    SyncedArticleResponse,
    SyncResponse,
    SyncSummary,
)
from app.config.logger import app_logger
from app.db.db import get_session
from app.services.article_sync import list_local_articles
from app.services.sync_scheduler import get_sync_service
from app.utils.responses import SuccessResponse, success_response

router = APIRouter(prefix="/v1/articles", tags=["articles"])


@router.post(
    "/sync",
    response_model=SuccessResponse[SyncResponse],
    summary="Run one article sync cycle now",
)
async def sync_now() -> SuccessResponse[SyncResponse]:
    """Pull changed articles, update the replica, and index pending articles."""
    try:
        result = await get_sync_service().run_cycle()
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    except Exception as exc:
        app_logger.error(f"Article sync failed: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Article sync failed: {str(exc)}",
        )

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A sync cycle is already in progress",
        )

    summary = SyncSummary(
        fetched=result.get("fetched", 0),
        created=result.get("created", 0),
        updated=result.get("updated", 0),
        failed=result.get("failed", 0),
        previous_watermark=result.get("previous_watermark", 0),
        watermark=result.get("watermark", 0),
        elapsed_seconds=result.get("elapsed_seconds", 0.0),
    )
    details = [ArticleSyncDetail(**detail) for detail in result.get("details", [])]

    return success_response(
        data=SyncResponse(
            summary=summary,
            indexing=IndexingSummary(**result.get("indexing", {"pending": 0, "indexed": 0, "failed": 0})),
            details=details,
        ),
        message="Articles synced successfully",
    )


@router.post(
    "/index",
    response_model=SuccessResponse[IndexingSummary],
    summary="Index replica articles that are pending",
)
async def index_now() -> SuccessResponse[IndexingSummary]:
    try:
        result = await get_sync_service().run_indexing()
    except (RuntimeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))

    return success_response(data=IndexingSummary(**result), message="Indexing pass complete")


@router.get(
    "",
    response_model=SuccessResponse[List[SyncedArticleResponse]],
    summary="List replica articles",
)
async def list_articles(
    author_id: Optional[int] = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> SuccessResponse[List[SyncedArticleResponse]]:
    articles = await list_local_articles(session, author_id=author_id)
    return success_response(
        data=[SyncedArticleResponse.model_validate(article) for article in articles],
        message=f"{len(articles)} articles",
    )
