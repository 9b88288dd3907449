"""Knowledge base endpoints: uploads, index deletion, retrieval."""

from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.rag.schemas import (
    DeleteIndexResponse,
    RAGQueryRequest,
    RAGQueryResponse,
    RetrievedDocumentResponse,
    UploadIndexResponse,
)
from app.config.logger import app_logger
from app.config.settings import settings
from app.db.db import get_session
from app.services.rag_errors import (
    IndexOwnershipError,
    NoKnowledgeBaseError,
    NothingRetrievedError,
    RAGQueryError,
)
from app.services.rag_indexer import delete_index, index_uploaded_file
from app.services.rag_query import retrieve_and_build_prompt
from app.services.vector_store import get_vector_store
from app.utils.responses import SuccessResponse, success_response

router = APIRouter(prefix="/v1/rag", tags=["rag"])


def _vector_store():
    try:
        return get_vector_store()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


@router.post(
    "/uploads/{username}",
    response_model=SuccessResponse[UploadIndexResponse],
    summary="Upload a text file and index it into the user's knowledge base",
)
async def upload_file(
    username: str,
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_session),
) -> SuccessResponse[UploadIndexResponse]:
    file_name = Path(file.filename or "").name
    if not file_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File name is required")

    if Path(username).name != username:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid username")

    user_dir = Path(settings.UPLOADS_DIR) / username
    user_dir.mkdir(parents=True, exist_ok=True)
    target = user_dir / file_name
    target.write_bytes(await file.read())

    store = _vector_store()
    try:
        index_name = await index_uploaded_file(session, store, username, target)
    except IndexOwnershipError as exc:
        app_logger.warning(f"Upload {file_name} from {username} rejected: {exc}")
        target.unlink(missing_ok=True)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except Exception as exc:
        app_logger.error(f"Indexing upload {file_name} for {username} failed: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Indexing failed: {str(exc)}",
        )

    return success_response(
        data=UploadIndexResponse(username=username, file_name=file_name, index_name=index_name),
        message="File indexed successfully",
    )


@router.delete(
    "/indexes/{index_name}",
    response_model=SuccessResponse[DeleteIndexResponse],
    summary="Delete a vector index",
)
async def remove_index(
    index_name: str,
    session: AsyncSession = Depends(get_session),
) -> SuccessResponse[DeleteIndexResponse]:
    store = _vector_store()
    try:
        registered = await delete_index(session, store, index_name)
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))

    return success_response(
        data=DeleteIndexResponse(index_name=index_name, registered=registered),
        message="Index deleted",
    )


@router.post(
    "/query",
    response_model=SuccessResponse[RAGQueryResponse],
    summary="Retrieve context for a question and assemble the prompt",
)
async def query_knowledge_base(
    request: RAGQueryRequest,
    session: AsyncSession = Depends(get_session),
) -> SuccessResponse[RAGQueryResponse]:
    store = _vector_store()
    try:
        prompt, docs = await retrieve_and_build_prompt(
            session, store, request.username, request.query, author_id=request.author_id
        )
    except (NoKnowledgeBaseError, NothingRetrievedError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except RAGQueryError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    except Exception as exc:  # pragma: no cover - unexpected errors
        app_logger.error(f"RAG query failed for {request.username}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"RAG query failed: {str(exc)}",
        )

    return success_response(
        data=RAGQueryResponse(
            prompt=prompt,
            documents=[
                RetrievedDocumentResponse(id=doc.id, content=doc.content, metadata=doc.metadata)
                for doc in docs
            ],
        ),
        message=f"Retrieved {len(docs)} documents",
    )
