"""Request and response schemas for retrieval endpoints."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RAGQueryRequest(BaseModel):
    """Request schema for POST /v1/rag/query.

    ``username`` and ``author_id`` are taken as given and decide which indexes
    are searched. This service does no authentication: deploy it behind a
    layer that authenticates the caller and sets both fields from the
    verified identity, otherwise any caller can read another user's indexes.
    """

    username: str = Field(..., min_length=1, description="Requester whose indexes are searched.")
    query: str = Field(..., min_length=1, description="Question to answer from the knowledge base.")
    author_id: Optional[int] = Field(
        default=None,
        description="Blog author id linked to the requester; enables their article indexes.",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "username": "alice",
                "query": "How does the cache eviction work?",
                "author_id": 42,
            }
        }
    }


class RetrievedDocumentResponse(BaseModel):
    id: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RAGQueryResponse(BaseModel):
    """Assembled prompt plus the documents it was built from."""

    prompt: str
    documents: List[RetrievedDocumentResponse] = Field(default_factory=list)


class UploadIndexResponse(BaseModel):
    username: str
    file_name: str
    index_name: str


class DeleteIndexResponse(BaseModel):
    index_name: str
    registered: bool
