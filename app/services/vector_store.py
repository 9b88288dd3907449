"""Shared helpers for the article vector store (OpenAI embeddings + Pinecone).

Each logical vector index (one per synced article, one per uploaded file) is a
namespace inside a single Pinecone index.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from openai import OpenAI
from pinecone import Pinecone, ServerlessSpec

from app.config.logger import app_logger
from app.config.settings import settings

_openai_client: OpenAI | None = None
_pinecone_client: Pinecone | None = None
_pinecone_index = None
_vector_store: Optional["PineconeVectorStore"] = None


@dataclass
class RetrievedDocument:
    """A document stored in, or returned from, a vector index."""

    id: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


def get_openai_client() -> OpenAI:
    """Return a singleton OpenAI client."""
    global _openai_client
    if _openai_client is None:
        if not settings.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY must be configured")
        _openai_client = OpenAI(api_key=settings.OPENAI_API_KEY)
        app_logger.info("OpenAI client initialized")
    return _openai_client


def embed_texts(texts: Sequence[str]) -> List[List[float]]:
    """Create embeddings for a list of texts."""
    if not texts:
        return []
    client = get_openai_client()
    response = client.embeddings.create(
        model=settings.OPENAI_EMBEDDING_MODEL,
        input=list(texts),
    )
    return [item.embedding for item in response.data]


def get_pinecone_client() -> Pinecone:
    """Return a singleton Pinecone client."""
    global _pinecone_client
    if _pinecone_client is None:
        if not settings.PINECONE_API_KEY:
            raise ValueError("PINECONE_API_KEY must be configured")
        _pinecone_client = Pinecone(api_key=settings.PINECONE_API_KEY)
        app_logger.info("Pinecone client initialized")
    return _pinecone_client


def get_pinecone_index():
    """Return the Pinecone index holding all article/upload namespaces, creating it if necessary."""
    global _pinecone_index
    if _pinecone_index is not None:
        return _pinecone_index

    pc = get_pinecone_client()
    index_name = settings.PINECONE_INDEX_NAME

    existing = [idx["name"] for idx in pc.list_indexes()]
    if index_name not in existing:
        app_logger.info(f"Creating Pinecone index '{index_name}'")
        dimension = len(embed_texts(["vector dimension sample"])[0])
        pc.create_index(
            name=index_name,
            dimension=dimension,
            metric="cosine",
            spec=ServerlessSpec(
                cloud="aws",
                region=settings.PINECONE_REGION or "us-east-1",
            ),
        )

    _pinecone_index = pc.Index(index_name)
    app_logger.info(f"Using Pinecone index '{index_name}'")
    return _pinecone_index


class PineconeVectorStore:
    """Namespace-level operations over one Pinecone index.

    All calls block on the network; async callers run them via ``asyncio.to_thread``.
    """

    def __init__(self, index, embedder: Callable[[Sequence[str]], List[List[float]]] = embed_texts):
        self._index = index
        self._embedder = embedder

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        return self._embedder(texts)

    def list_namespaces(self) -> List[str]:
        """Return every namespace currently holding vectors."""
        stats = self._index.describe_index_stats()
        namespaces = stats.get("namespaces") or {}
        return list(namespaces.keys())

    def has_namespace(self, namespace: str) -> bool:
        return namespace in self.list_namespaces()

    def upsert(self, namespace: str, vectors: List[Dict[str, Any]]) -> None:
        if not vectors:
            return
        self._index.upsert(vectors=vectors, namespace=namespace)

    def query(self, namespace: str, vector: List[float], top_k: int) -> List[Dict[str, Any]]:
        """Top-k similarity query; returns matches as ``{"id", "score", "metadata"}`` dicts."""
        result = self._index.query(
            vector=vector,
            top_k=top_k,
            include_metadata=True,
            namespace=namespace,
        )
        matches = []
        for match in result.get("matches", []):
            matches.append(
                {
                    "id": match.get("id"),
                    "score": match.get("score"),
                    "metadata": dict(match.get("metadata") or {}),
                }
            )
        return matches

    def delete_namespace(self, namespace: str) -> None:
        self._index.delete(delete_all=True, namespace=namespace)


def init_vector_store() -> PineconeVectorStore:
    """Create the process-wide vector store; later calls return the same instance."""
    global _vector_store
    if _vector_store is None:
        _vector_store = PineconeVectorStore(get_pinecone_index())
    return _vector_store


def get_vector_store() -> PineconeVectorStore:
    """Return the process-wide vector store, initializing it on first use."""
    return init_vector_store()
