"""Multi-index retrieval: query every index a requester can reach and merge the results."""

from __future__ import annotations

import asyncio
import time
from typing import List, Optional, Sequence, Set, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.logger import app_logger, log_performance
from app.config.settings import settings
from app.services.index_registry import discover_index_names
from app.services.rag_errors import (
    EmbeddingUnavailableError,
    IndexUnavailableError,
    NoKnowledgeBaseError,
    NothingRetrievedError,
    RetrieverUnavailableError,
)
from app.services.rag_prompt import build_rag_prompt
from app.services.vector_store import RetrievedDocument


class VectorRetriever:
    """Top-k similarity search bound to one vector index."""

    def __init__(
        self,
        store,
        index_name: str,
        top_k: Optional[int] = None,
        available: Optional[Set[str]] = None,
    ):
        exists = index_name in available if available is not None else store.has_namespace(index_name)
        if not exists:
            raise IndexUnavailableError(f"vector index {index_name} does not exist")
        self.store = store
        self.index_name = index_name
        self.top_k = top_k or settings.RAG_TOP_K

    def retrieve_by_vector(self, vector: List[float]) -> List[RetrievedDocument]:
        docs = []
        for match in self.store.query(self.index_name, vector, self.top_k):
            metadata = dict(match.get("metadata") or {})
            content = metadata.pop("content", "") or ""
            metadata["score"] = match.get("score")
            metadata["index"] = self.index_name
            docs.append(RetrievedDocument(id=str(match.get("id")), content=content, metadata=metadata))
        return docs

    def retrieve(self, query: str) -> List[RetrievedDocument]:
        vector = self.store.embed([query])[0]
        return self.retrieve_by_vector(vector)


def merge_documents(docs: Sequence[RetrievedDocument], limit: int) -> List[RetrievedDocument]:
    """Deduplicate by exact content (first occurrence wins), drop empty content, cap at ``limit``."""
    seen = set()
    unique: List[RetrievedDocument] = []
    for doc in docs:
        if not doc.content or doc.content in seen:
            continue
        seen.add(doc.content)
        unique.append(doc)
        if len(unique) >= limit:
            break
    return unique


class RAGQuery:
    """Fans one query out over several retrievers and merges the answers."""

    def __init__(
        self,
        store,
        retrievers: List[VectorRetriever],
        index_names: List[str],
        max_documents: Optional[int] = None,
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.retrievers = retrievers
        self.index_names = index_names
        self.max_documents = max_documents or settings.RAG_MAX_DOCUMENTS
        self.concurrency = max(1, concurrency or settings.RAG_QUERY_CONCURRENCY)
        timeout = settings.RAG_QUERY_TIMEOUT_SECONDS if timeout is None else timeout
        self.timeout = timeout if timeout and timeout > 0 else None

    async def retrieve_documents(self, query: str) -> List[RetrievedDocument]:
        """Query all retrievers with one embedding of ``query``.

        A failing or slow index is skipped. Results keep the discovery order
        of the indexes, so deduplication is deterministic.
        """
        start = time.time()
        try:
            vector = (await asyncio.to_thread(self.store.embed, [query]))[0]
        except Exception as exc:
            app_logger.error(f"Embedding the query failed: {type(exc).__name__}: {exc}")
            raise EmbeddingUnavailableError(f"failed to embed query: {exc}") from exc

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _query_one(retriever: VectorRetriever) -> List[RetrievedDocument]:
            async with semaphore:
                try:
                    return await asyncio.wait_for(
                        asyncio.to_thread(retriever.retrieve_by_vector, vector),
                        timeout=self.timeout,
                    )
                except Exception as exc:
                    app_logger.warning(
                        f"Retrieval from {retriever.index_name} failed: {type(exc).__name__}: {exc}"
                    )
                    return []

        results = await asyncio.gather(*(_query_one(r) for r in self.retrievers))
        all_docs = [doc for docs in results for doc in docs]

        if not all_docs:
            raise NothingRetrievedError("no documents retrieved from any index")

        merged = merge_documents(all_docs, self.max_documents)
        log_performance(
            "rag_retrieve",
            time.time() - start,
            indexes=len(self.retrievers),
            retrieved=len(all_docs),
            returned=len(merged),
        )
        return merged


async def build_rag_query(
    session: AsyncSession,
    store,
    username: str,
    author_id: Optional[int] = None,
    scope: Optional[str] = None,
) -> RAGQuery:
    """Build a retriever over every index ``username`` can reach."""
    index_names = await discover_index_names(session, store, username, author_id=author_id, scope=scope)
    if not index_names:
        raise NoKnowledgeBaseError(
            f"no knowledge base found for user {username} (no uploaded file or synced articles)"
        )

    try:
        available = set(await asyncio.to_thread(store.list_namespaces))
    except Exception as exc:
        app_logger.error(f"Listing vector indexes failed for {username}: {exc}")
        raise RetrieverUnavailableError(f"failed to create any retriever for user {username}") from exc

    retrievers: List[VectorRetriever] = []
    for index_name in index_names:
        try:
            retriever = VectorRetriever(store, index_name, available=available)
        except IndexUnavailableError as exc:
            app_logger.debug(f"Skipping index {index_name}: {exc}")
            continue
        retrievers.append(retriever)

    if not retrievers:
        raise RetrieverUnavailableError(f"failed to create any retriever for user {username}")

    app_logger.info(f"Built RAG query for {username} over {len(retrievers)}/{len(index_names)} indexes")
    return RAGQuery(store, retrievers, index_names)


async def retrieve_and_build_prompt(
    session: AsyncSession,
    store,
    username: str,
    query: str,
    author_id: Optional[int] = None,
) -> Tuple[str, List[RetrievedDocument]]:
    """Discover, retrieve and assemble the prompt for one question."""
    rag_query = await build_rag_query(session, store, username, author_id=author_id)
    docs = await rag_query.retrieve_documents(query)
    return build_rag_prompt(query, docs), docs
