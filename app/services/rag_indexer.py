"""Vector indexing: one index per synced article and per uploaded file."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.logger import app_logger
from app.models.index_registration import IndexKind
from app.services.index_registry import (
    index_owner,
    register_index,
    unregister_index,
    upload_index_name,
)
from app.services.rag_errors import IndexOwnershipError
from app.services.vector_store import RetrievedDocument

STORE_BATCH_SIZE = 10


class VectorIndexer:
    """Embeds documents and stores them in a single named vector index.

    Vector ids are the document ids, so storing a document again under the
    same id replaces the previous vector.
    """

    def __init__(self, store, index_name: str):
        if not index_name:
            raise ValueError("index_name must not be empty")
        self.store = store
        self.index_name = index_name

    def store_documents(self, documents: List[RetrievedDocument]) -> List[str]:
        if not documents:
            return []

        embeddings = self.store.embed([doc.content for doc in documents])
        if len(embeddings) != len(documents):
            raise RuntimeError(
                f"Embedder returned {len(embeddings)} vectors for {len(documents)} documents"
            )

        vectors = []
        for doc, embedding in zip(documents, embeddings):
            vectors.append(
                {
                    "id": doc.id,
                    "values": embedding,
                    "metadata": {
                        "content": doc.content,
                        "source": str(doc.metadata.get("source", "")),
                    },
                }
            )

        for i in range(0, len(vectors), STORE_BATCH_SIZE):
            self.store.upsert(self.index_name, vectors[i : i + STORE_BATCH_SIZE])

        return [doc.id for doc in documents]

    def index_content(self, doc_id: str, content: str, source: str = "database") -> str:
        """Store raw text (e.g. a synced article) as one document."""
        doc = RetrievedDocument(id=doc_id, content=content, metadata={"source": source})
        return self.store_documents([doc])[0]

    def index_file(self, file_path: str | Path) -> str:
        """Read a text file and store its whole content as one document."""
        path = Path(file_path)
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            content = path.read_text(encoding="latin-1")

        doc = RetrievedDocument(id=path.name, content=content, metadata={"source": str(path)})
        return self.store_documents([doc])[0]


async def index_uploaded_file(
    session: AsyncSession,
    store,
    username: str,
    file_path: str | Path,
) -> str:
    """Index an uploaded file into its own vector index and register it for ``username``.

    Raises IndexOwnershipError, before anything is stored, when another user
    already owns the index derived from the file name.
    """
    path = Path(file_path)
    index_name = upload_index_name(path.name)

    owner = await index_owner(session, index_name)
    if owner is not None and owner != username:
        raise IndexOwnershipError(
            f"vector index {index_name} is already registered to another owner"
        )

    indexer = VectorIndexer(store, index_name)
    await asyncio.to_thread(indexer.index_file, path)

    await register_index(session, username, index_name, IndexKind.UPLOAD, source=str(path))
    await session.commit()

    app_logger.info(f"Indexed upload {path.name} for {username} into {index_name}")
    return index_name


async def delete_index(session: AsyncSession, store, index_name: str) -> bool:
    """Drop a vector index and its registration. Returns False if it was not registered."""
    await asyncio.to_thread(store.delete_namespace, index_name)
    removed = await unregister_index(session, index_name)
    await session.commit()

    app_logger.info(f"Deleted vector index {index_name} (registered={removed})")
    return removed
