"""Prompt assembly for retrieval-augmented answers."""

from __future__ import annotations

from typing import Sequence

from app.services.vector_store import RetrievedDocument

RAG_PROMPT_TEMPLATE = """Answer the user's question using only the reference documents below. If the documents do not contain the relevant information, say explicitly that the answer could not be found in them.

Reference documents:
{context}

User question: {query}

Please provide an accurate and complete answer:"""


def build_rag_prompt(query: str, docs: Sequence[RetrievedDocument]) -> str:
    """Render the retrieved documents and the question into one prompt.

    With no documents the query is returned unchanged.
    """
    if not docs:
        return query

    context = "".join(
        f"[Document {i}]: {doc.content}\n\n" for i, doc in enumerate(docs, start=1)
    )
    return RAG_PROMPT_TEMPLATE.format(context=context, query=query)
