"""Failures surfaced to callers of the retrieval pipeline."""


class RAGQueryError(Exception):
    """Base class for retrieval failures that end the current call."""


class NoKnowledgeBaseError(RAGQueryError):
    """The requester has no vector index to query."""


class RetrieverUnavailableError(RAGQueryError):
    """Indexes were discovered but none could be bound to a retriever."""


class EmbeddingUnavailableError(RAGQueryError):
    """The query could not be embedded, so no index can be searched."""


class NothingRetrievedError(RAGQueryError):
    """Every reachable index returned no documents for the query."""


class IndexUnavailableError(Exception):
    """A vector index does not exist in the backend."""


class IndexOwnershipError(Exception):
    """A vector index name is already registered to a different owner."""
