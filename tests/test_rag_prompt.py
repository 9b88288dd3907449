"""Tests for prompt assembly."""

from app.services.rag_prompt import build_rag_prompt
from app.services.vector_store import RetrievedDocument


class TestBuildRagPrompt:

    def test_no_documents_returns_query_verbatim(self):
        assert build_rag_prompt("What is X?", []) == "What is X?"

    def test_single_document(self):
        prompt = build_rag_prompt("What is X?", [RetrievedDocument(id="1", content="X is Y")])
        assert "[Document 1]: X is Y" in prompt
        assert "User question: What is X?" in prompt
        assert "only the reference documents" in prompt
        assert "could not be found" in prompt

    def test_documents_are_numbered_in_order(self):
        docs = [RetrievedDocument(id=str(i), content=f"fact {i}") for i in range(3)]
        prompt = build_rag_prompt("q", docs)
        positions = [prompt.index(f"[Document {n}]: fact {n - 1}") for n in (1, 2, 3)]
        assert positions == sorted(positions)
        assert prompt.index("[Document 3]") < prompt.index("User question: q")
