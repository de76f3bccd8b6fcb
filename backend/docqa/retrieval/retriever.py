"""Question retrieval against a caller's namespace."""

from __future__ import annotations

from docqa.core.logging import get_logger
from docqa.ingest.embeddings import EmbeddingGateway
from docqa.ingest.types import RetrievedSource
from docqa.retrieval.vector_index import VectorIndex

logger = get_logger(__name__)


class Retriever:
    """Embed a question and return the nearest chunks, best match first."""

    def __init__(self, gateway: EmbeddingGateway, vector_index: VectorIndex, top_k: int = 5) -> None:
        self.gateway = gateway
        self.vector_index = vector_index
        self.top_k = top_k

    def retrieve(self, question: str, namespace: str, top_k: int | None = None) -> list[RetrievedSource]:
        vector = self.gateway.embed_one(question, "query")
        matches = self.vector_index.query(vector, top_k=top_k or self.top_k, namespace=namespace)
        sources = [
            RetrievedSource(
                document_name=str(match.metadata.get("documentName", "")),
                chunk_text=str(match.metadata.get("chunk", "")),
                score=match.score,
            )
            for match in matches
            if match.metadata
        ]
        logger.debug("Retrieved %s sources", len(sources), extra={"ctx_namespace": namespace})
        return sources


__all__ = ["Retriever"]
