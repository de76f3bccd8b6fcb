"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

EmbeddingMode = Literal["query", "passage"]


@dataclass(slots=True, frozen=True)
class Chunk:
    """Bounded slice of a document; ``ordinal`` is its position in the document."""

    text: str
    ordinal: int


@dataclass(slots=True, frozen=True)
class EmbeddedChunk:
    """Chunk paired with its passage-mode vector."""

    chunk: Chunk
    vector: list[float]


@dataclass(slots=True)
class IndexRecord:
    """Unit of storage in the vector index."""

    id: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class LoadedDocument:
    """Text extracted from an uploaded file."""

    name: str
    text: str
    mime: str
    size_bytes: int


@dataclass(slots=True)
class IngestResult:
    document_name: str
    chunk_count: int


@dataclass(slots=True)
class DocumentSummary:
    name: str
    uploaded_at: str
    chunk_count: int


@dataclass(slots=True)
class DocumentListing:
    """Sampled listing of a namespace.

    ``complete`` is False when the sample hit its limit, in which case some
    chunks or whole documents may be missing from ``documents``.
    """

    documents: list[DocumentSummary]
    total_records: int
    sampled_records: int
    complete: bool


@dataclass(slots=True)
class DeleteResult:
    document_name: str
    deleted_chunk_count: int


@dataclass(slots=True)
class RetrievedSource:
    document_name: str
    chunk_text: str
    score: float


def record_id(document_name: str, uploaded_ms: int, ordinal: int) -> str:
    return f"{document_name}-{uploaded_ms}-{ordinal}"


__all__ = [
    "EmbeddingMode",
    "Chunk",
    "EmbeddedChunk",
    "IndexRecord",
    "LoadedDocument",
    "IngestResult",
    "DocumentSummary",
    "DocumentListing",
    "DeleteResult",
    "RetrievedSource",
    "record_id",
]
