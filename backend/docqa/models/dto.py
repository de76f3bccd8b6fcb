"""Pydantic DTOs exposed via API.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TextUploadRequest(ApiModel):
    name: str | None = None
    content: str | None = None


class UploadResponse(ApiModel):
    success: bool = True
    document_name: str
    chunks_count: int


class DocumentSummaryOut(ApiModel):
    name: str
    uploaded_at: str
    chunks: int


class DocumentListResponse(ApiModel):
    documents: list[DocumentSummaryOut]
    total_vectors: int
    complete: bool


class DeleteDocumentRequest(ApiModel):
    document_name: str | None = None


class DeleteDocumentResponse(ApiModel):
    success: bool = True
    deleted_chunks: int


class AskRequest(ApiModel):
    question: str | None = None


class SourceOut(ApiModel):
    document_name: str
    chunk: str
    relevance_score: int


class AskResponse(ApiModel):
    answer: str
    sources: list[SourceOut]


class ServiceHealth(ApiModel):
    backend: bool = True
    database: bool
    embeddings: bool
    llm: bool


class HealthResponse(ApiModel):
    status: Literal["healthy", "degraded"]
    services: ServiceHealth
    timestamp: str


class ErrorResponse(ApiModel):
    error: str
    kind: str


__all__ = [
    "TextUploadRequest",
    "UploadResponse",
    "DocumentSummaryOut",
    "DocumentListResponse",
    "DeleteDocumentRequest",
    "DeleteDocumentResponse",
    "AskRequest",
    "SourceOut",
    "AskResponse",
    "ServiceHealth",
    "HealthResponse",
    "ErrorResponse",
]
