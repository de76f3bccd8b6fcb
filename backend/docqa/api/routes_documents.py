"""Document upload, listing, and deletion routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from docqa.api.dependencies import get_document_store, get_loader_registry, rate_limited
from docqa.core.errors import ValidationError
from docqa.core.logging import get_logger
from docqa.ingest.loaders import LoaderRegistry
from docqa.ingest.store import DocumentStore
from docqa.models.dto import (
    DeleteDocumentRequest,
    DeleteDocumentResponse,
    DocumentListResponse,
    DocumentSummaryOut,
    TextUploadRequest,
    UploadResponse,
)

logger = get_logger(__name__)

router = APIRouter()


@router.post("", response_model=UploadResponse, summary="Upload a document file")
def upload_document(
    file: UploadFile | None = File(default=None),
    namespace: str = Depends(rate_limited("upload")),
    store: DocumentStore = Depends(get_document_store),
    loaders: LoaderRegistry = Depends(get_loader_registry),
) -> UploadResponse:
    if file is None or not file.filename:
        raise ValidationError("No file provided")
    loaded = loaders.load(file.filename, file.file.read())
    logger.info(
        "Extracted %s characters from upload",
        len(loaded.text),
        extra={"ctx_document": loaded.name, "ctx_mime": loaded.mime, "ctx_size_bytes": loaded.size_bytes},
    )
    result = store.ingest(loaded.name, loaded.text, namespace)
    return UploadResponse(document_name=result.document_name, chunks_count=result.chunk_count)


@router.post("/text", response_model=UploadResponse, summary="Upload raw text as a document")
def upload_text(
    request: TextUploadRequest,
    namespace: str = Depends(rate_limited("upload")),
    store: DocumentStore = Depends(get_document_store),
) -> UploadResponse:
    if not request.name or not request.name.strip():
        raise ValidationError("Document name is required")
    result = store.ingest(request.name.strip(), request.content or "", namespace)
    return UploadResponse(document_name=result.document_name, chunks_count=result.chunk_count)


@router.get("", response_model=DocumentListResponse, summary="List documents (sampled)")
def list_documents(
    namespace: str = Depends(rate_limited("default")),
    store: DocumentStore = Depends(get_document_store),
) -> DocumentListResponse:
    listing = store.list(namespace)
    return DocumentListResponse(
        documents=[
            DocumentSummaryOut(name=doc.name, uploaded_at=doc.uploaded_at, chunks=doc.chunk_count)
            for doc in listing.documents
        ],
        total_vectors=listing.total_records,
        complete=listing.complete,
    )


@router.delete("", response_model=DeleteDocumentResponse, summary="Delete every chunk of a document")
def delete_document(
    request: DeleteDocumentRequest,
    namespace: str = Depends(rate_limited("default")),
    store: DocumentStore = Depends(get_document_store),
) -> DeleteDocumentResponse:
    if not request.document_name:
        raise ValidationError("Document name is required")
    result = store.delete(request.document_name, namespace)
    return DeleteDocumentResponse(deleted_chunks=result.deleted_chunk_count)


__all__ = ["router"]
