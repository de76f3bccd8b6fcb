"""Document lifecycle on top of a namespaced vector index.

A document is never stored as a unit: it is N chunk records sharing a
``documentName`` in one namespace. Listing and deleting reconstruct the
document from record metadata, which has two known limitations:

* ``list`` works from a bounded sample of records. Namespaces larger than
  ``list_sample_limit`` records may have chunks, or whole documents,
  missing from the listing. A ``PartialConsistencyWarning`` is emitted when
  that happens.
* ``delete`` is not coordinated with ``ingest``. Deleting a name while an
  upload of the same name is in flight can remove some, all, or none of
  the new records, depending on what the index has made visible.

``delete`` pages through matches ``delete_query_limit`` at a time until no
record of the document is left, so it is not bounded by that limit.
"""

from __future__ import annotations

import logging
import time
import warnings
from datetime import datetime
from typing import Callable

from docqa.core.errors import NotFound, PartialConsistencyWarning, ValidationError
from docqa.core.logging import get_logger
from docqa.core.metrics import INGEST_DURATION
from docqa.ingest.chunker import chunk_document
from docqa.ingest.embeddings import EmbeddingGateway
from docqa.ingest.types import (
    DeleteResult,
    DocumentListing,
    DocumentSummary,
    EmbeddedChunk,
    IndexRecord,
    IngestResult,
    record_id,
)
from docqa.retrieval.vector_index import VectorIndex
from docqa.utils.time import to_iso, utc_now

logger = get_logger(__name__)

DEFAULT_CHUNK_MAX_LENGTH = 2000
DEFAULT_LIST_SAMPLE_LIMIT = 100
DEFAULT_DELETE_QUERY_LIMIT = 1000


class DocumentStore:
    """Coordinate chunking, embeddings, and index writes for whole documents."""

    def __init__(
        self,
        gateway: EmbeddingGateway,
        vector_index: VectorIndex,
        dim: int,
        chunk_max_length: int = DEFAULT_CHUNK_MAX_LENGTH,
        list_sample_limit: int = DEFAULT_LIST_SAMPLE_LIMIT,
        delete_query_limit: int = DEFAULT_DELETE_QUERY_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.gateway = gateway
        self.vector_index = vector_index
        self.dim = dim
        self.chunk_max_length = chunk_max_length
        self.list_sample_limit = list_sample_limit
        self.delete_query_limit = delete_query_limit
        self.clock = clock

    def ingest(self, document_name: str, raw_text: str, namespace: str) -> IngestResult:
        """Chunk, embed, and write a document in one bulk upsert.

        Every chunk is embedded before anything is written, so an embedding
        failure leaves the index untouched.
        """
        if not document_name or not document_name.strip():
            raise ValidationError("Document name is required")
        if not raw_text or not raw_text.strip():
            raise ValidationError("File is empty")

        start = time.perf_counter()
        chunks = chunk_document(raw_text, self.chunk_max_length)
        vectors = self.gateway.embed_many([chunk.text for chunk in chunks], mode="passage")
        embedded = [EmbeddedChunk(chunk=chunk, vector=vector) for chunk, vector in zip(chunks, vectors)]

        uploaded = self.clock()
        uploaded_ms = int(uploaded.timestamp() * 1000)
        uploaded_at = to_iso(uploaded)
        records = [
            IndexRecord(
                id=record_id(document_name, uploaded_ms, item.chunk.ordinal),
                vector=item.vector,
                metadata={
                    "documentName": document_name,
                    "chunk": item.chunk.text,
                    "chunkIndex": item.chunk.ordinal,
                    "uploadedAt": uploaded_at,
                },
            )
            for item in embedded
        ]
        self.vector_index.upsert(records, namespace=namespace)

        INGEST_DURATION.observe(time.perf_counter() - start)
        logger.info(
            "Ingested %s chunks",
            len(records),
            extra={"ctx_namespace": namespace, "ctx_document": document_name},
        )
        return IngestResult(document_name=document_name, chunk_count=len(records))

    def list(self, namespace: str) -> DocumentListing:
        """Summarize documents from a sample of the namespace's records."""
        matches = self.vector_index.query(
            self._probe_vector(), top_k=self.list_sample_limit, namespace=namespace
        )
        total = self.vector_index.stats(namespace).total_record_count

        summaries: dict[str, DocumentSummary] = {}
        for match in matches:
            name = (match.metadata or {}).get("documentName")
            if not name:
                continue
            summary = summaries.get(name)
            if summary is None:
                summaries[name] = DocumentSummary(
                    name=name,
                    uploaded_at=str(match.metadata.get("uploadedAt") or "Unknown"),
                    chunk_count=1,
                )
            else:
                summary.chunk_count += 1

        complete = total <= len(matches)
        # Logged on every call; warnings.warn may deduplicate.
        logger.log(
            logging.INFO if complete else logging.WARNING,
            "Listed %s documents from %s of %s records",
            len(summaries),
            len(matches),
            total,
            extra={"ctx_namespace": namespace, "ctx_complete": complete},
        )
        if not complete:
            warnings.warn(
                f"Listing sampled {len(matches)} of {total} records; chunk counts may be low "
                "and some documents may be missing",
                PartialConsistencyWarning,
                stacklevel=2,
            )
        return DocumentListing(
            documents=list(summaries.values()),
            total_records=total,
            sampled_records=len(matches),
            complete=complete,
        )

    def delete(self, document_name: str, namespace: str) -> DeleteResult:
        """Remove every record of ``document_name`` visible in the namespace."""
        if not document_name:
            raise ValidationError("Document name is required")
        deleted: set[str] = set()
        rounds = 0
        while True:
            matches = self.vector_index.query(
                self._probe_vector(),
                top_k=self.delete_query_limit,
                namespace=namespace,
                metadata_filter={"documentName": document_name},
            )
            # Records deleted in an earlier round may still be visible.
            ids = [match.id for match in matches if match.id not in deleted]
            if not ids:
                break
            self.vector_index.delete_by_ids(ids, namespace=namespace)
            deleted.update(ids)
            rounds += 1
            if len(matches) < self.delete_query_limit:
                break
        if not deleted:
            raise NotFound("Document not found")

        logger.info(
            "Deleted %s chunks in %s rounds",
            len(deleted),
            rounds,
            extra={"ctx_namespace": namespace, "ctx_document": document_name},
        )
        return DeleteResult(document_name=document_name, deleted_chunk_count=len(deleted))

    def _probe_vector(self) -> list[float]:
        return [0.0] * self.dim


__all__ = [
    "DocumentStore",
    "DEFAULT_CHUNK_MAX_LENGTH",
    "DEFAULT_LIST_SAMPLE_LIMIT",
    "DEFAULT_DELETE_QUERY_LIMIT",
]
