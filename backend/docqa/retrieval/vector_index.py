"""Vector index abstraction."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

from docqa.ingest.types import IndexRecord


@dataclass(slots=True)
class QueryMatch:
    id: str
    score: float
    metadata: dict[str, Any] | None = field(default=None)


@dataclass(slots=True)
class IndexStats:
    total_record_count: int


class VectorIndex(Protocol):
    """Namespaced vector store consumed by the document store and retriever.

    ``metadata_filter`` is a mapping of metadata key to the exact value it
    must equal.
    """

    def upsert(self, records: Sequence[IndexRecord], namespace: str) -> None: ...

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        namespace: str,
        metadata_filter: Mapping[str, Any] | None = None,
    ) -> list[QueryMatch]: ...

    def delete_by_ids(self, ids: Sequence[str], namespace: str) -> None: ...

    def stats(self, namespace: str | None = None) -> IndexStats: ...

    def ping(self) -> bool: ...


class InMemoryVectorIndex:
    """In-process index using cosine similarity; one dict per namespace."""

    def __init__(self, dim: int) -> None:
        self.dim = dim
        self._namespaces: dict[str, dict[str, IndexRecord]] = {}
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        with self._lock:
            return sum(len(records) for records in self._namespaces.values())

    def upsert(self, records: Sequence[IndexRecord], namespace: str) -> None:
        if not records:
            return
        for record in records:
            if len(record.vector) != self.dim:
                raise ValueError("Vector dimension mismatch")
        with self._lock:
            partition = self._namespaces.setdefault(namespace, {})
            for record in records:
                partition[record.id] = IndexRecord(
                    id=record.id, vector=list(record.vector), metadata=dict(record.metadata)
                )

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        namespace: str,
        metadata_filter: Mapping[str, Any] | None = None,
    ) -> list[QueryMatch]:
        if len(vector) != self.dim:
            raise ValueError("Query vector dimension mismatch")
        with self._lock:
            candidates = list(self._namespaces.get(namespace, {}).values())
        if metadata_filter:
            candidates = [
                record
                for record in candidates
                if all(record.metadata.get(key) == value for key, value in metadata_filter.items())
            ]
        scored = [(record, _cosine(record.vector, vector)) for record in candidates]
        scored.sort(key=lambda item: item[1], reverse=True)
        return [
            QueryMatch(id=record.id, score=score, metadata=dict(record.metadata))
            for record, score in scored[: max(top_k, 0)]
        ]

    def delete_by_ids(self, ids: Sequence[str], namespace: str) -> None:
        with self._lock:
            partition = self._namespaces.get(namespace)
            if not partition:
                return
            for record_id in ids:
                partition.pop(record_id, None)

    def stats(self, namespace: str | None = None) -> IndexStats:
        if namespace is None:
            return IndexStats(total_record_count=self.size)
        with self._lock:
            return IndexStats(total_record_count=len(self._namespaces.get(namespace, {})))

    def ping(self) -> bool:
        return True


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm


__all__ = ["VectorIndex", "InMemoryVectorIndex", "QueryMatch", "IndexStats"]
