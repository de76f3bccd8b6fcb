"""Test fixtures for DocQA."""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Callable

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from docqa.core.config import get_settings  # noqa: E402
from docqa.core.errors import PermanentProviderError, TransientProviderError  # noqa: E402
from docqa.ingest.embeddings import EmbeddingGateway, HashingEmbeddingProvider  # noqa: E402
from docqa.ingest.store import DocumentStore  # noqa: E402
from docqa.retrieval.vector_index import InMemoryVectorIndex  # noqa: E402

TEST_DIM = 64


def _reset_dependencies() -> None:
    from docqa.api import dependencies as deps

    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    deps._GATEWAY = None
    deps._VECTOR_INDEX = None
    deps._DOCUMENT_STORE = None
    deps._RETRIEVER = None
    deps._ANSWER_GENERATOR = None
    deps._GOVERNOR = None
    deps._LOADERS = None


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("DOCQA_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("DOCQA_EMBEDDING_BACKEND", "hashing")
    monkeypatch.setenv("DOCQA_EMBEDDING_DIM", str(TEST_DIM))
    monkeypatch.setenv("DOCQA_INDEX_BACKEND", "memory")
    monkeypatch.setenv("DOCQA_ANSWER_BACKEND", "extractive")
    _reset_dependencies()
    yield
    _reset_dependencies()


class ScriptedProvider:
    """Embedding provider that fails on demand.

    ``failures`` transient errors are raised before the first success; texts
    containing ``poison`` always raise a permanent error.
    """

    def __init__(self, failures: int = 0, status_code: int = 429, dim: int = TEST_DIM) -> None:
        self.failures = failures
        self.status_code = status_code
        self.calls = 0
        self._lock = threading.Lock()
        self._inner = HashingEmbeddingProvider(dim=dim)

    def embed(self, text: str, mode: str) -> list[float]:
        with self._lock:
            self.calls += 1
            attempt = self.calls
        if "poison" in text:
            raise PermanentProviderError("embeddings", "bad input", status_code=400)
        if attempt <= self.failures:
            raise TransientProviderError("embeddings", "busy", status_code=self.status_code)
        return self._inner.embed(text, mode)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_gateway(sleeps: list[float]) -> Callable[..., EmbeddingGateway]:
    def factory(provider=None, **kwargs) -> EmbeddingGateway:
        return EmbeddingGateway(
            provider or HashingEmbeddingProvider(dim=TEST_DIM),
            dim=kwargs.pop("dim", TEST_DIM),
            sleep=sleeps.append,
            **kwargs,
        )

    return factory


@pytest.fixture
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex(dim=TEST_DIM)


@pytest.fixture
def store(make_gateway, vector_index: InMemoryVectorIndex) -> DocumentStore:
    return DocumentStore(gateway=make_gateway(), vector_index=vector_index, dim=TEST_DIM)


@pytest.fixture(scope="session")
def sample_text() -> str:
    return "Title\n\nParagraph one.\n\nParagraph two is here."
