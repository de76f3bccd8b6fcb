"""Tests for retrieval utilities."""

from __future__ import annotations

import pytest

from docqa.core.errors import PermanentProviderError, TransientProviderError
from docqa.ingest.types import IndexRecord, RetrievedSource
from docqa.retrieval.answer import (
    NOT_FOUND_ANSWER,
    ExtractiveAnswerGenerator,
    GeminiAnswerGenerator,
    build_prompt,
)
from docqa.retrieval.pinecone import PineconeIndex
from docqa.retrieval.vector_index import InMemoryVectorIndex


def _record(record_id: str, vector: list[float], name: str = "doc") -> IndexRecord:
    return IndexRecord(id=record_id, vector=vector, metadata={"documentName": name, "chunk": record_id})


def test_vector_index_basic() -> None:
    index = InMemoryVectorIndex(dim=3)
    index.upsert([_record("a", [1.0, 0.0, 0.0]), _record("b", [0.0, 1.0, 0.0])], namespace="ns")
    results = index.query([1.0, 0.0, 0.0], top_k=1, namespace="ns")
    assert results
    assert results[0].id == "a"
    assert results[0].score == pytest.approx(1.0)


def test_vector_index_filters_and_isolates_namespaces() -> None:
    index = InMemoryVectorIndex(dim=2)
    index.upsert([_record("a-0", [1.0, 0.0], "a"), _record("b-0", [1.0, 0.1], "b")], namespace="one")
    index.upsert([_record("a-0", [1.0, 0.0], "a")], namespace="two")

    filtered = index.query([1.0, 0.0], top_k=10, namespace="one", metadata_filter={"documentName": "b"})
    assert [match.id for match in filtered] == ["b-0"]
    assert index.stats("one").total_record_count == 2
    assert index.stats().total_record_count == 3

    index.delete_by_ids(["a-0"], namespace="one")
    assert index.stats("one").total_record_count == 1
    assert index.stats("two").total_record_count == 1
    assert index.query([1.0, 0.0], top_k=5, namespace="missing") == []


def test_vector_index_rejects_wrong_dimension() -> None:
    index = InMemoryVectorIndex(dim=3)
    with pytest.raises(ValueError):
        index.upsert([_record("a", [1.0, 0.0])], namespace="ns")


def test_zero_vector_scores_zero() -> None:
    index = InMemoryVectorIndex(dim=2)
    index.upsert([_record("a", [1.0, 0.0])], namespace="ns")
    assert index.query([0.0, 0.0], top_k=1, namespace="ns")[0].score == 0.0


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: dict | None = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text
        self.ok = status_code < 400
        self.content = b"{}" if payload is not None else b""

    def json(self) -> dict:
        return self._payload


class RecordingSession:
    def __init__(self, responses: dict[str, FakeResponse]) -> None:
        self.responses = responses
        self.calls: list[tuple[str, str, dict]] = []

    def request(self, method: str, url: str, **kwargs) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        for suffix, response in self.responses.items():
            if url.endswith(suffix):
                return response
        return FakeResponse(404, text="no route")

    def post(self, url: str, **kwargs) -> FakeResponse:
        return self.request("POST", url, **kwargs)


def test_pinecone_query_sends_namespace_and_eq_filter() -> None:
    session = RecordingSession(
        {
            "/query": FakeResponse(
                payload={"matches": [{"id": "doc-1-0", "score": 0.9, "metadata": {"documentName": "doc"}}]}
            )
        }
    )
    index = PineconeIndex(api_key="key", index_name="quickstart", host="idx.pinecone.io", session=session)

    matches = index.query([0.1, 0.2], top_k=3, namespace="1.2.3.4", metadata_filter={"documentName": "doc"})

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "https://idx.pinecone.io/query")
    assert kwargs["json"]["namespace"] == "1.2.3.4"
    assert kwargs["json"]["topK"] == 3
    assert kwargs["json"]["filter"] == {"documentName": {"$eq": "doc"}}
    assert kwargs["headers"]["Api-Key"] == "key"
    assert matches[0].id == "doc-1-0"
    assert matches[0].score == pytest.approx(0.9)


def test_pinecone_resolves_host_and_reads_namespace_stats() -> None:
    session = RecordingSession(
        {
            "/indexes/quickstart": FakeResponse(payload={"host": "resolved.pinecone.io"}),
            "/describe_index_stats": FakeResponse(
                payload={"totalVectorCount": 7, "namespaces": {"ns": {"vectorCount": 4}}}
            ),
        }
    )
    index = PineconeIndex(api_key="key", index_name="quickstart", session=session)

    assert index.stats("ns").total_record_count == 4
    assert index.stats("other").total_record_count == 0
    assert index.stats().total_record_count == 7
    assert session.calls[1][1] == "https://resolved.pinecone.io/describe_index_stats"
    # Host lookup happens once.
    assert sum(1 for call in session.calls if call[1].endswith("/indexes/quickstart")) == 1


@pytest.mark.parametrize(("status", "error_type"), [(503, TransientProviderError), (403, PermanentProviderError)])
def test_pinecone_errors_are_classified(status: int, error_type: type) -> None:
    session = RecordingSession({"/vectors/upsert": FakeResponse(status, text="failed")})
    index = PineconeIndex(api_key="key", index_name="quickstart", host="https://idx", session=session)
    with pytest.raises(error_type):
        index.upsert([_record("a", [1.0])], namespace="ns")


def test_pinecone_ping_reports_failure_without_raising() -> None:
    index = PineconeIndex(api_key="key", index_name="q", host="idx", session=RecordingSession({}))
    assert index.ping() is False
    ok = PineconeIndex(
        api_key="key", index_name="q", host="idx", session=RecordingSession({"/indexes": FakeResponse(payload={})})
    )
    assert ok.ping() is True


SOURCES = [
    RetrievedSource(document_name="a.txt", chunk_text="Paris is the capital of France.", score=0.91),
    RetrievedSource(document_name="b.txt", chunk_text="Berlin is in Germany.", score=0.42),
]


def test_build_prompt_joins_context_and_hides_sources() -> None:
    prompt = build_prompt("What is the capital of France?", SOURCES)
    assert "Paris is the capital of France.\n\n---\n\nBerlin is in Germany." in prompt
    assert prompt.endswith("Question: What is the capital of France?")
    assert NOT_FOUND_ANSWER in prompt
    assert "a.txt" not in prompt


def test_extractive_answer_uses_best_chunk() -> None:
    generator = ExtractiveAnswerGenerator()
    assert generator.generate("capital?", SOURCES) == "Paris is the capital of France."
    assert generator.generate("capital?", []) == NOT_FOUND_ANSWER
    assert generator.health_check() is True


def test_gemini_generator_parses_candidates() -> None:
    session = RecordingSession(
        {
            ":generateContent": FakeResponse(
                payload={"candidates": [{"content": {"parts": [{"text": "Paris"}, {"text": "."}]}}]}
            )
        }
    )
    generator = GeminiAnswerGenerator(api_key="g", model="gemini-test", base_url="https://llm.test", session=session)

    assert generator.generate("capital?", SOURCES) == "Paris."
    _, url, kwargs = session.calls[0]
    assert url == "https://llm.test/models/gemini-test:generateContent"
    assert kwargs["headers"]["x-goog-api-key"] == "g"


def test_gemini_generator_errors() -> None:
    session = RecordingSession({":generateContent": FakeResponse(429, text="quota")})
    generator = GeminiAnswerGenerator(api_key="g", model="m", session=session)
    with pytest.raises(TransientProviderError):
        generator.generate("q", SOURCES)
    assert generator.health_check() is False
    with pytest.raises(PermanentProviderError):
        GeminiAnswerGenerator(api_key="", model="m").generate("q", SOURCES)


class BrokenJsonResponse(FakeResponse):
    def __init__(self) -> None:
        super().__init__(payload={})
        self.content = b"<html>"

    def json(self) -> dict:
        raise ValueError("Expecting value")


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(payload={"matches": [{"score": 0.5}]}),
        FakeResponse(payload={"matches": [{"id": "a", "score": "high"}]}),
        BrokenJsonResponse(),
    ],
)
def test_pinecone_malformed_responses_are_permanent(response: FakeResponse) -> None:
    session = RecordingSession({"/query": response})
    index = PineconeIndex(api_key="key", index_name="q", host="idx", session=session)
    with pytest.raises(PermanentProviderError, match="malformed response"):
        index.query([0.1], top_k=1, namespace="ns")


def test_pinecone_host_lookup_without_host_is_permanent() -> None:
    session = RecordingSession({"/indexes/q": FakeResponse(payload={"status": "Initializing"})})
    index = PineconeIndex(api_key="key", index_name="q", session=session)
    with pytest.raises(PermanentProviderError):
        index.stats("ns")


def test_gemini_malformed_response_is_permanent() -> None:
    session = RecordingSession({":generateContent": FakeResponse(payload={"candidates": ["not an object"]})})
    generator = GeminiAnswerGenerator(api_key="g", model="m", session=session)
    with pytest.raises(PermanentProviderError, match="malformed response"):
        generator.generate("q", SOURCES)
