"""Tests for embedding utilities."""

from __future__ import annotations

import threading

import pytest
import requests

from docqa.core.errors import PermanentProviderError, TransientProviderError
from docqa.ingest.embeddings import HashingEmbeddingProvider, HttpEmbeddingProvider

from conftest import TEST_DIM, ScriptedProvider


def test_hashing_provider_is_normalized_and_deterministic() -> None:
    provider = HashingEmbeddingProvider(dim=TEST_DIM)
    first = provider.embed("hello world", "passage")
    assert len(first) == TEST_DIM
    assert abs(sum(value * value for value in first) - 1.0) < 1e-6
    assert provider.embed("hello world", "query") == first


@pytest.mark.parametrize("failures", [0, 1, 2, 3, 4])
def test_transient_failures_retry_with_doubling_backoff(make_gateway, sleeps, failures: int) -> None:
    provider = ScriptedProvider(failures=failures)
    gateway = make_gateway(provider)

    vector = gateway.embed_one("hello", "query")

    assert len(vector) == TEST_DIM
    assert provider.calls == failures + 1
    assert sleeps == [1, 2, 4, 8][:failures]


def test_server_errors_are_retried(make_gateway, sleeps) -> None:
    provider = ScriptedProvider(failures=2, status_code=503)
    make_gateway(provider).embed_one("hello")
    assert sleeps == [1, 2]


def test_retries_exhausted_surfaces_transient_error(make_gateway, sleeps) -> None:
    provider = ScriptedProvider(failures=100)
    gateway = make_gateway(provider)

    with pytest.raises(TransientProviderError) as excinfo:
        gateway.embed_one("hello")

    assert provider.calls == 5
    assert sleeps == [1, 2, 4, 8]
    assert excinfo.value.status_code == 429


def test_permanent_error_is_not_retried(make_gateway, sleeps) -> None:
    provider = ScriptedProvider()
    gateway = make_gateway(provider)

    with pytest.raises(PermanentProviderError):
        gateway.embed_one("poison pill")

    assert provider.calls == 1
    assert sleeps == []


def test_dimension_mismatch_is_permanent(make_gateway) -> None:
    gateway = make_gateway(HashingEmbeddingProvider(dim=8))
    with pytest.raises(PermanentProviderError):
        gateway.embed_one("hello")


def test_batch_runs_items_concurrently_and_preserves_order(make_gateway) -> None:
    barrier = threading.Barrier(5)

    class BarrierProvider:
        def embed(self, text: str, mode: str) -> list[float]:
            # Every item must be in flight at once for the barrier to release.
            barrier.wait(timeout=5)
            return [float(len(text))]

    gateway = make_gateway(BarrierProvider(), dim=1)
    texts = ["a", "bbb", "cc", "dddd", "eeeee"]
    assert gateway.embed_batch(texts, "passage") == [[1.0], [3.0], [2.0], [4.0], [5.0]]


def test_batch_fails_when_any_item_fails(make_gateway) -> None:
    gateway = make_gateway(ScriptedProvider())
    with pytest.raises(PermanentProviderError):
        gateway.embed_batch(["fine", "poison", "also fine"], "passage")


def test_embed_many_splits_into_batches(make_gateway) -> None:
    seen_batches: list[int] = []
    gateway = make_gateway(batch_size=2)
    original = gateway.embed_batch

    def recording_batch(texts, mode):
        seen_batches.append(len(texts))
        return original(texts, mode)

    gateway.embed_batch = recording_batch  # type: ignore[method-assign]
    vectors = gateway.embed_many(["a", "b", "c", "d", "e"], "passage")
    assert len(vectors) == 5
    assert seen_batches == [2, 2, 1]


def test_health_check_reports_without_raising(make_gateway) -> None:
    assert make_gateway().health_check() is True
    assert make_gateway(ScriptedProvider(failures=100)).health_check() is False


class FakeResponse:
    def __init__(self, status_code: int, payload: dict | None = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text
        self.ok = status_code < 400

    def json(self) -> dict:
        return self._payload


class FakeSession:
    def __init__(self, response: FakeResponse | Exception) -> None:
        self.response = response
        self.calls: list[dict] = []

    def post(self, url: str, **kwargs) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _http_provider(session: FakeSession) -> HttpEmbeddingProvider:
    return HttpEmbeddingProvider(
        url="https://embeddings.test/v1/embeddings",
        model="test-model",
        api_key="secret",
        dimensions=3,
        session=session,  # type: ignore[arg-type]
    )


def test_http_provider_sends_mode_and_parses_vector() -> None:
    session = FakeSession(FakeResponse(200, {"data": [{"embedding": [0.1, 0.2, 0.3]}]}))
    vector = _http_provider(session).embed("question?", "query")

    assert vector == [0.1, 0.2, 0.3]
    body = session.calls[0]["json"]
    assert body["input"] == ["question?"]
    assert body["input_type"] == "query"
    assert body["dimensions"] == 3
    assert session.calls[0]["headers"]["Authorization"] == "Bearer secret"


@pytest.mark.parametrize(
    ("status", "error_type"),
    [
        (429, TransientProviderError),
        (500, TransientProviderError),
        (502, TransientProviderError),
        (400, PermanentProviderError),
        (401, PermanentProviderError),
        (404, PermanentProviderError),
    ],
)
def test_http_provider_classifies_status(status: int, error_type: type) -> None:
    session = FakeSession(FakeResponse(status, text="nope"))
    with pytest.raises(error_type) as excinfo:
        _http_provider(session).embed("text", "passage")
    assert excinfo.value.status_code == status


def test_http_provider_connection_errors_are_transient() -> None:
    session = FakeSession(requests.ConnectionError("refused"))
    with pytest.raises(TransientProviderError):
        _http_provider(session).embed("text", "passage")


def test_http_provider_without_key_is_permanent() -> None:
    provider = HttpEmbeddingProvider(url="https://x", model="m", api_key="")
    with pytest.raises(PermanentProviderError):
        provider.embed("text", "query")


@pytest.mark.parametrize(
    "payload",
    [{"error": "quota exceeded"}, {"data": []}, {"data": [{"embedding": ["x"]}]}],
)
def test_http_provider_malformed_body_is_permanent(make_gateway, sleeps, payload: dict) -> None:
    gateway = make_gateway(_http_provider(FakeSession(FakeResponse(200, payload))), dim=3)
    with pytest.raises(PermanentProviderError, match="malformed response"):
        gateway.embed_one("text")
    assert sleeps == []


def test_http_provider_other_request_errors_are_permanent() -> None:
    session = FakeSession(requests.exceptions.InvalidURL("bad url"))
    with pytest.raises(PermanentProviderError):
        _http_provider(session).embed("text", "passage")
