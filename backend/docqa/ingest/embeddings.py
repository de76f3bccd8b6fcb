"""Embedding utilities.

``EmbeddingGateway`` owns the retry policy and the bounded parallelism used
when embedding document chunks; providers only translate a single text into
a single vector and classify their failures.
"""

from __future__ import annotations

import hashlib
import math
import re
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Protocol, Sequence

import requests
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from docqa.core.errors import PermanentProviderError, TransientProviderError, provider_error_for_status
from docqa.core.logging import get_logger
from docqa.core.metrics import EMBEDDING_CALLS, EMBEDDING_RETRIES
from docqa.ingest.types import EmbeddingMode

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY = 1.0
DEFAULT_BATCH_SIZE = 5

_TOKEN_RE = re.compile(r"\w+")


class EmbeddingProvider(Protocol):
    def embed(self, text: str, mode: EmbeddingMode) -> list[float]: ...


class HttpEmbeddingProvider:
    """Client for an OpenAI-style ``/embeddings`` endpoint with asymmetric input types."""

    name = "embeddings"

    def __init__(
        self,
        url: str,
        model: str,
        api_key: str,
        dimensions: int = 1024,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.model = model
        self.api_key = api_key
        self.dimensions = dimensions
        self.timeout = timeout
        self.session = session or requests.Session()

    def embed(self, text: str, mode: EmbeddingMode) -> list[float]:
        if not self.api_key:
            raise PermanentProviderError(self.name, "API key is not set")
        try:
            resp = self.session.post(
                self.url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "input": [text],
                    "model": self.model,
                    "input_type": mode,
                    "encoding_format": "float",
                    "truncate": "NONE",
                    "dimensions": self.dimensions,
                },
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientProviderError(self.name, str(exc)) from exc
        except requests.RequestException as exc:
            raise PermanentProviderError(self.name, str(exc)) from exc
        if not resp.ok:
            raise provider_error_for_status(self.name, resp.status_code, resp.text)
        try:
            return [float(value) for value in resp.json()["data"][0]["embedding"]]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise PermanentProviderError(self.name, f"malformed response: {exc!r}") from exc


class HashingEmbeddingProvider:
    """Deterministic hashed bag-of-words vectors; no network, for local runs and tests."""

    name = "hashing"

    def __init__(self, dim: int = 1024) -> None:
        self.dim = dim

    def embed(self, text: str, mode: EmbeddingMode) -> list[float]:
        vector = [0.0] * self.dim
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            vector[int.from_bytes(digest, "big") % self.dim] += 1.0
        norm = math.sqrt(sum(value * value for value in vector))
        if norm:
            vector = [value / norm for value in vector]
        return vector


class EmbeddingGateway:
    """Embed single texts or batches with retries on transient provider failures."""

    def __init__(
        self,
        provider: EmbeddingProvider,
        dim: int | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        batch_size: int = DEFAULT_BATCH_SIZE,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.dim = dim
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.batch_size = batch_size
        self._sleep = sleep

    def embed_one(self, text: str, mode: EmbeddingMode = "query") -> list[float]:
        """Embed one text, retrying 429/5xx failures with exponential backoff.

        Delays double from ``base_delay`` (1s, 2s, 4s, ...). Permanent errors
        propagate on the first attempt; after ``max_attempts`` transient
        failures the last one is re-raised.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, min=self.base_delay),
            retry=retry_if_exception_type(TransientProviderError),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            vector = retrying(self.provider.embed, text, mode)
        except Exception:
            EMBEDDING_CALLS.labels(mode=mode, outcome="error").inc()
            raise
        if self.dim is not None and len(vector) != self.dim:
            EMBEDDING_CALLS.labels(mode=mode, outcome="error").inc()
            raise PermanentProviderError(
                "embeddings", f"expected {self.dim} dimensions, got {len(vector)}"
            )
        EMBEDDING_CALLS.labels(mode=mode, outcome="ok").inc()
        return vector

    def embed_batch(self, texts: Sequence[str], mode: EmbeddingMode = "passage") -> list[list[float]]:
        """Embed every text concurrently, one worker per item, in input order.

        All calls are joined before returning; if any item fails, the first
        failure (in input order) is raised and no vectors are returned.
        """
        if not texts:
            return []
        with ThreadPoolExecutor(max_workers=len(texts), thread_name_prefix="embed") as pool:
            futures = [pool.submit(self.embed_one, text, mode) for text in texts]
        return [future.result() for future in futures]

    def embed_many(
        self,
        texts: Sequence[str],
        mode: EmbeddingMode = "passage",
        batch_size: int | None = None,
    ) -> list[list[float]]:
        """Embed a long sequence in consecutive batches of ``batch_size``."""
        width = batch_size or self.batch_size
        vectors: list[list[float]] = []
        for start in range(0, len(texts), width):
            vectors.extend(self.embed_batch(texts[start : start + width], mode))
        return vectors

    def health_check(self) -> bool:
        """Single un-retried embedding call; never raises."""
        try:
            self.provider.embed("test", "query")
        except Exception as exc:  # noqa: BLE001 - health probes report, never raise
            logger.warning("Embedding health check failed: %s", exc)
            return False
        return True


def _log_retry(retry_state: RetryCallState) -> None:
    EMBEDDING_RETRIES.inc()
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "Embedding provider unavailable (attempt %d), retrying in %.1fs: %s",
        retry_state.attempt_number,
        delay,
        retry_state.outcome.exception() if retry_state.outcome else "unknown",
    )


__all__ = [
    "EmbeddingProvider",
    "HttpEmbeddingProvider",
    "HashingEmbeddingProvider",
    "EmbeddingGateway",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_BASE_DELAY",
    "DEFAULT_BATCH_SIZE",
]
