"""Answer generation from retrieved sources."""

from __future__ import annotations

from typing import Protocol, Sequence

import requests

from docqa.core.errors import PermanentProviderError, TransientProviderError, provider_error_for_status
from docqa.core.logging import get_logger
from docqa.ingest.types import RetrievedSource

logger = get_logger(__name__)

NOT_FOUND_ANSWER = "I couldn't find that information in your documents."
CONTEXT_SEPARATOR = "\n\n---\n\n"

_PROMPT_TEMPLATE = """Answer the question based on the context below. Be concise and direct.

IMPORTANT: Do NOT mention sources, citations, document names, or references like "Source:", "[Source 1]", "according to the document", etc. Just answer naturally.

If the answer isn't in the context, say "{fallback}"

Context:
{context}

Question: {question}"""


class AnswerGenerator(Protocol):
    def generate(self, question: str, sources: Sequence[RetrievedSource]) -> str: ...

    def health_check(self) -> bool: ...


def build_prompt(question: str, sources: Sequence[RetrievedSource]) -> str:
    context = CONTEXT_SEPARATOR.join(source.chunk_text for source in sources)
    return _PROMPT_TEMPLATE.format(fallback=NOT_FOUND_ANSWER, context=context, question=question)


class GeminiAnswerGenerator:
    """Calls the Gemini ``generateContent`` REST endpoint."""

    name = "llm"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def generate(self, question: str, sources: Sequence[RetrievedSource]) -> str:
        text = self._generate_content(build_prompt(question, sources))
        return text or "No response generated"

    def health_check(self) -> bool:
        try:
            self._generate_content('Say "ok"')
        except Exception as exc:  # noqa: BLE001 - health probes report, never raise
            logger.warning("Answer generator health check failed: %s", exc)
            return False
        return True

    def _generate_content(self, prompt: str) -> str:
        if not self.api_key:
            raise PermanentProviderError(self.name, "API key is not set")
        try:
            resp = self.session.post(
                f"{self.base_url}/models/{self.model}:generateContent",
                headers={"x-goog-api-key": self.api_key},
                json={"contents": [{"role": "user", "parts": [{"text": prompt}]}]},
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientProviderError(self.name, str(exc)) from exc
        except requests.RequestException as exc:
            raise PermanentProviderError(self.name, str(exc)) from exc
        if not resp.ok:
            raise provider_error_for_status(self.name, resp.status_code, resp.text)
        try:
            candidates = resp.json().get("candidates") or []
            if not candidates:
                return ""
            parts = (candidates[0].get("content") or {}).get("parts") or []
            return "".join(part.get("text", "") for part in parts)
        except (ValueError, AttributeError, TypeError) as exc:
            raise PermanentProviderError(self.name, f"malformed response: {exc!r}") from exc


class ExtractiveAnswerGenerator:
    """Offline generator: answers with the best-matching chunk verbatim."""

    def generate(self, question: str, sources: Sequence[RetrievedSource]) -> str:
        if not sources:
            return NOT_FOUND_ANSWER
        return sources[0].chunk_text

    def health_check(self) -> bool:
        return True


__all__ = [
    "AnswerGenerator",
    "GeminiAnswerGenerator",
    "ExtractiveAnswerGenerator",
    "build_prompt",
    "NOT_FOUND_ANSWER",
]
