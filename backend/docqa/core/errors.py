"""Error taxonomy shared by the ingest and retrieval core."""

from __future__ import annotations


class DocQAError(Exception):
    """Base class for every failure the core reports to callers."""

    kind = "error"


class ValidationError(DocQAError):
    """Bad or missing input; fixable by the caller."""

    kind = "validation_error"


class NotFound(DocQAError):
    kind = "not_found"


class RateLimited(DocQAError):
    """Admission denied for the current window."""

    kind = "rate_limited"

    def __init__(self, reset_in_ms: int, policy: str | None = None) -> None:
        super().__init__("Too many requests. Please try again later.")
        self.reset_in_ms = reset_in_ms
        self.policy = policy


class ProviderError(DocQAError):
    """Failure reported by an external provider (embeddings, index, answers)."""

    kind = "provider_error"

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{provider} error: {message}")
        self.provider = provider
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Rate-limit or server-side failure; safe to retry."""

    kind = "transient_provider_error"


class PermanentProviderError(ProviderError):
    """Client-side failure (bad request, auth); never retried."""

    kind = "permanent_provider_error"


class PartialConsistencyWarning(UserWarning):
    """A result is known to be approximate (sampled listing, racing writes)."""


def is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def provider_error_for_status(provider: str, status_code: int, message: str) -> ProviderError:
    """Classify an HTTP status from a provider into the transient/permanent split."""
    if is_transient_status(status_code):
        return TransientProviderError(provider, message, status_code=status_code)
    return PermanentProviderError(provider, message, status_code=status_code)


__all__ = [
    "DocQAError",
    "ValidationError",
    "NotFound",
    "RateLimited",
    "ProviderError",
    "TransientProviderError",
    "PermanentProviderError",
    "PartialConsistencyWarning",
    "is_transient_status",
    "provider_error_for_status",
]
