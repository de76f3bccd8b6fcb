"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache
from typing import Callable

from fastapi import Request, Response

from docqa.api.identity import client_identity
from docqa.core.config import Settings, get_settings
from docqa.core.errors import RateLimited
from docqa.ingest.embeddings import EmbeddingGateway, HashingEmbeddingProvider, HttpEmbeddingProvider
from docqa.ingest.loaders import LoaderRegistry
from docqa.ingest.store import DocumentStore
from docqa.ratelimit.governor import RateGovernor, RatePolicies, RatePolicy
from docqa.retrieval.answer import AnswerGenerator, ExtractiveAnswerGenerator, GeminiAnswerGenerator
from docqa.retrieval.pinecone import PineconeIndex
from docqa.retrieval.retriever import Retriever
from docqa.retrieval.vector_index import InMemoryVectorIndex, VectorIndex

_GATEWAY: EmbeddingGateway | None = None
_VECTOR_INDEX: VectorIndex | None = None
_DOCUMENT_STORE: DocumentStore | None = None
_RETRIEVER: Retriever | None = None
_ANSWER_GENERATOR: AnswerGenerator | None = None
_GOVERNOR: RateGovernor | None = None
_LOADERS: LoaderRegistry | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_embedding_gateway() -> EmbeddingGateway:
    global _GATEWAY
    if _GATEWAY is None:
        settings = get_app_settings()
        if settings.embedding_backend == "http":
            provider = HttpEmbeddingProvider(
                url=settings.embedding_url,
                model=settings.embedding_model,
                api_key=settings.embedding_api_key,
                dimensions=settings.embedding_dim,
                timeout=settings.embedding_timeout,
            )
        else:
            provider = HashingEmbeddingProvider(dim=settings.embedding_dim)
        _GATEWAY = EmbeddingGateway(
            provider,
            dim=settings.embedding_dim,
            max_attempts=settings.embedding_max_attempts,
            base_delay=settings.embedding_base_delay,
            batch_size=settings.embedding_batch_size,
        )
    return _GATEWAY


def get_vector_index() -> VectorIndex:
    global _VECTOR_INDEX
    if _VECTOR_INDEX is None:
        settings = get_app_settings()
        if settings.index_backend == "pinecone":
            _VECTOR_INDEX = PineconeIndex(
                api_key=settings.pinecone_api_key,
                index_name=settings.index_name,
                host=settings.pinecone_index_host,
                control_url=settings.pinecone_control_url,
            )
        else:
            _VECTOR_INDEX = InMemoryVectorIndex(dim=settings.embedding_dim)
    return _VECTOR_INDEX


def get_document_store() -> DocumentStore:
    global _DOCUMENT_STORE
    if _DOCUMENT_STORE is None:
        settings = get_app_settings()
        _DOCUMENT_STORE = DocumentStore(
            gateway=get_embedding_gateway(),
            vector_index=get_vector_index(),
            dim=settings.embedding_dim,
            chunk_max_length=settings.chunk_max_length,
            list_sample_limit=settings.list_sample_limit,
            delete_query_limit=settings.delete_query_limit,
        )
    return _DOCUMENT_STORE


def get_retriever() -> Retriever:
    global _RETRIEVER
    if _RETRIEVER is None:
        _RETRIEVER = Retriever(
            gateway=get_embedding_gateway(),
            vector_index=get_vector_index(),
            top_k=get_app_settings().ask_top_k,
        )
    return _RETRIEVER


def get_answer_generator() -> AnswerGenerator:
    global _ANSWER_GENERATOR
    if _ANSWER_GENERATOR is None:
        settings = get_app_settings()
        if settings.answer_backend == "gemini":
            _ANSWER_GENERATOR = GeminiAnswerGenerator(
                api_key=settings.gemini_api_key,
                model=settings.gemini_model,
                base_url=settings.gemini_url,
            )
        else:
            _ANSWER_GENERATOR = ExtractiveAnswerGenerator()
    return _ANSWER_GENERATOR


def get_rate_governor() -> RateGovernor:
    global _GOVERNOR
    if _GOVERNOR is None:
        _GOVERNOR = RateGovernor()
    return _GOVERNOR


def get_loader_registry() -> LoaderRegistry:
    global _LOADERS
    if _LOADERS is None:
        _LOADERS = LoaderRegistry()
    return _LOADERS


def get_rate_policies() -> RatePolicies:
    settings = get_app_settings()
    return RatePolicies.from_limits(
        window_ms=settings.rate_window_seconds * 1000,
        default=settings.rate_default_limit,
        upload=settings.rate_upload_limit,
        ask=settings.rate_ask_limit,
        health=settings.rate_health_limit,
    )


def rate_limited(policy_name: str) -> Callable[[Request, Response], str]:
    """Dependency factory: admit the caller under ``policy_name`` and return its namespace."""

    def dependency(request: Request, response: Response) -> str:
        settings = get_app_settings()
        identity = client_identity(request, trust_forwarded_for=settings.trust_forwarded_for)
        policy: RatePolicy = getattr(get_rate_policies(), policy_name)
        admission = get_rate_governor().admit(identity, policy)
        if not admission.allowed:
            raise RateLimited(admission.reset_in_ms, policy=policy.name)
        response.headers["X-RateLimit-Remaining"] = str(admission.remaining)
        return identity

    return dependency


__all__ = [
    "get_app_settings",
    "get_embedding_gateway",
    "get_vector_index",
    "get_document_store",
    "get_retriever",
    "get_answer_generator",
    "get_rate_governor",
    "get_loader_registry",
    "get_rate_policies",
    "rate_limited",
]
