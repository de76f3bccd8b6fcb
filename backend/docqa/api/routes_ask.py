"""Question answering and health routes."""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor

from fastapi import APIRouter, Depends, Response

from docqa.api.dependencies import (
    get_answer_generator,
    get_app_settings,
    get_embedding_gateway,
    get_retriever,
    get_vector_index,
    rate_limited,
)
from docqa.core.config import Settings
from docqa.core.errors import ValidationError
from docqa.ingest.embeddings import EmbeddingGateway
from docqa.models.dto import AskRequest, AskResponse, HealthResponse, ServiceHealth, SourceOut
from docqa.retrieval.answer import AnswerGenerator
from docqa.retrieval.retriever import Retriever
from docqa.retrieval.vector_index import VectorIndex
from docqa.utils.time import to_iso, utc_now

router = APIRouter()

NO_DOCUMENTS_ANSWER = "No documents found. Please upload some documents first."


@router.post("/ask", response_model=AskResponse, summary="Answer a question from uploaded documents")
def ask(
    request: AskRequest,
    namespace: str = Depends(rate_limited("ask")),
    settings: Settings = Depends(get_app_settings),
    retriever: Retriever = Depends(get_retriever),
    answers: AnswerGenerator = Depends(get_answer_generator),
) -> AskResponse:
    question = _validate_question(request.question, settings.question_max_length)
    sources = retriever.retrieve(question, namespace)
    if not sources:
        return AskResponse(answer=NO_DOCUMENTS_ANSWER, sources=[])
    answer = answers.generate(question, sources)
    return AskResponse(
        answer=answer,
        sources=[
            SourceOut(
                document_name=source.document_name,
                chunk=source.chunk_text,
                relevance_score=_percent(source.score),
            )
            for source in sources
        ],
    )


@router.get("/health", response_model=HealthResponse, summary="Report dependency reachability")
def health(
    response: Response,
    identity: str = Depends(rate_limited("health")),
    vector_index: VectorIndex = Depends(get_vector_index),
    gateway: EmbeddingGateway = Depends(get_embedding_gateway),
    answers: AnswerGenerator = Depends(get_answer_generator),
) -> HealthResponse:
    with ThreadPoolExecutor(max_workers=3, thread_name_prefix="health") as pool:
        index_ok = pool.submit(vector_index.ping)
        embeddings_ok = pool.submit(gateway.health_check)
        llm_ok = pool.submit(answers.health_check)
    services = ServiceHealth(
        database=index_ok.result(),
        embeddings=embeddings_ok.result(),
        llm=llm_ok.result(),
    )
    healthy = services.database and services.embeddings and services.llm
    response.status_code = 200 if healthy else 503
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        services=services,
        timestamp=to_iso(utc_now()),
    )


def _validate_question(question: str | None, max_length: int) -> str:
    if not question or not isinstance(question, str):
        raise ValidationError("Question is required")
    trimmed = question.strip()
    if not trimmed:
        raise ValidationError("Question cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"Question is too long (max {max_length} characters)")
    return trimmed


def _percent(score: float) -> int:
    return int(math.floor(score * 100 + 0.5))


__all__ = ["router", "NO_DOCUMENTS_ANSWER"]
