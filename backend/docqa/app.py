"""FastAPI application setup for DocQA."""

from __future__ import annotations

import math
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docqa.api.dependencies import (
    get_answer_generator,
    get_app_settings,
    get_document_store,
    get_embedding_gateway,
    get_rate_governor,
    get_retriever,
    get_vector_index,
)
from docqa.api.routes_ask import router as ask_router
from docqa.api.routes_documents import router as documents_router
from docqa.core.errors import (
    DocQAError,
    NotFound,
    PermanentProviderError,
    RateLimited,
    TransientProviderError,
    ValidationError,
)
from docqa.core.logging import configure_logging, get_logger
from docqa.core.metrics import REQUEST_COUNT, REQUEST_LATENCY, metrics_response
from docqa.models.dto import ErrorResponse

configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="DocQA",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_app_settings().cors_origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(documents_router, prefix="/documents", tags=["documents"])
app.include_router(ask_router, prefix="", tags=["ask"])

_STATUS_BY_ERROR: list[tuple[type[DocQAError], int]] = [
    (ValidationError, 400),
    (NotFound, 404),
    (RateLimited, 429),
    (TransientProviderError, 503),
    (PermanentProviderError, 502),
]


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup."""
    get_app_settings()
    get_embedding_gateway()
    get_vector_index()
    get_document_store()
    get_retriever()
    get_answer_generator()
    get_rate_governor()


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", "unmatched")
    REQUEST_LATENCY.labels(endpoint=endpoint, method=request.method).observe(time.perf_counter() - start)
    REQUEST_COUNT.labels(endpoint=endpoint, method=request.method, status=str(response.status_code)).inc()
    return response


@app.exception_handler(DocQAError)
async def handle_docqa_error(request: Request, exc: DocQAError) -> JSONResponse:
    status = 500
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status = code
            break
    headers: dict[str, str] = {}
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(math.ceil(exc.reset_in_ms / 1000))
        headers["X-RateLimit-Remaining"] = "0"
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    body = ErrorResponse(error=str(exc), kind=exc.kind)
    return JSONResponse(body.model_dump(), status_code=status, headers=headers)


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    body = ErrorResponse(error=message, kind=ValidationError.kind)
    return JSONResponse(body.model_dump(), status_code=400)


@app.get("/metrics", tags=["admin"], summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()
