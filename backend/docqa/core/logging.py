"""Structured logging for DocQA.

Records are written as one JSON object per line. Pass request-scoped
fields with ``extra={"ctx_namespace": ...}``; the ``ctx_`` prefix is dropped
in the output.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import orjson

from docqa.core.errors import DocQAError
from docqa.utils.time import to_iso

_DEFAULT_LEVEL = os.environ.get("DOCQA_LOG_LEVEL", "INFO")
_CONTEXT_PREFIX = "ctx_"
_QUIET_LOGGERS = ("urllib3", "multipart", "httpx")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": to_iso(datetime.fromtimestamp(record.created, tz=timezone.utc)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key.startswith(_CONTEXT_PREFIX):
                payload[key[len(_CONTEXT_PREFIX) :]] = value
        if record.exc_info:
            error = record.exc_info[1]
            if isinstance(error, DocQAError):
                payload["kind"] = error.kind
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


def configure_logging(level: str | int = _DEFAULT_LEVEL, use_json: bool = True) -> None:
    """Install a single stdout handler on the root logger.

    ``warnings.warn`` output, including ``PartialConsistencyWarning`` from
    sampled listings, is routed through the ``py.warnings`` logger.
    """
    logging.captureWarnings(True)
    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = "docqa") -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "JsonFormatter"]
