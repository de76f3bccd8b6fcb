"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "DOCQA_"
DEFAULT_CONFIG_PATH = Path("~/.config/docqa/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("embeddings", "backend"): "embedding_backend",
    ("embeddings", "url"): "embedding_url",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "api_key"): "embedding_api_key",
    ("embeddings", "dimension"): "embedding_dim",
    ("embeddings", "batch_size"): "embedding_batch_size",
    ("embeddings", "max_attempts"): "embedding_max_attempts",
    ("embeddings", "base_delay"): "embedding_base_delay",
    ("embeddings", "timeout"): "embedding_timeout",
    ("index", "backend"): "index_backend",
    ("index", "api_key"): "pinecone_api_key",
    ("index", "host"): "pinecone_index_host",
    ("index", "name"): "index_name",
    ("index", "control_url"): "pinecone_control_url",
    ("answers", "backend"): "answer_backend",
    ("answers", "api_key"): "gemini_api_key",
    ("answers", "model"): "gemini_model",
    ("answers", "url"): "gemini_url",
    ("documents", "chunk_max_length"): "chunk_max_length",
    ("documents", "list_sample_limit"): "list_sample_limit",
    ("documents", "delete_query_limit"): "delete_query_limit",
    ("ask", "top_k"): "ask_top_k",
    ("ask", "question_max_length"): "question_max_length",
    ("ratelimit", "window_seconds"): "rate_window_seconds",
    ("ratelimit", "default_per_window"): "rate_default_limit",
    ("ratelimit", "upload_per_window"): "rate_upload_limit",
    ("ratelimit", "ask_per_window"): "rate_ask_limit",
    ("ratelimit", "health_per_window"): "rate_health_limit",
    ("server", "cors_origins"): "cors_origins",
    ("server", "trust_forwarded_for"): "trust_forwarded_for",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    embedding_backend: Literal["http", "hashing"] = "hashing"
    embedding_url: str = "https://integrate.api.nvidia.com/v1/embeddings"
    embedding_model: str = "nvidia/llama-3.2-nv-embedqa-1b-v2"
    embedding_api_key: str = ""
    embedding_dim: int = Field(default=1024, ge=1)
    embedding_batch_size: int = Field(default=5, ge=1)
    embedding_max_attempts: int = Field(default=5, ge=1)
    embedding_base_delay: float = Field(default=1.0, ge=0)
    embedding_timeout: float = 30.0

    index_backend: Literal["memory", "pinecone"] = "memory"
    pinecone_api_key: str = ""
    pinecone_index_host: str = ""
    index_name: str = "quickstart"
    pinecone_control_url: str = "https://api.pinecone.io"

    answer_backend: Literal["gemini", "extractive"] = "extractive"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-3-flash-preview"
    gemini_url: str = "https://generativelanguage.googleapis.com/v1beta"

    chunk_max_length: int = Field(default=2000, ge=1)
    list_sample_limit: int = Field(default=100, ge=1)
    delete_query_limit: int = Field(default=1000, ge=1)
    ask_top_k: int = Field(default=5, ge=1)
    question_max_length: int = Field(default=1000, ge=1)

    rate_window_seconds: int = Field(default=60, ge=1)
    rate_default_limit: int = Field(default=30, ge=1)
    rate_upload_limit: int = Field(default=10, ge=1)
    rate_ask_limit: int = Field(default=20, ge=1)
    rate_health_limit: int = Field(default=60, ge=1)

    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    trust_forwarded_for: bool = True

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        mapped_key = _YAML_KEY_MAP.get(next_prefix)
        if mapped_key:
            flat[mapped_key] = value
        elif isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        elif key in Settings.model_fields:
            flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with DOCQA_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
