"""Pinecone-backed vector index over the REST data plane."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import requests

from docqa.core.errors import PermanentProviderError, TransientProviderError, provider_error_for_status
from docqa.core.logging import get_logger
from docqa.ingest.types import IndexRecord
from docqa.retrieval.vector_index import IndexStats, QueryMatch

logger = get_logger(__name__)

API_VERSION = "2024-07"


class PineconeIndex:
    """Implements the ``VectorIndex`` protocol against one Pinecone index.

    The data-plane host is resolved from the control plane on first use when
    it is not configured explicitly.
    """

    name = "pinecone"

    def __init__(
        self,
        api_key: str,
        index_name: str,
        host: str = "",
        control_url: str = "https://api.pinecone.io",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.index_name = index_name
        self.control_url = control_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._host = _normalize_host(host) if host else ""

    def upsert(self, records: Sequence[IndexRecord], namespace: str) -> None:
        if not records:
            return
        self._post(
            "/vectors/upsert",
            {
                "namespace": namespace,
                "vectors": [
                    {"id": record.id, "values": record.vector, "metadata": record.metadata}
                    for record in records
                ],
            },
        )

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        namespace: str,
        metadata_filter: Mapping[str, Any] | None = None,
    ) -> list[QueryMatch]:
        body: dict[str, Any] = {
            "namespace": namespace,
            "vector": list(vector),
            "topK": top_k,
            "includeMetadata": True,
            "includeValues": False,
        }
        if metadata_filter:
            body["filter"] = {key: {"$eq": value} for key, value in metadata_filter.items()}
        payload = self._post("/query", body)
        try:
            return [
                QueryMatch(id=match["id"], score=float(match.get("score") or 0.0), metadata=match.get("metadata"))
                for match in payload.get("matches") or []
            ]
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            raise _malformed(exc) from exc

    def delete_by_ids(self, ids: Sequence[str], namespace: str) -> None:
        if not ids:
            return
        self._post("/vectors/delete", {"namespace": namespace, "ids": list(ids)})

    def stats(self, namespace: str | None = None) -> IndexStats:
        payload = self._post("/describe_index_stats", {})
        try:
            if namespace is None:
                return IndexStats(total_record_count=int(payload.get("totalVectorCount") or 0))
            namespaces = payload.get("namespaces") or {}
            return IndexStats(total_record_count=int((namespaces.get(namespace) or {}).get("vectorCount") or 0))
        except (ValueError, TypeError, AttributeError) as exc:
            raise _malformed(exc) from exc

    def ping(self) -> bool:
        try:
            self._request("GET", f"{self.control_url}/indexes")
        except Exception as exc:  # noqa: BLE001 - health probes report, never raise
            logger.warning("Pinecone health check failed: %s", exc)
            return False
        return True

    # Internal helpers -------------------------------------------------

    @property
    def host(self) -> str:
        if not self._host:
            payload = self._request("GET", f"{self.control_url}/indexes/{self.index_name}")
            try:
                self._host = _normalize_host(payload["host"])
            except (KeyError, TypeError, AttributeError) as exc:
                raise _malformed(exc) from exc
        return self._host

    def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", f"{self.host}{path}", json=body)

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        if not self.api_key:
            raise PermanentProviderError(self.name, "API key is not set")
        headers = {"Api-Key": self.api_key, "X-Pinecone-API-Version": API_VERSION}
        try:
            resp = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientProviderError(self.name, str(exc)) from exc
        except requests.RequestException as exc:
            raise PermanentProviderError(self.name, str(exc)) from exc
        if not resp.ok:
            raise provider_error_for_status(self.name, resp.status_code, resp.text)
        if not resp.content:
            return {}
        try:
            payload = resp.json()
        except ValueError as exc:
            raise _malformed(exc) from exc
        if not isinstance(payload, dict):
            raise PermanentProviderError(self.name, "malformed response: expected a JSON object")
        return payload


def _malformed(exc: Exception) -> PermanentProviderError:
    return PermanentProviderError(PineconeIndex.name, f"malformed response: {exc!r}")


def _normalize_host(host: str) -> str:
    host = host.rstrip("/")
    return host if host.startswith("http") else f"https://{host}"


__all__ = ["PineconeIndex"]
