"""Caller identity extraction.

The identity doubles as the caller's vector-index namespace, so it is the
only isolation boundary between callers.
"""

from __future__ import annotations

from fastapi import Request

UNKNOWN_IDENTITY = "unknown"


def client_identity(request: Request, trust_forwarded_for: bool = True) -> str:
    """First ``X-Forwarded-For`` hop, then ``X-Real-IP``, then the socket peer."""
    if trust_forwarded_for:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            first = forwarded_for.split(",")[0].strip()
            if first:
                return first
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_IDENTITY


__all__ = ["client_identity", "UNKNOWN_IDENTITY"]
