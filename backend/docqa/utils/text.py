"""Text processing helpers."""

from __future__ import annotations

import re

_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def normalize_newlines(text: str) -> str:
    """CRLF to LF and collapse runs of 3+ newlines to a single blank line."""
    return _EXCESS_NEWLINES_RE.sub("\n\n", text.replace("\r\n", "\n"))


def clean_text(text: str) -> str:
    """Normalize newlines and strip."""
    return normalize_newlines(text).strip()
