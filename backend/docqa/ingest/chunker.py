"""Chunking utilities.

Documents are packed paragraph by paragraph into chunks no longer than
``max_length`` characters. Paragraphs that do not fit on their own are
re-packed word by word, and words that do not fit are sliced.
"""

from __future__ import annotations

import re
from typing import Iterator

from docqa.ingest.types import Chunk
from docqa.utils.text import normalize_newlines

PARAGRAPH_SEPARATOR = "\n\n"

_PARAGRAPH_RE = re.compile(r"\n\s*\n")


def chunk_text(text: str, max_length: int) -> list[str]:
    """Split text into ordered, non-empty segments of at most ``max_length`` chars."""
    if max_length < 1:
        raise ValueError("max_length must be a positive integer")

    chunks: list[str] = []
    current = ""
    for paragraph in _iter_paragraphs(normalize_newlines(text)):
        if len(paragraph) > max_length:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(_pack_words(paragraph, max_length))
            continue
        if not current:
            current = paragraph
        elif len(current) + len(PARAGRAPH_SEPARATOR) + len(paragraph) <= max_length:
            current = f"{current}{PARAGRAPH_SEPARATOR}{paragraph}"
        else:
            chunks.append(current)
            current = paragraph

    if current:
        chunks.append(current)

    # Callers reject empty documents; whitespace-only input still yields one element.
    return chunks or [text.strip()[:max_length]]


def chunk_document(text: str, max_length: int) -> list[Chunk]:
    """Chunk ``text`` and attach stable ordinals."""
    return [Chunk(text=piece, ordinal=ordinal) for ordinal, piece in enumerate(chunk_text(text, max_length))]


def split_word(word: str, max_length: int) -> list[str]:
    """Slice a word into ``max_length`` pieces; the last may be shorter."""
    return [word[start : start + max_length] for start in range(0, len(word), max_length)]


def _iter_paragraphs(text: str) -> Iterator[str]:
    for paragraph in _PARAGRAPH_RE.split(text):
        stripped = paragraph.strip()
        if stripped:
            yield stripped


def _pack_words(paragraph: str, max_length: int) -> list[str]:
    pieces: list[str] = []
    current = ""
    for word in paragraph.split():
        if len(word) > max_length:
            if current:
                pieces.append(current)
                current = ""
            pieces.extend(split_word(word, max_length))
        elif not current:
            current = word
        elif len(current) + 1 + len(word) <= max_length:
            current = f"{current} {word}"
        else:
            pieces.append(current)
            current = word
    if current:
        pieces.append(current)
    return pieces


__all__ = ["chunk_text", "chunk_document", "split_word", "PARAGRAPH_SEPARATOR"]
