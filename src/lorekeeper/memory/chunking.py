"""Paragraph-aware text chunking for document ingestion."""

from __future__ import annotations

import re

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def _slices(paragraph: str, max_chars: int) -> list[str]:
    return [paragraph[i:i + max_chars] for i in range(0, len(paragraph), max_chars)]


def chunk_text(text: str, max_chars: int = 8000) -> list[str]:
    """Pack paragraphs into chunks of at most ``max_chars``.

    Paragraphs are joined with a blank line. A paragraph longer than the limit
    is cut into fixed-size slices, which always stand as chunks of their own.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")

    paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(text)]
    paragraphs = [p for p in paragraphs if p]

    chunks: list[str] = []
    buffer = ""
    for paragraph in paragraphs:
        if buffer and len(buffer) + len(paragraph) + 2 <= max_chars:
            buffer = f"{buffer}\n\n{paragraph}"
            continue
        if buffer:
            chunks.append(buffer)
            buffer = ""
        if len(paragraph) <= max_chars:
            buffer = paragraph
        else:
            chunks.extend(_slices(paragraph, max_chars))

    if buffer:
        chunks.append(buffer)
    return chunks
