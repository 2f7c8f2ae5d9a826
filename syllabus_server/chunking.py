"""
Recursive character chunking for long documents.

Text is split on the coarsest separator present (paragraphs, then lines,
then sentences, then words, then characters) and the pieces are merged back
into chunks of at most ``chunk_size`` characters, with ``chunk_overlap``
characters carried between neighbours so that a date near a boundary keeps
its context.
"""
from __future__ import annotations

import typing as t

from syllabus_server.models import DocumentChunk

CHUNK_SIZE = 1000
CHUNK_OVERLAP = 200
SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", " ", "")


def _merge_splits(splits: list[str], separator: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    chunks: list[str] = []
    current: list[str] = []
    total = 0
    sep_len = len(separator)

    for piece in splits:
        length = len(piece)
        if current and total + length + sep_len > chunk_size:
            chunk = separator.join(current).strip()
            if chunk:
                chunks.append(chunk)
            # keep a tail of the previous chunk as overlap
            while current and (total > chunk_overlap or total + length + sep_len > chunk_size):
                total -= len(current[0]) + (sep_len if len(current) > 1 else 0)
                current.pop(0)
        current.append(piece)
        total += length + (sep_len if len(current) > 1 else 0)

    chunk = separator.join(current).strip()
    if chunk:
        chunks.append(chunk)
    return chunks


def split_text(
        text: str,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
        separators: t.Sequence[str] = SEPARATORS,
) -> list[str]:
    """Split ``text`` into overlapping chunks no longer than ``chunk_size`` where possible."""
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")

    separator = separators[-1]
    remaining: t.Sequence[str] = ()
    for i, candidate in enumerate(separators):
        if candidate == "" or candidate in text:
            separator = candidate
            remaining = separators[i + 1:]
            break

    splits = text.split(separator) if separator else list(text)

    chunks: list[str] = []
    pending: list[str] = []
    for piece in splits:
        if len(piece) < chunk_size:
            pending.append(piece)
            continue
        if pending:
            chunks.extend(_merge_splits(pending, separator, chunk_size, chunk_overlap))
            pending = []
        if remaining:
            chunks.extend(split_text(piece, chunk_size, chunk_overlap, remaining))
        else:
            chunks.append(piece)
    if pending:
        chunks.extend(_merge_splits(pending, separator, chunk_size, chunk_overlap))
    return chunks


def chunk_document(
        text: str,
        metadata: t.Optional[dict[str, t.Any]] = None,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
) -> list[DocumentChunk]:
    return [
        DocumentChunk(content=content, index=index, metadata=dict(metadata or {}))
        for index, content in enumerate(split_text(text, chunk_size, chunk_overlap))
    ]
