"""Deterministic byte-offset chunking with stable chunk IDs."""

from __future__ import annotations

import hashlib

from repo_index.extraction.models import ContentChunk


def chunk_boundaries(data: bytes, chunk_size: int) -> list[tuple[int, int]]:
    """Split ``data`` into ``chunk_size`` byte ranges that never cut a UTF-8 sequence."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    ranges: list[tuple[int, int]] = []
    start = 0
    length = len(data)
    while start < length:
        end = min(start + chunk_size, length)
        while end < length and _is_continuation(data[end]):
            end -= 1
        if end <= start:
            # chunk_size is smaller than one encoded character
            end = start + 1
            while end < length and _is_continuation(data[end]):
                end += 1
        ranges.append((start, end))
        start = end
    return ranges


def chunk_content(
    path: str, content: bytes | str, chunk_size: int
) -> tuple[ContentChunk, ...]:
    """Chunk raw file bytes longer than ``chunk_size``; smaller input yields no chunks.

    Concatenating chunk payloads reproduces the input bytes exactly, including
    bytes that are not valid UTF-8.
    """
    data = content.encode("utf-8") if isinstance(content, str) else content
    if len(data) <= chunk_size:
        return ()
    ranges = chunk_boundaries(data, chunk_size)
    count = len(ranges)
    chunks: list[ContentChunk] = []
    for index, (start, end) in enumerate(ranges):
        piece = data[start:end]
        chunks.append(
            ContentChunk(
                chunk_index=index,
                chunk_number=index + 1,
                chunk_count=count,
                start_offset=start,
                end_offset=end,
                content=piece.decode("utf-8", errors="surrogateescape"),
                chunk_id=build_chunk_id(path, start, end, piece),
            )
        )
    return tuple(chunks)


def build_chunk_id(path: str, start_offset: int, end_offset: int, payload: bytes) -> str:
    """Build a stable chunk identifier from deterministic inputs."""
    digest = hashlib.sha256()
    digest.update(path.encode("utf-8"))
    digest.update(b"|")
    digest.update(str(start_offset).encode("ascii"))
    digest.update(b"|")
    digest.update(str(end_offset).encode("ascii"))
    digest.update(b"|")
    digest.update(payload)
    return digest.hexdigest()


def _is_continuation(byte: int) -> bool:
    return byte & 0xC0 == 0x80
