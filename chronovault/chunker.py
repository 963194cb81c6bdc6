from __future__ import annotations

from typing import Iterable, Iterator, List


def iter_chunks(data: bytes, max_chunk_size: int) -> Iterator[bytes]:
    if max_chunk_size < 1:
        raise ValueError("max_chunk_size must be >= 1")
    view = memoryview(data)
    pos = 0
    while pos < len(view):
        yield bytes(view[pos : pos + max_chunk_size])
        pos += max_chunk_size


def split(data: bytes, max_chunk_size: int) -> List[bytes]:
    """Split ``data`` into consecutive slices of at most ``max_chunk_size`` bytes.

    Only the last slice may be shorter. Empty input yields no chunks.
    """
    return list(iter_chunks(data, max_chunk_size))


def join(chunks: Iterable[bytes]) -> bytes:
    # No delimiters: boundaries live in the manifest, not in the bytes.
    return b"".join(chunks)
