"""
Chunk representation shared by both stream models.

Text crossing a bridge boundary becomes UTF-8 bytes.
Bytes-like values pass through unchanged.
`None` is never a payload: it is the end-of-stream sentinel.
"""

from __future__ import annotations

from typing import Any, TypeAlias

BytesLike: TypeAlias = bytes | bytearray | memoryview
"""Values accepted as byte chunks without conversion."""


def is_bytes_like(value: Any) -> bool:
    """Check whether a value is a contiguous byte buffer."""
    return isinstance(value, (bytes, bytearray, memoryview))


def to_bytes(chunk: Any) -> Any:
    """
    Coerce a textual chunk to UTF-8 bytes.

    Non-text chunks are returned as is. Object-mode streams may carry
    arbitrary values and those must cross the bridge untouched.
    """
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return chunk


def chunk_length(chunk: Any) -> int:
    """
    Size of a chunk for accounting purposes.

    Byte buffers count their bytes, text counts its characters and
    everything else counts as one unit.
    """
    if isinstance(chunk, memoryview):
        return chunk.nbytes
    if isinstance(chunk, (bytes, bytearray, str)):
        return len(chunk)
    return 1
