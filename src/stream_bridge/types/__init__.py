"""Reusable type definitions for the stream bridge."""

from .base import CamelModel, StrictBaseModel
from .chunks import BytesLike, chunk_length, is_bytes_like, to_bytes
from .exceptions import (
    InvalidStreamError,
    LockedError,
    LockError,
    LockReleaseError,
    StreamBridgeError,
    StreamStateError,
)

__all__ = [
    # Models
    "CamelModel",
    "StrictBaseModel",
    # Chunks
    "BytesLike",
    "chunk_length",
    "is_bytes_like",
    "to_bytes",
    # Exceptions
    "StreamBridgeError",
    "InvalidStreamError",
    "StreamStateError",
    "LockError",
    "LockedError",
    "LockReleaseError",
]
