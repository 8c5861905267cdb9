"""
Stream classification.

Everything the adapters accept goes through one decision point here:

- Push-streams are recognized by capability markers: a `_duplex_state` flag
  set plus a readable and/or writable state object. Inheritance is not
  checked, so any object carrying the markers qualifies.
- Pull-streams are recognized by type (`ReadableStream`, `WritableStream`).
- Anything else is a descriptor if it carries `readable`, `writable` or
  `duplex` (as attributes or mapping keys) holding a stream.

Callers branch on the returned tag instead of probing attributes themselves.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from stream_bridge.pull import ReadableStream, WritableStream
from stream_bridge.push import StreamFlags
from stream_bridge.types import InvalidStreamError


class StreamKind(enum.Enum):
    """What an input value is, as far as the adapters care."""

    PUSH_READABLE = "push_readable"
    PUSH_WRITABLE = "push_writable"
    PUSH_DUPLEX = "push_duplex"
    PULL_READABLE = "pull_readable"
    PULL_WRITABLE = "pull_writable"
    PULL_DUPLEX = "pull_duplex"
    DESCRIPTOR = "descriptor"
    """An object whose `readable`/`writable`/`duplex` fields hold the streams."""
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class Endpoints:
    """The two ends found in an input value. At least one is set."""

    kind: StreamKind
    """Classification of the input the endpoints came from."""

    readable: Any
    """Readable capability, or None."""

    writable: Any
    """Writable capability, or None."""


def is_push_stream(value: Any) -> bool:
    """Check for the push-stream capability markers."""
    if not isinstance(getattr(value, "_duplex_state", None), StreamFlags):
        return False
    return (
        getattr(value, "_readable_state", None) is not None
        or getattr(value, "_writable_state", None) is not None
    )


def is_push_readable(value: Any) -> bool:
    """A push-stream with a readable side."""
    return is_push_stream(value) and value._readable_state is not None


def is_push_writable(value: Any) -> bool:
    """A push-stream with a writable side."""
    return is_push_stream(value) and value._writable_state is not None


def _field(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


def _readable_capability(value: Any) -> Any:
    if isinstance(value, ReadableStream) or is_push_readable(value):
        return value
    return None


def _writable_capability(value: Any) -> Any:
    # A bare callable is a write hook; booleans and other flags are not capabilities.
    if isinstance(value, WritableStream) or is_push_writable(value):
        return value
    if callable(value) and not is_push_stream(value):
        return value
    return None


def _descriptor_fields(value: Any) -> tuple[Any, Any]:
    readable = _readable_capability(_field(value, "readable"))
    writable = _writable_capability(_field(value, "writable"))
    if readable is None and writable is None:
        duplex = _field(value, "duplex")
        if is_push_readable(duplex) or is_push_writable(duplex):
            readable = _readable_capability(duplex)
            writable = _writable_capability(duplex)
    return readable, writable


def classify(value: Any) -> StreamKind:
    """
    Tag an arbitrary value.

    Never raises: values without any capability are `StreamKind.INVALID`.
    """
    if is_push_stream(value):
        readable = value._readable_state is not None
        writable = value._writable_state is not None
        if readable and writable:
            return StreamKind.PUSH_DUPLEX
        return StreamKind.PUSH_READABLE if readable else StreamKind.PUSH_WRITABLE

    if isinstance(value, ReadableStream):
        return StreamKind.PULL_READABLE
    if isinstance(value, WritableStream):
        return StreamKind.PULL_WRITABLE

    if value is None:
        return StreamKind.INVALID

    readable, writable = _descriptor_fields(value)
    if isinstance(readable, ReadableStream) and isinstance(writable, WritableStream):
        return StreamKind.PULL_DUPLEX
    if readable is not None or writable is not None:
        return StreamKind.DESCRIPTOR
    return StreamKind.INVALID


def split_endpoints(value: Any) -> Endpoints:
    """
    Find the readable and writable ends of a value.

    A push duplex provides both ends itself. A descriptor with only a
    `duplex` field uses that stream for both ends.

    Raises:
        InvalidStreamError: If neither end can be found.
    """
    kind = classify(value)
    match kind:
        case StreamKind.PUSH_DUPLEX:
            return Endpoints(kind, value, value)
        case StreamKind.PUSH_READABLE | StreamKind.PULL_READABLE:
            return Endpoints(kind, value, None)
        case StreamKind.PUSH_WRITABLE | StreamKind.PULL_WRITABLE:
            return Endpoints(kind, None, value)
        case StreamKind.PULL_DUPLEX | StreamKind.DESCRIPTOR:
            readable, writable = _descriptor_fields(value)
            return Endpoints(kind, readable, writable)
        case _:
            raise InvalidStreamError(f"Invalid stream: no readable or writable capability in {value!r}")
