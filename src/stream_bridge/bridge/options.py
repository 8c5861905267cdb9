"""
Adapter options.

Options are frozen pydantic models. Unknown names are rejected, and every
field may also be given in camel case (`as_bytes` or `asBytes`).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import Field, field_validator

from stream_bridge.pull import WritableStream
from stream_bridge.types import StrictBaseModel

_M = TypeVar("_M", bound=StrictBaseModel)


class PullOptions(StrictBaseModel):
    """Options of `to_pull` (push-stream in, pull-stream out)."""

    as_bytes: bool = False
    """Produce a byte stream instead of a stream of arbitrary chunks."""

    high_water_mark: int | None = Field(default=None, ge=0)
    """
    Queue budget of the produced streams.

    None keeps the pull-stream defaults: 0 bytes for byte streams,
    1 chunk otherwise, and 1 queued write for writable streams.
    """


class PushOptions(StrictBaseModel):
    """Options of `to_push` (pull-stream in, push-stream out)."""

    write: Any = None
    """
    Write capability used when the input carries none.

    Either a `WritableStream`, whose writer receives every written chunk, or
    an async callable consuming one chunk. A writable found on the input
    itself takes precedence.
    """

    as_transform: bool = False
    """Produce a transform instead of a duplex when a write capability exists."""

    high_water_mark: int | None = Field(default=None, gt=0)
    """Buffered bytes before the produced push-stream reports backpressure."""

    @field_validator("write")
    @classmethod
    def _check_write(cls, value: Any) -> Any:
        if value is None or isinstance(value, WritableStream) or callable(value):
            return value
        raise ValueError(f"write must be a WritableStream or a callable, got {type(value).__name__}")


def resolve_options(
    model: type[_M],
    options: _M | Mapping[str, Any] | None,
    overrides: Mapping[str, Any],
) -> _M:
    """
    Build the effective options from a model, a mapping, and keyword overrides.

    Keyword overrides win over values carried by `options`.
    """
    if options is None:
        return model.model_validate(dict(overrides))
    if isinstance(options, Mapping):
        return model.model_validate({**options, **overrides})
    return options.copy(**overrides) if overrides else options
