"""
Duplex and transform push-streams.

A duplex stream has a readable and a writable side on one object.
The two sides are independent until teardown: the stream closes only after
the readable side emitted `end` and the writable side emitted `finish`
(or an error destroyed it first).

A transform stream is a duplex whose written chunks become its output.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from .readable import Readable
from .writable import Writable

TransformHook = Callable[["Transform", Any], Awaitable[None]]
"""Async callable turning one written chunk into pushed output."""

FlushHook = Callable[["Transform"], Awaitable[None]]
"""Async callable run before the readable side ends."""


class Duplex(Readable, Writable):
    """A push-stream with both a readable and a writable side."""

    def __init__(self, **kwargs: Any) -> None:
        """Initialize both sides. Accepts the hooks of `Readable` and `Writable`."""
        super().__init__(**kwargs)


class Transform(Duplex):
    """
    A duplex stream that pushes what is written to it.

    Override `_transform()` to change chunks on the way through, and
    `_flush()` to push trailing output when the writable side ends.
    """

    def __init__(
        self,
        *,
        transform: TransformHook | None = None,
        flush: FlushHook | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the transform.

        Args:
            transform: Optional hook used instead of `_transform`.
            flush: Optional hook used instead of `_flush`.
            **kwargs: Forwarded to `Duplex`.
        """
        super().__init__(**kwargs)
        self._transform_hook = transform
        self._flush_hook = flush

    async def _write(self, chunk: Any) -> None:
        if self._write_hook is not None:
            await self._write_hook(chunk)
        else:
            await self._transform(chunk)

    async def _final(self) -> None:
        await super()._final()
        await self._flush()
        self.push(None)

    async def _transform(self, chunk: Any) -> None:
        """Turn one written chunk into output. Defaults to passing it through."""
        if self._transform_hook is not None:
            await self._transform_hook(self, chunk)
        else:
            self.push(chunk)

    async def _flush(self) -> None:
        """Push trailing output before the readable side ends."""
        if self._flush_hook is not None:
            await self._flush_hook(self)
