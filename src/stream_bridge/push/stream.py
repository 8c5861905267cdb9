"""
Shared lifecycle for push-streams.

Every push-stream carries a `_duplex_state` flag set. It records which sides
the stream has and how far teardown has progressed. The flag set doubles as
the capability marker the bridge classifier looks for.

Teardown order (always):
    1. `destroy(error)` marks the stream as destroying and fails pending work.
    2. The `_destroy(error)` hook runs.
    3. `error` is emitted (only if an error was given).
    4. `close` is emitted.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from stream_bridge.config import DEFAULT_HIGH_WATER_MARK

from .events import EventEmitter

if TYPE_CHECKING:
    from .readable import ReadableState
    from .writable import WritableState

logger = logging.getLogger(__name__)

DestroyHook = Callable[[BaseException | None], Awaitable[None]]
"""Async callable run once while the stream is being destroyed."""


class StreamFlags(enum.Flag):
    """Capability and lifecycle bits of a push-stream."""

    NONE = 0
    """Fresh stream with no side attached yet."""

    READABLE = enum.auto()
    """The stream produces data."""

    WRITABLE = enum.auto()
    """The stream consumes data."""

    DESTROYING = enum.auto()
    """`destroy()` was called; the hook may still be running."""

    DESTROYED = enum.auto()
    """Teardown finished and `close` was emitted."""


class Stream(EventEmitter):
    """Base class for every push-stream."""

    _readable_state: ReadableState | None
    _writable_state: WritableState | None

    def __init__(
        self,
        *,
        high_water_mark: int | None = None,
        destroy: DestroyHook | None = None,
    ) -> None:
        """
        Initialize the shared lifecycle state.

        Args:
            high_water_mark: Buffered bytes before backpressure is reported.
            destroy: Optional teardown hook, used instead of `_destroy`.
        """
        super().__init__()
        self._duplex_state = StreamFlags.NONE
        self._readable_state = None
        self._writable_state = None
        self._high_water_mark = high_water_mark or DEFAULT_HIGH_WATER_MARK
        self._destroy_hook = destroy
        self._destroy_task: asyncio.Task[None] | None = None

    @property
    def destroyed(self) -> bool:
        """True once `destroy()` was called."""
        return bool(self._duplex_state & (StreamFlags.DESTROYING | StreamFlags.DESTROYED))

    def destroy(self, error: BaseException | None = None) -> None:
        """
        Tear the stream down, optionally with an error.

        Idempotent: only the first call has an effect.
        The `error` and `close` events are emitted asynchronously.
        """
        if self.destroyed:
            return

        self._duplex_state |= StreamFlags.DESTROYING
        logger.debug("Destroying %r (error=%r)", self, error)

        # Fail anything waiting on this stream before the hook runs.
        self._abort_pending()

        self._destroy_task = asyncio.get_running_loop().create_task(self._run_destroy(error))

    async def _run_destroy(self, error: BaseException | None) -> None:
        try:
            await self._destroy(error)
        except Exception as exc:
            # A failing hook still closes the stream.
            #
            # Its exception is only reported when no error was given.
            if error is None:
                error = exc
            else:
                logger.debug("Destroy hook of %r failed: %s", self, exc)

        self._duplex_state |= StreamFlags.DESTROYED
        if error is not None:
            self.emit("error", error)
        self.emit("close")

    async def _destroy(self, error: BaseException | None) -> None:
        """Release resources held by the stream. Override in subclasses."""
        if self._destroy_hook is not None:
            await self._destroy_hook(error)

    def _abort_pending(self) -> None:
        """Fail pending side-specific work. Extended by each side."""

    def _maybe_auto_destroy(self) -> None:
        """Destroy the stream once every side it has reached its end."""
        readable_state = self._readable_state
        writable_state = self._writable_state
        if readable_state is not None and not readable_state.end_emitted:
            return
        if writable_state is not None and not writable_state.finished:
            return
        self.destroy()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} state={self._duplex_state!s}>"
