"""
Writable push-streams.

The producer calls `write(chunk)` and gets a boolean back:

- True: keep writing.
- False: the queue reached the high-water mark. Wait for `drain`
  (or `await_drained`) before writing more.

Queued chunks are handed to the `_write()` hook one at a time, in order.
`end()` flushes the queue, runs `_final()`, then emits `finish`.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from stream_bridge.types import StreamStateError, chunk_length

from .stream import Stream, StreamFlags

logger = logging.getLogger(__name__)

WriteHook = Callable[[Any], Awaitable[None]]
"""Async callable consuming one chunk."""

FinalHook = Callable[[], Awaitable[None]]
"""Async callable run once after the last write."""


@dataclass(slots=True)
class DrainWaiter:
    """
    A pending wait for the write queue to drain.

    `writes` counts the writes that must complete before the waiter resolves.
    It is decremented on each completed write.
    """

    writes: int
    """Outstanding writes ahead of this waiter."""

    future: asyncio.Future[bool]
    """Resolved with True when drained, False if destroyed first."""


@dataclass(slots=True)
class WritableState:
    """Write queue and end-of-input flags of a writable side."""

    high_water_mark: int
    """Queued bytes at which `write()` starts returning False."""

    queue: deque[Any] = field(default_factory=deque)
    """Chunks accepted but not yet handed to `_write()`."""

    queued: int = 0
    """Total size of queued chunks plus the one being written."""

    writing: bool = False
    """True while a `_write()` call is outstanding."""

    need_drain: bool = False
    """True after `write()` returned False and until `drain` is emitted."""

    ending: bool = False
    """True once `end()` was called."""

    finishing: bool = False
    """True while `_final()` runs."""

    finished: bool = False
    """True once `finish` was emitted."""

    drains: list[DrainWaiter] | None = None
    """Registered drain waiters in FIFO order, or None if there are none."""

    update_scheduled: bool = False
    """True while a write pass is queued on the event loop."""

    write_task: asyncio.Task[None] | None = None
    """The outstanding `_write()` or `_final()` call, if any."""


class Writable(Stream):
    """
    A push-stream that consumes data.

    Subclass and override `_write()` (and optionally `_final()`), or pass
    hooks:

        async def consume(chunk):
            received.append(chunk)

        writable = Writable(write=consume)
    """

    def __init__(
        self,
        *,
        write: WriteHook | None = None,
        final: FinalHook | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the writable side.

        Args:
            write: Optional hook used instead of `_write`.
            final: Optional hook used instead of `_final`.
            **kwargs: Forwarded to the next base class.
        """
        super().__init__(**kwargs)
        self._write_hook = write
        self._final_hook = final
        self._writable_state = WritableState(high_water_mark=self._high_water_mark)
        self._duplex_state |= StreamFlags.WRITABLE

    @property
    def writable(self) -> bool:
        """True while queued writes may still be processed."""
        state = self._writable_state
        return state is not None and not state.finished and not self.destroyed

    def write(self, chunk: Any) -> bool:
        """
        Queue a chunk for writing.

        Returns:
            False when the caller should wait for `drain` before writing more.

        Raises:
            StreamStateError: If `end()` was called or the stream was destroyed.
        """
        state = self._writable_state
        assert state is not None

        if chunk is None:
            raise StreamStateError("None is reserved as end-of-stream; call end() instead")
        if state.ending or self.destroyed:
            raise StreamStateError("Write after end")

        state.queue.append(chunk)
        state.queued += chunk_length(chunk)
        self._schedule_writable_update()

        if state.queued >= state.high_water_mark:
            state.need_drain = True
            return False
        return True

    def end(self, chunk: Any = None) -> None:
        """
        Signal end-of-input, optionally writing a last chunk first.

        Calling `end()` more than once is a no-op.
        """
        state = self._writable_state
        assert state is not None

        if chunk is not None:
            self.write(chunk)
        if state.ending or self.destroyed:
            return

        state.ending = True
        self._schedule_writable_update()

    async def _write(self, chunk: Any) -> None:
        """Consume one chunk. Override in subclasses."""
        if self._write_hook is None:
            raise NotImplementedError(f"{self.__class__.__name__} does not implement _write")
        await self._write_hook(chunk)

    async def _final(self) -> None:
        """Run once after the last write completed. Override in subclasses."""
        if self._final_hook is not None:
            await self._final_hook()

    def _schedule_writable_update(self) -> None:
        state = self._writable_state
        assert state is not None
        if state.update_scheduled:
            return
        state.update_scheduled = True
        asyncio.get_running_loop().call_soon(self._update_writable)

    def _update_writable(self) -> None:
        """Start the next write, or finish once the queue is empty after `end()`."""
        state = self._writable_state
        assert state is not None
        state.update_scheduled = False

        if self.destroyed or state.writing or state.finishing:
            return

        loop = asyncio.get_running_loop()
        if state.queue:
            chunk = state.queue.popleft()
            state.writing = True
            state.write_task = loop.create_task(self._run_write(chunk))
        elif state.ending and not state.finished:
            state.finishing = True
            state.write_task = loop.create_task(self._run_final())

    async def _run_write(self, chunk: Any) -> None:
        state = self._writable_state
        assert state is not None
        try:
            await self._write(chunk)
        except Exception as exc:
            state.writing = False
            self.destroy(exc)
            return

        state.writing = False
        state.queued -= chunk_length(chunk)
        self._settle_drains()

        if state.need_drain and not state.queue:
            state.need_drain = False
            self.emit("drain")

        if not self.destroyed:
            self._schedule_writable_update()

    async def _run_final(self) -> None:
        state = self._writable_state
        assert state is not None
        try:
            await self._final()
        except Exception as exc:
            state.finishing = False
            self.destroy(exc)
            return

        state.finishing = False
        state.finished = True
        self.emit("finish")
        self._maybe_auto_destroy()

    def _settle_drains(self) -> None:
        """Count one completed write against every waiter, resolving those at zero."""
        state = self._writable_state
        assert state is not None
        if state.drains is None:
            return

        pending: list[DrainWaiter] = []
        for waiter in state.drains:
            waiter.writes -= 1
            if waiter.writes <= 0:
                if not waiter.future.done():
                    waiter.future.set_result(True)
            else:
                pending.append(waiter)
        state.drains = pending or None

    def _abort_pending(self) -> None:
        state = self._writable_state
        if state is not None:
            # Nothing will drain any more.
            for waiter in state.drains or ():
                if not waiter.future.done():
                    waiter.future.set_result(False)
            state.drains = None
            state.queue.clear()
        super()._abort_pending()
