"""
Readable push-streams.

The producer calls `push(chunk)`; the stream hands chunks to `data` handlers.

Flow control is a switch, not a budget:

- `pause()` stops delivery. Chunks keep accumulating in the buffer.
- `resume()` restarts delivery on the next loop turn.
- `push()` returns False once the buffer reaches the high-water mark.

The `_read()` hook asks the producer for more data. It runs at most once at
a time and only while the buffer is below the high-water mark.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from stream_bridge.types import chunk_length

from .events import EventEmitter, Handler
from .stream import Stream, StreamFlags

logger = logging.getLogger(__name__)

ReadHook = Callable[["Readable"], Awaitable[None]]
"""Async callable asked to push more data. Receives the stream."""


@dataclass(slots=True)
class ReadableState:
    """Buffer and flow flags of a readable side."""

    high_water_mark: int
    """Buffered bytes at which `push()` starts returning False."""

    buffer: deque[Any] = field(default_factory=deque)
    """Chunks pushed but not yet delivered."""

    buffered: int = 0
    """Total size of the chunks in `buffer`."""

    flowing: bool = False
    """True while `data` events may be delivered."""

    ended: bool = False
    """True once the end-of-data sentinel was pushed."""

    end_emitted: bool = False
    """True once `end` was emitted."""

    reading: bool = False
    """True while a `_read()` call is outstanding."""

    pushes: int = 0
    """Number of `push()` calls. Used to detect whether a read produced anything."""

    update_scheduled: bool = False
    """True while a delivery pass is queued on the event loop."""

    read_task: asyncio.Task[None] | None = None
    """The outstanding `_read()` call, if any."""


class Readable(Stream):
    """
    A push-stream that produces data.

    Subclass and override `_read()`, or pass a `read` hook:

        async def produce(stream):
            stream.push(b"hello")
            stream.push(None)

        readable = Readable(read=produce)
    """

    def __init__(self, *, read: ReadHook | None = None, **kwargs: Any) -> None:
        """
        Initialize the readable side.

        Args:
            read: Optional hook used instead of `_read`.
            **kwargs: Forwarded to the next base class.
        """
        super().__init__(**kwargs)
        self._read_hook = read
        self._readable_state = ReadableState(high_water_mark=self._high_water_mark)
        self._duplex_state |= StreamFlags.READABLE

    @property
    def readable(self) -> bool:
        """True until `end` was emitted or the stream was destroyed."""
        state = self._readable_state
        return state is not None and not state.end_emitted and not self.destroyed

    def is_paused(self) -> bool:
        """True while `data` delivery is switched off."""
        assert self._readable_state is not None
        return not self._readable_state.flowing

    def on(self, event: str, handler: Handler) -> EventEmitter:
        """Register a handler. Subscribing to `data` switches the stream to flowing."""
        super().on(event, handler)
        if event == "data":
            self.resume()
        return self

    def push(self, chunk: Any) -> bool:
        """
        Buffer a chunk for delivery.

        Args:
            chunk: The data, or None to signal end-of-data.

        Returns:
            False when the caller should stop producing for now.
        """
        state = self._readable_state
        assert state is not None

        if state.ended or self.destroyed:
            logger.debug("Ignoring push after end on %r", self)
            return False

        state.pushes += 1
        if chunk is None:
            state.ended = True
        else:
            state.buffer.append(chunk)
            state.buffered += chunk_length(chunk)

        self._schedule_readable_update()
        return state.buffered < state.high_water_mark

    def pause(self) -> Readable:
        """Stop `data` delivery until `resume()`."""
        assert self._readable_state is not None
        self._readable_state.flowing = False
        return self

    def resume(self) -> Readable:
        """Restart `data` delivery on the next loop turn."""
        state = self._readable_state
        assert state is not None
        state.flowing = True
        if not self.destroyed:
            self._schedule_readable_update()
        return self

    async def _read(self) -> None:
        """Produce more data by calling `push()`. Override in subclasses."""
        if self._read_hook is not None:
            await self._read_hook(self)

    def _schedule_readable_update(self) -> None:
        state = self._readable_state
        assert state is not None
        if state.update_scheduled:
            return
        state.update_scheduled = True
        asyncio.get_running_loop().call_soon(self._update_readable)

    def _update_readable(self) -> None:
        """Deliver buffered chunks, emit `end`, or ask for more data."""
        state = self._readable_state
        assert state is not None
        state.update_scheduled = False

        if self.destroyed:
            return

        # A handler may pause the stream; re-check before every chunk.
        while state.flowing and state.buffer:
            chunk = state.buffer.popleft()
            state.buffered -= chunk_length(chunk)
            self.emit("data", chunk)
            if self.destroyed:
                return

        if state.ended:
            if not state.buffer and state.flowing and not state.end_emitted:
                state.end_emitted = True
                self.emit("end")
                self._maybe_auto_destroy()
            return

        self._maybe_read()

    def _maybe_read(self) -> None:
        state = self._readable_state
        assert state is not None
        if state.reading or state.ended or self.destroyed:
            return
        if state.buffered >= state.high_water_mark:
            return
        state.reading = True
        state.read_task = asyncio.get_running_loop().create_task(self._run_read())

    async def _run_read(self) -> None:
        state = self._readable_state
        assert state is not None
        pushes_before = state.pushes
        try:
            await self._read()
        except Exception as exc:
            state.reading = False
            self.destroy(exc)
            return
        finally:
            state.read_task = None

        state.reading = False

        # A read that produced nothing waits for the next push or resume.
        if state.pushes != pushes_before:
            self._schedule_readable_update()

    def _abort_pending(self) -> None:
        state = self._readable_state
        if state is not None:
            state.buffer.clear()
            state.buffered = 0
        super()._abort_pending()
