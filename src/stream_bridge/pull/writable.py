"""
Writable pull-streams.

Writes are queued and handed to the underlying sink strictly one at a time.
Each `write()` returns a future that resolves once the sink accepted the
chunk, so awaiting every write is the simplest form of backpressure.

Writers that pipeline should await `writer.ready` instead: it stays pending
while the queue exceeds its budget (`desired_size <= 0`).

Sink hooks (all optional, plain or coroutine functions):
    - `start(controller)`: set up, runs once at construction.
    - `write(chunk)`: consume one chunk.
    - `close()`: flush after the last write.
    - `abort(reason)`: discard everything, the producer gave up.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Final, Literal, Protocol

from stream_bridge.types import LockedError, LockError, StreamStateError

from .futures import maybe_await, reject, rejected, resolve

logger = logging.getLogger(__name__)

_CLOSE: Final = object()
"""Queue marker standing for the close request."""


class UnderlyingSink(Protocol):
    """Shape of a sink. Every method is optional."""

    def start(self, controller: WritableStreamController) -> Any:
        """Set up the sink. May return an awaitable."""
        ...

    def write(self, chunk: Any) -> Any:
        """Consume one chunk. May return an awaitable."""
        ...

    def close(self) -> Any:
        """Finish after the last write. May return an awaitable."""
        ...

    def abort(self, reason: Any) -> Any:
        """Discard pending work. May return an awaitable."""
        ...


@dataclass(slots=True)
class _WriteRequest:
    chunk: Any
    size: int
    future: asyncio.Future[None]


class WritableStreamController:
    """Handle the sink uses to fail its stream."""

    __slots__ = ("_stream",)

    def __init__(self, stream: WritableStream) -> None:
        """Bind the controller to its stream."""
        self._stream = stream

    def error(self, error: BaseException) -> None:
        """Fail the stream. No-op unless it is still writable."""
        self._stream._error(error)


class WritableStream:
    """
    A consumer-paced writable stream.

    Write through an exclusive writer:

        writer = stream.get_writer()
        await writer.ready
        await writer.write(b"chunk")
        await writer.close()

    Must be constructed inside a running event loop.
    """

    def __init__(
        self,
        sink: Any = None,
        *,
        high_water_mark: int = 1,
        size: Callable[[Any], int] | None = None,
    ) -> None:
        """
        Create the stream and start its sink.

        Args:
            sink: Object with optional `start`, `write`, `close` and `abort` hooks.
            high_water_mark: Queue budget before `ready` goes pending.
            size: Chunk size function. Defaults to counting chunks.

        Raises:
            Exception: Whatever a synchronous `start` raises.
        """
        self._sink = sink
        self._high_water_mark = high_water_mark
        self._size: Callable[[Any], int] = size or (lambda _chunk: 1)

        self._state: Literal["writable", "erroring", "errored", "closed"] = "writable"
        self._queue: deque[_WriteRequest | object] = deque()
        self._queue_total = 0
        self._in_flight: asyncio.Task[None] | None = None
        self._close_requested = False
        self._close_future: asyncio.Future[None] | None = None
        self._started = False
        self._backpressure = False
        self._stored_error: BaseException | None = None
        self._writer: WritableStreamWriter | None = None
        self._controller = WritableStreamController(self)

        start = getattr(sink, "start", None)
        result = start(self._controller) if start is not None else None
        self._update_backpressure()
        self._start_task = asyncio.get_running_loop().create_task(self._finish_start(result))

    @property
    def locked(self) -> bool:
        """True while a writer holds the lock."""
        return self._writer is not None

    def get_writer(self) -> WritableStreamWriter:
        """
        Acquire the exclusive writer.

        Raises:
            LockedError: If another writer holds the lock.
        """
        if self._writer is not None:
            raise LockedError("WritableStream is already locked to a writer")
        return WritableStreamWriter(self)

    async def close(self) -> None:
        """
        Close the stream after queued writes.

        Raises:
            LockedError: If a writer holds the lock.
        """
        if self._writer is not None:
            raise LockedError("Cannot close a locked WritableStream")
        await self._request_close()

    async def abort(self, reason: Any = None) -> None:
        """
        Abort the stream, discarding queued writes.

        Raises:
            LockedError: If a writer holds the lock.
        """
        if self._writer is not None:
            raise LockedError("Cannot abort a locked WritableStream")
        await self._abort(reason)

    @property
    def _desired_size(self) -> int | None:
        if self._state in ("errored", "erroring"):
            return None
        if self._state == "closed":
            return 0
        return self._high_water_mark - self._queue_total

    async def _finish_start(self, result: Any) -> None:
        try:
            await maybe_await(result)
        except Exception as exc:
            self._error(exc)
            return
        self._started = True
        self._advance_queue()

    def _update_backpressure(self) -> None:
        if self._state != "writable" or self._close_requested:
            return
        backpressure = self._high_water_mark - self._queue_total <= 0
        if backpressure == self._backpressure:
            return
        self._backpressure = backpressure

        writer = self._writer
        if writer is None:
            return
        if backpressure:
            if writer._ready.done():
                writer._ready = asyncio.get_running_loop().create_future()
        else:
            resolve(writer._ready, None)

    def _write(self, chunk: Any) -> asyncio.Future[None]:
        if self._state in ("errored", "erroring"):
            assert self._stored_error is not None
            raise self._stored_error
        if self._close_requested or self._state == "closed":
            raise StreamStateError("Cannot write to a closing stream")

        size = self._size(chunk)
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._queue.append(_WriteRequest(chunk, size, future))
        self._queue_total += size
        self._update_backpressure()
        self._advance_queue()
        return future

    def _request_close(self) -> asyncio.Future[None]:
        if self._state in ("errored", "erroring"):
            assert self._stored_error is not None
            raise self._stored_error
        if self._close_requested or self._state == "closed":
            raise StreamStateError("Stream is already closing")

        self._close_requested = True
        self._close_future = asyncio.get_running_loop().create_future()

        # A closing stream never pushes back: let pending `ready` waiters through.
        if self._writer is not None:
            resolve(self._writer._ready, None)

        self._queue.append(_CLOSE)
        self._advance_queue()
        return self._close_future

    def _advance_queue(self) -> None:
        if not self._started or self._in_flight is not None or self._state != "writable":
            return
        if not self._queue:
            return

        loop = asyncio.get_running_loop()
        head = self._queue.popleft()
        if head is _CLOSE:
            self._in_flight = loop.create_task(self._run_close())
        else:
            assert isinstance(head, _WriteRequest)
            self._in_flight = loop.create_task(self._run_write(head))

    async def _run_write(self, request: _WriteRequest) -> None:
        write = getattr(self._sink, "write", None)
        try:
            if write is not None:
                await maybe_await(write(request.chunk))
        except Exception as exc:
            self._in_flight = None
            self._queue_total -= request.size
            if not request.future.done():
                request.future.set_exception(exc)
            self._error(exc)
            return

        self._in_flight = None
        self._queue_total -= request.size
        resolve(request.future, None)
        self._update_backpressure()
        self._advance_queue()

    async def _run_close(self) -> None:
        close = getattr(self._sink, "close", None)
        assert self._close_future is not None
        try:
            if close is not None:
                await maybe_await(close())
        except Exception as exc:
            self._in_flight = None
            self._error(exc)
            return

        self._in_flight = None
        if self._state != "writable":
            return
        self._state = "closed"
        logger.debug("Writable stream %r closed", self)
        resolve(self._close_future, None)
        if self._writer is not None:
            resolve(self._writer._closed, None)

    def _reject_queued(self, error: BaseException) -> None:
        while self._queue:
            item = self._queue.popleft()
            if isinstance(item, _WriteRequest) and not item.future.done():
                item.future.set_exception(error)
        self._queue_total = 0
        if self._close_future is not None:
            reject(self._close_future, error)

    def _error(self, error: BaseException) -> None:
        if self._state != "writable":
            return
        self._state = "errored"
        self._stored_error = error
        logger.debug("Writable stream %r errored: %r", self, error)

        self._reject_queued(error)
        writer = self._writer
        if writer is not None:
            if writer._ready.done():
                writer._ready = rejected(error)
            else:
                reject(writer._ready, error)
            reject(writer._closed, error)

    async def _abort(self, reason: Any) -> None:
        if self._state in ("closed", "errored", "erroring"):
            return

        error = (
            reason
            if isinstance(reason, BaseException)
            else StreamStateError(f"Stream was aborted: {reason!r}")
        )
        self._state = "erroring"
        self._stored_error = error
        logger.debug("Aborting writable stream %r: %r", self, reason)

        writer = self._writer
        if writer is not None:
            if writer._ready.done():
                writer._ready = rejected(error)
            else:
                reject(writer._ready, error)

        # The sink finishes what it is doing before it hears about the abort.
        if self._in_flight is not None:
            await asyncio.wait([self._in_flight])
        self._reject_queued(error)

        abort = getattr(self._sink, "abort", None)
        try:
            if abort is not None:
                await maybe_await(abort(reason))
        finally:
            self._state = "errored"
            if self._writer is not None:
                reject(self._writer._closed, error)

    def __repr__(self) -> str:
        return f"<WritableStream state={self._state} locked={self.locked}>"


class WritableStreamWriter:
    """Exclusive writer of a `WritableStream`."""

    def __init__(self, stream: WritableStream) -> None:
        """Lock the stream to this writer."""
        self._stream: WritableStream | None = stream
        stream._writer = self
        loop = asyncio.get_running_loop()

        if stream._state in ("errored", "erroring"):
            assert stream._stored_error is not None
            self._ready: asyncio.Future[None] = rejected(stream._stored_error)
            self._closed: asyncio.Future[None] = rejected(stream._stored_error)
            return

        self._ready = loop.create_future()
        if not stream._backpressure or stream._close_requested or stream._state == "closed":
            self._ready.set_result(None)
        self._closed = loop.create_future()
        if stream._state == "closed":
            self._closed.set_result(None)

    @property
    def ready(self) -> asyncio.Future[None]:
        """Pending while the queue is over budget; rejects if the stream fails."""
        return self._ready

    @property
    def closed(self) -> asyncio.Future[None]:
        """
        Settles when the stream closes (result None) or errors (the error).

        Also rejects with `LockError` once the lock is released.
        """
        return self._closed

    @property
    def desired_size(self) -> int | None:
        """Room left in the queue. None once errored, 0 once closed."""
        return self._require_stream()._desired_size

    def write(self, chunk: Any) -> asyncio.Future[None]:
        """
        Queue a chunk.

        The chunk is queued immediately; await the returned future to learn
        when the sink accepted it.

        Raises:
            Exception: The stream's error, if it errored.
            StreamStateError: If the stream is closing or closed.
            LockError: If the lock was released.
        """
        return self._require_stream()._write(chunk)

    def close(self) -> asyncio.Future[None]:
        """Close the stream after queued writes. Await the result for completion."""
        return self._require_stream()._request_close()

    async def abort(self, reason: Any = None) -> None:
        """Abort the stream through this writer."""
        await self._require_stream()._abort(reason)

    def release_lock(self) -> None:
        """
        Unlock the stream. Queued writes keep going.

        Raises:
            LockError: If the lock was already released.
        """
        stream = self._require_stream()
        error = LockError("Writer lock was released")

        for name in ("_ready", "_closed"):
            future: asyncio.Future[None] = getattr(self, name)
            if future.done():
                setattr(self, name, rejected(error))
            else:
                reject(future, error)

        stream._writer = None
        self._stream = None

    def _require_stream(self) -> WritableStream:
        if self._stream is None:
            raise LockError("Writer lock was released")
        return self._stream
