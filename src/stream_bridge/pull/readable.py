"""
Readable pull-streams.

The consumer drives the flow. A reader asks for data; the stream asks its
underlying source for more through `pull(controller)` only while there is
room in the queue or a read is waiting.

Lifecycle of a source:
    1. `start(controller)` runs once at construction.
    2. `pull(controller)` runs whenever more data is wanted, never concurrently.
    3. `cancel(reason)` runs if the consumer gives up early.

Every hook may be a plain function or a coroutine function.

Backpressure is a budget: `desired_size = high_water_mark - queued size`.
A source that ignores the budget still works; it just buffers more.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator, Callable
from typing import Any, Literal, NamedTuple, Protocol

from stream_bridge.types import LockedError, LockError, StreamStateError, chunk_length, is_bytes_like

from .futures import maybe_await, reject, rejected, resolve

logger = logging.getLogger(__name__)

ReadableType = Literal["bytes"] | None
"""Stream mode. "bytes" accepts only byte buffers and sizes the queue in bytes."""


class ReadResult(NamedTuple):
    """Outcome of one `read()` call."""

    value: Any
    """The chunk, or None once the stream is done."""

    done: bool
    """True when the stream closed and no chunk was returned."""


class UnderlyingSource(Protocol):
    """Shape of a source. Every method is optional."""

    def start(self, controller: ReadableStreamController) -> Any:
        """Set up the source. May return an awaitable."""
        ...

    def pull(self, controller: ReadableStreamController) -> Any:
        """Enqueue more data. May return an awaitable."""
        ...

    def cancel(self, reason: Any) -> Any:
        """Stop producing. May return an awaitable."""
        ...


class ReadableStreamController:
    """Handle the source uses to feed its stream."""

    __slots__ = ("_stream",)

    def __init__(self, stream: ReadableStream) -> None:
        """Bind the controller to its stream."""
        self._stream = stream

    @property
    def desired_size(self) -> int | None:
        """
        Room left in the queue.

        - None once the stream errored.
        - 0 once the stream closed.
        - Zero or negative means the source should stop producing.
        """
        stream = self._stream
        if stream._state == "errored":
            return None
        if stream._state == "closed":
            return 0
        return stream._high_water_mark - stream._queue_total

    def enqueue(self, chunk: Any) -> None:
        """
        Hand a chunk to the stream.

        Raises:
            StreamStateError: If the stream is closing, closed or errored.
            TypeError: If a byte stream receives something that is not bytes.
        """
        self._stream._enqueue(chunk)

    def close(self) -> None:
        """
        Signal that no more chunks will be enqueued.

        Queued chunks are still delivered before readers see `done`.

        Raises:
            StreamStateError: If the stream is already closing, closed or errored.
        """
        stream = self._stream
        if stream._close_requested or stream._state != "readable":
            raise StreamStateError("Stream is already closed")
        stream._close_requested = True
        if not stream._queue:
            stream._finalize_close()

    def error(self, error: BaseException) -> None:
        """Fail the stream. No-op if it already closed or errored."""
        self._stream._error(error)


class ReadableStream:
    """
    A consumer-driven readable stream.

    Read through an exclusive reader:

        reader = stream.get_reader()
        while not (result := await reader.read()).done:
            handle(result.value)
        reader.release_lock()

    Or iterate, which acquires and releases the reader for you:

        async for chunk in stream:
            handle(chunk)

    Must be constructed inside a running event loop.
    """

    def __init__(
        self,
        source: Any = None,
        *,
        type: ReadableType = None,
        high_water_mark: int | None = None,
        size: Callable[[Any], int] | None = None,
    ) -> None:
        """
        Create the stream and start its source.

        Args:
            source: Object with optional `start`, `pull` and `cancel` hooks.
            type: "bytes" for a byte stream, None for arbitrary chunks.
            high_water_mark: Queue budget. Defaults to 0 bytes for byte
                streams and 1 chunk otherwise.
            size: Chunk size function. Ignored for byte streams.

        Raises:
            ValueError: If `type` is not supported.
            Exception: Whatever a synchronous `start` raises.
        """
        if type not in (None, "bytes"):
            raise ValueError(f"Unsupported readable stream type: {type!r}")

        self._source = source
        self._type: ReadableType = type
        if type == "bytes":
            self._high_water_mark = 0 if high_water_mark is None else high_water_mark
            self._size: Callable[[Any], int] = chunk_length
        else:
            self._high_water_mark = 1 if high_water_mark is None else high_water_mark
            self._size = size or (lambda _chunk: 1)

        self._state: Literal["readable", "closed", "errored"] = "readable"
        self._queue: deque[tuple[Any, int]] = deque()
        self._queue_total = 0
        self._close_requested = False
        self._started = False
        self._pulling = False
        self._pull_again = False
        self._stored_error: BaseException | None = None
        self._reader: ReadableStreamReader | None = None
        self._controller = ReadableStreamController(self)
        self._pull_task: asyncio.Task[None] | None = None

        start = getattr(source, "start", None)
        result = start(self._controller) if start is not None else None
        self._start_task = asyncio.get_running_loop().create_task(self._finish_start(result))

    @property
    def type(self) -> ReadableType:
        """The stream mode."""
        return self._type

    @property
    def locked(self) -> bool:
        """True while a reader holds the lock."""
        return self._reader is not None

    def get_reader(self) -> ReadableStreamReader:
        """
        Acquire the exclusive reader.

        Raises:
            LockedError: If another reader holds the lock.
        """
        if self._reader is not None:
            raise LockedError("ReadableStream is already locked to a reader")
        return ReadableStreamReader(self)

    async def cancel(self, reason: Any = None) -> None:
        """
        Give up on the stream and tell the source to stop.

        Raises:
            LockedError: If a reader holds the lock.
        """
        if self._reader is not None:
            raise LockedError("Cannot cancel a locked ReadableStream")
        await self._cancel(reason)

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Any]:
        reader = self.get_reader()
        exhausted = False
        try:
            while True:
                result = await reader.read()
                if result.done:
                    exhausted = True
                    return
                yield result.value
        finally:
            # Leaving early cancels the source, like abandoning a reader would.
            if not exhausted and self._state == "readable":
                await reader.cancel()
            reader.release_lock()

    async def _finish_start(self, result: Any) -> None:
        try:
            await maybe_await(result)
        except Exception as exc:
            self._error(exc)
            return
        self._started = True
        self._call_pull_if_needed()

    def _should_pull(self) -> bool:
        if not self._started or self._state != "readable" or self._close_requested:
            return False
        if self._reader is not None and self._reader._read_requests:
            return True
        return self._high_water_mark - self._queue_total > 0

    def _call_pull_if_needed(self) -> None:
        if getattr(self._source, "pull", None) is None or not self._should_pull():
            return
        if self._pulling:
            self._pull_again = True
            return
        self._pulling = True
        self._pull_task = asyncio.get_running_loop().create_task(self._run_pull())

    async def _run_pull(self) -> None:
        try:
            await maybe_await(self._source.pull(self._controller))
        except Exception as exc:
            self._pulling = False
            self._error(exc)
            return

        self._pulling = False
        if self._pull_again:
            self._pull_again = False
            self._call_pull_if_needed()

    def _enqueue(self, chunk: Any) -> None:
        if self._close_requested or self._state != "readable":
            raise StreamStateError("Cannot enqueue into a closed stream")
        if self._type == "bytes" and not is_bytes_like(chunk):
            raise TypeError(f"Byte streams only accept bytes-like chunks, got {type(chunk).__name__}")

        # Hand the chunk straight to a waiting read when there is one.
        reader = self._reader
        if reader is not None:
            while reader._read_requests:
                request = reader._read_requests.popleft()
                if not request.done():
                    request.set_result(ReadResult(chunk, False))
                    self._call_pull_if_needed()
                    return

        try:
            size = self._size(chunk)
        except Exception as exc:
            self._error(exc)
            raise

        self._queue.append((chunk, size))
        self._queue_total += size
        self._call_pull_if_needed()

    def _dequeue(self) -> Any:
        chunk, size = self._queue.popleft()
        self._queue_total -= size
        if self._close_requested and not self._queue:
            self._finalize_close()
        else:
            self._call_pull_if_needed()
        return chunk

    def _finalize_close(self) -> None:
        if self._state != "readable":
            return
        self._state = "closed"
        logger.debug("Readable stream %r closed", self)

        reader = self._reader
        if reader is not None:
            while reader._read_requests:
                resolve(reader._read_requests.popleft(), ReadResult(None, True))
            resolve(reader._closed, None)

    def _error(self, error: BaseException) -> None:
        if self._state != "readable":
            return
        self._state = "errored"
        self._stored_error = error
        self._queue.clear()
        self._queue_total = 0
        logger.debug("Readable stream %r errored: %r", self, error)

        reader = self._reader
        if reader is not None:
            while reader._read_requests:
                request = reader._read_requests.popleft()
                if not request.done():
                    request.set_exception(error)
            reject(reader._closed, error)

    async def _cancel(self, reason: Any) -> None:
        if self._state == "closed":
            return
        if self._state == "errored":
            assert self._stored_error is not None
            raise self._stored_error

        self._queue.clear()
        self._queue_total = 0
        self._finalize_close()

        cancel = getattr(self._source, "cancel", None)
        if cancel is not None:
            await maybe_await(cancel(reason))

    def __repr__(self) -> str:
        return f"<ReadableStream type={self._type} state={self._state} locked={self.locked}>"


class ReadableStreamReader:
    """Exclusive reader of a `ReadableStream`."""

    def __init__(self, stream: ReadableStream) -> None:
        """Lock the stream to this reader."""
        self._stream: ReadableStream | None = stream
        self._read_requests: deque[asyncio.Future[ReadResult]] = deque()
        stream._reader = self

        if stream._state == "errored":
            assert stream._stored_error is not None
            self._closed: asyncio.Future[None] = rejected(stream._stored_error)
        else:
            self._closed = asyncio.get_running_loop().create_future()
            if stream._state == "closed":
                self._closed.set_result(None)

    @property
    def closed(self) -> asyncio.Future[None]:
        """
        Settles when the stream closes (result None) or errors (the error).

        Also rejects with `LockError` once the lock is released.
        """
        return self._closed

    async def read(self) -> ReadResult:
        """
        Read the next chunk.

        Returns:
            `ReadResult(chunk, False)`, or `ReadResult(None, True)` once closed.

        Raises:
            Exception: The stream's error, if it errored.
            LockError: If the lock was released, before or during the read.
        """
        stream = self._require_stream()

        if stream._state == "closed":
            return ReadResult(None, True)
        if stream._state == "errored":
            assert stream._stored_error is not None
            raise stream._stored_error
        if stream._queue:
            return ReadResult(stream._dequeue(), False)

        request: asyncio.Future[ReadResult] = asyncio.get_running_loop().create_future()
        self._read_requests.append(request)
        stream._call_pull_if_needed()
        return await request

    async def cancel(self, reason: Any = None) -> None:
        """Cancel the stream through this reader."""
        await self._require_stream()._cancel(reason)

    def release_lock(self) -> None:
        """
        Unlock the stream.

        Pending reads fail with `LockError`. The stream itself is left as is.

        Raises:
            LockError: If the lock was already released.
        """
        stream = self._require_stream()
        error = LockError("Reader lock was released")

        while self._read_requests:
            request = self._read_requests.popleft()
            if not request.done():
                request.set_exception(error)

        if self._closed.done():
            self._closed = rejected(error)
        else:
            reject(self._closed, error)

        stream._reader = None
        self._stream = None

    def _require_stream(self) -> ReadableStream:
        if self._stream is None:
            raise LockError("Reader lock was released")
        return self._stream
