"""
Pull-stream in, push-stream out.

The adapter is a push-stream class whose hooks are backed by pull-stream
locks:

- `_read()` issues exactly one `reader.read()` at a time and pushes the result.
- `_write()` waits for `writer.ready`, then awaits `writer.write()`.
- `_destroy()` releases whatever lock is still held, unless `close()` is
  already releasing them.

The push-stream's own buffering decides how far reads run ahead: `_read()`
is only called while its buffer is below the high-water mark.

Locks are taken at construction and given back exactly once, by `close()`
(see `lifecycle`) or by teardown, whichever runs first. The pull-streams
themselves are never closed here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from stream_bridge.pull import (
    ReadableStream,
    ReadableStreamReader,
    ReadResult,
    WritableStream,
    WritableStreamWriter,
)
from stream_bridge.pull.futures import maybe_await
from stream_bridge.push import Duplex, Readable, Transform, Writable, finished
from stream_bridge.types import (
    InvalidStreamError,
    LockError,
    LockReleaseError,
    StreamStateError,
    chunk_length,
    to_bytes,
)

from .classify import is_push_stream, split_endpoints
from .lifecycle import release_adapter_locks, wait_for_writer_ready
from .options import PushOptions, resolve_options

logger = logging.getLogger(__name__)


class _PullBridge:
    """
    Lock bookkeeping shared by every pull-backed push-stream.

    Must come before the push-stream class in the bases so its hooks win.
    """

    # Provided by the push-stream base.
    destroyed: bool
    _readable_state: Any

    def __init__(
        self,
        readable: ReadableStream | None = None,
        writable: WritableStream | Any = None,
        **kwargs: Any,
    ) -> None:
        """
        Wrap pull-streams and take their locks.

        Args:
            readable: Pull-stream providing the data pushed downstream.
            writable: Pull-stream receiving written chunks, or an async
                callable consuming them.
            **kwargs: Forwarded to the push-stream base class.

        Raises:
            LockedError: If either pull-stream is already locked.
        """
        if writable is not None and not isinstance(writable, WritableStream):
            kwargs["write"] = writable
            writable = None
        super().__init__(**kwargs)

        # Bytes pushed downstream so far.
        self.bytes_read = 0
        # Set by close(); unlike destroyed, the push-stream stays usable.
        self.released = False
        self.pending_read: asyncio.Future[ReadResult] | None = None
        # Held locks. None once given back.
        self.reader: ReadableStreamReader | None = None
        self.writer: WritableStreamWriter | None = None
        self._release_task: asyncio.Task[None] | None = None

        if readable is not None:
            self.reader = readable.get_reader()
        if writable is not None:
            try:
                self.writer = writable.get_writer()
            except LockError:
                if self.reader is not None:
                    self.reader.release_lock()
                    self.reader = None
                raise

        # An external failure of either pull-stream becomes an error here.
        if self.reader is not None:
            self.reader.closed.add_done_callback(self._on_lock_closed)
        if self.writer is not None:
            self.writer.closed.add_done_callback(self._on_lock_closed)

    async def close(self) -> None:
        """
        Give the pull-stream locks back after in-flight work settled.

        The pull-streams stay open. Calling this again waits for the same
        release instead of starting another.

        Raises:
            LockReleaseError: If releasing a lock failed.
        """
        self.released = True
        if self._release_task is None:
            self._stop_reading()
            logger.debug("Releasing locks of %r", self)
            self._release_task = asyncio.get_running_loop().create_task(release_adapter_locks(self))
        await self._release_task

    async def release(self) -> None:
        """Alias of `close()`."""
        await self.close()

    async def flushed(self) -> None:
        """Wait until every write was handed to the writer."""
        await finished(self)  # type: ignore[arg-type]

    def release_writer_lock(self) -> None:
        """
        Release the writer lock if it is still held.

        Raises:
            LockReleaseError: If the writer refused.
        """
        writer = self.writer
        if writer is None:
            return
        self.writer = None
        try:
            writer.release_lock()
        except LockError as exc:
            raise LockReleaseError("writer", exc.message) from exc

    def release_reader_lock(self) -> None:
        """
        Release the reader lock if it is still held.

        Raises:
            LockReleaseError: If the reader refused.
        """
        reader = self.reader
        if reader is None:
            return
        self.reader = None
        try:
            reader.release_lock()
        except LockError as exc:
            raise LockReleaseError("reader", exc.message) from exc

    async def _read(self) -> None:
        reader = self.reader
        if self.released or reader is None:
            self.push(None)  # type: ignore[attr-defined]
            return
        if self.pending_read is not None:
            raise StreamStateError("A read is already pending")

        self.pending_read = asyncio.ensure_future(reader.read())
        try:
            result = await self.pending_read
        finally:
            self.pending_read = None

        # None is the end-of-stream sentinel, never a payload.
        if result.done or self.released or result.value is None:
            self.push(None)  # type: ignore[attr-defined]
            return

        value = to_bytes(result.value)
        self.bytes_read += chunk_length(value)
        self.push(value)  # type: ignore[attr-defined]

    async def _write(self, chunk: Any) -> None:
        write_hook = self._write_hook  # type: ignore[attr-defined]
        if write_hook is not None:
            await maybe_await(write_hook(to_bytes(chunk)))
            return

        if not self.writable or (self.writer is None and not self.released):  # type: ignore[attr-defined]
            raise StreamStateError(f"{self!r} is not writable")

        if self.writer is not None:
            await wait_for_writer_ready(self.writer)

        # Writes arriving after release or teardown are accepted and dropped.
        if self.destroyed or self.released or self.writer is None:
            return
        await self.writer.write(to_bytes(chunk))

    async def torn_down(self) -> None:
        """Wait until a started teardown emitted `error` and `close`."""
        task = self._destroy_task  # type: ignore[attr-defined]
        if task is not None:
            await asyncio.wait([task])

    def _abort_pending(self) -> None:
        # A read still waiting on the pull-stream is abandoned.
        pending = self.pending_read
        if pending is not None and not pending.done():
            pending.cancel()
        super()._abort_pending()  # type: ignore[misc]

    async def _destroy(self, error: BaseException | None) -> None:
        try:
            await super()._destroy(error)  # type: ignore[misc]
        finally:
            # A running release sequence gives the locks back itself, after
            # this teardown reported its error.
            if self._release_task is None:
                self._release_held_locks()

    def _release_held_locks(self) -> None:
        for release in (self.release_writer_lock, self.release_reader_lock):
            try:
                release()
            except LockReleaseError as exc:
                logger.warning("%s", exc)

    def _stop_reading(self) -> None:
        """Drop chunks not yet delivered and end the readable side."""
        state = self._readable_state
        if state is None:
            return
        state.buffer.clear()
        state.buffered = 0
        if self.pending_read is None:
            self.push(None)  # type: ignore[attr-defined]

    def _on_lock_closed(self, closed: asyncio.Future[None]) -> None:
        if closed.cancelled():
            return
        error = closed.exception()
        # Our own release rejects `closed` with a LockError.
        if error is None or isinstance(error, LockError) or self.released:
            return
        self.destroy(error)  # type: ignore[attr-defined]


class PullBackedReadable(_PullBridge, Readable):
    """A readable push-stream fed by a readable pull-stream."""


class PullBackedWritable(_PullBridge, Writable):
    """A writable push-stream draining into a writable pull-stream."""


class PullBackedDuplex(_PullBridge, Duplex):
    """A duplex push-stream over a readable and a writable pull-stream."""


class PullBackedTransform(_PullBridge, Transform):
    """
    A transform push-stream over a readable and a writable pull-stream.

    Unlike the duplex, its readable side ends once its writable side finished.
    """


PullBacked = PullBackedReadable | PullBackedWritable | PullBackedDuplex | PullBackedTransform
"""Any push-stream produced by `to_push`."""


def _is_write_capability(value: Any) -> bool:
    return isinstance(value, WritableStream) or (callable(value) and not is_push_stream(value))


def to_push(
    source: Any,
    options: PushOptions | Mapping[str, Any] | None = None,
    **overrides: Any,
) -> PullBacked:
    """
    Present pull-streams as a push-stream.

    Args:
        source: A `ReadableStream`, a `WritableStream`, or a descriptor whose
            `readable`/`writable` fields hold them. A writable field may also
            be an async callable consuming chunks.
        options: `PushOptions`, or a mapping of option names.
        **overrides: Option values taking precedence over `options`.

    Returns:
        A readable, writable, duplex or transform push-stream, depending on
        which capabilities were found.

    Raises:
        InvalidStreamError: If no pull-stream capability can be found.
        LockedError: If a pull-stream is already locked.
    """
    opts = resolve_options(PushOptions, options, overrides)
    endpoints = split_endpoints(source)

    readable = endpoints.readable
    # A writable carried by the input wins over the option.
    writable = endpoints.writable if endpoints.writable is not None else opts.write

    if readable is not None and not isinstance(readable, ReadableStream):
        raise InvalidStreamError(f"to_push expects a readable pull-stream, got {readable!r}")
    if writable is not None and not _is_write_capability(writable):
        raise InvalidStreamError(f"to_push expects a writable pull-stream or a callable, got {writable!r}")

    cls: type[PullBacked]
    if readable is None:
        cls = PullBackedWritable
    elif writable is None:
        cls = PullBackedReadable
    elif opts.as_transform:
        cls = PullBackedTransform
    else:
        cls = PullBackedDuplex

    logger.debug("Adapting %r as %s", source, cls.__name__)
    if cls is PullBackedReadable:
        return cls(readable, high_water_mark=opts.high_water_mark)
    return cls(readable, writable, high_water_mark=opts.high_water_mark)
