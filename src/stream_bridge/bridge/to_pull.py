"""
Push-stream in, pull-stream out.

Readable side
-------------
The push-stream is kept paused. Every `pull` from the pull-stream resumes it
just long enough for one `data` event, which is enqueued and pauses the
source again. The pull-stream's queue budget therefore bounds how far the
push-stream runs ahead.

::

    pull(controller) --> source.resume()
                             |
    data(chunk)  -------> controller.enqueue(chunk); source.pause()
    end / close  -------> controller.close()
    error(e)     -------> controller.error(e)

The four subscriptions live in one `EventSubscriptionSet` that is torn down
exactly once, whichever of end, close, error or cancel comes first.

Writable side
-------------
Each pull-side write is forwarded to `write()`. When that reports
backpressure the write does not resolve until the push-stream drained.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from stream_bridge.pull import (
    ReadableStream,
    ReadableStreamController,
    WritableStream,
    WritableStreamController,
)
from stream_bridge.pull.futures import reject, resolve
from stream_bridge.push import Readable, Writable, finished
from stream_bridge.push.events import Handler
from stream_bridge.types import InvalidStreamError, StreamStateError, to_bytes

from .backpressure import await_drained
from .classify import is_push_readable, is_push_writable, split_endpoints
from .options import PullOptions, resolve_options

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PullPair:
    """
    Both ends of an adapted duplex.

    Also usable as a descriptor: `to_push(pair)` adapts it back.
    """

    readable: ReadableStream
    """Data produced by the push-stream."""

    writable: WritableStream
    """Data consumed by the push-stream."""

    done: asyncio.Future[None]
    """
    Resolves once the readable side ended and the writable side closed.

    Rejects with the first error seen on either side instead.
    """


class EventSubscriptionSet:
    """
    Handlers attached to one push-stream, removed together exactly once.

    After `tear_down()` the set stays empty and every later teardown is a no-op.
    """

    __slots__ = ("_stream", "_handlers", "torn_down")

    def __init__(self, stream: Readable) -> None:
        """Create an empty set for `stream`."""
        self._stream = stream
        self._handlers: dict[str, Handler] = {}
        self.torn_down = False

    def subscribe(self, handlers: Mapping[str, Handler]) -> None:
        """Attach all handlers."""
        self._handlers = dict(handlers)
        for event, handler in self._handlers.items():
            self._stream.on(event, handler)

    def tear_down(self) -> bool:
        """
        Detach all handlers.

        Returns:
            True for the call that actually tore the set down.
        """
        if self.torn_down:
            return False
        self.torn_down = True
        for event, handler in self._handlers.items():
            self._stream.off(event, handler)
        self._handlers.clear()
        return True


class _Completion:
    """Couples the end of both sides of an adapted duplex."""

    __slots__ = ("future", "_read_ended", "_write_finished")

    def __init__(self) -> None:
        self.future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._read_ended = False
        self._write_finished = False

    def read_ended(self) -> None:
        self._read_ended = True
        self._check()

    def write_finished(self) -> None:
        self._write_finished = True
        self._check()

    def failed(self, error: BaseException) -> None:
        reject(self.future, error)

    def _check(self) -> None:
        if self._read_ended and self._write_finished:
            resolve(self.future, None)


class PushSource:
    """Underlying pull-stream source reading from a push-stream."""

    def __init__(self, stream: Readable, completion: _Completion | None = None) -> None:
        """Wrap a readable push-stream. Nothing is subscribed until `start`."""
        self._stream = stream
        self._completion = completion
        self._subscriptions = EventSubscriptionSet(stream)
        self._controller: ReadableStreamController | None = None

    def start(self, controller: ReadableStreamController) -> None:
        """Subscribe to the push-stream and hold it paused until the first pull."""
        self._controller = controller
        self._subscriptions.subscribe(
            {
                "data": self._on_data,
                "end": self._on_end,
                "close": self._on_end,
                "error": self._on_error,
            }
        )
        self._stream.pause()

    def pull(self, controller: ReadableStreamController) -> None:
        """Let exactly one more chunk through."""
        if not self._subscriptions.torn_down:
            self._stream.resume()

    def cancel(self, reason: Any) -> None:
        """Stop listening and shut the push-stream down."""
        self._subscriptions.tear_down()
        logger.debug("Pull-side consumer cancelled %r: %r", self._stream, reason)
        if self._completion is not None:
            self._completion.read_ended()

        self._stream.push(None)
        self._shut_down()

    def _shut_down(self, error: BaseException | None = None) -> None:
        stream = self._stream
        stream.pause()
        destroy = getattr(stream, "destroy", None)
        close = getattr(stream, "close", None)
        if callable(destroy):
            destroy(error)
        elif callable(close):
            close()

    def _on_data(self, chunk: Any) -> None:
        if self._subscriptions.torn_down:
            return
        assert self._controller is not None
        try:
            self._controller.enqueue(to_bytes(chunk))
        except (TypeError, StreamStateError) as exc:
            self._on_error(exc)
            self._shut_down(exc)
            return
        self._stream.pause()

    def _on_end(self, *_: Any) -> None:
        if not self._subscriptions.tear_down():
            return
        assert self._controller is not None
        self._controller.close()
        if self._completion is not None:
            self._completion.read_ended()

    def _on_error(self, error: BaseException) -> None:
        if not self._subscriptions.tear_down():
            return
        assert self._controller is not None
        self._controller.error(error)
        if self._completion is not None:
            self._completion.failed(error)


class PushSink:
    """Underlying pull-stream sink writing into a push-stream."""

    def __init__(
        self,
        stream: Writable,
        readable: Readable | None = None,
        completion: _Completion | None = None,
    ) -> None:
        """
        Wrap a writable push-stream.

        Args:
            stream: The push-stream receiving writes.
            readable: Readable side of the same logical connection, told
                about write failures.
            completion: Duplex completion to report to.
        """
        self._stream = stream
        self._readable = readable
        self._completion = completion
        self._controller: WritableStreamController | None = None
        self._error: BaseException | None = None

    def start(self, controller: WritableStreamController) -> None:
        """Watch the push-stream for failures that happen between writes."""
        self._controller = controller
        self._stream.on("error", self._on_error)

    async def write(self, chunk: Any) -> None:
        """Forward one chunk, waiting for the push-stream to drain if it pushes back."""
        try:
            if not self._stream.write(to_bytes(chunk)):
                if not await await_drained(self._stream):
                    # Let teardown report its error before picking what to raise.
                    teardown = self._stream._destroy_task
                    if teardown is not None:
                        await asyncio.wait([teardown])
                    raise self._error or StreamStateError("Stream was destroyed before it drained")
        except Exception as exc:
            self._fail(exc)
            raise

    async def close(self) -> None:
        """Signal end-of-input and wait for the push-stream to finish."""
        end = getattr(self._stream, "end", None)
        try:
            if callable(end):
                end()
                await finished(self._stream)
        finally:
            self._stream.off("error", self._on_error)
        if self._completion is not None:
            self._completion.write_finished()

    def abort(self, reason: Any) -> None:
        """Destroy the push-stream with the abort reason."""
        self._stream.off("error", self._on_error)
        error = (
            reason
            if isinstance(reason, BaseException)
            else StreamStateError(f"Stream was aborted: {reason!r}")
        )
        self._fail(error)

    def _on_error(self, error: BaseException) -> None:
        self._error = error
        if self._controller is not None:
            self._controller.error(error)

    def _fail(self, error: BaseException) -> None:
        destroy = getattr(self._stream, "destroy", None)
        if callable(destroy):
            destroy(error)
        if self._completion is not None:
            self._completion.failed(error)

        # The readable end hears about it on the next loop turn, after the
        # failing write settled. A duplex already hears it from destroy().
        readable = self._readable
        if readable is not None and readable is not self._stream:
            asyncio.get_running_loop().call_soon(readable.emit, "error", error)


def to_pull(
    source: Any,
    options: PullOptions | Mapping[str, Any] | None = None,
    **overrides: Any,
) -> ReadableStream | WritableStream | PullPair:
    """
    Present a push-stream as pull-streams.

    Args:
        source: A push-stream, or a descriptor whose `readable`, `writable`
            or `duplex` fields hold push-streams.
        options: `PullOptions`, or a mapping of option names.
        **overrides: Option values taking precedence over `options`.

    Returns:
        A `ReadableStream` for a readable source, a `WritableStream` for a
        writable one, and a `PullPair` when both ends exist.

    Raises:
        InvalidStreamError: If no push-stream end can be found.
    """
    opts = resolve_options(PullOptions, options, overrides)
    endpoints = split_endpoints(source)

    readable = endpoints.readable
    writable = endpoints.writable
    if readable is not None and not is_push_readable(readable):
        raise InvalidStreamError(f"to_pull expects a readable push-stream, got {readable!r}")
    if writable is not None and not is_push_writable(writable):
        raise InvalidStreamError(f"to_pull expects a writable push-stream, got {writable!r}")

    completion = _Completion() if readable is not None and writable is not None else None

    readable_stream: ReadableStream | None = None
    if readable is not None:
        readable_stream = ReadableStream(
            PushSource(readable, completion),
            type="bytes" if opts.as_bytes else None,
            high_water_mark=opts.high_water_mark,
        )
        if writable is None:
            return readable_stream

    writable_stream = WritableStream(
        PushSink(writable, readable, completion),
        high_water_mark=1 if opts.high_water_mark is None else opts.high_water_mark,
    )
    if readable_stream is None:
        return writable_stream

    assert completion is not None
    return PullPair(readable=readable_stream, writable=writable_stream, done=completion.future)
