"""
Synchronous event dispatch for push-streams.

Push-streams announce everything through named events:

- `data`: a chunk is available (payload: the chunk)
- `end`: the readable side delivered its last chunk
- `finish`: the writable side flushed its last write
- `drain`: a full write queue emptied
- `error`: the stream failed (payload: the original exception)
- `close`: the stream was torn down (always last)

Handlers run synchronously inside `emit()`, in registration order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]
"""An event handler. Receives the emitted payload as positional arguments."""


@dataclass(slots=True)
class _Listener:
    """A registered handler and whether it fires only once."""

    handler: Handler
    once: bool = False


class EventEmitter:
    """
    Minimal named-event dispatcher.

    Handlers registered during an emit do not run for that emit.
    Handlers removed during an emit still run if they were already scheduled.
    """

    def __init__(self) -> None:
        """Initialize with no listeners."""
        self._listeners: dict[str, list[_Listener]] = {}

    def on(self, event: str, handler: Handler) -> EventEmitter:
        """Register a handler for every future emission of `event`."""
        self._listeners.setdefault(event, []).append(_Listener(handler))
        return self

    def once(self, event: str, handler: Handler) -> EventEmitter:
        """Register a handler that is removed after its first call."""
        self._listeners.setdefault(event, []).append(_Listener(handler, once=True))
        return self

    def off(self, event: str, handler: Handler) -> EventEmitter:
        """
        Remove the earliest registration of `handler` for `event`.

        Removing a handler that is not registered is a no-op.
        """
        listeners = self._listeners.get(event)
        if not listeners:
            return self
        for index, listener in enumerate(listeners):
            if listener.handler == handler:
                del listeners[index]
                break
        if not listeners:
            del self._listeners[event]
        return self

    def listener_count(self, event: str) -> int:
        """Number of handlers currently registered for `event`."""
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> bool:
        """
        Call every handler registered for `event`.

        Returns:
            True if at least one handler ran.
        """
        listeners = self._listeners.get(event)
        if not listeners:
            if event == "error":
                logger.warning("Unhandled error event on %r: %r", self, args[0] if args else None)
            return False

        # Snapshot so handlers may (un)subscribe while we dispatch.
        for listener in list(listeners):
            if listener.once:
                self._remove_listener(event, listener)
            listener.handler(*args)
        return True

    def _remove_listener(self, event: str, listener: _Listener) -> None:
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)
            if not listeners:
                del self._listeners[event]


async def once(emitter: EventEmitter, event: str) -> tuple[Any, ...]:
    """
    Wait for the next emission of `event`.

    Returns:
        The emitted payload as a tuple.

    Raises:
        Exception: The error payload, if `error` fires first.
    """
    future: asyncio.Future[tuple[Any, ...]] = asyncio.get_running_loop().create_future()

    def on_event(*args: Any) -> None:
        if not future.done():
            future.set_result(args)

    def on_error(error: BaseException) -> None:
        if not future.done():
            future.set_exception(error)

    emitter.on(event, on_event)
    if event != "error":
        emitter.on("error", on_error)
    try:
        return await future
    finally:
        emitter.off(event, on_event)
        if event != "error":
            emitter.off("error", on_error)
