"""
Backpressure bridge: push-stream write queue to a single suspension point.

A push-stream reports backpressure once, as the False returned by `write()`.
A pull-side writer needs something to await instead. `await_drained`
registers a waiter on the push-stream's own write bookkeeping and suspends
until every write that was outstanding at registration time completed.

Nothing polls: the push-stream resolves waiters as its writes complete,
oldest waiter first.
"""

from __future__ import annotations

import asyncio

from stream_bridge.push import DrainWaiter, Writable, WritableState
from stream_bridge.types import InvalidStreamError


def _writable_state(stream: Writable) -> WritableState:
    state = getattr(stream, "_writable_state", None)
    if state is None:
        raise InvalidStreamError(f"Expected a writable push-stream, got {stream!r}")
    return state


def pending_writes(stream: Writable, is_batch_write: bool = False) -> int:
    """
    Writes that must complete before the stream counts as drained.

    Batched writes flush the whole queue in one call, so at most one queued
    entry is counted for them. The write in flight always counts.

    Raises:
        InvalidStreamError: If the stream has no writable side.
    """
    state = _writable_state(stream)
    queued = min(1, len(state.queue)) if is_batch_write else len(state.queue)
    return queued + (1 if state.writing else 0)


async def await_drained(stream: Writable, is_batch_write: bool = False) -> bool:
    """
    Suspend until the push-stream's outstanding writes completed.

    Returns:
        True once drained (immediately if nothing is outstanding).
        False if the stream is, or gets, destroyed before draining.

    Raises:
        InvalidStreamError: If the stream has no writable side.
    """
    state = _writable_state(stream)
    if stream.destroyed:
        return False

    writes = pending_writes(stream, is_batch_write)
    if writes == 0:
        return True

    waiter = DrainWaiter(writes=writes, future=asyncio.get_running_loop().create_future())
    if state.drains is None:
        state.drains = []
    state.drains.append(waiter)
    return await waiter.future
