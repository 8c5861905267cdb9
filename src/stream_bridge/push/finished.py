"""Completion helper for push-streams."""

from __future__ import annotations

import asyncio

from .stream import Stream, StreamFlags


async def finished(stream: Stream) -> None:
    """
    Wait until a push-stream completed.

    A stream with a writable side completes on `finish`; a readable-only
    stream completes on `end`. Either kind also completes on `close`, so a
    destroyed stream never leaves the caller waiting.

    Raises:
        Exception: The original error, if `error` fires before completion.
    """
    writable_state = stream._writable_state
    readable_state = stream._readable_state

    if writable_state is not None:
        event = "finish"
        done = writable_state.finished
    else:
        assert readable_state is not None
        event = "end"
        done = readable_state.end_emitted

    if done or StreamFlags.DESTROYED in stream._duplex_state:
        return

    future: asyncio.Future[None] = asyncio.get_running_loop().create_future()

    def on_done(*_: object) -> None:
        if not future.done():
            future.set_result(None)

    def on_error(error: BaseException) -> None:
        if not future.done():
            future.set_exception(error)

    stream.on(event, on_done)
    stream.on("close", on_done)
    stream.on("error", on_error)
    try:
        await future
    finally:
        stream.off(event, on_done)
        stream.off("close", on_done)
        stream.off("error", on_error)
