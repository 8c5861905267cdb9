"""Round trips through both adapters."""

from __future__ import annotations

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from stream_bridge import await_drained, to_pull, to_push
from stream_bridge.bridge import PullPair
from stream_bridge.pull import ReadableStream, WritableStream
from stream_bridge.push import Transform, finished
from tests.stream_bridge.helpers import (
    CollectingSink,
    collect,
    pull_readable_of,
    push_readable_of,
    read_all,
    run_async,
)

chunk_lists = st.lists(st.binary(min_size=1, max_size=64), max_size=20)
"""Sequences of non-empty byte chunks."""


@given(chunk_lists)
@settings(max_examples=60, deadline=None)
def test_push_pull_push_preserves_bytes(chunks: list[bytes]) -> None:
    """push -> pull -> push delivers the same bytes in the same order."""

    async def run_test() -> list[bytes]:
        pulled = to_pull(push_readable_of(*chunks))
        assert isinstance(pulled, ReadableStream)
        return await collect(to_push(pulled))

    assert b"".join(run_async(run_test())) == b"".join(chunks)


@given(chunk_lists)
@settings(max_examples=60, deadline=None)
def test_pull_push_pull_preserves_chunks(chunks: list[bytes]) -> None:
    """pull -> push -> pull keeps every chunk boundary."""

    async def run_test() -> list[bytes]:
        return await read_all(to_pull(to_push(pull_readable_of(*chunks))))

    assert run_async(run_test()) == chunks


def test_transform_through_pull_pair() -> None:
    """Writes into the pull pair come back out of its readable side."""
    chunks = [b"alpha", b"beta", b"gamma"]

    async def run_test() -> list[bytes]:
        pair = to_pull(Transform())
        assert isinstance(pair, PullPair)

        async def write_all() -> None:
            writer = pair.writable.get_writer()
            for chunk in chunks:
                await writer.write(chunk)
            await writer.close()

        _, received = await asyncio.gather(write_all(), read_all(pair.readable))
        await pair.done
        return received

    assert run_async(run_test()) == chunks


def test_million_byte_duplex() -> None:
    """A megabyte of chunked data crosses a pull-backed duplex both ways."""
    payload = bytes(i % 251 for i in range(1_000_000))
    pieces = [payload[i : i + 65536] for i in range(0, len(payload), 65536)]

    async def run_test() -> tuple[bytes, bytes]:
        sink = CollectingSink()
        stream = to_push({"readable": pull_readable_of(*pieces), "writable": WritableStream(sink)})

        async def write_all() -> None:
            for piece in pieces:
                if not stream.write(piece):
                    assert await await_drained(stream)
            stream.end()

        received, _ = await asyncio.gather(collect(stream), write_all())
        await finished(stream)
        return b"".join(received), sink.data

    received, written = run_async(run_test())
    assert received == payload
    assert written == payload
