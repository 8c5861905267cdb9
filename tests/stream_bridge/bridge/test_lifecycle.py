"""Tests for the lock release sequence."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

import pytest

from stream_bridge.bridge import (
    release_adapter_locks,
    wait_for_pending_read,
    wait_for_writer_ready,
)
from stream_bridge.pull import WritableStream
from stream_bridge.types import LockReleaseError
from tests.stream_bridge.helpers import CollectingSink, RecordingHolder


def _ready_writer() -> SimpleNamespace:
    future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
    future.set_result(None)
    return SimpleNamespace(ready=future)


class TestWaitHelpers:
    """Tests for the two suspension primitives."""

    def test_pending_read_none_returns(self) -> None:
        """No read outstanding, nothing to wait for."""
        asyncio.run(wait_for_pending_read(None))

    def test_pending_read_failure_not_raised(self) -> None:
        """The read path reports its own errors; waiting only settles."""

        async def run_test() -> None:
            pending: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            asyncio.get_running_loop().call_soon(pending.set_exception, ValueError("read failed"))
            await wait_for_pending_read(pending)
            assert pending.done()
            pending.exception()

        asyncio.run(run_test())

    def test_writer_ready_waits(self) -> None:
        """Waits for `ready` on a real writer under backpressure."""

        async def run_test() -> None:
            writer = WritableStream(CollectingSink()).get_writer()
            written = writer.write(b"x")
            assert not writer.ready.done()
            await wait_for_writer_ready(writer)
            assert written.done()

        asyncio.run(run_test())

    def test_writer_ready_none_returns(self) -> None:
        """No writer, nothing to wait for."""
        asyncio.run(wait_for_writer_ready(None))


class TestReleaseAdapterLocks:
    """Tests for the ordering contract of the release sequence."""

    def test_writer_side_before_reader_side(self) -> None:
        """Flush, writer release, then reader release."""

        async def run_test() -> list[Any]:
            holder = RecordingHolder(writer=_ready_writer())
            await release_adapter_locks(holder)
            return holder.calls

        assert asyncio.run(run_test()) == ["flushed", "writer", "reader"]

    def test_without_writer_only_reader_released(self) -> None:
        """A readable-only adapter skips the writer side."""

        async def run_test() -> list[Any]:
            holder = RecordingHolder()
            await release_adapter_locks(holder)
            return holder.calls

        assert asyncio.run(run_test()) == ["reader"]

    def test_reader_released_after_pending_read(self) -> None:
        """The reader lock is kept until the outstanding read settled."""

        async def run_test() -> None:
            pending: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            holder = RecordingHolder(pending_read=pending)
            release = asyncio.ensure_future(release_adapter_locks(holder))

            for _ in range(3):
                await asyncio.sleep(0)
            assert holder.calls == []

            pending.set_result(None)
            await release
            assert holder.calls == ["reader"]

        asyncio.run(run_test())

    def test_flush_failure_surfaces_before_reader_release(self) -> None:
        """A flush error tears the push-stream down before any lock goes."""
        error = OSError("flush failed")

        async def run_test() -> list[Any]:
            holder = RecordingHolder(writer=_ready_writer(), flush_error=error)
            await release_adapter_locks(holder)
            return holder.calls

        assert asyncio.run(run_test()) == ["flushed", ("destroy", error), "torn_down", "writer", "reader"]

    def test_writer_release_failure_does_not_block_reader(self) -> None:
        """The reader is still released; the writer failure is raised afterwards."""
        failure = LockReleaseError("writer", "already released")

        async def run_test() -> list[Any]:
            holder = RecordingHolder(writer=_ready_writer(), writer_error=failure)
            with pytest.raises(LockReleaseError) as exc_info:
                await release_adapter_locks(holder)
            assert exc_info.value is failure
            return holder.calls

        assert asyncio.run(run_test()) == ["flushed", "writer", "reader"]

    def test_first_failure_wins(self) -> None:
        """With both releases failing, the writer failure is raised."""
        writer_failure = LockReleaseError("writer", "first")
        reader_failure = LockReleaseError("reader", "second")

        async def run_test() -> None:
            holder = RecordingHolder(
                writer=_ready_writer(),
                writer_error=writer_failure,
                reader_error=reader_failure,
            )
            with pytest.raises(LockReleaseError) as exc_info:
                await release_adapter_locks(holder)
            assert exc_info.value is writer_failure
            assert exc_info.value.side == "writer"

        asyncio.run(run_test())
