"""Tests for the push-stream drain suspension point."""

from __future__ import annotations

import asyncio

import pytest

from stream_bridge.bridge import await_drained, pending_writes
from stream_bridge.push import Readable
from stream_bridge.types import InvalidStreamError
from tests.stream_bridge.helpers import GatedWritable


class TestPendingWrites:
    """Tests for counting outstanding writes."""

    def test_counts_queue(self) -> None:
        """Every queued chunk counts."""

        async def run_test() -> tuple[int, int]:
            stream = GatedWritable()
            for chunk in (b"a", b"b", b"c"):
                stream.write(chunk)
            return pending_writes(stream), pending_writes(stream, is_batch_write=True)

        assert asyncio.run(run_test()) == (3, 1)

    def test_counts_write_in_flight(self) -> None:
        """The write currently running counts once."""

        async def run_test() -> tuple[int, int]:
            stream = GatedWritable()
            stream.gate.clear()
            stream.write(b"a")
            stream.write(b"b")
            await asyncio.sleep(0)
            return pending_writes(stream), pending_writes(stream, is_batch_write=True)

        assert asyncio.run(run_test()) == (2, 2)

    def test_idle_stream(self) -> None:
        """Nothing queued, nothing in flight."""
        assert pending_writes(GatedWritable()) == 0


class TestAwaitDrained:
    """Tests for `await_drained()`."""

    def test_already_drained(self) -> None:
        """An idle stream resolves immediately with True."""

        async def run_test() -> bool:
            return await await_drained(GatedWritable())

        assert asyncio.run(run_test()) is True

    def test_destroyed_stream(self) -> None:
        """A destroyed stream resolves immediately with False."""

        async def run_test() -> bool:
            stream = GatedWritable()
            stream.destroy()
            return await await_drained(stream)

        assert asyncio.run(run_test()) is False

    def test_readable_only_stream_refused(self) -> None:
        """A stream without a writable side has nothing to drain."""

        async def run_test() -> None:
            stream = Readable()
            with pytest.raises(InvalidStreamError):
                await await_drained(stream)  # type: ignore[arg-type]
            with pytest.raises(InvalidStreamError):
                pending_writes(stream)  # type: ignore[arg-type]

        asyncio.run(run_test())

    def test_waits_for_outstanding_writes(self) -> None:
        """The waiter suspends until every write it saw completed."""

        async def run_test() -> None:
            stream = GatedWritable()
            stream.gate.clear()
            stream.write(b"a")
            stream.write(b"b")

            drained = asyncio.ensure_future(await_drained(stream))
            for _ in range(3):
                await asyncio.sleep(0)
            assert not drained.done()

            stream.gate.set()
            assert await drained is True
            assert stream.received == [b"a", b"b"]

        asyncio.run(run_test())

    def test_destroy_while_waiting(self) -> None:
        """Destroying the stream resolves the waiter with False."""

        async def run_test() -> bool:
            stream = GatedWritable()
            stream.gate.clear()
            stream.write(b"a")

            drained = asyncio.ensure_future(await_drained(stream))
            await asyncio.sleep(0)
            stream.destroy()
            return await drained

        assert asyncio.run(run_test()) is False

    def test_waiters_resolve_in_registration_order(self) -> None:
        """An earlier waiter with fewer writes ahead of it resolves first."""

        async def run_test() -> list[str]:
            stream = GatedWritable()
            stream.gate.clear()
            order: list[str] = []

            async def wait(name: str) -> None:
                await await_drained(stream)
                order.append(name)

            stream.write(b"a")
            await asyncio.sleep(0)
            first = asyncio.ensure_future(wait("first"))
            await asyncio.sleep(0)

            stream.write(b"b")
            second = asyncio.ensure_future(wait("second"))
            await asyncio.sleep(0)

            stream.gate.set()
            await asyncio.gather(first, second)
            return order

        assert asyncio.run(run_test()) == ["first", "second"]

    def test_resolves_once_per_waiter(self) -> None:
        """Waiters are removed once resolved."""

        async def run_test() -> GatedWritable:
            stream = GatedWritable()
            stream.gate.clear()
            stream.write(b"a")
            drained = asyncio.ensure_future(await_drained(stream))
            await asyncio.sleep(0)
            stream.gate.set()
            await drained
            return stream

        stream = asyncio.run(run_test())
        assert stream._writable_state is not None
        assert stream._writable_state.drains is None
