"""
Orderly release of pull-stream locks held by a push-facing adapter.

Release never closes the wrapped pull-streams. The adapter only owns the
locks; whoever created the pull-streams still owns their lifetime.

Ordering contract:
    1. Writer side: wait until the writer is ready, wait until the push-stream
       flushed (`finish`), then release the writer lock.
    2. Reader side: wait for the outstanding read, then release the reader lock.

A failure while flushing is emitted as an error on the push-stream before
either lock is released. A failure to release one lock does not stop the
other from being released.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

from stream_bridge.pull import WritableStreamWriter
from stream_bridge.types import LockReleaseError

logger = logging.getLogger(__name__)


class LockHolder(Protocol):
    """What the release sequence needs from an adapter."""

    @property
    def writer(self) -> WritableStreamWriter | None:
        """Writer lock held by the adapter, if any."""
        ...

    @property
    def pending_read(self) -> asyncio.Future[Any] | None:
        """The outstanding read, if any."""
        ...

    async def flushed(self) -> None:
        """Wait until the push-stream emitted `finish` (or closed)."""
        ...

    def destroy(self, error: BaseException | None = None) -> None:
        """Tear the push-stream down."""
        ...

    async def torn_down(self) -> None:
        """Wait until a started teardown emitted `error` and `close`."""
        ...

    def release_writer_lock(self) -> None:
        """Release the writer lock once. Raises `LockReleaseError` on failure."""
        ...

    def release_reader_lock(self) -> None:
        """Release the reader lock once. Raises `LockReleaseError` on failure."""
        ...


async def wait_for_pending_read(pending: asyncio.Future[Any] | None) -> None:
    """
    Wait for an outstanding read to settle.

    The outcome is not re-raised here: the read path reports its own errors.
    """
    if pending is not None and not pending.done():
        await asyncio.wait([pending])


async def wait_for_writer_ready(writer: WritableStreamWriter | None) -> None:
    """
    Wait until the writer accepts more data.

    Raises:
        Exception: The pull-stream's error, if it failed.
    """
    if writer is not None:
        await writer.ready


async def release_adapter_locks(holder: LockHolder) -> None:
    """
    Run the release sequence.

    Raises:
        LockReleaseError: The first lock release that failed, after both
            sides were attempted.
    """
    failures: list[LockReleaseError] = []

    if holder.writer is not None:
        try:
            await wait_for_writer_ready(holder.writer)
            await holder.flushed()
        except Exception as exc:
            holder.destroy(exc)
            # The error is out before either lock goes back.
            await holder.torn_down()
        _attempt(holder.release_writer_lock, failures)

    await wait_for_pending_read(holder.pending_read)
    _attempt(holder.release_reader_lock, failures)

    if failures:
        raise failures[0]


def _attempt(release: Callable[[], None], failures: list[LockReleaseError]) -> None:
    try:
        release()
    except LockReleaseError as exc:
        logger.warning("%s", exc)
        failures.append(exc)
