"""Test helpers for stream_bridge unit tests."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import TypeVar

from .builders import collect, pull_readable_of, push_readable_of, read_all, wait_closed
from .mocks import CollectingSink, GatedWritable, RecordingHolder

_T = TypeVar("_T")


def run_async(coro: Coroutine[object, object, _T]) -> _T:
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


__all__ = [
    # Builders
    "collect",
    "pull_readable_of",
    "push_readable_of",
    "read_all",
    "wait_closed",
    # Mocks
    "CollectingSink",
    "GatedWritable",
    "RecordingHolder",
    # Async utilities
    "run_async",
]
