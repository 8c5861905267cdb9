"""Future helpers shared by readers and writers."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, TypeVar

_T = TypeVar("_T")


def resolve(future: asyncio.Future[_T], value: _T) -> None:
    """Resolve a future unless it already settled."""
    if not future.done():
        future.set_result(value)


def reject(future: asyncio.Future[Any], error: BaseException) -> None:
    """
    Reject a future and mark the rejection as handled.

    Lifecycle notifications (`closed`, `ready`) often settle with nobody
    awaiting them. Retrieving the exception once keeps the event loop from
    reporting it as never retrieved; later awaiters still receive it.
    """
    if future.done():
        return
    future.set_exception(error)
    future.exception()


def rejected(error: BaseException) -> asyncio.Future[Any]:
    """A new future already rejected (as handled) with `error`."""
    future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
    reject(future, error)
    return future


async def maybe_await(result: Any) -> Any:
    """Await `result` if a hook returned an awaitable, else return it."""
    if inspect.isawaitable(result):
        return await result
    return result
