"""Tests for the exception hierarchy."""

from __future__ import annotations

import pytest

from stream_bridge.types import (
    InvalidStreamError,
    LockedError,
    LockError,
    LockReleaseError,
    StreamBridgeError,
    StreamStateError,
)


@pytest.mark.parametrize(
    "cls",
    [InvalidStreamError, StreamStateError, LockError, LockedError],
)
def test_all_derive_from_base(cls: type[StreamBridgeError]) -> None:
    """Every bridge error can be caught as StreamBridgeError."""
    error = cls("boom")
    assert isinstance(error, StreamBridgeError)
    assert error.message == "boom"
    assert str(error) == "boom"


def test_invalid_stream_is_type_error() -> None:
    """Invalid input is also a TypeError."""
    with pytest.raises(TypeError):
        raise InvalidStreamError("no capability")


def test_locked_is_lock_error() -> None:
    """An already-held lock is a kind of lock error."""
    assert issubclass(LockedError, LockError)


def test_repr() -> None:
    """The repr shows the class and the message."""
    assert repr(StreamStateError("closed")) == "StreamStateError('closed')"


def test_lock_release_error() -> None:
    """The failing side is kept and named in the message."""
    error = LockReleaseError("writer", "already released")
    assert error.side == "writer"
    assert error.message == "Failed to release writer lock: already released"
