"""Exception hierarchy for the stream bridge."""

from __future__ import annotations


class StreamBridgeError(Exception):
    """
    Base exception for all errors raised by the bridge itself.

    Errors raised by a wrapped stream are never wrapped in this type.
    They are relayed as the original object so callers can compare identity.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class InvalidStreamError(StreamBridgeError, TypeError):
    """
    Raised at construction when a value exposes no usable stream capability.

    Fatal and synchronous: the adapter is never created.
    """


class StreamStateError(StreamBridgeError):
    """Raised when an operation is attempted in a state that forbids it."""


class LockError(StreamBridgeError):
    """Raised when a reader or writer is used after its lock was released."""


class LockedError(LockError):
    """Raised when acquiring a reader or writer on an already locked stream."""


class LockReleaseError(StreamBridgeError):
    """
    Raised when releasing a reader or writer lock during teardown fails.

    The release sequence still completes for the other side first.

    Attributes:
        side: Either "reader" or "writer".
    """

    def __init__(self, side: str, detail: str) -> None:
        self.side = side
        super().__init__(f"Failed to release {side} lock: {detail}")
