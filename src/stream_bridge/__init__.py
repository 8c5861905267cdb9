"""
Bridge between push-streams and pull-streams.

    from stream_bridge import to_pull, to_push

    readable = to_pull(push_readable)   # push in, pull out
    pushed = to_push(readable)          # pull in, push out

Subpackages:
    - push: event-driven push-stream model
    - pull: consumer-driven pull-stream model
    - bridge: the adapters between the two
    - types: options base models, chunk helpers, exceptions
"""

from .bridge import PullOptions, PushOptions, await_drained, classify, to_pull, to_push
from .types import InvalidStreamError, LockReleaseError, StreamBridgeError

__all__ = [
    "to_pull",
    "to_push",
    "classify",
    "await_drained",
    "PullOptions",
    "PushOptions",
    "StreamBridgeError",
    "InvalidStreamError",
    "LockReleaseError",
]
