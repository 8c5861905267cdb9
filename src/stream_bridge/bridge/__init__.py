"""
Adapters between the push-stream and pull-stream models.

Entry points:
    - `to_pull(source)`: push-stream in, pull-stream(s) out
    - `to_push(source)`: pull-stream(s) in, push-stream out

Building blocks:
    - classify: decide what an input value is
    - backpressure: `await_drained`, the single place a pull-side writer
      waits on a push-stream
    - lifecycle: orderly release of pull-stream locks
    - options: validated adapter options
"""

from .backpressure import await_drained, pending_writes
from .classify import Endpoints, StreamKind, classify, split_endpoints
from .lifecycle import (
    LockHolder,
    release_adapter_locks,
    wait_for_pending_read,
    wait_for_writer_ready,
)
from .options import PullOptions, PushOptions
from .to_pull import EventSubscriptionSet, PullPair, PushSink, PushSource, to_pull
from .to_push import (
    PullBacked,
    PullBackedDuplex,
    PullBackedReadable,
    PullBackedTransform,
    PullBackedWritable,
    to_push,
)

__all__ = [
    # Entry points
    "to_pull",
    "to_push",
    # Classification
    "StreamKind",
    "Endpoints",
    "classify",
    "split_endpoints",
    # Backpressure
    "await_drained",
    "pending_writes",
    # Lifecycle
    "LockHolder",
    "release_adapter_locks",
    "wait_for_pending_read",
    "wait_for_writer_ready",
    # Options
    "PullOptions",
    "PushOptions",
    # Pull-facing adapter
    "PullPair",
    "PushSource",
    "PushSink",
    "EventSubscriptionSet",
    # Push-facing adapter
    "PullBacked",
    "PullBackedReadable",
    "PullBackedWritable",
    "PullBackedDuplex",
    "PullBackedTransform",
]
