"""
Push-stream model.

Event-driven streams: the producer pushes chunks, consumers toggle delivery
with `pause()`/`resume()`, and writers learn about backpressure from the
boolean returned by `write()`.

Components:
    - events: named-event dispatch (`data`, `end`, `finish`, `drain`, `error`, `close`)
    - readable: `Readable` with buffered, pausable delivery
    - writable: `Writable` with a sequential write queue and drain bookkeeping
    - duplex: `Duplex` and `Transform`
    - finished: wait for a stream to complete
"""

from .duplex import Duplex, Transform
from .events import EventEmitter, once
from .finished import finished
from .readable import Readable, ReadableState
from .stream import Stream, StreamFlags
from .writable import DrainWaiter, Writable, WritableState

__all__ = [
    # Streams
    "Stream",
    "Readable",
    "Writable",
    "Duplex",
    "Transform",
    # State
    "StreamFlags",
    "ReadableState",
    "WritableState",
    "DrainWaiter",
    # Events
    "EventEmitter",
    "once",
    "finished",
]
