"""
Pull-stream model.

Consumer-driven streams: a reader requests data and the stream pulls from
its source only when there is room; writers await each write (or `ready`)
and the sink consumes chunks one at a time.

Access is exclusive: a stream has at most one reader or one writer, obtained
with `get_reader()` / `get_writer()` and returned with `release_lock()`.

Components:
    - readable: `ReadableStream`, its controller and reader
    - writable: `WritableStream`, its controller and writer
"""

from .readable import (
    ReadableStream,
    ReadableStreamController,
    ReadableStreamReader,
    ReadResult,
    UnderlyingSource,
)
from .writable import (
    UnderlyingSink,
    WritableStream,
    WritableStreamController,
    WritableStreamWriter,
)

__all__ = [
    # Readable
    "ReadableStream",
    "ReadableStreamController",
    "ReadableStreamReader",
    "ReadResult",
    "UnderlyingSource",
    # Writable
    "WritableStream",
    "WritableStreamController",
    "WritableStreamWriter",
    "UnderlyingSink",
]
