"""
Global configuration for the stream bridge.

This module contains environment-specific settings that apply across both
stream models and the adapters between them.
"""

import os

_DEFAULT_HIGH_WATER_MARK = 16 * 1024

_raw_high_water_mark = os.environ.get("STREAM_BRIDGE_HIGH_WATER_MARK", str(_DEFAULT_HIGH_WATER_MARK))

if not _raw_high_water_mark.strip().isdigit() or int(_raw_high_water_mark) <= 0:
    raise ValueError(
        f"Invalid STREAM_BRIDGE_HIGH_WATER_MARK environment variable: '{_raw_high_water_mark}'. "
        "Expected a positive integer number of bytes."
    )

DEFAULT_HIGH_WATER_MARK: int = int(_raw_high_water_mark)
"""Bytes a push-stream buffers before reporting backpressure. Defaults to 16 KiB."""
