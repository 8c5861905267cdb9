"""Tests for adapter options."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from stream_bridge.bridge import PullOptions, PushOptions
from stream_bridge.bridge.options import resolve_options


class TestPullOptions:
    """Tests for `PullOptions`."""

    def test_defaults(self) -> None:
        """Object mode and stream defaults."""
        options = PullOptions()
        assert options.as_bytes is False
        assert options.high_water_mark is None

    def test_camel_case_names(self) -> None:
        """Camel case names are accepted alongside snake case."""
        assert PullOptions(asBytes=True).as_bytes is True
        assert PullOptions(as_bytes=True, highWaterMark=8).high_water_mark == 8

    def test_unknown_option_rejected(self) -> None:
        """Typos fail loudly."""
        with pytest.raises(ValidationError):
            PullOptions(as_byte=True)

    def test_strict_types(self) -> None:
        """No coercion from strings."""
        with pytest.raises(ValidationError):
            PullOptions(as_bytes="yes")

    def test_negative_high_water_mark_rejected(self) -> None:
        """Queue budgets are never negative."""
        with pytest.raises(ValidationError):
            PullOptions(high_water_mark=-1)

    def test_frozen(self) -> None:
        """Options cannot be changed after construction."""
        options = PullOptions()
        with pytest.raises(ValidationError):
            options.as_bytes = True  # type: ignore[misc]


class TestPushOptions:
    """Tests for `PushOptions`."""

    def test_callable_write(self) -> None:
        """An async callable is a valid write capability."""

        async def consume(chunk: bytes) -> None:
            pass

        assert PushOptions(write=consume).write is consume

    def test_invalid_write_rejected(self) -> None:
        """Anything else is refused."""
        with pytest.raises(ValidationError, match="write must be"):
            PushOptions(write=42)

    def test_as_transform_alias(self) -> None:
        """The transform flag has a camel case name too."""
        assert PushOptions(asTransform=True).as_transform is True

    def test_zero_high_water_mark_rejected(self) -> None:
        """A push-stream needs a positive high-water mark."""
        with pytest.raises(ValidationError):
            PushOptions(high_water_mark=0)


class TestResolveOptions:
    """Tests for combining options and keyword overrides."""

    def test_none_uses_overrides(self) -> None:
        """Keyword overrides alone."""
        assert resolve_options(PullOptions, None, {"as_bytes": True}).as_bytes is True

    def test_mapping_merged_with_overrides(self) -> None:
        """Overrides win over mapping entries."""
        options = resolve_options(PullOptions, {"as_bytes": False, "high_water_mark": 4}, {"as_bytes": True})
        assert options.as_bytes is True
        assert options.high_water_mark == 4

    def test_model_copied_with_overrides(self) -> None:
        """A model instance is copied, not mutated."""
        base = PullOptions(high_water_mark=4)
        options = resolve_options(PullOptions, base, {"as_bytes": True})

        assert options.as_bytes is True
        assert options.high_water_mark == 4
        assert base.as_bytes is False

    def test_model_without_overrides_returned_as_is(self) -> None:
        """Nothing to change, nothing copied."""
        base = PushOptions(as_transform=True)
        assert resolve_options(PushOptions, base, {}) is base
