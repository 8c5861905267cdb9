"""Tests for stream classification."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from stream_bridge.bridge import StreamKind, classify, split_endpoints
from stream_bridge.pull import ReadableStream, WritableStream
from stream_bridge.push import Duplex, Readable, StreamFlags, Transform, Writable
from stream_bridge.types import InvalidStreamError
from tests.stream_bridge.helpers import CollectingSink


class TestClassifyPushStreams:
    """Push-streams are recognized by their capability markers."""

    def test_readable(self) -> None:
        """A readable push-stream."""
        assert classify(Readable()) is StreamKind.PUSH_READABLE

    def test_writable(self) -> None:
        """A writable push-stream."""
        assert classify(Writable()) is StreamKind.PUSH_WRITABLE

    def test_duplex_and_transform(self) -> None:
        """Both sides make a duplex, whatever the class."""
        assert classify(Duplex()) is StreamKind.PUSH_DUPLEX
        assert classify(Transform()) is StreamKind.PUSH_DUPLEX

    def test_duck_typed_markers(self) -> None:
        """Inheritance is not required, only the markers."""
        impostor = SimpleNamespace(
            _duplex_state=StreamFlags.READABLE,
            _readable_state=object(),
            _writable_state=None,
        )
        assert classify(impostor) is StreamKind.PUSH_READABLE

    def test_markers_without_state_are_not_enough(self) -> None:
        """A flag set alone does not make a stream."""
        assert classify(SimpleNamespace(_duplex_state=StreamFlags.NONE)) is StreamKind.INVALID


class TestClassifyPullStreams:
    """Pull-streams are recognized by type."""

    def test_readable_and_writable(self) -> None:
        """Each pull-stream type gets its own tag."""

        async def run_test() -> tuple[StreamKind, StreamKind]:
            return classify(ReadableStream()), classify(WritableStream(CollectingSink()))

        assert asyncio.run(run_test()) == (StreamKind.PULL_READABLE, StreamKind.PULL_WRITABLE)

    def test_pair_is_pull_duplex(self) -> None:
        """A descriptor holding one of each is a pull duplex."""

        async def run_test() -> StreamKind:
            return classify({"readable": ReadableStream(), "writable": WritableStream()})

        assert asyncio.run(run_test()) is StreamKind.PULL_DUPLEX


class TestClassifyDescriptors:
    """Descriptors expose streams through fields."""

    def test_mapping_with_push_readable(self) -> None:
        """Mapping keys are fields."""
        readable = Readable()
        endpoints = split_endpoints({"readable": readable})

        assert endpoints.kind is StreamKind.DESCRIPTOR
        assert endpoints.readable is readable
        assert endpoints.writable is None

    def test_object_with_attributes(self) -> None:
        """Attributes are fields too."""
        readable, writable = Readable(), Writable()
        endpoints = split_endpoints(SimpleNamespace(readable=readable, writable=writable))

        assert endpoints.kind is StreamKind.DESCRIPTOR
        assert endpoints.readable is readable
        assert endpoints.writable is writable

    def test_duplex_field_used_for_both_ends(self) -> None:
        """With no readable or writable field, `duplex` serves both ends."""
        duplex = Duplex()
        endpoints = split_endpoints({"duplex": duplex})

        assert endpoints.readable is duplex
        assert endpoints.writable is duplex

    def test_duplex_field_ignored_when_ends_given(self) -> None:
        """Explicit ends win over the duplex field."""
        readable = Readable()
        endpoints = split_endpoints({"readable": readable, "duplex": Duplex()})

        assert endpoints.readable is readable
        assert endpoints.writable is None

    def test_callable_writable(self) -> None:
        """A callable in the writable field is a write capability."""

        async def consume(chunk: bytes) -> None:
            pass

        endpoints = split_endpoints({"writable": consume})
        assert endpoints.kind is StreamKind.DESCRIPTOR
        assert endpoints.writable is consume

    def test_flags_are_not_capabilities(self) -> None:
        """Booleans in the fields do not count."""
        assert classify({"readable": True, "writable": False}) is StreamKind.INVALID


class TestSplitEndpoints:
    """Tests for direct streams and failures."""

    def test_push_duplex_provides_both_ends(self) -> None:
        """A duplex stream is its own readable and writable."""
        duplex = Duplex()
        endpoints = split_endpoints(duplex)

        assert endpoints.kind is StreamKind.PUSH_DUPLEX
        assert endpoints.readable is duplex
        assert endpoints.writable is duplex

    @pytest.mark.parametrize("value", [None, object(), 42, "stream", {}, {"other": Readable()}])
    def test_invalid_inputs_raise(self, value: object) -> None:
        """Nothing usable means InvalidStreamError, which is also a TypeError."""
        assert classify(value) is StreamKind.INVALID
        with pytest.raises(InvalidStreamError, match="Invalid stream"):
            split_endpoints(value)
        with pytest.raises(TypeError):
            split_endpoints(value)
