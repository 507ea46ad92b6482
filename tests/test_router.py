# ==============================================================================
# FILE: tests/test_router.py
# DESCRIPTION: Inbound frame classification
# ==============================================================================

import pytest

from horizon.errors import DecodeError
from horizon.models import StreamResponse, decode_model
from horizon.router import FrameRouter, PayloadKind
from horizon.types import InboundFrame


def decode(data):
    return decode_model(StreamResponse, data)


def test_sentinels_are_consumed():
    seen = []
    router = FrameRouter(decode, on_sentinel=seen.append)

    assert router.route(InboundFrame.text("|INIT|")).kind is PayloadKind.SENTINEL
    assert router.route(InboundFrame.text("pong")).kind is PayloadKind.SENTINEL
    assert seen == ["|INIT|", "pong"]


def test_structured_text_frame():
    router = FrameRouter(decode)

    payload = router.route(InboundFrame.text('{"content": "Hi", "isComplete": false}'))

    assert payload.kind is PayloadKind.STRUCTURED
    assert payload.value == StreamResponse(content="Hi", is_complete=False)


def test_structured_binary_frame():
    router = FrameRouter(decode, accepts_raw_text=True)

    payload = router.route(InboundFrame.binary(b'{"content": "Hi", "isComplete": true}'))

    assert payload.kind is PayloadKind.STRUCTURED
    assert payload.value.is_complete is True


def test_raw_text_when_accepted():
    router = FrameRouter(decode, accepts_raw_text=True)

    payload = router.route(InboundFrame.text("Hello"))

    assert payload.kind is PayloadKind.RAW_TEXT
    assert payload.value == "Hello"


def test_unexpected_json_shape_is_raw_text_when_accepted():
    router = FrameRouter(decode, accepts_raw_text=True)

    assert router.route(InboundFrame.text('{"foo": 1}')).kind is PayloadKind.RAW_TEXT


def test_undecodable_text_rejected_without_raw_text():
    router = FrameRouter(decode)

    with pytest.raises(DecodeError):
        router.route(InboundFrame.text("Hello"))
    with pytest.raises(DecodeError):
        router.route(InboundFrame.text('{"content": "missing flag"}'))


@pytest.mark.parametrize("data", [b"\xff\xfe", b"not json", b'{"content": 1}'])
def test_bad_binary_frames_rejected(data):
    router = FrameRouter(decode, accepts_raw_text=True)

    with pytest.raises(DecodeError):
        router.route(InboundFrame.binary(data))
