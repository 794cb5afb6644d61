"""Envelope codec tests."""
import json

import pytest

from sahayak.server import codec
from sahayak.server.codec import Envelope, LegacyText, decode, encode


def test_encode_produces_type_and_data():
    frame = encode(codec.QUIZ_FEEDBACK, {"correct": True, "message": "Correct answer!"})
    assert json.loads(frame) == {"type": "quiz_feedback", "data": {"correct": True, "message": "Correct answer!"}}


def test_encode_rejects_unknown_type():
    with pytest.raises(ValueError):
        encode("leaderboard", {})


def test_decode_known_envelope():
    msg = decode('{"type": "doubt", "data": {"active": true}}')
    assert msg == Envelope("doubt", {"active": True})


def test_plain_text_is_legacy():
    assert decode("plain text") == LegacyText("plain text")


@pytest.mark.parametrize("frame", [
    '{"type": "nope", "data": 1}',
    '{"data": "no type"}',
    '[1, 2, 3]',
    '"just a string"',
    '{"type": 5}',
    "{broken json",
])
def test_unrecognized_frames_fall_back_to_legacy(frame):
    assert decode(frame) == LegacyText(frame)


def test_decode_bytes_frame():
    msg = decode(b'{"type": "message", "data": "hi"}')
    assert msg == Envelope("message", "hi")


def test_unicode_survives_encoding():
    frame = encode(codec.MESSAGE, "नमस्ते")
    assert decode(frame) == Envelope("message", "नमस्ते")
