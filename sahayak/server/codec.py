"""Wire envelope codec.

Every frame is one JSON text message ``{"type": ..., "data": ...}``. Frames
that do not decode into a known envelope are handed back verbatim as
``LegacyText`` and treated as plain chat; older peers sent bare strings, so
this path is part of the protocol rather than an error.
"""
from dataclasses import dataclass
from typing import Any, Union
import json

MESSAGE = "message"
QUIZ = "quiz"
QUIZ_ANSWER = "quiz_answer"
QUIZ_FEEDBACK = "quiz_feedback"
DOUBT = "doubt"
DOUBT_SUBMISSION = "doubt_submission"
HINT_REQUEST = "hint_request"

ENVELOPE_TYPES = frozenset({
    MESSAGE, QUIZ, QUIZ_ANSWER, QUIZ_FEEDBACK, DOUBT, DOUBT_SUBMISSION, HINT_REQUEST,
})


@dataclass(frozen=True)
class Envelope:
    type: str
    data: Any = None

    def to_dict(self) -> dict:
        return {"type": self.type, "data": self.data}


@dataclass(frozen=True)
class LegacyText:
    text: str


def encode(msg_type: str, payload: Any = None) -> str:
    """Serialize one envelope to a text frame."""
    if msg_type not in ENVELOPE_TYPES:
        raise ValueError(f"Unknown envelope type: {msg_type}")
    return json.dumps({"type": msg_type, "data": payload}, ensure_ascii=False)


def encode_envelope(envelope: Envelope) -> str:
    return encode(envelope.type, envelope.data)


def decode(frame: Union[str, bytes]) -> Union[Envelope, LegacyText]:
    """Parse a frame. Never raises."""
    if isinstance(frame, (bytes, bytearray)):
        text = bytes(frame).decode("utf-8", errors="replace")
    else:
        text = str(frame)

    try:
        obj = json.loads(text)
    except (ValueError, RecursionError):
        return LegacyText(text)

    if not isinstance(obj, dict):
        return LegacyText(text)
    msg_type = obj.get("type")
    if not isinstance(msg_type, str) or msg_type not in ENVELOPE_TYPES:
        return LegacyText(text)
    return Envelope(msg_type, obj.get("data"))
