import asyncio
import json

import pytest
from starlette.websockets import WebSocketState

from sahayak.config import Settings
from sahayak.server.quiz_types import Quiz
from sahayak.server.session import EducatorSession


class FakeWebSocket:
    """Stands in for a starlette WebSocket on the educator side."""

    def __init__(self, fail_send: bool = False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.fail_send = fail_send
        self.sent: list[dict] = []
        self.closed = False

    async def send_text(self, text: str) -> None:
        if self.fail_send:
            raise RuntimeError("socket is gone")
        self.sent.append(json.loads(text))

    async def close(self, code: int = 1000) -> None:
        self.closed = True
        self.application_state = WebSocketState.DISCONNECTED

    def drop(self) -> None:
        self.client_state = WebSocketState.DISCONNECTED

    def of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.sent if m["type"] == msg_type]


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class StubQuizGenerator:
    def __init__(self, quiz: Quiz | None = None, error: Exception | None = None):
        self.quiz = quiz
        self.error = error
        self.topics: list[str] = []

    async def generate(self, topic: str) -> Quiz:
        self.topics.append(topic)
        if self.error is not None:
            raise self.error
        return self.quiz


class StubSummarizer:
    def __init__(self, result=None, error: Exception | None = None):
        self.result = result or []
        self.error = error
        self.calls: list[list] = []

    async def summarize(self, doubts):
        self.calls.append(list(doubts))
        if self.error is not None:
            raise self.error
        return self.result


class GatedQuizGenerator(StubQuizGenerator):
    """Holds every generate() call until `release` is set."""

    def __init__(self, quiz: Quiz):
        super().__init__(quiz=quiz)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def generate(self, topic: str) -> Quiz:
        self.topics.append(topic)
        self.started.set()
        await self.release.wait()
        return self.quiz


class GatedSummarizer(StubSummarizer):
    """Holds every summarize() call until `release` is set."""

    def __init__(self, result=None):
        super().__init__(result=result)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def summarize(self, doubts):
        self.calls.append(list(doubts))
        self.started.set()
        await self.release.wait()
        return self.result


SAMPLE_QUIZ = Quiz(
    question="What do plants need for photosynthesis?",
    options=["Sunlight", "Salt", "Sand", "Silence"],
    correct_idx=0,
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ws():
    return FakeWebSocket()


@pytest.fixture
def quiz_generator():
    return StubQuizGenerator(quiz=SAMPLE_QUIZ)


@pytest.fixture
def summarizer():
    return StubSummarizer(error=RuntimeError("model offline"))


@pytest.fixture
def settings():
    return Settings(doubt_window_ms=120_000, doubt_max_lifetime_ms=None)


@pytest.fixture
def session(settings, quiz_generator, summarizer, clock):
    return EducatorSession(settings, quiz_generator=quiz_generator, summarizer=summarizer, clock=clock)
