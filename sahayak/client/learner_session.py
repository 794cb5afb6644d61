# sahayak/client/learner_session.py
"""Learner-side session model: chat, the received quiz, hints and doubts.

UI-free. The Textual app subscribes to `events` and forwards console input to
`handle_input`. Starting a connection is delegated to `spawn` so the UI can
run it as a worker; reconnecting is always an explicit learner action.
"""
import asyncio
import logging
from collections import deque
from typing import Any, Callable, Coroutine, Deque, Optional, Union

from ..server.codec import (
    DOUBT, DOUBT_SUBMISSION, HINT_REQUEST, MESSAGE, QUIZ, QUIZ_ANSWER, QUIZ_FEEDBACK,
    Envelope, LegacyText,
)
from ..server.events import (
    FEEDBACK_CHANGED, HINT_CHANGED, MESSAGE_ADDED, QUIZ_CHANGED, STATUS_CHANGED, EventBus,
)
from ..server.generation import HintGenerator
from ..server.quiz_types import LABELS, ChatEntry, ChatKind, Quiz, now_ms
from .ws_client import CONNECTED, DISCONNECTED, ERROR, WSClient

logger = logging.getLogger("sahayak.client")

MAX_MESSAGES = 200


class LearnerSession:
    def __init__(
        self,
        url: str,
        hint_generator: Optional[HintGenerator] = None,
        clock: Callable[[], int] = now_ms,
        spawn: Optional[Callable[[Coroutine], Any]] = None,
    ):
        self.url = url
        self.hint_generator = hint_generator
        self.clock = clock
        self.spawn = spawn or asyncio.ensure_future
        self.events = EventBus()
        self.client = WSClient(url, self.on_event, self.on_status)

        self.status = DISCONNECTED
        self.messages: Deque[ChatEntry] = deque(maxlen=MAX_MESSAGES)

        self.quiz: Optional[Quiz] = None
        self.feedback: Optional[dict] = None
        self.hint: Optional[str] = None
        self.hint_expanded = False
        self.generating_hint = False
        self.hints_used = 0
        self.doubt_active = False

    # ---------- Chat log ----------

    def add_message(self, text: str, kind: ChatKind) -> ChatEntry:
        entry = ChatEntry(text=text, kind=kind, timestamp=self.clock())
        self.messages.append(entry)
        self.events.publish(MESSAGE_ADDED, entry)
        return entry

    def add_system(self, text: str) -> ChatEntry:
        return self.add_message(text, ChatKind.SYSTEM)

    # ---------- Connection ----------

    def connect(self):
        self.add_system(f"Connecting to educator at {self.url}...")
        return self.spawn(self.client.run())

    def reconnect(self):
        if self.status in (DISCONNECTED, ERROR):
            return self.connect()
        self.add_system("Already connected")
        return None

    async def on_status(self, status: str, detail: Optional[str]) -> None:
        self.status = status
        self.events.publish(STATUS_CHANGED, status)
        if status == CONNECTED:
            self.add_system("Connected to educator!")
        elif status == DISCONNECTED:
            self.add_system("Disconnected from educator (type 'r' to reconnect)")
        elif status == ERROR:
            self.add_system(f"Connection error: {detail}")

    # ---------- Inbound ----------

    async def on_event(self, msg: Union[Envelope, LegacyText]) -> None:
        if isinstance(msg, LegacyText):
            self.add_message(msg.text, ChatKind.PEER)
            return

        if msg.type == MESSAGE:
            self.add_message(str(msg.data), ChatKind.PEER)

        elif msg.type == QUIZ:
            try:
                quiz = Quiz.from_dict(msg.data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"malformed quiz: {e}")
                return
            self.quiz = quiz
            self.feedback = None
            self.hint = None
            self.hint_expanded = False
            self.generating_hint = False
            self.hints_used = 0
            self.events.publish(QUIZ_CHANGED, quiz)
            self.events.publish(HINT_CHANGED, None)
            self.add_system("New quiz received!")

        elif msg.type == QUIZ_FEEDBACK:
            data = msg.data if isinstance(msg.data, dict) else {}
            self.feedback = {"correct": bool(data.get("correct")), "message": str(data.get("message", ""))}
            self.events.publish(FEEDBACK_CHANGED, self.feedback)
            self.add_system(self.feedback["message"])

        elif msg.type == DOUBT:
            data = msg.data if isinstance(msg.data, dict) else {}
            self.doubt_active = bool(data.get("active"))
            if self.doubt_active:
                self.add_system("Your educator is collecting doubts. Type /doubt <your question>")
            else:
                self.add_system("Doubt collection closed")

        else:
            logger.debug(f"[LearnerSession] Unhandled message type: {msg.type}")

    # ---------- Learner actions ----------

    async def send_chat(self, text: str) -> bool:
        if not await self.client.send(Envelope(MESSAGE, text)):
            self.add_system("Not connected to educator")
            return False
        self.add_message(text, ChatKind.YOU)
        return True

    async def answer(self, letter: str) -> bool:
        quiz = self.quiz
        if quiz is None:
            self.add_system("No active quiz")
            return False
        if self.feedback is not None:
            self.add_system("You have already answered this quiz")
            return False

        idx = LABELS.index(letter.upper())
        selected = quiz.options[idx]
        answered_at = self.clock()
        sent = await self.client.send(Envelope(QUIZ_ANSWER, {
            "question": quiz.question,
            "answer": letter.upper(),
            "answerIndex": idx,
            "selectedOption": selected,
            "timestamp": answered_at,
            "quizStartTime": quiz.start_time or answered_at,
            "hintsUsed": self.hints_used,
        }))
        if not sent:
            self.add_system("Not connected to educator")
            return False
        self.add_message(f"Answered: {letter.upper()}. {selected}", ChatKind.YOU)
        return True

    async def request_hint(self) -> Optional[str]:
        if self.quiz is None:
            self.add_system("No active quiz")
            return None
        if self.hint:
            self.toggle_hint()
            return self.hint
        if self.generating_hint:
            self.add_system("Generating hint, please wait...")
            return None
        if self.hint_generator is None:
            self.add_system("Hints are not available")
            return None

        quiz = self.quiz
        self.generating_hint = True
        self.events.publish(HINT_CHANGED, None)
        try:
            hint = await self.hint_generator.generate(quiz.question)
        finally:
            self.generating_hint = False
        if self.quiz is not quiz:
            # a new quiz arrived while we were generating
            return None

        self.hint = hint
        self.hint_expanded = True
        self.hints_used += 1
        self.events.publish(HINT_CHANGED, hint)
        await self.client.send(Envelope(HINT_REQUEST, {"question": quiz.question, "timestamp": self.clock()}))
        self.add_system("Hint generated")
        return hint

    def toggle_hint(self) -> None:
        if self.hint:
            self.hint_expanded = not self.hint_expanded
            self.events.publish(HINT_CHANGED, self.hint)

    async def submit_doubt(self, text: str) -> bool:
        text = text.strip()
        if not text:
            self.add_system("Usage: /doubt <your question>")
            return False
        if not self.doubt_active:
            self.add_system("Doubt collection is not active")
            return False
        sent = await self.client.send(Envelope(DOUBT_SUBMISSION, {"text": text, "timestamp": self.clock()}))
        if not sent:
            self.add_system("Not connected to educator")
            return False
        self.add_message(f"Doubt: {text}", ChatKind.YOU)
        return True

    async def handle_input(self, line: str) -> None:
        text = line.strip()
        if not text:
            return
        upper = text.upper()

        if upper in ("RECONNECT", "R"):
            self.reconnect()
        elif upper in ("/HINT", "HINT"):
            self.spawn(self.request_hint())
        elif upper == "TOGGLE" and self.quiz and self.hint:
            self.toggle_hint()
        elif upper.startswith("/DOUBT"):
            await self.submit_doubt(text[len("/doubt"):])
        elif self.quiz is not None and upper in LABELS:
            await self.answer(upper)
        elif self.quiz is not None and self.feedback is None:
            self.add_system("Please answer the quiz (A, B, C, or D) or type /hint for a hint")
        else:
            await self.send_chat(text)

    async def shutdown(self) -> None:
        await self.client.close()

