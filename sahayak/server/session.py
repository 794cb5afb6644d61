"""The educator's session: one object owning connection, quiz and doubts.

All state lives on an `EducatorSession` instance. The FastAPI endpoint feeds
it transport events and inbound frames; the TUI feeds it operator input and
subscribes to its events. Invalid protocol use never raises out of here; it
becomes a system message in the chat log.
"""
import logging
from collections import deque
from typing import Callable, Deque, Optional

from ..config import Settings
from .codec import (
    DOUBT_SUBMISSION, HINT_REQUEST, MESSAGE, QUIZ_ANSWER,
    Envelope, LegacyText, decode,
)
from .connection import ConnectionManager
from .doubts import DoubtAggregator
from .errors import NotConnected, SessionError
from .events import GENERATING_CHANGED, MESSAGE_ADDED, STATS_CHANGED, EventBus
from .generation import QuizGenerator, Summarizer, TextGenerator, fallback_quiz
from .quiz_manager import QuizController, answer_label
from .quiz_types import ChatEntry, ChatKind, Quiz, QuizAnswer, SessionStatus, now_ms
from .session_state import SessionStateMachine

logger = logging.getLogger("sahayak.session")

MAX_MESSAGES = 200


class EducatorSession:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        quiz_generator: Optional[QuizGenerator] = None,
        summarizer: Optional[Summarizer] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.settings = settings or Settings()
        self.clock = clock
        self.events = EventBus()
        self.state = SessionStateMachine(self.events)
        self.connection = ConnectionManager(self.state)
        self.messages: Deque[ChatEntry] = deque(maxlen=MAX_MESSAGES)

        if quiz_generator is None or summarizer is None:
            text_gen = TextGenerator.for_model(self.settings, self.settings.educator_model)
            quiz_generator = quiz_generator or QuizGenerator(text_gen)
            summarizer = summarizer or Summarizer(text_gen)
        self.quiz_generator = quiz_generator

        self.quizzes = QuizController(
            self.connection,
            self.events,
            clock=clock,
            allow_duplicate_answers=self.settings.allow_duplicate_answers,
            send_correct_index=self.settings.send_correct_index,
        )
        self.doubts = DoubtAggregator(
            self.connection,
            self.events,
            summarizer=summarizer,
            interval_ms=self.settings.doubt_window_ms,
            max_lifetime_ms=self.settings.doubt_max_lifetime_ms,
            clock=clock,
            notice=self.add_system,
        )

        self.generating = False
        self.show_statistics = False

        self._handlers = {
            MESSAGE: self._on_message,
            QUIZ_ANSWER: self._on_quiz_answer,
            DOUBT_SUBMISSION: self._on_doubt_submission,
            HINT_REQUEST: self._on_hint_request,
        }

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    # ---------- Chat log ----------

    def add_message(self, text: str, kind: ChatKind) -> ChatEntry:
        entry = ChatEntry(text=text, kind=kind, timestamp=self.clock())
        self.messages.append(entry)
        self.events.publish(MESSAGE_ADDED, entry)
        return entry

    def add_system(self, text: str) -> ChatEntry:
        return self.add_message(text, ChatKind.SYSTEM)

    # ---------- Transport events ----------

    async def on_connect(self, ws) -> None:
        await self.connection.accept(ws)
        self.add_system("Learner connected")

    def on_disconnect(self, ws) -> None:
        if self.connection.on_disconnect(ws):
            self.add_system("Learner disconnected")

    def on_error(self, ws, error: BaseException) -> None:
        if self.connection.on_error(ws, error):
            self.add_system(f"Error: {error}")

    # ---------- Inbound frames ----------

    async def handle_frame(self, frame) -> None:
        msg = decode(frame)
        if isinstance(msg, LegacyText):
            self.add_message(msg.text, ChatKind.PEER)
            return

        handler = self._handlers.get(msg.type)
        if handler is None:
            logger.debug(f"[session] ignoring {msg.type} from learner")
            return
        try:
            await handler(msg.data)
        except SessionError as e:
            self.add_system(str(e))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"[session] malformed {msg.type}: {e}")
            self.add_system(f"Malformed {msg.type} from learner")

    async def _on_message(self, data) -> None:
        self.add_message(str(data), ChatKind.PEER)

    async def _on_quiz_answer(self, data) -> None:
        ans = QuizAnswer.from_dict(data)
        quiz = self.quizzes.quiz
        record = await self.quizzes.submit_answer(ans)
        selected = ans.selected_option
        if not selected and quiz is not None and 0 <= ans.answer_idx < len(quiz.options):
            selected = quiz.options[ans.answer_idx]
        verdict = "CORRECT" if record.is_correct else "WRONG"
        self.add_message(f"Quiz Answer: {answer_label(ans.answer_idx)}. {selected} - {verdict}", ChatKind.PEER)

    async def _on_doubt_submission(self, data) -> None:
        if isinstance(data, dict):
            text, timestamp = str(data["text"]), data.get("timestamp")
        else:
            text, timestamp = str(data), None
        self.doubts.submit(text, timestamp)
        self.add_system(f"Doubt received: {text[:50]}{'...' if len(text) > 50 else ''}")

    async def _on_hint_request(self, data) -> None:
        count = self.quizzes.register_hint()
        logger.debug(f"[session] hint #{count} for current quiz")

    # ---------- Operator actions ----------

    async def send_chat(self, text: str) -> bool:
        if not await self.connection.send(Envelope(MESSAGE, text)):
            self.add_system("No learner connected")
            return False
        self.add_message(text, ChatKind.YOU)
        return True

    async def request_quiz(self, topic: str) -> Optional[Quiz]:
        """Generate a quiz on `topic` and send it; falls back to a template quiz."""
        topic = topic.strip()
        if not topic:
            self.add_system("Usage: /quiz [topic] - e.g., /quiz Photosynthesis")
            return None
        if not self.state.is_connected:
            self.add_system(str(NotConnected()))
            return None
        if self.generating:
            self.add_system("Already generating a quiz, please wait...")
            return None

        self._set_generating(True)
        self.add_system(f"Generating quiz: {topic}...")
        try:
            spec = await self.quiz_generator.generate(topic)
        except Exception as e:
            logger.info(f"[session] quiz generation failed, using template: {e}")
            spec = fallback_quiz(topic)
        finally:
            self._set_generating(False)

        try:
            quiz = await self.quizzes.start_quiz(spec)
        except (NotConnected, ValueError) as e:
            self.add_system(str(e))
            return None
        self.show_statistics = True
        self.events.publish(STATS_CHANGED, self.quizzes.statistics())
        self.add_system(f"Quiz sent: {quiz.question}")
        return quiz

    async def open_doubts(self) -> bool:
        try:
            await self.doubts.open_window()
        except SessionError as e:
            self.add_system(str(e))
            return False
        self.add_system("Doubt collection started. Waiting for learner submissions...")
        return True

    async def process_doubts(self) -> None:
        await self.doubts.force_process()

    def end_quiz(self) -> None:
        if self.quizzes.is_active:
            self.quizzes.close_quiz()
            self.add_system("Quiz closed")

    def close_statistics(self) -> None:
        self.show_statistics = False
        self.events.publish(STATS_CHANGED, self.quizzes.statistics())

    def close_doubts(self) -> None:
        self.doubts.close_results()

    async def handle_input(self, line: str) -> None:
        """Operator console input: slash commands or plain chat."""
        message = line.strip()
        if not message:
            return
        lowered = message.lower()
        if lowered in ("close stats", "/close stats"):
            self.close_statistics()
        elif lowered in ("close doubts", "/close doubts"):
            self.close_doubts()
        elif lowered.startswith("/doubt"):
            await self.open_doubts()
        elif lowered.startswith("/process"):
            await self.process_doubts()
        elif lowered.startswith("/endquiz"):
            self.end_quiz()
        elif lowered.startswith("/quiz"):
            await self.request_quiz(message[5:])
        else:
            await self.send_chat(message)

    async def shutdown(self) -> None:
        self.doubts.shutdown()
        await self.connection.close()

    def _set_generating(self, value: bool) -> None:
        self.generating = value
        self.events.publish(GENERATING_CHANGED, value)
