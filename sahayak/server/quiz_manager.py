"""Quiz lifecycle: one active question, its answers, and the feedback loop.

NoQuiz --start_quiz--> Active --(submit_answer / register_hint)--> Active
Active --close_quiz or start_quiz--> NoQuiz / a fresh Active

Answers are graded here, on the educator side, and feedback goes straight
back to the learner. Statistics are always recomputed from the recorded
answers; the last quiz's numbers stay available after close_quiz until the
next start_quiz replaces them.
"""
import logging
from typing import Callable, List, Optional

from .codec import QUIZ, QUIZ_FEEDBACK, Envelope
from .connection import ConnectionManager
from .errors import DuplicateAnswer, NoActiveQuiz, NotConnected
from .events import QUIZ_CHANGED, STATS_CHANGED, EventBus
from .quiz_types import LABELS, AnswerRecord, Quiz, QuizAnswer, StatisticsSnapshot, now_ms
from . import statistics

logger = logging.getLogger("sahayak.quiz")


class QuizController:
    def __init__(
        self,
        connection: ConnectionManager,
        events: EventBus,
        clock: Callable[[], int] = now_ms,
        allow_duplicate_answers: bool = False,
        send_correct_index: bool = True,
    ):
        self.connection = connection
        self.events = events
        self.clock = clock
        self.allow_duplicate_answers = allow_duplicate_answers
        self.send_correct_index = send_correct_index

        self.quiz: Optional[Quiz] = None
        self.answers: List[AnswerRecord] = []
        # quiz the current answers belong to; survives close_quiz for stats
        self._stats_quiz: Optional[Quiz] = None

    @property
    def is_active(self) -> bool:
        return self.quiz is not None

    # ---------- Lifecycle ----------

    async def start_quiz(self, spec: Quiz) -> Quiz:
        """Replace any active quiz with `spec` and send it to the learner."""
        if not self.connection.state.is_connected:
            raise NotConnected()
        if len(spec.options) != len(LABELS):
            raise ValueError(f"A quiz needs exactly {len(LABELS)} options, got {len(spec.options)}")
        if not 0 <= spec.correct_idx < len(LABELS):
            raise ValueError(f"Correct option index out of range: {spec.correct_idx}")

        quiz = Quiz(
            question=spec.question,
            options=[str(o) for o in spec.options],
            correct_idx=spec.correct_idx,
            start_time=self.clock(),
        )
        self.quiz = quiz
        self._stats_quiz = quiz
        self.answers = []
        logger.debug(f"[quiz] started '{quiz.question}' correct={quiz.correct_letter}")

        sent = await self.connection.send(Envelope(QUIZ, quiz.to_dict(include_correct=self.send_correct_index)))
        if not sent:
            logger.warning("[quiz] quiz could not be delivered to the learner")

        self.events.publish(QUIZ_CHANGED, quiz)
        self.events.publish(STATS_CHANGED, self.statistics())
        return quiz

    def close_quiz(self) -> None:
        if self.quiz is None:
            return
        logger.debug(f"[quiz] closed '{self.quiz.question}' after {len(self.answers)} answer(s)")
        self.quiz = None
        self.events.publish(QUIZ_CHANGED, None)

    # ---------- Answers & hints ----------

    async def submit_answer(self, ans: QuizAnswer) -> AnswerRecord:
        """Grade an answer for the active quiz and send feedback."""
        quiz = self.quiz
        if quiz is None:
            raise NoActiveQuiz()
        if self.answers and not self.allow_duplicate_answers:
            raise DuplicateAnswer()

        is_correct = ans.answer_idx == quiz.correct_idx
        started = quiz.start_time
        if ans.quiz_start_time is not None:
            started = max(started, ans.quiz_start_time)

        record = AnswerRecord(
            answer_idx=ans.answer_idx,
            is_correct=is_correct,
            response_time_ms=ans.timestamp - started,
            timestamp=ans.timestamp,
            hints_used=ans.hints_used,
        )
        self.answers.append(record)
        logger.debug(f"[quiz] answer idx={ans.answer_idx} correct={is_correct} rt={record.response_time_ms}ms")

        await self.connection.send(Envelope(QUIZ_FEEDBACK, {
            "correct": is_correct,
            "message": feedback_message(quiz, is_correct),
        }))
        self.events.publish(STATS_CHANGED, self.statistics())
        return record

    def register_hint(self) -> int:
        if self.quiz is None:
            raise NoActiveQuiz()
        self.quiz.hints_used += 1
        self.events.publish(STATS_CHANGED, self.statistics())
        return self.quiz.hints_used

    # ---------- Derived data ----------

    def statistics(self) -> StatisticsSnapshot:
        return statistics.compute(self._stats_quiz, self.answers)


def feedback_message(quiz: Quiz, is_correct: bool) -> str:
    if is_correct:
        return "Correct answer!"
    return f"Wrong answer. The correct answer is {quiz.correct_letter}. {quiz.correct_text}"


def answer_label(idx: int) -> str:
    return LABELS[idx] if 0 <= idx < len(LABELS) else "?"
