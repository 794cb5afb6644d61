"""Live class statistics for the active quiz."""
from typing import Iterable, Optional

from .quiz_types import LABELS, AnswerRecord, Quiz, StatisticsSnapshot


def compute(quiz: Optional[Quiz], answers: Iterable[AnswerRecord], hints_used: Optional[int] = None) -> StatisticsSnapshot:
    """Aggregate the recorded answers into a snapshot. Never raises.

    `hints_used` defaults to the quiz's own hint counter.
    """
    answers = list(answers or [])
    if hints_used is None:
        hints_used = quiz.hints_used if quiz is not None else 0

    distribution = {label: 0 for label in LABELS}
    if not answers:
        return StatisticsSnapshot(hints_used=hints_used, option_distribution=distribution)

    total = len(answers)
    correct = sum(1 for a in answers if a.is_correct)
    average_score = round(100.0 * correct / total, 1)

    times = [a.response_time_ms for a in answers if a.response_time_ms and a.response_time_ms > 0]
    avg_time = round(sum(times) / len(times) / 1000.0, 1) if times else 0.0

    for a in answers:
        if isinstance(a.answer_idx, int) and 0 <= a.answer_idx < len(LABELS):
            distribution[LABELS[a.answer_idx]] += 1

    return StatisticsSnapshot(
        total_answered=total,
        average_score=average_score,
        avg_response_time_s=avg_time,
        hints_used=hints_used,
        option_distribution=distribution,
    )
