"""Class statistics aggregation."""
from sahayak.server.quiz_types import AnswerRecord, Quiz, StatisticsSnapshot
from sahayak.server.statistics import compute


def _answer(idx, correct, rt=2000):
    return AnswerRecord(answer_idx=idx, is_correct=correct, response_time_ms=rt, timestamp=0)


def test_no_answers_is_all_zero():
    stats = compute(None, [])
    assert stats == StatisticsSnapshot()
    assert stats.option_distribution == {"A": 0, "B": 0, "C": 0, "D": 0}


def test_average_score_is_rounded_to_one_decimal():
    quiz = Quiz("q", ["a", "b", "c", "d"], 0)
    stats = compute(quiz, [_answer(0, True), _answer(1, False), _answer(0, True)])
    assert stats.total_answered == 3
    assert stats.average_score == 66.7


def test_response_time_in_seconds_ignores_non_positive():
    quiz = Quiz("q", ["a", "b", "c", "d"], 0)
    stats = compute(quiz, [_answer(0, True, 1500), _answer(0, True, 2600), _answer(2, False, 0)])
    assert stats.avg_response_time_s == 2.0


def test_distribution_counts_each_option():
    quiz = Quiz("q", ["a", "b", "c", "d"], 2)
    answers = [_answer(2, True), _answer(2, True), _answer(3, False), _answer(7, False)]
    stats = compute(quiz, answers)
    assert stats.option_distribution == {"A": 0, "B": 0, "C": 2, "D": 1}


def test_hints_default_to_quiz_counter():
    quiz = Quiz("q", ["a", "b", "c", "d"], 0, hints_used=2)
    assert compute(quiz, []).hints_used == 2
    assert compute(quiz, [], hints_used=5).hints_used == 5


def test_snapshot_wire_keys():
    quiz = Quiz("q", ["a", "b", "c", "d"], 0)
    data = compute(quiz, [_answer(0, True)]).to_dict()
    assert set(data) == {"totalAnswered", "averageScore", "avgResponseTime", "hintsUsed", "optionDistribution"}
    assert data["averageScore"] == 100.0
