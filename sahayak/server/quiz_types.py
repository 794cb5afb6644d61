"""Session data types: quizzes, answers, doubts and derived statistics."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
import time

LABELS = ["A", "B", "C", "D"]


def now_ms() -> int:
    """Wall-clock epoch milliseconds (the unit used on the wire)."""
    return int(time.time() * 1000)


class SessionStatus(Enum):
    WAITING = "Waiting for connection..."
    CONNECTED = "Connected"
    DISCONNECTED = "Disconnected"
    ERROR = "Error"


class ChatKind(Enum):
    SYSTEM = "system"
    YOU = "you"
    PEER = "peer"


@dataclass(frozen=True)
class ChatEntry:
    text: str
    kind: ChatKind
    timestamp: int = field(default_factory=now_ms)


@dataclass
class Quiz:
    """The one active multiple-choice question."""
    question: str
    options: List[str]  # 4 options
    correct_idx: int    # 0-3
    start_time: int = 0
    hints_used: int = 0

    @property
    def correct_letter(self) -> str:
        return LABELS[self.correct_idx]

    @property
    def correct_text(self) -> str:
        return self.options[self.correct_idx]

    def to_dict(self, include_correct: bool = True) -> dict:
        data = {
            "question": self.question,
            "options": list(self.options),
            "startTime": self.start_time,
        }
        if include_correct:
            data["correct"] = self.correct_idx
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Quiz":
        return cls(
            question=data["question"],
            options=[str(o) for o in data["options"]],
            correct_idx=int(data.get("correct", data.get("correctIndex", 0))),
            start_time=int(data.get("startTime", 0)),
        )


@dataclass(frozen=True)
class AnswerRecord:
    answer_idx: int
    is_correct: bool
    response_time_ms: float
    timestamp: int
    hints_used: int = 0


@dataclass
class QuizAnswer:
    """An inbound `quiz_answer` payload."""
    answer_idx: int
    timestamp: int
    answer: str = ""
    selected_option: str = ""
    question: str = ""
    quiz_start_time: Optional[int] = None
    hints_used: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "QuizAnswer":
        if not isinstance(data, dict):
            raise ValueError(f"quiz_answer payload is {type(data).__name__}, not an object")
        answer = str(data.get("answer", "") or "")
        if "answerIndex" in data:
            idx = int(data["answerIndex"])
        elif answer.upper() in LABELS:
            idx = LABELS.index(answer.upper())
        else:
            raise ValueError("quiz_answer without answerIndex")
        start = data.get("quizStartTime")
        return cls(
            answer_idx=idx,
            timestamp=int(data.get("timestamp") or now_ms()),
            answer=answer or (LABELS[idx] if 0 <= idx < len(LABELS) else "?"),
            selected_option=str(data.get("selectedOption", "") or ""),
            question=str(data.get("question", "") or ""),
            quiz_start_time=int(start) if start is not None else None,
            hints_used=int(data.get("hintsUsed", 0) or 0),
        )


@dataclass(frozen=True)
class DoubtItem:
    text: str
    timestamp: int


@dataclass(frozen=True)
class DoubtSummary:
    summary: str
    count: int
    details: str = ""

    def to_dict(self) -> dict:
        return {"summary": self.summary, "count": self.count, "details": self.details}

    @classmethod
    def from_dict(cls, data: dict) -> "DoubtSummary":
        return cls(
            summary=str(data["summary"]),
            count=int(data.get("count", 1)),
            details=str(data.get("details", "")),
        )


@dataclass
class DoubtWindow:
    active: bool = False
    collected: List[DoubtItem] = field(default_factory=list)
    opened_at: Optional[int] = None
    deadline: Optional[int] = None


@dataclass(frozen=True)
class StatisticsSnapshot:
    total_answered: int = 0
    average_score: float = 0.0
    avg_response_time_s: float = 0.0
    hints_used: int = 0
    option_distribution: Dict[str, int] = field(
        default_factory=lambda: {label: 0 for label in LABELS}
    )

    def to_dict(self) -> dict:
        return {
            "totalAnswered": self.total_answered,
            "averageScore": self.average_score,
            "avgResponseTime": self.avg_response_time_s,
            "hintsUsed": self.hints_used,
            "optionDistribution": dict(self.option_distribution),
        }
