# adaptive_core/schema.py

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from .errors import InvalidQuestion

DIFFICULTY_LABELS = ("easy", "moderate", "difficult")

# Độ khó danh nghĩa khi câu hỏi chưa có tham số IRT
LABEL_TO_B = {"easy": -1.0, "moderate": 0.0, "difficult": 1.0}


@dataclass(frozen=True)
class IRTParams:
    """
    Tham số 3PL của một câu hỏi:
    - a: discrimination
    - b: difficulty
    - c: guessing (lower asymptote)
    """
    a: float = 1.0
    b: float = 0.0
    c: float = 0.0


@dataclass(frozen=True)
class Question:
    """
    Câu hỏi trắc nghiệm trong ngân hàng:
    - options có thứ tự, correct_index tính từ 0
    - exam_types: các kỳ thi câu hỏi áp dụng (ít nhất một)
    - times_attempted / times_correct: thống kê tích lũy, chỉ đọc với engine
    """
    id: str
    subject_id: str
    stem: str
    options: Tuple[str, ...]
    correct_index: int
    exam_types: FrozenSet[str]
    difficulty: str = "moderate"
    irt: Optional[IRTParams] = None
    topic: Optional[str] = None
    subtopic: Optional[str] = None
    times_attempted: int = 0
    times_correct: int = 0
    explanation: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "options", tuple(self.options))
        object.__setattr__(self, "exam_types", frozenset(self.exam_types))

        if len(self.options) < 2:
            raise InvalidQuestion(self.id, "cần ít nhất 2 phương án")
        if not 0 <= self.correct_index < len(self.options):
            raise InvalidQuestion(self.id, f"correct_index={self.correct_index} ngoài phạm vi options")
        if not self.exam_types:
            raise InvalidQuestion(self.id, "phải thuộc ít nhất một exam type")
        if self.difficulty not in DIFFICULTY_LABELS:
            raise InvalidQuestion(self.id, f"difficulty '{self.difficulty}' không thuộc {DIFFICULTY_LABELS}")
        if self.times_attempted < 0 or not 0 <= self.times_correct <= self.times_attempted:
            raise InvalidQuestion(self.id, "thống kê times_attempted/times_correct không nhất quán")

    @property
    def irt_difficulty(self) -> float:
        if self.irt is not None:
            return self.irt.b
        return LABEL_TO_B[self.difficulty]

    @property
    def params(self) -> IRTParams:
        """Tham số IRT hiệu lực (suy từ nhãn độ khó nếu thiếu)."""
        if self.irt is not None:
            return self.irt
        return IRTParams(a=1.0, b=LABEL_TO_B[self.difficulty], c=0.0)

    @property
    def topic_key(self) -> str:
        return self.topic or self.subject_id

    @property
    def success_rate(self) -> float:
        return self.times_correct / max(self.times_attempted, 1)

    def applies_to(self, exam_type: str) -> bool:
        return exam_type in self.exam_types

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["options"] = list(self.options)
        data["exam_types"] = sorted(self.exam_types)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        irt = data.get("irt")
        if irt is None and "irt_difficulty" in data:
            irt = {
                "a": data.get("irt_discrimination", 1.0),
                "b": data["irt_difficulty"],
                "c": data.get("irt_guessing", 0.0),
            }
        return cls(
            id=str(data["id"]),
            subject_id=str(data["subject_id"]),
            stem=data.get("stem") or data.get("question_text", ""),
            options=tuple(data["options"]),
            correct_index=int(data.get("correct_index", data.get("correct_answer", -1))),
            exam_types=frozenset(data.get("exam_types", ())),
            difficulty=data.get("difficulty", "moderate"),
            irt=IRTParams(**irt) if irt else None,
            topic=data.get("topic"),
            subtopic=data.get("subtopic"),
            times_attempted=int(data.get("times_attempted", 0)),
            times_correct=int(data.get("times_correct", 0)),
            explanation=data.get("explanation"),
        )


class SessionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


SESSION_ADAPTIVE = "adaptive"
SESSION_MOCK = "mock"

END_TARGET_REACHED = "target_reached"
END_POOL_EXHAUSTED = "pool_exhausted"
END_TIMEOUT = "timeout"
END_MANUAL = "manual"


@dataclass(frozen=True)
class Response:
    """Một lượt trả lời; lưu kèm snapshot topic/độ khó của câu hỏi lúc trả lời."""
    id: str
    session_id: str
    question_id: str
    chosen_index: int
    is_correct: bool
    time_spent_seconds: float
    topic: str
    difficulty: float
    discrimination: float = 1.0
    guessing: float = 0.0
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Response":
        return cls(**data)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _parse_dt(raw: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(raw) if raw else None


@dataclass(frozen=True)
class Session:
    """
    Trạng thái một phiên thi (giá trị bất biến).
    Mọi chuyển trạng thái trong session_machine trả về một Session mới.
    """
    id: str
    user_id: str
    exam_type: str
    session_type: str
    target_questions: int
    start_time: datetime
    theta_start: float
    theta: float
    subject_ids: Tuple[str, ...] = ()
    duration_seconds: Optional[int] = None
    status: SessionStatus = SessionStatus.NOT_STARTED
    end_time: Optional[datetime] = None
    theta_end: Optional[float] = None
    standard_error: float = float("inf")
    responses: Tuple[Response, ...] = ()
    current_question_id: Optional[str] = None
    weak_topics: Tuple[str, ...] = ()
    strong_topics: Tuple[str, ...] = ()
    overall_accuracy: Optional[float] = None
    end_reason: Optional[str] = None
    recommendations: Optional[str] = None

    @property
    def questions_attempted(self) -> int:
        return len(self.responses)

    @property
    def correct_answers(self) -> int:
        return sum(1 for r in self.responses if r.is_correct)

    @property
    def completion_percentage(self) -> float:
        if self.target_questions <= 0:
            return 0.0
        return self.questions_attempted / self.target_questions * 100.0

    @property
    def asked_ids(self) -> FrozenSet[str]:
        asked = {r.question_id for r in self.responses}
        if self.current_question_id:
            asked.add(self.current_question_id)
        return frozenset(asked)

    @property
    def covered_topics(self) -> FrozenSet[str]:
        return frozenset(r.topic for r in self.responses)

    @property
    def is_finished(self) -> bool:
        return self.status in (SessionStatus.COMPLETED, SessionStatus.ABANDONED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "exam_type": self.exam_type,
            "session_type": self.session_type,
            "target_questions": self.target_questions,
            "start_time": _iso(self.start_time),
            "theta_start": self.theta_start,
            "theta": self.theta,
            "subject_ids": list(self.subject_ids),
            "duration_seconds": self.duration_seconds,
            "status": self.status.value,
            "end_time": _iso(self.end_time),
            "theta_end": self.theta_end,
            "standard_error": self.standard_error,
            "responses": [r.to_dict() for r in self.responses],
            "current_question_id": self.current_question_id,
            "weak_topics": list(self.weak_topics),
            "strong_topics": list(self.strong_topics),
            "overall_accuracy": self.overall_accuracy,
            "end_reason": self.end_reason,
            "recommendations": self.recommendations,
            # các trường dẫn xuất, tiện cho báo cáo
            "questions_attempted": self.questions_attempted,
            "correct_answers": self.correct_answers,
            "completion_percentage": self.completion_percentage,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            exam_type=data["exam_type"],
            session_type=data["session_type"],
            target_questions=int(data["target_questions"]),
            start_time=_parse_dt(data["start_time"]),
            theta_start=float(data["theta_start"]),
            theta=float(data["theta"]),
            subject_ids=tuple(data.get("subject_ids", ())),
            duration_seconds=data.get("duration_seconds"),
            status=SessionStatus(data.get("status", SessionStatus.NOT_STARTED.value)),
            end_time=_parse_dt(data.get("end_time")),
            theta_end=data.get("theta_end"),
            standard_error=float(data.get("standard_error", float("inf"))),
            responses=tuple(Response.from_dict(r) for r in data.get("responses", ())),
            current_question_id=data.get("current_question_id"),
            weak_topics=tuple(data.get("weak_topics", ())),
            strong_topics=tuple(data.get("strong_topics", ())),
            overall_accuracy=data.get("overall_accuracy"),
            end_reason=data.get("end_reason"),
            recommendations=data.get("recommendations"),
        )


@dataclass(frozen=True)
class Profile:
    """Hồ sơ năng lực dài hạn của một người học."""
    user_id: str
    ability_estimate: float = 0.0
    total_questions_answered: int = 0
    correct_answers: int = 0
    weak_topics: Tuple[str, ...] = ()
    strong_topics: Tuple[str, ...] = ()
    topic_mastery: Dict[str, float] = field(default_factory=dict)
    last_active: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "ability_estimate": self.ability_estimate,
            "total_questions_answered": self.total_questions_answered,
            "correct_answers": self.correct_answers,
            "weak_topics": list(self.weak_topics),
            "strong_topics": list(self.strong_topics),
            "topic_mastery": dict(self.topic_mastery),
            "last_active": _iso(self.last_active),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        return cls(
            user_id=data["user_id"],
            ability_estimate=float(data.get("ability_estimate", 0.0)),
            total_questions_answered=int(data.get("total_questions_answered", 0)),
            correct_answers=int(data.get("correct_answers", 0)),
            weak_topics=tuple(data.get("weak_topics", ())),
            strong_topics=tuple(data.get("strong_topics", ())),
            topic_mastery=dict(data.get("topic_mastery", {})),
            last_active=_parse_dt(data.get("last_active")),
        )
