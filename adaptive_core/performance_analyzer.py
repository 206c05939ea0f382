# adaptive_core/performance_analyzer.py

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Tuple

from .schema import Response


@dataclass(frozen=True)
class Thresholds:
    """Ngưỡng phân loại chủ đề yếu / mạnh."""
    weak_below: float = 0.5
    strong_at: float = 0.8
    min_attempts: int = 1


@dataclass(frozen=True)
class TopicStats:
    attempted: int
    correct: int

    @property
    def accuracy(self) -> float:
        return self.correct / self.attempted if self.attempted else 0.0


@dataclass(frozen=True)
class PerformanceSummary:
    weak_topics: FrozenSet[str]
    strong_topics: FrozenSet[str]
    overall_accuracy: float
    topic_stats: Dict[str, TopicStats] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return sum(s.attempted for s in self.topic_stats.values())

    @property
    def correct(self) -> int:
        return sum(s.correct for s in self.topic_stats.values())


def topic_stats(responses: Iterable[Response]) -> Dict[str, TopicStats]:
    """Gom lượt trả lời theo topic; khóa được sắp xếp để kết quả tất định."""
    counts: Dict[str, Tuple[int, int]] = {}
    for r in responses:
        attempted, correct = counts.get(r.topic, (0, 0))
        counts[r.topic] = (attempted + 1, correct + (1 if r.is_correct else 0))
    return {t: TopicStats(attempted=a, correct=c) for t, (a, c) in sorted(counts.items())}


def classify(stats: TopicStats, thresholds: Thresholds) -> str:
    """Trả về 'weak', 'strong' hoặc '' (chưa đủ dữ liệu hoặc ở giữa)."""
    if stats.attempted < thresholds.min_attempts:
        return ""
    if stats.accuracy < thresholds.weak_below:
        return "weak"
    if stats.accuracy >= thresholds.strong_at:
        return "strong"
    return ""


def analyze(responses: Iterable[Response], thresholds: Thresholds = Thresholds()) -> PerformanceSummary:
    """
    Tổng hợp kết quả một phiên:
    - accuracy theo topic = correct / attempted
    - topic yếu: accuracy < weak_below; topic mạnh: accuracy >= strong_at
    - topic chưa đủ min_attempts không vào tập nào

    Không phụ thuộc thứ tự đầu vào và không gọi dịch vụ ngoài.
    """
    stats = topic_stats(responses)

    weak = frozenset(t for t, s in stats.items() if classify(s, thresholds) == "weak")
    strong = frozenset(t for t, s in stats.items() if classify(s, thresholds) == "strong")

    attempted = sum(s.attempted for s in stats.values())
    correct = sum(s.correct for s in stats.values())
    overall = correct / attempted if attempted else 0.0

    return PerformanceSummary(
        weak_topics=weak,
        strong_topics=strong,
        overall_accuracy=overall,
        topic_stats=stats,
    )
