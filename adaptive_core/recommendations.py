# adaptive_core/recommendations.py

from typing import List, Protocol

from .performance_analyzer import PerformanceSummary
from .schema import Session


class StudyAdvisor(Protocol):
    def recommend(self, session: Session, summary: PerformanceSummary) -> str:
        ...


def ability_level(theta: float) -> str:
    if theta < -1.0:
        return "Beginner"
    if theta <= 1.0:
        return "Intermediate"
    return "Advanced"


class LocalStudyAdvisor:
    """
    Gợi ý học tập tất định, dựng trực tiếp từ PerformanceSummary.
    Luôn dùng được khi không có (hoặc lỗi) dịch vụ AI.
    """

    def recommend(self, session: Session, summary: PerformanceSummary) -> str:
        theta = session.theta_end if session.theta_end is not None else session.theta
        lines: List[str] = [
            "## Tổng quan năng lực",
            f"- Kỳ thi: {session.exam_type}",
            f"- Năng lực cuối (θ): {theta:.2f} ({ability_level(theta)})",
            f"- Độ chính xác: {summary.overall_accuracy * 100:.0f}% "
            f"({summary.correct}/{summary.attempted} câu)",
            "",
        ]

        if summary.weak_topics:
            lines.append("## Cần ôn lại")
            for topic in sorted(summary.weak_topics):
                s = summary.topic_stats[topic]
                lines.append(f"- {topic}: {s.correct}/{s.attempted} câu đúng, ôn lại lý thuyết và làm thêm bài dễ")
            lines.append("")

        middle = [
            t for t in summary.topic_stats
            if t not in summary.weak_topics and t not in summary.strong_topics
        ]
        if middle:
            lines.append("## Cần củng cố")
            for topic in middle:
                s = summary.topic_stats[topic]
                lines.append(f"- {topic}: {s.correct}/{s.attempted} câu đúng, luyện thêm câu mức trung bình")
            lines.append("")

        if summary.strong_topics:
            lines.append("## Điểm mạnh")
            for topic in sorted(summary.strong_topics):
                lines.append(f"- {topic}: duy trì bằng đề tổng hợp và câu khó")
            lines.append("")

        if not summary.topic_stats:
            lines.append("Chưa có câu trả lời nào để đánh giá.")

        return "\n".join(lines).strip()
