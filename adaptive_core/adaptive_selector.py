# adaptive_core/adaptive_selector.py

from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, List, Optional, Sequence

from .schema import Question
from .irt_engine import fisher_info

logger = logging.getLogger(__name__)


# ============================
# Lọc ứng viên
# ============================

def eligible_questions(
    pool: Iterable[Question],
    exam_type: str,
    asked_ids: AbstractSet[str],
) -> List[Question]:
    """Câu thuộc exam_type và chưa hỏi trong phiên."""
    return [q for q in pool if q.applies_to(exam_type) and q.id not in asked_ids]


def _prefer_not_recent(candidates: List[Question], recent_ids: AbstractSet[str]) -> List[Question]:
    """
    Bỏ các câu đã gặp ở phiên gần đây.
    Nếu bỏ hết thì fallback: dùng lại toàn bộ ứng viên.
    """
    if not recent_ids:
        return candidates
    fresh = [q for q in candidates if q.id not in recent_ids]
    if not fresh:
        logger.debug("⚠️ Mọi ứng viên đều đã gặp gần đây. Fallback bỏ ràng buộc recency.")
        return candidates
    return fresh


# ============================
# Chiến lược chọn câu
# ============================

class ClosestDifficultySelector:
    """
    Chọn câu có độ khó gần θ nhất (với mô hình 1 tham số, câu cho nhiều thông tin nhất
    khi b ≈ θ).

    Hòa điểm thì ưu tiên lần lượt:
        1) topic chưa xuất hiện trong phiên
        2) times_attempted thấp hơn (rải đều mức dùng ngân hàng)
        3) id nhỏ hơn (ổn định, tất định)
    """

    def rank_key(self, theta: float, question: Question, covered_topics: AbstractSet[str]):
        return (
            abs(question.irt_difficulty - theta),
            question.topic_key in covered_topics,
            question.times_attempted,
            question.id,
        )

    def select_next(
        self,
        theta: float,
        asked_ids: AbstractSet[str],
        pool: Sequence[Question],
        exam_type: str,
        covered_topics: AbstractSet[str] = frozenset(),
        recent_ids: AbstractSet[str] = frozenset(),
    ) -> Optional[Question]:
        """
        Chọn câu tiếp theo; None nghĩa là hết câu khả dụng.
        Không thay đổi trạng thái: việc ghi nhận câu đã hỏi thuộc về người gọi.
        """
        candidates = eligible_questions(pool, exam_type, asked_ids)
        if not candidates:
            logger.debug(f"❌ Hết câu khả dụng cho {exam_type} (đã hỏi {len(asked_ids)}).")
            return None

        candidates = _prefer_not_recent(candidates, recent_ids)
        best = min(candidates, key=lambda q: self.rank_key(theta, q, covered_topics))

        logger.debug(
            f"✅ Chọn câu {best.id} b={best.irt_difficulty:.2f} θ={theta:.2f} topic={best.topic_key}"
        )
        return best


class MaxInformationSelector(ClosestDifficultySelector):
    """Xếp hạng theo Fisher Information 3PL tại θ, cùng thứ tự ưu tiên khi hòa."""

    def rank_key(self, theta: float, question: Question, covered_topics: AbstractSet[str]):
        return (
            -fisher_info(theta, question.params),
            question.topic_key in covered_topics,
            question.times_attempted,
            question.id,
        )


_default_selector = ClosestDifficultySelector()


def select_next(
    theta: float,
    asked_ids: AbstractSet[str],
    pool: Sequence[Question],
    exam_type: str,
    covered_topics: AbstractSet[str] = frozenset(),
    recent_ids: AbstractSet[str] = frozenset(),
) -> Optional[Question]:
    """Gọi nhanh bộ chọn mặc định (ClosestDifficultySelector)."""
    return _default_selector.select_next(
        theta, asked_ids, pool, exam_type,
        covered_topics=covered_topics,
        recent_ids=recent_ids,
    )
