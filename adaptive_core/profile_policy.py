# adaptive_core/profile_policy.py

"""
Tính profile mới sau một phiên thi.

Các hàm trả về toàn bộ Profile mới (θ, bộ đếm, topic yếu/mạnh, mastery,
last_active) để store ghi đè một lần duy nhất.

Chính sách topic:
- overwrite:   topic yếu/mạnh của phiên mới nhất thay thế hoàn toàn tập cũ
- decay_merge: accuracy từng topic được trộn với lịch sử theo hệ số decay,
               rồi phân loại lại bằng cùng ngưỡng của analyzer
"""

from dataclasses import replace
from datetime import datetime
from typing import Dict

from .config import TOPIC_POLICY_DECAY_MERGE, TOPIC_POLICY_OVERWRITE, TOPIC_POLICIES
from .performance_analyzer import PerformanceSummary, Thresholds
from .schema import Profile, Response, Session


def merge_mastery(
    old: Dict[str, float],
    summary: PerformanceSummary,
    decay: float,
    min_attempts: int = 1,
) -> Dict[str, float]:
    """mastery_mới = decay · mastery_cũ + (1 − decay) · accuracy_phiên; topic vắng mặt giữ nguyên."""
    merged = dict(old)
    for topic, stats in summary.topic_stats.items():
        if stats.attempted < min_attempts:
            continue
        if topic in merged:
            merged[topic] = decay * merged[topic] + (1.0 - decay) * stats.accuracy
        else:
            merged[topic] = stats.accuracy
    return dict(sorted(merged.items()))


def apply_session(
    profile: Profile,
    session: Session,
    summary: PerformanceSummary,
    now: datetime,
    *,
    policy: str = TOPIC_POLICY_OVERWRITE,
    decay: float = 0.5,
    thresholds: Thresholds = Thresholds(),
    include_counters: bool = True,
) -> Profile:
    if policy not in TOPIC_POLICIES:
        raise ValueError(f"Chính sách topic '{policy}' không hợp lệ, cần một trong {TOPIC_POLICIES}")

    theta = session.theta_end if session.theta_end is not None else session.theta

    if policy == TOPIC_POLICY_DECAY_MERGE:
        mastery = merge_mastery(profile.topic_mastery, summary, decay, thresholds.min_attempts)
        weak = tuple(t for t, m in mastery.items() if m < thresholds.weak_below)
        strong = tuple(t for t, m in mastery.items() if m >= thresholds.strong_at)
    else:
        mastery = {
            t: s.accuracy
            for t, s in summary.topic_stats.items()
            if s.attempted >= thresholds.min_attempts
        }
        weak = tuple(sorted(summary.weak_topics))
        strong = tuple(sorted(summary.strong_topics))

    total = profile.total_questions_answered
    correct = profile.correct_answers
    if include_counters:
        total += session.questions_attempted
        correct += session.correct_answers

    return replace(
        profile,
        ability_estimate=theta,
        total_questions_answered=total,
        correct_answers=correct,
        weak_topics=weak,
        strong_topics=strong,
        topic_mastery=mastery,
        last_active=now,
    )


def apply_response(profile: Profile, session: Session, response: Response, now: datetime) -> Profile:
    """Cập nhật nhẹ sau từng câu (chế độ per_response): bộ đếm và θ đang chạy."""
    return replace(
        profile,
        ability_estimate=session.theta,
        total_questions_answered=profile.total_questions_answered + 1,
        correct_answers=profile.correct_answers + (1 if response.is_correct else 0),
        last_active=now,
    )
