# tests/test_profile_policy.py

import pytest

from adaptive_core.config import TOPIC_POLICY_DECAY_MERGE, TOPIC_POLICY_OVERWRITE
from adaptive_core.performance_analyzer import PerformanceSummary, TopicStats, analyze
from adaptive_core.profile_policy import apply_response, apply_session, merge_mastery
from adaptive_core.schema import Profile, Response, Session, SessionStatus

from conftest import T0


def _resp(i, topic, correct):
    return Response(
        id=f"s1-r{i}",
        session_id="s1",
        question_id=f"q{i}",
        chosen_index=0,
        is_correct=correct,
        time_spent_seconds=5.0,
        topic=topic,
        difficulty=0.0,
    )


def _completed(responses, theta_end=0.9):
    return Session(
        id="s1",
        user_id="u1",
        exam_type="IOE",
        session_type="adaptive",
        target_questions=len(responses),
        start_time=T0,
        theta_start=0.0,
        theta=theta_end,
        status=SessionStatus.COMPLETED,
        end_time=T0,
        theta_end=theta_end,
        responses=tuple(responses),
    )


@pytest.fixture
def old_profile():
    return Profile(
        user_id="u1",
        ability_estimate=-0.2,
        total_questions_answered=10,
        correct_answers=6,
        weak_topics=("Optics",),
        strong_topics=("Grammar",),
        topic_mastery={"Optics": 0.3, "Grammar": 0.9},
    )


def test_overwrite_replaces_topic_sets(old_profile):
    responses = [_resp(i, "Mechanics", i != 0) for i in range(5)]
    session = _completed(responses)
    new = apply_session(old_profile, session, analyze(responses), T0, policy=TOPIC_POLICY_OVERWRITE)

    assert new.ability_estimate == pytest.approx(0.9)
    assert new.total_questions_answered == 15
    assert new.correct_answers == 10
    assert new.weak_topics == ()
    assert new.strong_topics == ("Mechanics",)
    assert new.last_active == T0
    # profile cũ không bị sửa
    assert old_profile.weak_topics == ("Optics",)


def test_decay_merge_keeps_absent_topics(old_profile):
    responses = [_resp(0, "Optics", True), _resp(1, "Optics", True)]
    session = _completed(responses)
    new = apply_session(
        old_profile, session, analyze(responses), T0, policy=TOPIC_POLICY_DECAY_MERGE, decay=0.5
    )

    assert new.topic_mastery["Optics"] == pytest.approx(0.5 * 0.3 + 0.5 * 1.0)
    assert new.topic_mastery["Grammar"] == pytest.approx(0.9), "Topic vắng mặt phải được giữ nguyên"
    assert "Grammar" in new.strong_topics
    assert "Optics" not in new.weak_topics


def test_merge_mastery_new_topic_takes_session_accuracy():
    summary = PerformanceSummary(
        weak_topics=frozenset(),
        strong_topics=frozenset(),
        overall_accuracy=0.5,
        topic_stats={"Genetics": TopicStats(attempted=2, correct=1)},
    )
    assert merge_mastery({}, summary, decay=0.8) == {"Genetics": 0.5}
    assert merge_mastery({}, summary, decay=0.8, min_attempts=3) == {}


def test_counters_skipped_when_already_counted(old_profile):
    responses = [_resp(0, "Mechanics", True)]
    session = _completed(responses)
    new = apply_session(old_profile, session, analyze(responses), T0, include_counters=False)
    assert new.total_questions_answered == 10
    assert new.correct_answers == 6


def test_unknown_policy_is_rejected(old_profile):
    responses = [_resp(0, "Mechanics", True)]
    with pytest.raises(ValueError):
        apply_session(old_profile, _completed(responses), analyze(responses), T0, policy="merge_all")


def test_apply_response_updates_counters_and_running_theta(old_profile):
    response = _resp(0, "Mechanics", False)
    session = _completed([response], theta_end=-0.5)
    new = apply_response(old_profile, session, response, T0)
    assert new.total_questions_answered == 11
    assert new.correct_answers == 6
    assert new.ability_estimate == pytest.approx(-0.5)
    assert new.weak_topics == old_profile.weak_topics
