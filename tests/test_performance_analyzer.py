# tests/test_performance_analyzer.py

import itertools

import pytest

from adaptive_core.performance_analyzer import Thresholds, TopicStats, analyze, classify
from adaptive_core.schema import Response


def _resp(i, topic, correct):
    return Response(
        id=f"r{i}",
        session_id="s1",
        question_id=f"q{i}",
        chosen_index=0 if correct else 1,
        is_correct=correct,
        time_spent_seconds=10.0,
        topic=topic,
        difficulty=0.0,
    )


def test_mechanics_four_of_five_is_strong():
    responses = [_resp(i, "Mechanics", i != 2) for i in range(5)]
    summary = analyze(responses)
    assert summary.strong_topics == frozenset({"Mechanics"})
    assert summary.weak_topics == frozenset()
    assert summary.overall_accuracy == pytest.approx(0.8)


def test_weak_strong_and_middle_topics():
    responses = (
        [_resp(i, "Optics", i == 0) for i in range(3)]             # 1/3 → yếu
        + [_resp(10 + i, "Algebra", True) for i in range(4)]       # 4/4 → mạnh
        + [_resp(20 + i, "Grammar", i < 2) for i in range(3)]      # 2/3 → ở giữa
    )
    summary = analyze(responses)
    assert summary.weak_topics == frozenset({"Optics"})
    assert summary.strong_topics == frozenset({"Algebra"})
    assert "Grammar" in summary.topic_stats
    assert summary.attempted == 10
    assert summary.correct == 7


def test_boundaries_are_exact():
    t = Thresholds()
    assert classify(TopicStats(attempted=2, correct=1), t) == ""        # 0.5 không phải yếu
    assert classify(TopicStats(attempted=5, correct=4), t) == "strong"  # 0.8 là mạnh
    assert classify(TopicStats(attempted=10, correct=4), t) == "weak"


def test_topics_below_min_attempts_are_omitted():
    responses = [_resp(0, "Optics", False), _resp(1, "Optics", False), _resp(2, "Genetics", True)]
    summary = analyze(responses, Thresholds(min_attempts=2))
    assert summary.weak_topics == frozenset({"Optics"})
    assert "Genetics" not in summary.strong_topics
    assert "Genetics" not in summary.weak_topics


def test_empty_responses():
    summary = analyze([])
    assert summary.overall_accuracy == 0.0
    assert summary.weak_topics == frozenset() and summary.strong_topics == frozenset()


def test_order_independent_and_idempotent():
    responses = [
        _resp(0, "Mechanics", True),
        _resp(1, "Optics", False),
        _resp(2, "Mechanics", False),
        _resp(3, "Optics", True),
        _resp(4, "Algebra", True),
    ]
    expected = analyze(responses)
    assert analyze(responses) == expected

    for perm in itertools.permutations(responses):
        got = analyze(list(perm))
        assert got.weak_topics == expected.weak_topics
        assert got.strong_topics == expected.strong_topics
        assert got.overall_accuracy == expected.overall_accuracy
