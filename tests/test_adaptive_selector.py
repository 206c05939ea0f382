# tests/test_adaptive_selector.py

from adaptive_core.adaptive_selector import (
    ClosestDifficultySelector,
    MaxInformationSelector,
    eligible_questions,
    select_next,
)

from conftest import make_question


def test_picks_difficulty_closest_to_theta():
    pool = [make_question("q1", b=-1.0), make_question("q2", b=0.0), make_question("q3", b=1.0)]
    q = select_next(0.4, frozenset(), pool, "IOE")
    assert q.id == "q2", f"Phải chọn câu có b gần θ nhất, nhận {q.id}"

    q = select_next(0.8, frozenset(), pool, "IOE")
    assert q.id == "q3"


def test_never_returns_asked_or_wrong_exam_type(mixed_pool):
    asked = frozenset({"p2", "c1"})
    for theta in [-3.0, -1.0, 0.0, 0.5, 2.0]:
        q = select_next(theta, asked, mixed_pool, "CEE")
        assert q is not None
        assert q.id not in asked, "Không được chọn lại câu đã hỏi"
        assert "CEE" in q.exam_types, "Không được chọn câu khác exam type"
        assert q.id != "e1"


def test_returns_none_when_pool_fully_asked(mixed_pool):
    ioe_ids = frozenset(q.id for q in eligible_questions(mixed_pool, "IOE", frozenset()))
    assert select_next(0.0, ioe_ids, mixed_pool, "IOE") is None


def test_returns_none_for_empty_pool():
    assert select_next(0.0, frozenset(), [], "IOE") is None


def test_tie_prefers_topic_not_yet_covered():
    pool = [make_question("a", b=0.0, topic="Mechanics"), make_question("b", b=0.0, topic="Optics")]
    q = select_next(0.0, frozenset(), pool, "IOE", covered_topics=frozenset({"Mechanics"}))
    assert q.id == "b", "Hòa độ khó thì ưu tiên topic chưa xuất hiện"


def test_tie_prefers_lower_times_attempted():
    pool = [
        make_question("a", b=0.0, times_attempted=40, times_correct=20),
        make_question("b", b=0.0, times_attempted=3, times_correct=1),
    ]
    assert select_next(0.0, frozenset(), pool, "IOE").id == "b"


def test_full_tie_is_broken_by_id():
    pool = [make_question("q9", b=0.0), make_question("q1", b=0.0), make_question("q5", b=0.0)]
    assert select_next(0.0, frozenset(), pool, "IOE").id == "q1"
    # thứ tự đầu vào không ảnh hưởng
    assert select_next(0.0, frozenset(), list(reversed(pool)), "IOE").id == "q1"


def test_recent_questions_avoided_with_fallback():
    pool = [make_question("q1", b=0.0), make_question("q2", b=1.5)]
    q = select_next(0.0, frozenset(), pool, "IOE", recent_ids=frozenset({"q1"}))
    assert q.id == "q2", "Câu gặp ở phiên gần đây phải bị né nếu còn câu khác"

    q = select_next(0.0, frozenset(), pool, "IOE", recent_ids=frozenset({"q1", "q2"}))
    assert q.id == "q1", "Khi mọi câu đều đã gặp thì fallback về xếp hạng thường"


def test_selection_does_not_mutate_inputs():
    pool = [make_question("q1"), make_question("q2")]
    asked = {"q1"}
    ClosestDifficultySelector().select_next(0.0, asked, pool, "IOE")
    assert asked == {"q1"}
    assert [q.id for q in pool] == ["q1", "q2"]


def test_max_information_prefers_discriminating_item():
    pool = [make_question("flat", b=0.0, a=0.5), make_question("sharp", b=0.3, a=2.0)]
    assert ClosestDifficultySelector().select_next(0.0, frozenset(), pool, "IOE").id == "flat"
    assert MaxInformationSelector().select_next(0.0, frozenset(), pool, "IOE").id == "sharp"
