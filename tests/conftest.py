# tests/conftest.py

from datetime import datetime, timedelta, timezone

import pytest

from adaptive_core.schema import IRTParams, Question


T0 = datetime(2025, 1, 6, 8, 0, 0, tzinfo=timezone.utc)


def make_question(
    qid,
    b=0.0,
    topic="Mechanics",
    subject_id="physics",
    exam_types=("IOE", "CEE"),
    correct_index=0,
    times_attempted=0,
    times_correct=0,
    a=1.0,
    c=0.0,
    explanation=None,
):
    return Question(
        id=qid,
        subject_id=subject_id,
        stem=f"Câu hỏi {qid}",
        options=("A", "B", "C", "D"),
        correct_index=correct_index,
        exam_types=frozenset(exam_types),
        irt=IRTParams(a=a, b=b, c=c),
        topic=topic,
        times_attempted=times_attempted,
        times_correct=times_correct,
        explanation=explanation,
    )


class FakeClock:
    """Đồng hồ giả: trả về thời điểm cố định, tiến lên khi gọi advance()."""

    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mechanics_pool():
    # 6 câu Mechanics, độ khó trải đều quanh 0
    return [make_question(f"m{i}", b=(i - 3) * 0.5) for i in range(6)]


@pytest.fixture
def mixed_pool():
    return [
        make_question("p1", b=-1.0, topic="Mechanics"),
        make_question("p2", b=0.0, topic="Optics"),
        make_question("p3", b=1.0, topic="Thermodynamics"),
        make_question("c1", b=0.0, topic="Organic Chemistry", subject_id="chemistry"),
        make_question("c2", b=0.5, topic="Mole Concept", subject_id="chemistry"),
        make_question("e1", b=0.0, topic="Grammar", subject_id="english", exam_types=("IOE",)),
        make_question("b1", b=0.0, topic="Genetics", subject_id="biology", exam_types=("CEE",)),
    ]
