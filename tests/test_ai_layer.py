# tests/test_ai_layer.py

from types import SimpleNamespace

import pytest

from adaptive_core.performance_analyzer import analyze
from adaptive_core.schema import Response, Session, SessionStatus
from exam_ai.answer_explainer import FALLBACK_TEXT, GeminiExplainer, build_prompt
from exam_ai.api_throttler import ApiThrottler
from exam_ai.response_cache import ResponseCache, make_key
from exam_ai.study_advisor import AdvisorUnavailable, OpenAIStudyAdvisor

from conftest import T0, make_question


def _throttler():
    return ApiThrottler(min_interval=0.0, max_retries=2, clock=lambda: 0.0, sleep=lambda s: None)


def _session():
    responses = tuple(
        Response(
            id=f"s1-r{i}", session_id="s1", question_id=f"q{i}", chosen_index=0,
            is_correct=i == 0, time_spent_seconds=8.0, topic="Optics", difficulty=0.0,
        )
        for i in range(3)
    )
    return Session(
        id="s1", user_id="u1", exam_type="IOE", session_type="adaptive", target_questions=3,
        start_time=T0, theta_start=0.0, theta=-0.6, status=SessionStatus.COMPLETED,
        end_time=T0, theta_end=-0.6, responses=responses,
    )


class FakeOpenAI:
    def __init__(self, content):
        self.content = content
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


class FakeGemini:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = 0
        self.models = SimpleNamespace(generate_content=self._generate)

    def _generate(self, **kwargs):
        self.calls += 1
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


def test_make_key_depends_on_version_model_and_prompt():
    base = make_key("v1", "gpt", "hello")
    assert base == make_key("v1", "gpt", "hello")
    assert base != make_key("v2", "gpt", "hello")
    assert base != make_key("v1", "gemini", "hello")


def test_response_cache(tmp_path):
    cache = ResponseCache(str(tmp_path / "ai_cache.db"))
    assert cache.get("k", "m") is None
    cache.set("k", "m", "nội dung", 2)
    assert cache.get("k", "m") == "nội dung"
    assert cache.get("k", "other") is None


def test_advisor_uses_local_classification_and_caches(tmp_path):
    client = FakeOpenAI("## Gợi ý\n- Ôn Optics")
    advisor = OpenAIStudyAdvisor(
        client=client, model="gpt-4o-mini", throttler=_throttler(),
        cache=ResponseCache(str(tmp_path / "ai_cache.db")),
    )
    session = _session()
    summary = analyze(session.responses)

    assert advisor.recommend(session, summary) == "## Gợi ý\n- Ôn Optics"
    prompt = client.calls[0]["messages"][1]["content"]
    assert "Chủ đề yếu: Optics" in prompt
    assert "Beginner" not in prompt

    # lần hai lấy từ cache
    assert advisor.recommend(session, summary) == "## Gợi ý\n- Ôn Optics"
    assert len(client.calls) == 1


def test_advisor_empty_reply_raises():
    advisor = OpenAIStudyAdvisor(client=FakeOpenAI("   "), throttler=_throttler())
    session = _session()
    with pytest.raises(AdvisorUnavailable):
        advisor.recommend(session, analyze(session.responses))


def test_advisor_without_key_is_unavailable(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(AdvisorUnavailable):
        OpenAIStudyAdvisor(throttler=_throttler()).client


def test_explainer_prompt_mentions_answers():
    q = make_question("q1", correct_index=2)
    prompt = build_prompt(q, 0)
    assert "[ĐÁP ÁN ĐÚNG]: C" in prompt
    assert "(Sai)" in prompt


def test_explainer_returns_cleaned_text_and_caches(tmp_path):
    client = FakeGemini(text="Vì  F = ma.\n\n\n\nÔn lại định luật II.")
    explainer = GeminiExplainer(
        client=client, model="gemini-2.5-flash", throttler=_throttler(),
        cache=ResponseCache(str(tmp_path / "ai_cache.db")),
    )
    q = make_question("q1")
    assert explainer.explain(q, 1) == "Vì F = ma.\n\nÔn lại định luật II."
    explainer.explain(q, 1)
    assert client.calls == 1


def test_explainer_failure_falls_back_to_bank_explanation():
    explainer = GeminiExplainer(client=FakeGemini(error=ValueError("blocked")), throttler=_throttler())
    assert explainer.explain(make_question("q1", explanation="F = ma"), 1) == "F = ma"
    assert explainer.explain(make_question("q2"), 1) == FALLBACK_TEXT


def test_explainer_without_key_uses_fallback(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    explainer = GeminiExplainer(throttler=_throttler())
    assert explainer.explain(make_question("q1", explanation="Xem SGK"), 0) == "Xem SGK"
