# tests/test_api_throttler.py

from types import SimpleNamespace

import pytest

from exam_ai.api_throttler import ApiThrottler, ThrottlerError


class StatusError(Exception):
    def __init__(self, code, retry_after=None):
        super().__init__(f"HTTP {code}")
        self.code = code
        headers = {"Retry-After": retry_after} if retry_after else {}
        self.response = SimpleNamespace(headers=headers)


class Recorder:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        out = self.outcomes.pop(0)
        if isinstance(out, Exception):
            raise out
        return out


def _throttler(**kwargs):
    sleeps = []
    params = dict(min_interval=0.0, max_retries=3, max_wait=30.0)
    params.update(kwargs)
    t = ApiThrottler(clock=lambda: 100.0, sleep=sleeps.append, **params)
    return t, sleeps


def test_success_passes_model_and_kwargs():
    t, sleeps = _throttler()
    fn = Recorder("ok")
    assert t.call(fn, model="gpt-4o-mini", temperature=0.2) == "ok"
    assert fn.calls == [{"model": "gpt-4o-mini", "temperature": 0.2}]
    assert sleeps == []


def test_transient_error_is_retried():
    t, sleeps = _throttler()
    fn = Recorder(StatusError(503), "ok")
    assert t.call(fn, model="m") == "ok"
    assert len(fn.calls) == 2
    assert len(sleeps) == 1


def test_retry_after_header_is_honored():
    t, sleeps = _throttler()
    fn = Recorder(StatusError(429, retry_after="7"), "ok")
    t.call(fn, model="m")
    assert sleeps == [7.0]


def test_permanent_error_stops_immediately():
    t, _ = _throttler()
    fn = Recorder(ValueError("bad prompt"), "never")
    with pytest.raises(ThrottlerError) as exc_info:
        t.call(fn, model="m")
    assert exc_info.value.attempts == 1
    assert isinstance(exc_info.value.last_exception, ValueError)
    assert len(fn.calls) == 1


def test_gives_up_after_max_retries():
    t, sleeps = _throttler(max_retries=3)
    fn = Recorder(StatusError(500), StatusError(502), StatusError(503))
    with pytest.raises(ThrottlerError) as exc_info:
        t.call(fn, model="m")
    assert exc_info.value.attempts == 3
    assert len(fn.calls) == 3
    # không ngủ sau lần thử cuối
    assert len(sleeps) == 2


def test_min_interval_between_calls():
    t, sleeps = _throttler(min_interval=2.0)
    t.call(Recorder("a"), model="m")
    t.call(Recorder("b"), model="m")
    assert sleeps == [pytest.approx(2.0)]

    # model khác có slot riêng khi per_model=True
    t.call(Recorder("c"), model="other")
    assert len(sleeps) == 1


def test_global_slot_when_not_per_model():
    t, sleeps = _throttler(min_interval=2.0, per_model=False)
    t.call(Recorder("a"), model="m1")
    t.call(Recorder("b"), model="m2")
    assert len(sleeps) == 1


def test_safe_wrappers_route_to_sdk_methods():
    t, _ = _throttler()
    create = Recorder("chat")
    generate = Recorder("gen")
    openai_client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    gemini_client = SimpleNamespace(models=SimpleNamespace(generate_content=generate))

    assert t.safe_openai_chat(openai_client, [{"role": "user", "content": "hi"}], model="gpt") == "chat"
    assert create.calls[0]["messages"][0]["content"] == "hi"

    assert t.safe_gemini_generate(gemini_client, "giải thích", model="gemini") == "gen"
    assert generate.calls[0] == {"model": "gemini", "contents": "giải thích"}
