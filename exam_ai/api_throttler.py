# exam_ai/api_throttler.py

"""
Điều tiết và retry cho mọi lệnh gọi dịch vụ AI (OpenAI cho gợi ý học tập,
Gemini cho giải thích đáp án).

Mỗi model (hoặc cả hệ thống nếu per_model=False) có một "slot": hai lần gọi
cùng slot cách nhau ít nhất min_interval giây. Lỗi 429 / 5xx / timeout được
thử lại với backoff mũ có jitter (ưu tiên Retry-After nếu server gửi về).
Lỗi 4xx còn lại là lỗi của request, ném lại ngay cho người gọi.
"""

import time
import random
import logging
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from openai import APIConnectionError, APIError, APITimeoutError, RateLimitError

logger = logging.getLogger(__name__)

GLOBAL_SLOT = "__all_models__"


class ThrottlerError(Exception):
    """Hết số lần thử mà dịch vụ AI vẫn lỗi."""

    def __init__(self, message: str, last_exception: Optional[BaseException], attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def _status_of(exc: BaseException) -> Optional[int]:
    """Mã HTTP của lỗi: openai dùng status_code, google-genai dùng code."""
    for attr in ("status_code", "code"):
        val = getattr(exc, attr, None)
        if isinstance(val, int):
            return val
    return None


def _is_transient_status(status: Optional[int]) -> bool:
    return status == 429 or (status is not None and 500 <= status < 600)


def _retry_after_seconds(exc: BaseException) -> Optional[float]:
    headers = getattr(getattr(exc, "response", None), "headers", None)
    if not headers:
        return None
    raw = headers.get("Retry-After")
    try:
        return float(raw) if raw else None
    except (TypeError, ValueError):
        return None


class ApiThrottler:
    """
    min_interval: số giây tối thiểu giữa hai lần gọi cùng slot
    max_retries:  tổng số lần thử cho một lệnh gọi
    max_wait:     trần thời gian chờ giữa hai lần thử
    per_model:    True thì mỗi model một slot, False thì dùng chung

    clock / sleep thay được bằng hàm giả khi test.
    """

    def __init__(
        self,
        min_interval: float = 2.0,
        max_retries: int = 5,
        max_wait: float = 30.0,
        per_model: bool = True,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = min_interval
        self.max_retries = max_retries
        self.max_wait = max_wait
        self.per_model = per_model

        self._clock = clock
        self._sleep = sleep
        self._lock = Lock()
        self._slot_used_at: Dict[str, float] = {}

    def _slot(self, model: str) -> str:
        return model if self.per_model else GLOBAL_SLOT

    def _reserve_slot(self, slot: str):
        # Giữ lock khi đọc/ghi thời điểm, nhả lock trong lúc ngủ
        with self._lock:
            previous = self._slot_used_at.get(slot)
            if previous is not None:
                gap = self._clock() - previous
                if gap < self.min_interval:
                    delay = self.min_interval - gap
                    logger.debug(f"⏳ Slot {slot}: đợi {delay:.2f}s trước lần gọi kế tiếp")
                    self._lock.release()
                    try:
                        self._sleep(delay)
                    finally:
                        self._lock.acquire()
            self._slot_used_at[slot] = self._clock()

    def _delay_before_retry(self, attempt: int, hinted: Optional[float]) -> float:
        if hinted is not None:
            return min(self.max_wait, max(0.0, hinted))
        jitter = random.uniform(0.5, 2.0)
        return min(self.max_wait, 2 ** attempt + jitter)

    def _pause(self, attempt: int, why: str, hinted: Optional[float] = None):
        delay = self._delay_before_retry(attempt, hinted)
        logger.warning(f"⚠️ {why} (lần {attempt}/{self.max_retries}), thử lại sau {delay:.1f}s")
        # lần thử cuối thì không cần ngủ
        if attempt < self.max_retries:
            self._sleep(delay)

    def call(self, fn: Callable[..., Any], *, model: str, **kwargs) -> Any:
        """
        Gọi fn(model=model, **kwargs) qua slot của model.
        Thành công thì trả về kết quả; hết lượt thử thì ném ThrottlerError.
        """
        slot = self._slot(model)
        failure: Optional[BaseException] = None
        tries = 0

        while tries < self.max_retries:
            tries += 1
            self._reserve_slot(slot)
            try:
                return fn(model=model, **kwargs)
            except RateLimitError as e:
                failure = e
                self._pause(tries, "OpenAI báo vượt hạn mức (429)", _retry_after_seconds(e))
            except (APITimeoutError, APIConnectionError) as e:
                failure = e
                self._pause(tries, "Mất kết nối hoặc quá thời gian chờ")
            except APIError as e:
                status = _status_of(e)
                if not _is_transient_status(status):
                    logger.error(f"🚫 OpenAI từ chối request ({status}), không thử lại: {e}")
                    raise
                failure = e
                self._pause(tries, f"OpenAI lỗi máy chủ {status}")
            except Exception as e:
                failure = e
                status = _status_of(e)
                if not _is_transient_status(status):
                    logger.error(f"🚨 {model} lỗi không thử lại được: {e}")
                    break
                self._pause(tries, f"{model} lỗi tạm thời {status}", _retry_after_seconds(e))

        raise ThrottlerError(f"❌ {model}: thất bại sau {tries} lần thử", failure, tries)

    def safe_openai_chat(self, client, messages: List[Dict[str, Any]], model: str = "gpt-4o-mini", **kwargs):
        """chat.completions.create của OpenAI, đi qua throttler."""
        return self.call(client.chat.completions.create, model=model, messages=messages, **kwargs)

    def safe_gemini_generate(self, client, contents: Any, model: str = "gemini-2.5-flash", **kwargs):
        """models.generate_content của google-genai, đi qua throttler."""
        return self.call(client.models.generate_content, model=model, contents=contents, **kwargs)
