import os
import re
import logging
from typing import Optional

from dotenv import load_dotenv
from google import genai

from adaptive_core.schema import Question
from exam_ai.api_throttler import ApiThrottler, ThrottlerError
from exam_ai.response_cache import ResponseCache, make_key

PROMPT_VERSION = "v1"
FALLBACK_TEXT = "⚠️ Không thể tạo giải thích lúc này. Hãy xem lại lý thuyết của chủ đề này."

env_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
load_dotenv(dotenv_path=env_path)

logger = logging.getLogger(__name__)


def build_prompt(question: Question, chosen_index: int) -> str:
    options = "\n".join(f"  {chr(65 + i)}. {opt}" for i, opt in enumerate(question.options))
    correct = question.options[question.correct_index]
    chosen = question.options[chosen_index]
    result = "Đúng" if chosen_index == question.correct_index else "Sai"
    return f"""
Bạn là gia sư luyện thi IOE/CEE. Giải thích câu hỏi sau cho học sinh:

[CÂU HỎI]: {question.stem}
[PHƯƠNG ÁN]:
{options}
[ĐÁP ÁN ĐÚNG]: {correct}
[HỌC SINH CHỌN]: {chosen} ({result})

Trình bày:
1. Vì sao đáp án đúng là đúng
2. Vì sao các phương án còn lại sai
3. Khái niệm chính cần nắm
4. Mẹo ôn tập cho chủ đề {question.topic_key}

Ngắn gọn, dễ hiểu, giọng khích lệ.
""".strip()


def _clean(text: str) -> str:
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\s*\n\s*\n\s*\n+", "\n\n", text)
    return text.strip()


class GeminiExplainer:
    """Giải thích đáp án bằng Gemini; lỗi thì trả về giải thích có sẵn trong ngân hàng hoặc FALLBACK_TEXT."""

    def __init__(
        self,
        client: Optional[genai.Client] = None,
        model: Optional[str] = None,
        throttler: Optional[ApiThrottler] = None,
        cache: Optional[ResponseCache] = None,
    ):
        self._client = client
        self.model = model or os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        self.throttler = throttler or ApiThrottler(min_interval=1.0, max_retries=3, max_wait=10.0)
        self.cache = cache

    @property
    def client(self) -> Optional[genai.Client]:
        if self._client is None:
            api_key = os.getenv("GOOGLE_API_KEY")
            if not api_key:
                return None
            self._client = genai.Client(api_key=api_key)
        return self._client

    def fallback(self, question: Question) -> str:
        return question.explanation or FALLBACK_TEXT

    def explain(self, question: Question, chosen_index: int) -> str:
        prompt = build_prompt(question, chosen_index)
        key = make_key(PROMPT_VERSION, self.model, prompt)

        if self.cache is not None:
            cached = self.cache.get(key, self.model)
            if cached:
                return cached

        client = self.client
        if client is None:
            logger.warning("⚠️ GOOGLE_API_KEY chưa được set, dùng giải thích có sẵn")
            return self.fallback(question)

        try:
            resp = self.throttler.safe_gemini_generate(client, contents=prompt, model=self.model)
            text = _clean(resp.text or "")
        except ThrottlerError as e:
            logger.error(f"❌ Gemini thất bại sau {e.attempts} lần thử: {e.last_exception}")
            return self.fallback(question)

        if not text:
            return self.fallback(question)
        if self.cache is not None:
            self.cache.set(key, self.model, text, len(text.split()))
        return text
