import os
import logging
from typing import Optional

from dotenv import load_dotenv
from openai import OpenAI

from adaptive_core.performance_analyzer import PerformanceSummary
from adaptive_core.recommendations import ability_level
from adaptive_core.schema import Session
from exam_ai.api_throttler import ApiThrottler
from exam_ai.response_cache import ResponseCache, make_key

PROMPT_VERSION = "v1"

env_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
load_dotenv(dotenv_path=env_path)

logger = logging.getLogger(__name__)


class AdvisorUnavailable(RuntimeError):
    """Thiếu API key hoặc client để gọi dịch vụ AI."""


SYSTEM_PROMPT_VI = (
    "Bạn là chuyên gia luyện thi đầu vào IOE/CEE. Viết báo cáo Markdown với 3 phần:\n"
    "① **Tổng quan năng lực:** dựa trên θ và độ chính xác.\n"
    "② **Gợi ý luyện tập:** 3–5 hướng cụ thể, ưu tiên các chủ đề yếu đã liệt kê.\n"
    "③ **Kế hoạch học tuần tới:** ngắn gọn theo từng ngày.\n"
    "Không tự phân loại lại chủ đề; dùng đúng danh sách yếu/mạnh đã cho."
)

SYSTEM_PROMPT_EN = (
    "You are an IOE/CEE entrance exam coach. Write a Markdown report with 3 sections:\n"
    "① Overview of ability (theta and accuracy)\n"
    "② Study Recommendations (3–5 concise bullets, weak topics first)\n"
    "③ Next-week study plan\n"
    "Do not reclassify topics; use the weak/strong lists exactly as given."
)


def build_prompt(session: Session, summary: PerformanceSummary, system_prompt: str) -> str:
    theta = session.theta_end if session.theta_end is not None else session.theta
    topic_lines = "\n".join(
        f"- {topic}: {s.correct}/{s.attempted} đúng ({s.accuracy * 100:.0f}%)"
        for topic, s in summary.topic_stats.items()
    ) or "- (không có dữ liệu)"

    return f"""
{system_prompt}

📊 **Thông tin bài thi**
- Kỳ thi: {session.exam_type}
- Năng lực cuối (θ): {theta:.2f} ({ability_level(theta)})
- Số câu: {summary.attempted}, độ chính xác: {summary.overall_accuracy * 100:.0f}%
- Chủ đề yếu: {", ".join(sorted(summary.weak_topics)) or "không có"}
- Chủ đề mạnh: {", ".join(sorted(summary.strong_topics)) or "không có"}

📄 **Chi tiết theo chủ đề:**
{topic_lines}
""".strip()


class OpenAIStudyAdvisor:
    """
    Sinh văn bản gợi ý học tập bằng OpenAI.
    Chỉ viết lời khuyên; θ và phân loại topic luôn lấy từ kết quả tính cục bộ.
    Mọi lỗi được ném ra để engine fallback về LocalStudyAdvisor.
    """

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        model: Optional[str] = None,
        throttler: Optional[ApiThrottler] = None,
        cache: Optional[ResponseCache] = None,
        *,
        language: str = "vi",
        temperature: float = 0.5,
    ):
        self._client = client
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.throttler = throttler or ApiThrottler(min_interval=2.0, max_retries=5, max_wait=25.0, per_model=True)
        self.cache = cache
        self.language = language
        self.temperature = temperature

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise AdvisorUnavailable("❌ OPENAI_API_KEY chưa được set trong .env!")
            self._client = OpenAI(api_key=api_key)
        return self._client

    @property
    def system_prompt(self) -> str:
        return SYSTEM_PROMPT_VI if self.language == "vi" else SYSTEM_PROMPT_EN

    def recommend(self, session: Session, summary: PerformanceSummary) -> str:
        prompt = build_prompt(session, summary, self.system_prompt)
        key = make_key(PROMPT_VERSION, self.model, prompt)

        if self.cache is not None:
            cached = self.cache.get(key, self.model)
            if cached:
                logger.info("⚡ Đã có cache báo cáo AI")
                return cached

        response = self.throttler.safe_openai_chat(
            self.client,
            messages=[
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            model=self.model,
            temperature=self.temperature,
        )
        report = (response.choices[0].message.content or "").strip()
        if not report:
            raise AdvisorUnavailable("OpenAI trả về nội dung rỗng")

        token_count = len(report.split())
        if self.cache is not None:
            self.cache.set(key, self.model, report, token_count)
        logger.info(f"📊 Báo cáo AI hoàn tất, tokens ~ {token_count}")
        return report
