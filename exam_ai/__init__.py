# exam_ai/__init__.py

"""
Lớp AI tùy chọn: gợi ý học tập (OpenAI) và giải thích đáp án (Gemini).
Không tham gia cập nhật θ hay phân loại topic.
"""

from .api_throttler import ApiThrottler, ThrottlerError
from .response_cache import ResponseCache
from .study_advisor import OpenAIStudyAdvisor, AdvisorUnavailable
from .answer_explainer import GeminiExplainer

__all__ = [
    "ApiThrottler",
    "ThrottlerError",
    "ResponseCache",
    "OpenAIStudyAdvisor",
    "AdvisorUnavailable",
    "GeminiExplainer",
]
