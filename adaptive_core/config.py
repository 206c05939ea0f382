# adaptive_core/config.py

"""
Cấu hình engine thi thích ứng.

Giá trị mặc định đặt trong EngineConfig; có thể ghi đè bằng biến môi trường
ADAPTIVE_* (đọc từ .env ở thư mục gốc project qua python-dotenv).
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

from .errors import UnknownExamType

logger = logging.getLogger(__name__)

env_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
load_dotenv(dotenv_path=env_path)


# ============================
# Chính sách cập nhật profile
# ============================

TOPIC_POLICY_OVERWRITE = "overwrite"
TOPIC_POLICY_DECAY_MERGE = "decay_merge"
TOPIC_POLICIES = (TOPIC_POLICY_OVERWRITE, TOPIC_POLICY_DECAY_MERGE)

UPDATE_ON_COMPLETION = "on_completion"
UPDATE_PER_RESPONSE = "per_response"
UPDATE_MODES = (UPDATE_ON_COMPLETION, UPDATE_PER_RESPONSE)


@dataclass(frozen=True)
class ExamPreset:
    """Cấu hình mặc định cho một kỳ thi."""
    total_questions: int
    duration_minutes: int
    subjects: Tuple[str, ...]

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60


EXAM_PRESETS: Dict[str, ExamPreset] = {
    "IOE": ExamPreset(
        total_questions=100,
        duration_minutes=120,
        subjects=("physics", "chemistry", "mathematics", "english"),
    ),
    "CEE": ExamPreset(
        total_questions=200,
        duration_minutes=180,
        subjects=("physics", "chemistry", "biology"),
    ),
}


def get_exam_preset(exam_type: str, presets: Optional[Mapping[str, ExamPreset]] = None) -> ExamPreset:
    presets = EXAM_PRESETS if presets is None else presets
    try:
        return presets[exam_type]
    except KeyError:
        raise UnknownExamType(exam_type, presets.keys()) from None


@dataclass(frozen=True)
class EngineConfig:
    # Thang theta
    theta_min: float = -4.0
    theta_max: float = 4.0

    # Bước cập nhật: k_n = step_size / (1 + step_decay * n)
    step_size: float = 0.8
    step_decay: float = 0.25

    # Ngưỡng phân loại chủ đề
    weak_threshold: float = 0.5
    strong_threshold: float = 0.8
    min_topic_attempts: int = 1

    # Chính sách profile
    topic_policy: str = TOPIC_POLICY_OVERWRITE
    topic_decay: float = 0.5
    update_mode: str = UPDATE_ON_COMPLETION
    profile_write_retries: int = 3
    profile_retry_delay: float = 0.0

    exam_presets: Mapping[str, ExamPreset] = field(default_factory=lambda: dict(EXAM_PRESETS))

    def __post_init__(self):
        if not self.theta_min < self.theta_max:
            raise ValueError("theta_min phải nhỏ hơn theta_max")
        if self.step_size <= 0 or self.step_decay < 0:
            raise ValueError("step_size phải > 0 và step_decay >= 0")
        if not 0.0 <= self.weak_threshold <= self.strong_threshold <= 1.0:
            raise ValueError("Cần 0 <= weak_threshold <= strong_threshold <= 1")
        if self.min_topic_attempts < 1:
            raise ValueError("min_topic_attempts phải >= 1")
        if self.topic_policy not in TOPIC_POLICIES:
            raise ValueError(f"topic_policy phải thuộc {TOPIC_POLICIES}")
        if not 0.0 <= self.topic_decay < 1.0:
            raise ValueError("topic_decay phải nằm trong [0, 1)")
        if self.update_mode not in UPDATE_MODES:
            raise ValueError(f"update_mode phải thuộc {UPDATE_MODES}")
        if self.profile_write_retries < 1:
            raise ValueError("profile_write_retries phải >= 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Đọc cấu hình từ biến môi trường ADAPTIVE_*; thiếu biến nào thì dùng mặc định."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def _float(name: str, default: float) -> float:
            raw = env.get(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return float(raw)
            except ValueError:
                logger.warning(f"⚠️ {name}={raw!r} không phải số, dùng mặc định {default}")
                return default

        def _int(name: str, default: int) -> int:
            raw = env.get(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return int(raw)
            except ValueError:
                logger.warning(f"⚠️ {name}={raw!r} không phải số nguyên, dùng mặc định {default}")
                return default

        return cls(
            theta_min=_float("ADAPTIVE_THETA_MIN", defaults.theta_min),
            theta_max=_float("ADAPTIVE_THETA_MAX", defaults.theta_max),
            step_size=_float("ADAPTIVE_STEP_SIZE", defaults.step_size),
            step_decay=_float("ADAPTIVE_STEP_DECAY", defaults.step_decay),
            weak_threshold=_float("ADAPTIVE_WEAK_THRESHOLD", defaults.weak_threshold),
            strong_threshold=_float("ADAPTIVE_STRONG_THRESHOLD", defaults.strong_threshold),
            min_topic_attempts=_int("ADAPTIVE_MIN_TOPIC_ATTEMPTS", defaults.min_topic_attempts),
            topic_policy=env.get("ADAPTIVE_TOPIC_POLICY", defaults.topic_policy).strip().lower(),
            topic_decay=_float("ADAPTIVE_TOPIC_DECAY", defaults.topic_decay),
            update_mode=env.get("ADAPTIVE_UPDATE_MODE", defaults.update_mode).strip().lower(),
            profile_write_retries=_int("ADAPTIVE_PROFILE_RETRIES", defaults.profile_write_retries),
            profile_retry_delay=_float("ADAPTIVE_PROFILE_RETRY_DELAY", defaults.profile_retry_delay),
        )
