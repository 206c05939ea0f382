# adaptive_core/__init__.py

"""
Core module của hệ thống luyện thi thích ứng (IOE / CEE)

Bao gồm:
- Ước lượng năng lực θ (bước giảm dần, hoặc MAP Fisher scoring)
- Chọn câu theo độ khó gần θ nhất (hoặc Fisher Information)
- Máy trạng thái phiên thi dạng hàm thuần
- Phân tích kết quả: topic yếu / mạnh
- Chính sách cập nhật profile và engine ghép với các store

Các thành phần xuất khẩu phổ biến:
    Question, IRTParams, Session, Response, Profile
    StepAbilityEstimator, MapAbilityEstimator
    select_next, analyze
    AdaptiveTestEngine, EngineConfig
"""

# Schema models
from .schema import (
    IRTParams,
    Question,
    Response,
    Session,
    SessionStatus,
    Profile,
)

# Errors
from .errors import (
    AdaptiveTestError,
    InvalidQuestion,
    UnknownExamType,
    NoQuestionsAvailable,
    DuplicateAnswer,
    InvalidAnswerIndex,
    UnexpectedQuestion,
    SessionStateError,
    SessionNotFound,
    ProfilePersistenceFailure,
)

# Config
from .config import (
    EngineConfig,
    ExamPreset,
    EXAM_PRESETS,
)

# IRT computation & scoring
from .irt_engine import (
    prob_correct,
    fisher_info,
    Observation,
    StepAbilityEstimator,
    MapAbilityEstimator,
)

# Adaptive selection algorithm
from .adaptive_selector import (
    ClosestDifficultySelector,
    MaxInformationSelector,
    select_next,
)

# Analysis
from .performance_analyzer import (
    Thresholds,
    PerformanceSummary,
    analyze,
)

# Engine & stores
from .engine import AdaptiveTestEngine, EngineResult
from .stores import (
    InMemoryQuestionRepository,
    JsonQuestionRepository,
    InMemoryProfileStore,
    SqliteProfileStore,
    InMemorySessionStore,
    SqliteSessionStore,
)


__all__ = [
    # Schema
    "IRTParams",
    "Question",
    "Response",
    "Session",
    "SessionStatus",
    "Profile",

    # Errors
    "AdaptiveTestError",
    "InvalidQuestion",
    "UnknownExamType",
    "NoQuestionsAvailable",
    "DuplicateAnswer",
    "InvalidAnswerIndex",
    "UnexpectedQuestion",
    "SessionStateError",
    "SessionNotFound",
    "ProfilePersistenceFailure",

    # Config
    "EngineConfig",
    "ExamPreset",
    "EXAM_PRESETS",

    # IRT
    "prob_correct",
    "fisher_info",
    "Observation",
    "StepAbilityEstimator",
    "MapAbilityEstimator",

    # Adaptive selector
    "ClosestDifficultySelector",
    "MaxInformationSelector",
    "select_next",

    # Analysis
    "Thresholds",
    "PerformanceSummary",
    "analyze",

    # Engine
    "AdaptiveTestEngine",
    "EngineResult",
    "InMemoryQuestionRepository",
    "JsonQuestionRepository",
    "InMemoryProfileStore",
    "SqliteProfileStore",
    "InMemorySessionStore",
    "SqliteSessionStore",
]
