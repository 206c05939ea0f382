# adaptive_core/engine.py

"""
AdaptiveTestEngine: ghép máy trạng thái thuần với các store.

Ranh giới lưu trữ:
    1) Tính Session mới bằng session_machine (không I/O)
    2) Lưu Session
    3) Khi phiên kết thúc: tính toàn bộ Profile mới rồi ghi đè một lần,
       có retry; nếu vẫn lỗi thì log ERROR, giữ lại để ghi sau,
       và KHÔNG hoàn tác trạng thái COMPLETED của phiên.
    Chế độ per_response cũng ghi profile sau khi phiên đã lưu; câu kết thúc
    phiên chỉ có đúng một lần ghi profile.
"""

import time
import uuid
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from . import session_machine as sm
from .adaptive_selector import ClosestDifficultySelector
from .config import EngineConfig, UPDATE_ON_COMPLETION, UPDATE_PER_RESPONSE, get_exam_preset
from .errors import ProfilePersistenceFailure, UnexpectedQuestion
from .irt_engine import StepAbilityEstimator
from .performance_analyzer import PerformanceSummary, Thresholds
from .profile_policy import apply_response, apply_session
from .recommendations import LocalStudyAdvisor, StudyAdvisor
from .schema import END_MANUAL, END_TIMEOUT, Profile, Question, Response, Session, SessionStatus, SESSION_ADAPTIVE
from .stores import InMemorySessionStore, ProfileStore, QuestionRepository, SessionStore, recent_question_ids

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EngineResult:
    session: Session
    next_question: Optional[Question] = None
    response: Optional[Response] = None
    summary: Optional[PerformanceSummary] = None
    profile: Optional[Profile] = None
    profile_error: Optional[ProfilePersistenceFailure] = None

    @property
    def completed(self) -> bool:
        return self.session.status == SessionStatus.COMPLETED


class AdaptiveTestEngine:
    def __init__(
        self,
        questions: QuestionRepository,
        profiles: ProfileStore,
        sessions: Optional[SessionStore] = None,
        *,
        config: Optional[EngineConfig] = None,
        estimator=None,
        selector=None,
        advisor: Optional[StudyAdvisor] = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
        recent_sessions: int = 0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.questions = questions
        self.profiles = profiles
        self.sessions = sessions if sessions is not None else InMemorySessionStore()
        self.config = config or EngineConfig()
        self.estimator = estimator or StepAbilityEstimator(
            step_size=self.config.step_size,
            step_decay=self.config.step_decay,
            theta_min=self.config.theta_min,
            theta_max=self.config.theta_max,
        )
        self.selector = selector or ClosestDifficultySelector()
        self.advisor = advisor
        self.local_advisor = LocalStudyAdvisor()
        self.clock = clock
        self.id_factory = id_factory
        self.recent_sessions = recent_sessions
        self._sleep = sleep
        self._pending_profiles: Dict[str, Profile] = {}

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(
            weak_below=self.config.weak_threshold,
            strong_at=self.config.strong_threshold,
            min_attempts=self.config.min_topic_attempts,
        )

    @property
    def pending_profile_writes(self) -> List[str]:
        return sorted(self._pending_profiles)

    # ------------------------------
    # Truy vấn ngân hàng câu hỏi
    # ------------------------------
    def _pool(self, session: Session) -> List[Question]:
        return self.questions.find_questions(frozenset(session.subject_ids), session.exam_type)

    def _recent_ids(self, user_id: str):
        return recent_question_ids(self.sessions, user_id, self.recent_sessions)

    # ------------------------------
    # Bắt đầu phiên
    # ------------------------------
    def start(
        self,
        user_id: str,
        exam_type: str,
        session_type: str = SESSION_ADAPTIVE,
        target_questions: Optional[int] = None,
        duration_seconds: Optional[int] = None,
        subject_ids: Optional[Sequence[str]] = None,
    ) -> EngineResult:
        """Tạo phiên mới (θ0 lấy từ profile) và chọn câu hỏi đầu tiên."""
        preset = get_exam_preset(exam_type, self.config.exam_presets)
        profile = self.profiles.get_profile(user_id)

        session = sm.new_session(
            self.id_factory(),
            user_id,
            exam_type,
            preset.total_questions if target_questions is None else target_questions,
            profile.ability_estimate,
            self.clock(),
            session_type=session_type,
            duration_seconds=preset.duration_seconds if duration_seconds is None else duration_seconds,
            subject_ids=tuple(subject_ids) if subject_ids is not None else preset.subjects,
        )

        step = sm.begin(
            session,
            self._pool(session),
            selector=self.selector,
            recent_ids=self._recent_ids(user_id),
        )
        self.sessions.save_session(step.session)
        return EngineResult(session=step.session, next_question=step.next_question)

    # ------------------------------
    # Nộp đáp án
    # ------------------------------
    def submit_answer(
        self,
        session_id: str,
        question_id: str,
        chosen_index: int,
        elapsed_seconds: float,
        confidence: Optional[float] = None,
    ) -> EngineResult:
        session = self.sessions.get_session(session_id)
        pool = self._pool(session)

        question = next((q for q in pool if q.id == question_id), None)
        if question is None:
            raise UnexpectedQuestion(session.id, session.current_question_id, question_id)

        step = sm.submit_answer(
            session,
            question,
            chosen_index,
            elapsed_seconds,
            pool,
            self.clock(),
            estimator=self.estimator,
            selector=self.selector,
            thresholds=self.thresholds,
            confidence=confidence,
            recent_ids=self._recent_ids(session.user_id),
        )

        if step.completed:
            return self._finalize(step)

        # Phiên phải được lưu trước profile
        self.sessions.save_session(step.session)

        profile = None
        profile_error = None
        if self.config.update_mode == UPDATE_PER_RESPONSE:
            profile = apply_response(self._current_profile(session.user_id), step.session, step.response, self.clock())
            profile_error = self._save_profile(profile)

        return EngineResult(
            session=step.session,
            next_question=step.next_question,
            response=step.response,
            profile=profile,
            profile_error=profile_error,
        )

    # ------------------------------
    # Kết thúc / hết giờ / bỏ dở
    # ------------------------------
    def complete(self, session_id: str, reason: str = END_MANUAL) -> EngineResult:
        session = self.sessions.get_session(session_id)
        step = sm.complete(session, self.clock(), thresholds=self.thresholds, reason=reason)
        return self._finalize(step)

    def expire_if_due(self, session_id: str) -> Optional[EngineResult]:
        """Dành cho driver giữ timer: kết thúc phiên nếu đã quá thời lượng."""
        session = self.sessions.get_session(session_id)
        if session.status != SessionStatus.IN_PROGRESS or not sm.is_expired(session, self.clock()):
            return None
        logger.info(f"⏱️ Phiên {session_id} hết giờ sau {session.questions_attempted} câu")
        return self.complete(session_id, reason=END_TIMEOUT)

    def abandon(self, session_id: str) -> Session:
        session = sm.abandon(self.sessions.get_session(session_id), self.clock())
        self.sessions.save_session(session)
        logger.info(f"🛑 Phiên {session_id} bị bỏ dở, profile giữ nguyên")
        return session

    def _recommend(self, session: Session, summary: PerformanceSummary) -> str:
        if self.advisor is not None:
            try:
                text = self.advisor.recommend(session, summary)
                if text:
                    return text
                logger.warning("⚠️ Advisor trả về rỗng, dùng gợi ý cục bộ")
            except Exception as e:
                logger.warning(f"⚠️ Advisor lỗi, dùng gợi ý cục bộ: {e}")
        return self.local_advisor.recommend(session, summary)

    def _finalize(self, step: sm.SessionStep) -> EngineResult:
        session = replace(step.session, recommendations=self._recommend(step.session, step.summary))
        # Phiên phải được lưu trước profile
        self.sessions.save_session(session)

        base = self._current_profile(session.user_id)
        if step.response is not None and self.config.update_mode == UPDATE_PER_RESPONSE:
            # câu cuối được cộng vào profile cùng lần ghi kết thúc phiên
            base = apply_response(base, session, step.response, self.clock())

        profile = apply_session(
            base,
            session,
            step.summary,
            self.clock(),
            policy=self.config.topic_policy,
            decay=self.config.topic_decay,
            thresholds=self.thresholds,
            include_counters=self.config.update_mode == UPDATE_ON_COMPLETION,
        )
        error = self._save_profile(profile)
        return EngineResult(
            session=session,
            response=step.response,
            summary=step.summary,
            profile=profile,
            profile_error=error,
        )

    # ------------------------------
    # Ghi profile có retry
    # ------------------------------
    def _current_profile(self, user_id: str) -> Profile:
        """Profile mới nhất: ưu tiên bản đang chờ ghi lại."""
        pending = self._pending_profiles.get(user_id)
        return pending if pending is not None else self.profiles.get_profile(user_id)

    def _save_profile(self, profile: Profile) -> Optional[ProfilePersistenceFailure]:
        last_exc: Optional[BaseException] = None
        attempts = self.config.profile_write_retries
        for attempt in range(1, attempts + 1):
            try:
                self.profiles.save_profile(profile)
                self._pending_profiles.pop(profile.user_id, None)
                return None
            except Exception as e:
                last_exc = e
                logger.warning(f"⚠️ Lưu profile {profile.user_id} lỗi ({attempt}/{attempts}): {e}")
                if attempt < attempts and self.config.profile_retry_delay > 0:
                    self._sleep(self.config.profile_retry_delay)

        failure = ProfilePersistenceFailure(profile.user_id, attempts, last_exc)
        logger.error(f"❌ {failure}")
        self._pending_profiles[profile.user_id] = profile
        return failure

    def retry_pending_profile_writes(self) -> List[str]:
        """Thử ghi lại các profile còn treo; trả về các user_id vẫn chưa ghi được."""
        for user_id, profile in list(self._pending_profiles.items()):
            self._save_profile(profile)
        return self.pending_profile_writes
