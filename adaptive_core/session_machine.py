# adaptive_core/session_machine.py

"""
Máy trạng thái của một phiên thi thích ứng.

    NOT_STARTED → IN_PROGRESS → COMPLETED
                 (IN_PROGRESS → IN_PROGRESS sau mỗi câu trả lời)
    NOT_STARTED / IN_PROGRESS → ABANDONED

Mọi hàm ở đây đều thuần: nhận Session, trả về Session mới (trong SessionStep),
không đọc/ghi store nào. Việc lưu trữ nằm ở engine.AdaptiveTestEngine.
Máy trạng thái không giữ timer; người gọi dùng is_expired() rồi tự complete().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import AbstractSet, Optional, Sequence, Tuple

from .errors import (
    DuplicateAnswer,
    InvalidAnswerIndex,
    NoQuestionsAvailable,
    SessionStateError,
    UnexpectedQuestion,
)
from .irt_engine import StepAbilityEstimator, observations_from
from .adaptive_selector import ClosestDifficultySelector
from .performance_analyzer import PerformanceSummary, Thresholds, analyze
from .schema import (
    END_MANUAL,
    END_POOL_EXHAUSTED,
    END_TARGET_REACHED,
    END_TIMEOUT,
    Question,
    Response,
    Session,
    SessionStatus,
    SESSION_ADAPTIVE,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionStep:
    """Kết quả của một lần chuyển trạng thái."""
    session: Session
    next_question: Optional[Question] = None
    response: Optional[Response] = None
    summary: Optional[PerformanceSummary] = None

    @property
    def completed(self) -> bool:
        return self.session.status == SessionStatus.COMPLETED


def _require(session: Session, action: str, *allowed: SessionStatus) -> None:
    if session.status not in allowed:
        raise SessionStateError(session.id, session.status.value, action)


def new_session(
    session_id: str,
    user_id: str,
    exam_type: str,
    target_questions: int,
    theta_start: float,
    now: datetime,
    *,
    session_type: str = SESSION_ADAPTIVE,
    duration_seconds: Optional[int] = None,
    subject_ids: Sequence[str] = (),
) -> Session:
    """Tạo phiên ở trạng thái NOT_STARTED; θ khởi đầu lấy từ profile."""
    if target_questions < 1:
        raise ValueError("target_questions phải >= 1")
    if duration_seconds is not None and duration_seconds <= 0:
        raise ValueError("duration_seconds phải > 0")
    return Session(
        id=session_id,
        user_id=user_id,
        exam_type=exam_type,
        session_type=session_type,
        target_questions=target_questions,
        start_time=now,
        theta_start=theta_start,
        theta=theta_start,
        subject_ids=tuple(subject_ids),
        duration_seconds=duration_seconds,
    )


def is_expired(session: Session, now: datetime) -> bool:
    if session.duration_seconds is None:
        return False
    return (now - session.start_time).total_seconds() >= session.duration_seconds


def _pick(
    session: Session,
    pool: Sequence[Question],
    selector,
    recent_ids: AbstractSet[str],
) -> Optional[Question]:
    return selector.select_next(
        session.theta,
        session.asked_ids,
        pool,
        session.exam_type,
        covered_topics=session.covered_topics,
        recent_ids=recent_ids,
    )


def begin(
    session: Session,
    pool: Sequence[Question],
    *,
    selector=None,
    recent_ids: AbstractSet[str] = frozenset(),
) -> SessionStep:
    """NOT_STARTED → IN_PROGRESS kèm câu hỏi đầu tiên."""
    _require(session, "begin", SessionStatus.NOT_STARTED)
    selector = selector or ClosestDifficultySelector()

    first = _pick(session, pool, selector, recent_ids)
    if first is None:
        raise NoQuestionsAvailable(session.exam_type, session.subject_ids)

    started = replace(session, status=SessionStatus.IN_PROGRESS, current_question_id=first.id)
    logger.info(f"🚀 Bắt đầu phiên {session.id} ({session.exam_type}), θ0={session.theta_start:.2f}")
    return SessionStep(session=started, next_question=first)


def complete(
    session: Session,
    now: datetime,
    *,
    thresholds: Thresholds = Thresholds(),
    reason: str = END_MANUAL,
) -> SessionStep:
    """IN_PROGRESS → COMPLETED: đóng dấu thời gian kết thúc và ghi kết quả phân tích."""
    _require(session, "complete", SessionStatus.IN_PROGRESS)

    summary = analyze(session.responses, thresholds)
    end_time = now if now >= session.start_time else session.start_time

    done = replace(
        session,
        status=SessionStatus.COMPLETED,
        end_time=end_time,
        current_question_id=None,
        theta_end=session.theta,
        weak_topics=tuple(sorted(summary.weak_topics)),
        strong_topics=tuple(sorted(summary.strong_topics)),
        overall_accuracy=summary.overall_accuracy,
        end_reason=reason,
    )
    logger.info(
        f"🏁 Kết thúc phiên {session.id} ({reason}): "
        f"{done.correct_answers}/{done.questions_attempted} đúng, θ={done.theta:.2f}"
    )
    return SessionStep(session=done, summary=summary)


def abandon(session: Session, now: datetime) -> Session:
    """Bỏ dở phiên: không phân tích, không đụng tới profile."""
    _require(session, "abandon", SessionStatus.NOT_STARTED, SessionStatus.IN_PROGRESS)
    end_time = now if now >= session.start_time else session.start_time
    return replace(
        session,
        status=SessionStatus.ABANDONED,
        end_time=end_time,
        current_question_id=None,
    )


def _validate_answer(session: Session, question: Question, chosen_index: int) -> None:
    answered = {r.question_id for r in session.responses}
    if question.id in answered:
        raise DuplicateAnswer(session.id, question.id)
    if isinstance(chosen_index, bool) or not 0 <= chosen_index < len(question.options):
        raise InvalidAnswerIndex(question.id, chosen_index, len(question.options))
    if session.current_question_id is not None and session.current_question_id != question.id:
        raise UnexpectedQuestion(session.id, session.current_question_id, question.id)


def record_response(
    session: Session,
    question: Question,
    chosen_index: int,
    elapsed_seconds: float,
    *,
    estimator=None,
    confidence: Optional[float] = None,
) -> Tuple[Session, Response]:
    """
    Ghi một câu trả lời và cập nhật θ, SE; chưa chọn câu kế tiếp.
    Lỗi DuplicateAnswer / InvalidAnswerIndex được ném ra trước mọi thay đổi.
    """
    _require(session, "submit_answer", SessionStatus.IN_PROGRESS)
    _validate_answer(session, question, chosen_index)
    estimator = estimator or StepAbilityEstimator()

    pars = question.params
    response = Response(
        id=f"{session.id}-r{session.questions_attempted + 1}",
        session_id=session.id,
        question_id=question.id,
        chosen_index=chosen_index,
        is_correct=chosen_index == question.correct_index,
        time_spent_seconds=max(0.0, float(elapsed_seconds)),
        topic=question.topic_key,
        difficulty=pars.b,
        discrimination=pars.a,
        guessing=pars.c,
        confidence=confidence,
    )

    responses = session.responses + (response,)
    observations = observations_from(responses)
    theta = estimator.estimate(session.theta_start, observations)
    se = estimator.standard_error(theta, observations)

    updated = replace(
        session,
        responses=responses,
        theta=theta,
        standard_error=se,
        current_question_id=None,
    )
    return updated, response


def submit_answer(
    session: Session,
    question: Question,
    chosen_index: int,
    elapsed_seconds: float,
    pool: Sequence[Question],
    now: datetime,
    *,
    estimator=None,
    selector=None,
    thresholds: Thresholds = Thresholds(),
    confidence: Optional[float] = None,
    recent_ids: AbstractSet[str] = frozenset(),
) -> SessionStep:
    """
    IN_PROGRESS → IN_PROGRESS (câu kế tiếp) hoặc → COMPLETED khi:
        - đủ target_questions
        - hết giờ
        - hết câu khả dụng trong ngân hàng (kết thúc sớm, không phải lỗi)
    """
    updated, response = record_response(
        session, question, chosen_index, elapsed_seconds,
        estimator=estimator, confidence=confidence,
    )
    logger.debug(
        f"Phiên {session.id}: câu {question.id} {'đúng' if response.is_correct else 'sai'}, "
        f"θ {session.theta:.2f} → {updated.theta:.2f}"
    )

    if updated.questions_attempted >= updated.target_questions:
        return replace(complete(updated, now, thresholds=thresholds, reason=END_TARGET_REACHED), response=response)

    if is_expired(updated, now):
        return replace(complete(updated, now, thresholds=thresholds, reason=END_TIMEOUT), response=response)

    nxt = _pick(updated, pool, selector or ClosestDifficultySelector(), recent_ids)
    if nxt is None:
        logger.warning(
            f"⚠️ Ngân hàng câu hỏi đã cạn sau {updated.questions_attempted}/"
            f"{updated.target_questions} câu, kết thúc sớm phiên {session.id}"
        )
        return replace(complete(updated, now, thresholds=thresholds, reason=END_POOL_EXHAUSTED), response=response)

    return SessionStep(
        session=replace(updated, current_question_id=nxt.id),
        next_question=nxt,
        response=response,
    )
