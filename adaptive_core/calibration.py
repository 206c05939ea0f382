# adaptive_core/calibration.py

"""
Hiệu chỉnh lại độ khó b của câu hỏi từ thống kê làm bài (times_attempted/times_correct).

Với thí sinh trung bình θ = 0:
    P* = (p − c) / (1 − c) = sigmoid(D · a · (0 − b))   ⇒   b = −logit(P*) / (D · a)
p được làm trơn Laplace: (correct + 1) / (attempted + 2).
"""

import math
import logging
from dataclasses import replace
from typing import Iterable, List, Tuple

from tqdm import tqdm

from .irt_engine import D, EPS, THETA_MAX, THETA_MIN, clamp_theta
from .schema import IRTParams, Question

logger = logging.getLogger(__name__)


def difficulty_label(b: float) -> str:
    if b <= -0.5:
        return "easy"
    if b < 0.5:
        return "moderate"
    return "difficult"


def smoothed_success_rate(times_correct: int, times_attempted: int) -> float:
    return (times_correct + 1.0) / (times_attempted + 2.0)


def estimate_b(success_rate: float, a: float = 1.0, c: float = 0.0) -> float:
    p_star = (success_rate - c) / (1.0 - c)
    p_star = min(max(p_star, EPS), 1.0 - EPS)
    logit = math.log(p_star / (1.0 - p_star))
    return clamp_theta(-logit / (D * a), THETA_MIN, THETA_MAX)


def calibrate_difficulty(question: Question, min_attempts: int = 20, relabel: bool = False) -> Question:
    """Trả về câu hỏi với b mới; chưa đủ min_attempts lượt làm thì giữ nguyên."""
    if question.times_attempted < min_attempts:
        return question

    pars = question.params
    a = pars.a if pars.a > 0 else 1.0
    rate = smoothed_success_rate(question.times_correct, question.times_attempted)
    b = round(estimate_b(rate, a, pars.c), 3)

    updated = replace(question, irt=IRTParams(a=a, b=b, c=pars.c))
    if relabel:
        updated = replace(updated, difficulty=difficulty_label(b))
    return updated


def calibrate_bank(
    questions: Iterable[Question],
    min_attempts: int = 20,
    relabel: bool = False,
    progress: bool = True,
) -> Tuple[List[Question], int]:
    """Hiệu chỉnh cả ngân hàng; trả về (danh sách mới, số câu đã thay đổi)."""
    questions = list(questions)
    out: List[Question] = []
    changed = 0
    for q in tqdm(questions, desc="🧮 Calibrating", ncols=80, disable=not progress):
        new_q = calibrate_difficulty(q, min_attempts=min_attempts, relabel=relabel)
        if new_q != q:
            changed += 1
            logger.debug(f"Câu {q.id}: b {q.irt_difficulty:.3f} → {new_q.irt_difficulty:.3f}")
        out.append(new_q)
    logger.info(f"📦 Đã hiệu chỉnh {changed}/{len(questions)} câu hỏi (min_attempts={min_attempts})")
    return out, changed
