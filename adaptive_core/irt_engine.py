# adaptive_core/irt_engine.py

import math
import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .schema import IRTParams, Response

logger = logging.getLogger(__name__)

# Hệ số logistic chuẩn của IRT 3PL
D = 1.7
THETA_MIN, THETA_MAX = -4.0, 4.0
EPS = 1e-6


def sigmoid_stable(x: float) -> float:
    """
    Sigmoid ổn định số học: tránh overflow exp(x)
    """
    if x >= 0:
        z = math.exp(-x)
        return 1.0 / (1.0 + z)
    else:
        z = math.exp(x)
        return z / (1.0 + z)


def prob_correct(theta: float, a: float, b: float, c: float) -> float:
    """Xác suất trả lời đúng trong mô hình 3PL."""
    z = D * a * (theta - b)
    s = sigmoid_stable(z)
    return c + (1.0 - c) * s


def dprob_dtheta(theta: float, a: float, b: float, c: float) -> float:
    """Đạo hàm theo θ."""
    z = D * a * (theta - b)
    s = sigmoid_stable(z)
    return (1.0 - c) * D * a * s * (1.0 - s)


def fisher_info(theta: float, pars: IRTParams) -> float:
    """Fisher Information I(θ) cho 3PL."""
    a, b, c = pars.a, pars.b, pars.c
    if a <= 0 or not (0 <= c < 1) or not math.isfinite(b):
        return 0.0

    p = prob_correct(theta, a, b, c)
    if p <= EPS or p >= 1 - EPS:
        return 0.0

    dp = dprob_dtheta(theta, a, b, c)
    return (dp * dp) / (p * (1.0 - p))


def clamp_theta(theta: float, lo: float = THETA_MIN, hi: float = THETA_MAX) -> float:
    return min(max(theta, lo), hi)


@dataclass(frozen=True)
class Observation:
    """Một quan sát (độ khó câu hỏi, đúng/sai) dùng để cập nhật θ."""
    difficulty: float
    correct: bool
    discrimination: float = 1.0
    guessing: float = 0.0

    @property
    def params(self) -> IRTParams:
        return IRTParams(a=self.discrimination, b=self.difficulty, c=self.guessing)

    @classmethod
    def from_response(cls, response: Response) -> "Observation":
        return cls(
            difficulty=response.difficulty,
            correct=response.is_correct,
            discrimination=response.discrimination,
            guessing=response.guessing,
        )


def observations_from(responses: Iterable[Response]) -> List[Observation]:
    return [Observation.from_response(r) for r in responses]


def standard_error(theta: float, observations: Sequence[Observation], prior_var: float = 0.0) -> float:
    """
    SE của θ từ tổng thông tin Fisher các câu đã trả lời.
    prior_var > 0 thì cộng thêm độ chính xác của prior.
    """
    info = sum(fisher_info(theta, o.params) for o in observations)
    if prior_var > 0:
        info += 1.0 / prior_var
    if info <= 0:
        return float("inf")
    return 1.0 / math.sqrt(info)


def _check_prior(prior_theta: float) -> None:
    if not math.isfinite(prior_theta):
        raise ValueError(f"θ khởi đầu phải là số hữu hạn, nhận {prior_theta}")


# ============================
# Bộ ước lượng mặc định: bước cố định có giảm dần
# ============================

class StepAbilityEstimator:
    """
    θ' = θ + k_n · (u − P(θ)),   k_n = step_size / (1 + step_decay · n)

    u = 1 nếu đúng, 0 nếu sai; P là xác suất đúng theo 3PL.
    Trả lời đúng không bao giờ làm giảm θ, trả lời sai không bao giờ làm tăng θ;
    các câu đầu dịch θ nhiều hơn các câu sau. θ luôn bị kẹp trong [theta_min, theta_max].
    """

    def __init__(
        self,
        step_size: float = 0.8,
        step_decay: float = 0.25,
        theta_min: float = THETA_MIN,
        theta_max: float = THETA_MAX,
    ):
        self.step_size = step_size
        self.step_decay = step_decay
        self.theta_min = theta_min
        self.theta_max = theta_max

    def step(self, n_seen: int) -> float:
        return self.step_size / (1.0 + self.step_decay * n_seen)

    def update(self, theta: float, obs: Observation, n_seen: int) -> float:
        """Cập nhật θ với một quan sát mới; n_seen là số quan sát đã dùng trước đó."""
        p = prob_correct(theta, obs.discrimination, obs.difficulty, obs.guessing)
        u = 1.0 if obs.correct else 0.0
        theta_new = theta + self.step(n_seen) * (u - p)
        return clamp_theta(theta_new, self.theta_min, self.theta_max)

    def estimate(self, prior_theta: float, observations: Sequence[Observation]) -> float:
        _check_prior(prior_theta)
        theta = clamp_theta(prior_theta, self.theta_min, self.theta_max)
        for n, obs in enumerate(observations):
            theta = self.update(theta, obs, n)
        return theta

    def standard_error(self, theta: float, observations: Sequence[Observation]) -> float:
        return standard_error(theta, observations)


# ============================
# Bộ ước lượng MAP (Fisher scoring)
# ============================

class MapAbilityEstimator:
    """
    Ước lượng MAP với prior N(θ_prior, prior_var), lặp Fisher scoring
    tối đa max_iter bước hoặc tới khi |Δθ| < tol.
    """

    def __init__(
        self,
        prior_var: float = 1.0,
        max_iter: int = 20,
        tol: float = 1e-4,
        theta_min: float = THETA_MIN,
        theta_max: float = THETA_MAX,
    ):
        self.prior_var = prior_var
        self.max_iter = max_iter
        self.tol = tol
        self.theta_min = theta_min
        self.theta_max = theta_max

    def _map_step(self, theta: float, observations: Sequence[Observation], prior_mean: float) -> Tuple[float, float]:
        """Một bước MAP Fisher scoring; trả về (theta_new, SE)."""
        U = 0.0  # Score
        I = 0.0  # Fisher
        prior_prec = 1.0 / self.prior_var

        for obs in observations:
            a, b, c = obs.discrimination, obs.difficulty, obs.guessing
            if a <= 0 or not (0 <= c < 1):
                continue
            p = prob_correct(theta, a, b, c)
            if not (EPS < p < 1.0 - EPS):
                continue
            dp = dprob_dtheta(theta, a, b, c)
            resp = 1.0 if obs.correct else 0.0

            U += (resp - p) * dp / (p * (1.0 - p))
            I += (dp * dp) / (p * (1.0 - p))

        den = I + prior_prec
        theta_new = theta + (U - (theta - prior_mean) * prior_prec) / den
        theta_new = clamp_theta(theta_new, self.theta_min, self.theta_max)
        return theta_new, 1.0 / math.sqrt(den)

    def estimate(self, prior_theta: float, observations: Sequence[Observation]) -> float:
        _check_prior(prior_theta)
        prior_mean = clamp_theta(prior_theta, self.theta_min, self.theta_max)
        theta = prior_mean
        for i in range(self.max_iter):
            theta_new, _ = self._map_step(theta, observations, prior_mean)
            if abs(theta_new - theta) < self.tol:
                return theta_new
            theta = theta_new
        logger.debug(f"MAP chưa hội tụ sau {self.max_iter} bước, θ={theta:.4f}")
        return theta

    def standard_error(self, theta: float, observations: Sequence[Observation]) -> float:
        return standard_error(theta, observations, prior_var=self.prior_var)
