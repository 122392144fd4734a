"""
Experiment Statistics
Lift/delta calculation and two-proportion sample size estimation for A/B tests
"""

import math
from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np
import structlog
from scipy.stats import norm

logger = structlog.get_logger()

# Two-sided 95% significance and 80% power
Z_ALPHA = 1.96
Z_BETA = 0.84

MIN_DENOMINATOR = 1e-6
MIN_LIFT_PERCENT = 0.1
SIGNIFICANCE_LEVEL = 0.05


@dataclass(frozen=True)
class MetricPair:
    """One observed metric under both experiment arms"""

    control: float
    treatment: float

    @property
    def delta(self) -> float:
        return delta_percent(self.control, self.treatment)


@dataclass(frozen=True)
class ExperimentArmSizes:
    """Observed sample counts per arm"""

    n_control: int
    n_treatment: int

    @property
    def total(self) -> int:
        return self.n_control + self.n_treatment


@dataclass(frozen=True)
class SampleSizeQuery:
    """Input to the sample size estimator"""

    baseline_rate: float
    desired_lift_percent: float

    @classmethod
    def from_inputs(cls, baseline_rate: float, desired_lift: Any) -> "SampleSizeQuery":
        """Build a query from raw user input, clamping the lift and validating the rates"""
        query = cls(baseline_rate=float(baseline_rate), desired_lift_percent=clamp_lift(desired_lift))
        query.validate()
        return query

    @property
    def treatment_rate(self) -> float:
        return self.baseline_rate * (1 + self.desired_lift_percent / 100)

    def validate(self):
        """Raise ValueError if the query is outside the estimator's domain"""
        if not 0 < self.baseline_rate < 1:
            raise ValueError(f"baseline_rate must be in (0, 1), got {self.baseline_rate}")
        if self.desired_lift_percent <= 0:
            raise ValueError(
                f"desired_lift_percent must be positive, got {self.desired_lift_percent}"
            )
        if self.treatment_rate >= 1:
            raise ValueError(
                f"Lift of {self.desired_lift_percent}% pushes the treatment rate to "
                f"{self.treatment_rate:.4f}, which is not a valid proportion"
            )

    def required_sample_size(self) -> int:
        return required_sample_size(self.baseline_rate, self.desired_lift_percent)


def delta_percent(control: float, treatment: float) -> float:
    """
    Signed percentage change of treatment relative to control.
    A zero control saturates to 0 instead of producing inf/nan.
    """
    if control == 0:
        return 0
    return ((treatment - control) / control) * 100


def required_sample_size(baseline_rate: float, lift_percent: float) -> int:
    """
    Minimum per-arm sample size to detect a relative lift over a baseline
    proportion with a two-sided two-proportion z-test (alpha 0.05, power 0.8).

    Inputs are not validated: baseline_rate must be in (0, 1) and the lift
    should already be clamped with clamp_lift().
    """
    p1 = baseline_rate
    p2 = baseline_rate * (1 + lift_percent / 100)
    p_bar = (p1 + p2) / 2

    numerator = (
        Z_ALPHA * math.sqrt(2 * p_bar * (1 - p_bar))
        + Z_BETA * math.sqrt(p1 * (1 - p1) + p2 * (1 - p2))
    ) ** 2
    denominator = max((p2 - p1) ** 2, MIN_DENOMINATOR)

    return math.ceil(numerator / denominator)


def clamp_lift(lift: Any) -> float:
    """Clamp a user-entered lift to the estimator's minimum; junk input becomes the minimum"""
    try:
        value = float(lift)
    except (TypeError, ValueError):
        return MIN_LIFT_PERCENT

    if math.isnan(value) or value == 0:
        return MIN_LIFT_PERCENT
    return max(MIN_LIFT_PERCENT, value)


def is_significant(p_value: float, alpha: float = SIGNIFICANCE_LEVEL) -> bool:
    return p_value < alpha


def control_share_percent(sizes: ExperimentArmSizes) -> int:
    """Share of traffic in the control arm, as a rounded percentage"""
    if sizes.total <= 0:
        return 0
    # Round half up to match the dashboard's progress bar
    return int(math.floor(sizes.n_control / sizes.total * 100 + 0.5))


class StatisticalAnalyzer:
    """Statistical analysis utilities for A/B testing"""

    @staticmethod
    def exact_sample_size(
        baseline_rate: float,
        lift_percent: float,
        alpha: float = SIGNIFICANCE_LEVEL,
        power: float = 0.8,
        two_sided: bool = True,
    ) -> int:
        """Two-proportion sample size with z-scores taken from the normal distribution"""
        if two_sided:
            z_alpha = norm.ppf(1 - alpha / 2)
        else:
            z_alpha = norm.ppf(1 - alpha)

        z_beta = norm.ppf(power)

        p1 = baseline_rate
        p2 = baseline_rate * (1 + lift_percent / 100)
        p_bar = (p1 + p2) / 2

        numerator = (
            z_alpha * np.sqrt(2 * p_bar * (1 - p_bar))
            + z_beta * np.sqrt(p1 * (1 - p1) + p2 * (1 - p2))
        ) ** 2
        denominator = max((p2 - p1) ** 2, MIN_DENOMINATOR)

        return int(np.ceil(numerator / denominator))

    @staticmethod
    def difference_interval(
        control_rate: float,
        treatment_rate: float,
        n_control: int,
        n_treatment: int,
        confidence_level: float = 0.95,
    ) -> Tuple[float, float]:
        """Interval for treatment minus control acceptance, unpooled standard error"""
        if n_control <= 0 or n_treatment <= 0:
            raise ValueError("Both arms need at least one observation")

        std_error = np.sqrt(
            control_rate * (1 - control_rate) / n_control
            + treatment_rate * (1 - treatment_rate) / n_treatment
        )
        margin = norm.ppf(1 - (1 - confidence_level) / 2) * std_error
        diff = treatment_rate - control_rate

        return (float(diff - margin), float(diff + margin))

    @staticmethod
    def two_proportion_p_value(
        control_rate: float, treatment_rate: float, n_control: int, n_treatment: int
    ) -> float:
        """Two-sided p-value of a pooled two-proportion z-test"""
        if n_control <= 0 or n_treatment <= 0:
            raise ValueError("Both arms need at least one observation")

        pooled = (control_rate * n_control + treatment_rate * n_treatment) / (
            n_control + n_treatment
        )
        std_error = np.sqrt(pooled * (1 - pooled) * (1 / n_control + 1 / n_treatment))
        if std_error == 0:
            return 1.0

        z_score = (treatment_rate - control_rate) / std_error
        return float(2 * (1 - norm.cdf(abs(z_score))))
