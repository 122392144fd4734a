"""
Experiment statistics and A/B test result summaries
"""

from .ab_testing import FALLBACK_EXPERIMENTS, Experiment, MDECalculator, normalize_experiments
from .stats import delta_percent, required_sample_size

__all__ = [
    "delta_percent",
    "required_sample_size",
    "Experiment",
    "FALLBACK_EXPERIMENTS",
    "MDECalculator",
    "normalize_experiments",
]
