"""
Statistics aggregation for assessment sessions.

Pure functions over plain numbers and counts. Nothing here touches the
database or mutates its inputs; values are rounded to 2 decimal places only
where they leave this module (``summary()`` and the rate helpers).

Percentile ranks and the diversity index rely on scipy:
- ``percentile_rank`` uses ``scipy.stats.percentileofscore(kind="strict")``,
  the percentage of the cohort scoring strictly below a value
- ``diversity_index`` is Shannon entropy (base 2) normalised by
  ``log2(number of categories)``, giving a value in [0, 1]
"""

import logging
import math
import statistics
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from scipy.stats import entropy, percentileofscore

from assessment_engine.core.config import settings
from libs.domain_types import TrendDirection

logger = logging.getLogger(__name__)


def completion_rate(total: int, completed: int) -> float:
    """
    Percentage of ``total`` that completed.

    Args:
        total: Number of attempts (or participants) considered
        completed: How many of them completed

    Returns:
        Completion rate 0-100 rounded to 2dp; 0 when ``total`` is 0

    Example:
        >>> completion_rate(0, 0)
        0.0
        >>> completion_rate(10, 10)
        100.0
    """
    if total <= 0:
        return 0.0
    return round(completed / total * 100, 2)


def attendance_rate(registered: int, attended: int) -> float:
    """Share of registered participants who actually entered, 0-100."""
    return completion_rate(registered, attended)


def diversity_index(category_counts: Mapping[str, int]) -> float:
    """
    Normalised Shannon entropy of a category distribution.

    Args:
        category_counts: Mapping of category name to count

    Returns:
        Value in [0, 1] rounded to 2dp. 0 for an empty total or fewer than
        two categories, 1 for a perfectly uniform spread.

    Raises:
        ValueError: If any count is negative
    """
    counts = list(category_counts.values())
    if any(c < 0 for c in counts):
        raise ValueError("category counts cannot be negative")

    total = sum(counts)
    if total == 0 or len(counts) <= 1:
        return 0.0

    non_zero = [c for c in counts if c > 0]
    if len(non_zero) <= 1:
        return 0.0

    value = float(entropy(non_zero, base=2)) / math.log2(len(counts))
    return round(min(1.0, max(0.0, value)), 2)


@dataclass
class DistributionStats:
    """Summary of a cohort of scores."""

    count: int
    mean: float
    median: float
    stddev: float
    min: float
    max: float
    values: List[float] = field(default_factory=list, repr=False)

    def percentile_rank(self, score: float) -> float:
        """Percentage of the cohort scoring strictly below ``score`` (2dp)."""
        if not self.values:
            return 0.0
        return round(float(percentileofscore(self.values, score, kind="strict")), 2)

    def summary(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "mean": round(self.mean, 2),
            "median": round(self.median, 2),
            "stddev": round(self.stddev, 2),
            "min": round(self.min, 2),
            "max": round(self.max, 2),
        }


def distribution_stats(scores: Iterable[float]) -> DistributionStats:
    """
    Describe a set of scores.

    Standard deviation is the population deviation (the cohort is the whole
    population being described, not a sample of it). Empty input yields a
    zero summary.
    """
    values = [float(s) for s in scores]
    if not values:
        return DistributionStats(0, 0.0, 0.0, 0.0, 0.0, 0.0)

    return DistributionStats(
        count=len(values),
        mean=statistics.fmean(values),
        median=float(statistics.median(values)),
        stddev=statistics.pstdev(values),
        min=min(values),
        max=max(values),
        values=values,
    )


def trend_direction(
    first_half_avg: float,
    second_half_avg: float,
    threshold_pct: Optional[float] = None,
) -> TrendDirection:
    """
    Classify the change between two half-period averages.

    The relative change is measured against the first half; a first half at
    or below zero counts as no change.

    Args:
        first_half_avg: Average over the earlier half
        second_half_avg: Average over the later half
        threshold_pct: Minimum absolute change (percent) to call a trend

    Returns:
        TrendDirection.UP, DOWN or STABLE
    """
    if threshold_pct is None:
        threshold_pct = settings.TREND_THRESHOLD_PCT

    if first_half_avg > 0:
        change = (second_half_avg - first_half_avg) / first_half_avg * 100
    else:
        change = 0.0

    if abs(change) > threshold_pct:
        return TrendDirection.UP if change > 0 else TrendDirection.DOWN
    return TrendDirection.STABLE


def series_trend(
    values: Sequence[float], threshold_pct: Optional[float] = None
) -> TrendDirection:
    """
    Trend of an ordered series, comparing its first and second halves.

    The split point is ``floor(n / 2)``; series shorter than two points are
    stable.
    """
    if len(values) < 2:
        return TrendDirection.STABLE

    mid = len(values) // 2
    first = statistics.fmean(values[:mid])
    second = statistics.fmean(values[mid:])
    return trend_direction(first, second, threshold_pct)


def scaled_score(raw_score: float, total: float) -> float:
    """Raw score as a percentage of the maximum (0 when ``total`` is 0)."""
    if total <= 0:
        return 0.0
    return round(raw_score / total * 100, 2)


def calculate_grade(score: float, passing_score: Optional[float] = None) -> str:
    """
    Letter grade for a 0-100 score.

    A >= 90, B >= 80, C >= 70, D >= passing score, otherwise E.
    """
    if passing_score is None:
        passing_score = settings.DEFAULT_PASSING_SCORE

    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= passing_score:
        return "D"
    return "E"


def is_passed(score: float, passing_score: Optional[float] = None) -> bool:
    if passing_score is None:
        passing_score = settings.DEFAULT_PASSING_SCORE
    return score >= passing_score


def weighted_average(pairs: Iterable[Tuple[float, float]]) -> Optional[float]:
    """
    Weighted mean of ``(value, weight)`` pairs.

    Returns:
        The weighted average rounded to 2dp, or None when no positive
        weight is present
    """
    total_weight = 0.0
    accumulated = 0.0
    for value, weight in pairs:
        if weight <= 0:
            continue
        accumulated += value * weight
        total_weight += weight

    if total_weight == 0:
        return None
    return round(accumulated / total_weight, 2)
