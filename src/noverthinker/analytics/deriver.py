"""
Score deriver: turns a player's raw scores into composite analytics.

Pure and total. No I/O, no exceptions for any numeric input. Inputs are
clamped to the documented 0-100 range so level classification can never
see out-of-bound values.

Rounding is half-away-from-zero throughout (Python's round() is banker's
rounding and would turn 2.5 into 2). Sub-components are rounded
independently and never re-normalized, so e.g. the work rate breakdown
may drift from the score by a few points.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ..core.types import (
    CONSISTENCY_FACTOR,
    DEFAULT_CONSISTENCY_TREND,
    DEFAULT_ENGAGEMENT_FACTOR,
    PERFORMANCE_WEIGHTS,
    RISK_DISCIPLINE_FACTOR,
    SCORE_MAX,
    SCORE_MIN,
    WORK_RATE_WEIGHTS,
    ConsistencyLevel,
    FactorLevel,
    RiskLevel,
    WorkRateLevel,
)
from .models import (
    AnalyticsRecord,
    Consistency,
    PerformanceBreakdown,
    RawPlayerScores,
    Risk,
    RiskFactors,
    WorkRate,
    WorkRateBreakdown,
)


def round_half_away(value: float, ndigits: int = 0) -> float:
    """Round half away from zero (2.5 -> 3, -2.5 -> -3)."""
    exponent = Decimal(1).scaleb(-ndigits)
    # ROUND_HALF_UP in decimal rounds ties away from zero
    return float(Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def round_int(value: float) -> int:
    return int(round_half_away(value))


def clamp_score(value: float) -> float:
    return max(SCORE_MIN, min(SCORE_MAX, float(value)))


def consistency_level(nova_score: float) -> ConsistencyLevel:
    if nova_score >= 80:
        return ConsistencyLevel.HIGH
    if nova_score >= 60:
        return ConsistencyLevel.MEDIUM
    return ConsistencyLevel.LOW


def work_rate_level(discipline_score: float) -> WorkRateLevel:
    if discipline_score >= 90:
        return WorkRateLevel.ELITE
    if discipline_score >= 75:
        return WorkRateLevel.HIGH
    return WorkRateLevel.MEDIUM


def risk_level(discipline_score: float) -> RiskLevel:
    if discipline_score >= 80:
        return RiskLevel.LOW
    if discipline_score >= 60:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def derive_performance(nova_score: float) -> PerformanceBreakdown:
    parts = {
        name: round_half_away(nova_score * weight, 1)
        for name, weight in PERFORMANCE_WEIGHTS.items()
    }
    return PerformanceBreakdown(
        overall=round_half_away(nova_score, 1),
        match_score=parts["matchScore"],
        task_score=parts["taskScore"],
        video_score=parts["videoScore"],
        physical_score=parts["physicalScore"],
    )


def derive_consistency(nova_score: float) -> Consistency:
    return Consistency(
        score=round_int(nova_score * CONSISTENCY_FACTOR),
        level=consistency_level(nova_score).value,
        trend=DEFAULT_CONSISTENCY_TREND,
    )


def derive_work_rate(discipline_score: float) -> WorkRate:
    breakdown = WorkRateBreakdown(
        attendance=round_int(discipline_score * WORK_RATE_WEIGHTS["attendance"]),
        task_completion=round_int(discipline_score * WORK_RATE_WEIGHTS["taskCompletion"]),
        upload_frequency=round_int(discipline_score * WORK_RATE_WEIGHTS["uploadFrequency"]),
        discipline=round_int(discipline_score * WORK_RATE_WEIGHTS["discipline"]),
    )
    return WorkRate(
        score=round_int(discipline_score),
        level=work_rate_level(discipline_score).value,
        breakdown=breakdown,
    )


def derive_risk(nova_score: float, discipline_score: float) -> Risk:
    score = int(SCORE_MAX) - round_int((SCORE_MAX - discipline_score) * RISK_DISCIPLINE_FACTOR)
    factors = RiskFactors(
        consistency=(FactorLevel.LOW if nova_score >= 70 else FactorLevel.MEDIUM).value,
        discipline=(FactorLevel.LOW if discipline_score >= 80 else FactorLevel.MEDIUM).value,
        engagement=DEFAULT_ENGAGEMENT_FACTOR.value,
    )
    return Risk(score=score, level=risk_level(discipline_score).value, factors=factors)


def derive(raw: RawPlayerScores, now: Optional[datetime] = None) -> AnalyticsRecord:
    """
    Compute the full analytics record for a player.

    Args:
        raw: Current raw scores for the player
        now: Derivation timestamp (defaults to the current UTC time)

    Returns:
        AnalyticsRecord stamped with ``now``
    """
    nova = clamp_score(raw.nova_score)
    discipline = clamp_score(raw.discipline_score)

    return AnalyticsRecord(
        player_id=raw.player_id,
        performance=derive_performance(nova),
        consistency=derive_consistency(nova),
        work_rate=derive_work_rate(discipline),
        risk=derive_risk(nova, discipline),
        last_calculated_at=now or datetime.now(tz=timezone.utc),
    )
