"""
Data contracts for the analytics pipeline.

RawPlayerScores is the read-only input owned by the profile tables;
AnalyticsRecord is the derived artifact cached in Redis and persisted in
``agent_analytics_cache``. Both are immutable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise TypeError(f"Unsupported timestamp value: {value!r}")


def _as_float(value: Any) -> float:
    # DECIMAL columns come back as decimal.Decimal
    return float(value) if value is not None else 0.0


@dataclass(frozen=True)
class RawPlayerScores:
    """Snapshot of a player's upstream scores."""

    player_id: str
    nova_score: float
    discipline_score: int
    match_score: float = 0.0
    task_score: float = 0.0
    video_score: float = 0.0
    physical_score: float = 0.0

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> RawPlayerScores:
        """Build from a ``player_profiles`` row."""
        discipline = row.get("discipline_score")
        return cls(
            player_id=str(row["id"]),
            nova_score=_as_float(row.get("nova_score")),
            discipline_score=int(discipline) if discipline is not None else 0,
            match_score=_as_float(row.get("match_score")),
            task_score=_as_float(row.get("task_score")),
            video_score=_as_float(row.get("video_score")),
            physical_score=_as_float(row.get("physical_score")),
        )


@dataclass(frozen=True)
class PerformanceBreakdown:
    overall: float
    match_score: float
    task_score: float
    video_score: float
    physical_score: float

    def to_dict(self) -> dict[str, float]:
        return {
            "overall": self.overall,
            "matchScore": self.match_score,
            "taskScore": self.task_score,
            "videoScore": self.video_score,
            "physicalScore": self.physical_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PerformanceBreakdown:
        return cls(
            overall=_as_float(data.get("overall")),
            match_score=_as_float(data.get("matchScore")),
            task_score=_as_float(data.get("taskScore")),
            video_score=_as_float(data.get("videoScore")),
            physical_score=_as_float(data.get("physicalScore")),
        )


@dataclass(frozen=True)
class Consistency:
    score: int
    level: str
    trend: str

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "level": self.level, "trend": self.trend}


@dataclass(frozen=True)
class WorkRateBreakdown:
    attendance: int
    task_completion: int
    upload_frequency: int
    discipline: int

    def total(self) -> int:
        return self.attendance + self.task_completion + self.upload_frequency + self.discipline

    def to_dict(self) -> dict[str, int]:
        return {
            "attendance": self.attendance,
            "taskCompletion": self.task_completion,
            "uploadFrequency": self.upload_frequency,
            "discipline": self.discipline,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkRateBreakdown:
        return cls(
            attendance=int(data.get("attendance", 0)),
            task_completion=int(data.get("taskCompletion", 0)),
            upload_frequency=int(data.get("uploadFrequency", 0)),
            discipline=int(data.get("discipline", 0)),
        )


@dataclass(frozen=True)
class WorkRate:
    score: int
    level: str
    breakdown: WorkRateBreakdown

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "level": self.level, "breakdown": self.breakdown.to_dict()}


@dataclass(frozen=True)
class RiskFactors:
    consistency: str
    discipline: str
    engagement: str

    def to_dict(self) -> dict[str, str]:
        return {
            "consistency": self.consistency,
            "discipline": self.discipline,
            "engagement": self.engagement,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RiskFactors:
        return cls(
            consistency=str(data.get("consistency", "")),
            discipline=str(data.get("discipline", "")),
            engagement=str(data.get("engagement", "")),
        )


@dataclass(frozen=True)
class Risk:
    score: int
    level: str
    factors: RiskFactors

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "level": self.level, "factors": self.factors.to_dict()}


@dataclass(frozen=True)
class AnalyticsRecord:
    """
    Derived analytics for one player.

    At most one live record exists per player_id. A record is a pure
    function of the RawPlayerScores it was derived from and is never
    mutated after derivation.
    """

    player_id: str
    performance: PerformanceBreakdown
    consistency: Consistency
    work_rate: WorkRate
    risk: Risk
    last_calculated_at: datetime = field(
        default_factory=lambda: datetime.now(tz=timezone.utc)
    )

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation, also used as the fast cache payload."""
        return {
            "playerId": self.player_id,
            "performance": self.performance.to_dict(),
            "consistency": self.consistency.to_dict(),
            "workRate": self.work_rate.to_dict(),
            "risk": self.risk.to_dict(),
            "lastCalculatedAt": self.last_calculated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalyticsRecord:
        """Inverse of to_dict."""
        consistency = data["consistency"]
        work_rate = data["workRate"]
        risk = data["risk"]
        return cls(
            player_id=str(data["playerId"]),
            performance=PerformanceBreakdown.from_dict(data["performance"]),
            consistency=Consistency(
                score=int(consistency["score"]),
                level=consistency["level"],
                trend=consistency["trend"],
            ),
            work_rate=WorkRate(
                score=int(work_rate["score"]),
                level=work_rate["level"],
                breakdown=WorkRateBreakdown.from_dict(work_rate["breakdown"]),
            ),
            risk=Risk(
                score=int(risk["score"]),
                level=risk["level"],
                factors=RiskFactors.from_dict(risk["factors"]),
            ),
            last_calculated_at=_parse_timestamp(data["lastCalculatedAt"]),
        )

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> AnalyticsRecord:
        """Build from an ``agent_analytics_cache`` row (JSONB columns decoded)."""
        return cls(
            player_id=str(row["player_id"]),
            performance=PerformanceBreakdown.from_dict(row.get("performance_data") or {}),
            consistency=Consistency(
                score=int(row["consistency_score"]),
                level=row["consistency_level"],
                trend=row["consistency_trend"],
            ),
            work_rate=WorkRate(
                score=int(row["work_rate_score"]),
                level=row["work_rate_level"],
                breakdown=WorkRateBreakdown.from_dict(row.get("work_rate_breakdown") or {}),
            ),
            risk=Risk(
                score=int(row["risk_score"]),
                level=row["risk_level"],
                factors=RiskFactors.from_dict(row.get("risk_factors") or {}),
            ),
            last_calculated_at=_parse_timestamp(row["last_calculated_at"]),
        )
