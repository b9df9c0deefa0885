"""
Shared types and constants.

Central registry for scoring weights, level labels and the column
whitelists used when building player queries.
"""

from enum import Enum


class ConsistencyLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class WorkRateLevel(str, Enum):
    ELITE = "elite"
    HIGH = "high"
    MEDIUM = "medium"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FactorLevel(str, Enum):
    """Level of a single contributing risk factor."""
    LOW = "low"
    MEDIUM = "medium"


class AgeGroup(str, Enum):
    U15 = "U15"
    U16 = "U16"
    U17 = "U17"
    U18 = "U18"
    U19 = "U19"


class PreferredFoot(str, Enum):
    left = "left"
    right = "right"
    both = "both"


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


# =============================================================================
# Score derivation
# =============================================================================

# NovaScore decomposition weights (match, task, video, physical). Must sum to 1.0.
PERFORMANCE_WEIGHTS: dict[str, float] = {
    "matchScore": 0.45,
    "taskScore": 0.25,
    "videoScore": 0.15,
    "physicalScore": 0.15,
}

# Discipline score split into the work rate breakdown panel.
WORK_RATE_WEIGHTS: dict[str, float] = {
    "attendance": 0.4,
    "taskCompletion": 0.3,
    "uploadFrequency": 0.2,
    "discipline": 0.1,
}

CONSISTENCY_FACTOR = 0.9
RISK_DISCIPLINE_FACTOR = 0.5

# Placeholders until trend and engagement tracking exist upstream.
DEFAULT_CONSISTENCY_TREND = "stable"
DEFAULT_ENGAGEMENT_FACTOR = FactorLevel.MEDIUM

SCORE_MIN = 0.0
SCORE_MAX = 100.0

# Attributes averaged into the comparison "overall" rating.
OVERALL_ATTRIBUTES: tuple[str, ...] = (
    "pace",
    "shooting",
    "passing",
    "dribbling",
    "defending",
    "physical",
)

MIN_COMPARE_PLAYERS = 2
MAX_COMPARE_PLAYERS = 4

# =============================================================================
# Query whitelists
# =============================================================================

PLAYER_LIST_SORT_COLUMNS: frozenset[str] = frozenset(
    {"nova_score", "created_at", "stars", "discipline_score"}
)
PLAYER_DISCOVER_SORT_COLUMNS: frozenset[str] = frozenset(
    {"nova_score", "stars", "discipline_score", "nova_score_trend", "total_goals"}
)
DEFAULT_SORT_COLUMN = "nova_score"
