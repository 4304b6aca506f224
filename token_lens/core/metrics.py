"""
Prompt clarity metrics and their quality bands.

Defines the clarity metric record shared by sessions, weekly and hourly
buckets, the composite score formula, and the good/ok/warn banding used
by the renderer and the coaching tip selector.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

# Composite score weights
FRONT_LOAD_WEIGHT = 0.40
CORRECTION_WEIGHT = 0.35
CLARIFICATION_WEIGHT = 0.25

# "Good" thresholds
CORRECTION_GOOD = 0.10        # rate below is good
CLARIFICATION_GOOD = 0.15     # rate below is good
FRONT_LOAD_GOOD = 0.60        # ratio above is good

# "Ok" thresholds
CORRECTION_OK = 0.25
CLARIFICATION_OK = 0.35
FRONT_LOAD_OK = 0.40
SCORE_GOOD = 75
SCORE_OK = 50


class Metric(Enum):
    """Clarity metrics that coaching can target."""
    CORRECTION_RATE = "correction_rate"
    CLARIFICATION_RATE = "clarification_rate"
    FRONT_LOAD_RATIO = "front_load_ratio"


class MetricLevel(Enum):
    """Quality band of a metric value."""
    GOOD = "good"
    OK = "ok"
    WARN = "warn"


@dataclass(frozen=True)
class MetricInsight:
    """A level and a one-line explanation for a metric value."""
    level: MetricLevel
    oneliner: str


@dataclass(frozen=True)
class ClarityMetrics:
    """Clarity measurements for a session or a group of sessions.

    Rates and the ratio lie in [0, 1]; the score lies in [0, 100].
    ``corrections_by_type`` maps a correction type value to its rate.
    """
    correction_rate: float
    clarification_rate: float
    front_load_ratio: float
    score: float
    corrections_by_type: Dict[str, float] = field(default_factory=dict)

    def value(self, metric: Metric) -> float:
        return getattr(self, metric.value)

    @property
    def has_typed_corrections(self) -> bool:
        return any(rate > 0 for rate in self.corrections_by_type.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correction_rate": self.correction_rate,
            "clarification_rate": self.clarification_rate,
            "front_load_ratio": self.front_load_ratio,
            "score": self.score,
            "corrections_by_type": dict(self.corrections_by_type),
        }


def clarity_score(front_load_ratio: float, correction_rate: float, clarification_rate: float) -> float:
    """Composite 0-100 clarity score.

    score = 100 * (0.40 * front_load + 0.35 * (1 - correction) + 0.25 * (1 - clarification))
    """
    return 100 * (
        FRONT_LOAD_WEIGHT * front_load_ratio
        + CORRECTION_WEIGHT * (1 - correction_rate)
        + CLARIFICATION_WEIGHT * (1 - clarification_rate)
    )


def correction_rate_insight(rate: float) -> MetricInsight:
    if rate < CORRECTION_GOOD:
        return MetricInsight(MetricLevel.GOOD, "Few walk-backs. Your prompts are landing first try.")
    if rate < CORRECTION_OK:
        return MetricInsight(MetricLevel.OK, "Moderate. Try specifying constraints before prompting.")
    return MetricInsight(MetricLevel.WARN, "High. Sketch the full spec mentally before you type.")


def clarification_rate_insight(rate: float) -> MetricInsight:
    if rate < CLARIFICATION_GOOD:
        return MetricInsight(MetricLevel.GOOD, "Model rarely needs more info. Prompts are clear.")
    if rate < CLARIFICATION_OK:
        return MetricInsight(MetricLevel.OK, "Occasional ambiguity. Add output format and scope upfront.")
    return MetricInsight(MetricLevel.WARN, "Model asks frequently. Include what you want and what you don't.")


def front_load_ratio_insight(ratio: float) -> MetricInsight:
    if ratio > FRONT_LOAD_GOOD:
        return MetricInsight(MetricLevel.GOOD, "Strong front-loading. Context is established upfront.")
    if ratio > FRONT_LOAD_OK:
        return MetricInsight(MetricLevel.OK, "Moderate. Push more context into your first message.")
    return MetricInsight(MetricLevel.WARN, "Low. You're discovering requirements through dialogue.")


def clarity_score_insight(score: float) -> MetricInsight:
    if score > SCORE_GOOD:
        return MetricInsight(MetricLevel.GOOD, "Strong prompting discipline.")
    if score > SCORE_OK:
        return MetricInsight(MetricLevel.OK, "Focus on your lowest metric to improve.")
    return MetricInsight(MetricLevel.WARN, "Significant context is leaking out through follow-ups.")


METRIC_INSIGHTS = {
    Metric.CORRECTION_RATE: correction_rate_insight,
    Metric.CLARIFICATION_RATE: clarification_rate_insight,
    Metric.FRONT_LOAD_RATIO: front_load_ratio_insight,
}


def metric_insight(metric: Metric, value: float) -> MetricInsight:
    return METRIC_INSIGHTS[metric](value)


METRIC_DESCRIPTIONS = {
    "correction_rate": "Share of your follow-up messages that walk back or contradict a prior request. "
                       "Measures how precisely you specified intent the first time.",
    "clarification_rate": "Share of sessions where the model asked a clarifying question in its first "
                          "response. High means your prompts are underspecified.",
    "front_load_ratio": "Share of your total prompt text that was in your first message. High means "
                        "you front-loaded context; low means you trickled it in.",
    "clarity_score": "Composite 0-100 from the three clarity signals. Tracks prompting discipline over time.",
}
