"""
Plain-language observations about a finished usage report.

Rules run in a fixed order: cache efficiency, verbosity, subagent
overhead, peak hour, unknown models, parse errors.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List

from .aggregator import AggregatedReport
from .pricing import PRICING_TABLE, PricingTable

CACHE_GOOD = 0.75
CACHE_MODERATE = 0.40
VERBOSE_OUTPUT_RATIO = 0.30


class InsightSeverity(Enum):
    """How an insight should be presented."""
    GOOD = "good"
    INFO = "info"
    WARN = "warn"


@dataclass(frozen=True)
class Insight:
    """A single observation surfaced in the report."""
    severity: InsightSeverity
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"severity": self.severity.value, "message": self.message}


def format_token_count(n: int) -> str:
    """Compact token count such as 1.2M or 3.4K."""
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return str(n)


def generate_insights(report: AggregatedReport, table: PricingTable = PRICING_TABLE) -> List[Insight]:
    """Derive insights from a usage report.

    Args:
        report: Aggregated usage report
        table: Pricing table used to flag unrecognized models

    Returns:
        Insights in fixed rule order
    """
    insights = []
    grand = report.grand
    total = grand.total_tokens

    # 1. Cache efficiency
    if total > 0:
        efficiency = grand.cache_efficiency
        if efficiency >= CACHE_GOOD:
            insights.append(Insight(
                InsightSeverity.GOOD,
                f"Cache efficiency is excellent at {efficiency * 100:.1f}%. "
                f"Long sessions and a project CLAUDE.md are paying off.",
            ))
        elif efficiency >= CACHE_MODERATE:
            insights.append(Insight(
                InsightSeverity.INFO,
                f"Cache efficiency is moderate at {efficiency * 100:.1f}%. Consider longer sessions "
                f"and a CLAUDE.md to establish context once.",
            ))
        else:
            insights.append(Insight(
                InsightSeverity.WARN,
                f"Cache efficiency is low at {efficiency * 100:.1f}%. Try longer sessions, fewer "
                f"restarts, and a CLAUDE.md for persistent context.",
            ))

    # 2. Verbosity: all token kinds in the denominator so cache-heavy
    # sessions are not flagged
    if total > 0:
        output_ratio = grand.output_tokens / total
        if output_ratio > VERBOSE_OUTPUT_RATIO:
            insights.append(Insight(
                InsightSeverity.WARN,
                f"Output tokens are {output_ratio * 100:.0f}% of total tokens. Responses may be very "
                f"verbose; consider asking for concise answers in CLAUDE.md.",
            ))

    # 3. Subagent overhead
    subagent_total = report.subagent_tokens
    if subagent_total > 0 and total > 0:
        overhead = subagent_total / total * 100
        insights.append(Insight(
            InsightSeverity.INFO,
            f"Subagents consumed {overhead:.0f}% of total tokens ({format_token_count(subagent_total)} "
            f"tokens). Each subagent starts a fresh context window.",
        ))

    # 4. Peak hour
    if report.peak_hour is not None:
        hour = report.peak_hour
        insights.append(Insight(
            InsightSeverity.INFO,
            f"Your peak usage hour is {hour:02d}:00-{(hour + 1) % 24:02d}:00 local time.",
        ))

    # 5. Unrecognized models
    for model in sorted(report.model_summaries):
        if not table.is_known(model):
            insights.append(Insight(
                InsightSeverity.WARN,
                f"Model {model!r} is not in the pricing table; its cost is shown as $0.00. "
                f"Add it under 'pricing' in the config file.",
            ))

    # 6. Parse errors
    if report.parse_errors > 0:
        insights.append(Insight(
            InsightSeverity.WARN,
            f"{report.parse_errors} log line(s) could not be parsed (likely partial writes during "
            f"streaming). Token counts may be slightly under-reported.",
        ))

    return insights
