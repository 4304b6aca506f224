"""
Usage and clarity analysis pass.

Runs one full, read-only pass over the session logs:
1. Discover and decode every log file once
2. Aggregate token usage and cost
3. Derive prompt clarity metrics from the same records
4. Generate insights over the finished report

Every run recomputes from the current files; nothing is persisted.
"""

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from .aggregator import AggregatedReport, AggregateOptions, aggregate_usage
from .clarity import compute_clarity
from .insights import generate_insights
from .pricing import PRICING_TABLE, PricingTable
from token_lens.storage.repository import SessionLogRepository

logger = logging.getLogger(__name__)


def analyze_usage(
    options: AggregateOptions,
    repository: SessionLogRepository,
    table: PricingTable = PRICING_TABLE,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> AggregatedReport:
    """Build the complete usage report with clarity and insights attached.

    Args:
        options: Day window, project filter and optional hour counts; when
            no hour counts are given the stats cache is consulted
        repository: Source of log files
        table: Pricing table for cost and unknown-model detection
        now: Reference time for the day window (defaults to current UTC)
        tz: Timezone for hour-of-day clarity buckets (defaults to local)

    Returns:
        AggregatedReport; empty when no logs exist
    """
    now = now or datetime.now(timezone.utc)

    files = repository.discover_files()
    batches = repository.read_batches(files)

    if options.hour_counts is None:
        stats_cache = repository.read_stats_cache()
        if stats_cache is not None:
            options = AggregateOptions(
                days=options.days,
                project=options.project,
                hour_counts=stats_cache.hour_counts,
            )

    report = aggregate_usage(batches, options, table=table, now=now)

    cutoff = now - timedelta(days=options.days) if options.days > 0 else None
    report.clarity = compute_clarity(
        batches,
        cutoff=cutoff,
        project=options.project,
        tz=tz,
        today=now.date(),
    )
    report.insights = generate_insights(report, table=table)

    logger.debug(
        "Analyzed %d files: %d tokens, %d clarity sessions, %d insights",
        len(files), report.grand.total_tokens, report.clarity.session_count, len(report.insights),
    )
    return report
