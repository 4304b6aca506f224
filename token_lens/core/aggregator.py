"""
Usage aggregation across models, projects, sessions and days.

Folds decoded usage-bearing records into running totals for each axis and
builds the ranked, display-ready slices of the usage report.

Aggregation never fails on bad data: decode errors are tallied per file and
surfaced later as an insight, unknown models simply cost nothing.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from pathlib import PurePath
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from .pricing import PRICING_TABLE, PricingTable, calculate_cost
from .token_counter import TokenUsage
from token_lens.storage.models import FileKind, LogBatch, UsageRecord
from token_lens.storage.repository import slug_to_path

logger = logging.getLogger(__name__)

# Unbounded reports only display the most recent days
MAX_DISPLAY_DAYS = 30


@dataclass
class UsageTotals:
    """Running token and cost totals for any aggregation axis."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0
    message_count: int = 0
    cost_usd: float = 0.0

    def add(self, usage: TokenUsage, cost: float) -> None:
        """Fold one message's usage and cost into the totals."""
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens
        self.cache_creation_input_tokens += usage.cache_creation_input_tokens
        self.cache_read_input_tokens += usage.cache_read_input_tokens
        self.message_count += 1
        self.cost_usd += cost

    @property
    def total_tokens(self) -> int:
        """Sum of all four token kinds."""
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_input_tokens
            + self.cache_read_input_tokens
        )

    @property
    def cache_efficiency(self) -> float:
        """cache_read / (input + cache_write + cache_read), 0 when empty."""
        denom = self.input_tokens + self.cache_creation_input_tokens + self.cache_read_input_tokens
        if denom == 0:
            return 0.0
        return self.cache_read_input_tokens / denom

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_creation_input_tokens": self.cache_creation_input_tokens,
            "cache_read_input_tokens": self.cache_read_input_tokens,
            "message_count": self.message_count,
            "cost_usd": self.cost_usd,
            "total_tokens": self.total_tokens,
            "cache_efficiency": self.cache_efficiency,
        }


@dataclass
class SessionSummary:
    """Token usage for one session id.

    Subagent usage is tracked separately and never merged into the main
    conversation totals or its model breakdown.
    """
    session_id: str
    project_slug: str
    project_name: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    totals: UsageTotals = field(default_factory=UsageTotals)
    subagent_totals: UsageTotals = field(default_factory=UsageTotals)
    model_breakdown: Dict[str, UsageTotals] = field(default_factory=dict)

    @property
    def combined_tokens(self) -> int:
        """Main conversation plus subagent tokens, for display."""
        return self.totals.total_tokens + self.subagent_totals.total_tokens

    def widen(self, timestamp: datetime) -> None:
        if self.start_time is None or timestamp < self.start_time:
            self.start_time = timestamp
        if self.end_time is None or timestamp > self.end_time:
            self.end_time = timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "project_slug": self.project_slug,
            "project_name": self.project_name,
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "totals": self.totals.to_dict(),
            "subagent_totals": self.subagent_totals.to_dict(),
            "combined_tokens": self.combined_tokens,
            "model_breakdown": _breakdown_dict(self.model_breakdown),
        }


@dataclass
class ProjectSummary:
    """Token usage for one project slug.

    Like sessions, main conversation and subagent usage are kept apart;
    ``totals`` always equals the sum of its sessions' main totals.
    """
    slug: str
    name: str = ""
    path: str = ""
    totals: UsageTotals = field(default_factory=UsageTotals)
    subagent_totals: UsageTotals = field(default_factory=UsageTotals)
    session_count: int = 0
    subagent_count: int = 0
    model_breakdown: Dict[str, UsageTotals] = field(default_factory=dict)
    sessions: List[SessionSummary] = field(default_factory=list)

    @property
    def combined_tokens(self) -> int:
        return self.totals.total_tokens + self.subagent_totals.total_tokens

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "name": self.name,
            "path": self.path,
            "totals": self.totals.to_dict(),
            "subagent_totals": self.subagent_totals.to_dict(),
            "session_count": self.session_count,
            "subagent_count": self.subagent_count,
            "combined_tokens": self.combined_tokens,
            "model_breakdown": _breakdown_dict(self.model_breakdown),
            "session_ids": [s.session_id for s in self.sessions],
        }


@dataclass
class DailySummary:
    """Token usage for one UTC calendar date."""
    date: str  # "YYYY-MM-DD"
    totals: UsageTotals = field(default_factory=UsageTotals)

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "totals": self.totals.to_dict()}


@dataclass(frozen=True)
class AggregateOptions:
    """Filtering applied before aggregation."""
    days: int = 0       # 0 = all time
    project: str = ""   # empty = all projects
    hour_counts: Optional[Mapping[Any, int]] = None

    def __post_init__(self):
        """Validate the day window."""
        if self.days < 0:
            raise ValueError("days cannot be negative")


@dataclass
class AggregatedReport:
    """Top-level result of one aggregation pass.

    Built once by ``aggregate_usage`` (and enriched by the analysis pass),
    then treated as read-only.

    ``daily_totals`` keeps every UTC date with data, so its token sum always
    equals ``grand``. ``daily`` is only the display slice: a day window shows
    exactly N dates and can leave out the partial day at its start, and an
    unbounded report shows the most recent 30 dates.
    """
    grand: UsageTotals = field(default_factory=UsageTotals)
    model_summaries: Dict[str, UsageTotals] = field(default_factory=dict)
    projects: List[ProjectSummary] = field(default_factory=list)
    sessions: List[SessionSummary] = field(default_factory=list)
    daily_totals: Dict[str, UsageTotals] = field(default_factory=dict)
    daily: List[DailySummary] = field(default_factory=list)
    parse_errors: int = 0
    insights: list = field(default_factory=list)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    filter_days: int = 0
    filter_project: str = ""
    peak_hour: Optional[int] = None
    clarity: Any = None

    @property
    def subagent_tokens(self) -> int:
        return sum(s.subagent_totals.total_tokens for s in self.sessions)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation of the whole report."""
        return {
            "grand": self.grand.to_dict(),
            "model_summaries": _breakdown_dict(self.model_summaries),
            "projects": [p.to_dict() for p in self.projects],
            "sessions": [s.to_dict() for s in self.sessions],
            "daily_totals": _breakdown_dict(self.daily_totals),
            "daily": [d.to_dict() for d in self.daily],
            "parse_errors": self.parse_errors,
            "insights": [i.to_dict() for i in self.insights],
            "date_from": _iso(self.date_from),
            "date_to": _iso(self.date_to),
            "filter_days": self.filter_days,
            "filter_project": self.filter_project,
            "peak_hour": self.peak_hour,
            "clarity": self.clarity.to_dict() if self.clarity is not None else None,
        }


def aggregate_usage(
    batches: Iterable[LogBatch],
    options: AggregateOptions = AggregateOptions(),
    table: PricingTable = PRICING_TABLE,
    now: Optional[datetime] = None,
) -> AggregatedReport:
    """Fold per-file record batches into a usage report.

    Args:
        batches: Decoded log files in discovery order
        options: Day window, project filter and optional hour-count table
        table: Pricing table used for per-record cost
        now: Reference time for the day window (defaults to current UTC)

    Returns:
        AggregatedReport with totals, ranked projects and sessions, the
        daily slice and the peak hour; insights and clarity are attached
        by the analysis pass
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=options.days) if options.days > 0 else None

    report = AggregatedReport(filter_days=options.days, filter_project=options.project)

    projects: Dict[str, ProjectSummary] = {}
    sessions: Dict[str, SessionSummary] = {}
    daily: Dict[str, UsageTotals] = {}
    slug_cwd: Dict[str, str] = {}

    for batch in batches:
        report.parse_errors += batch.parse_errors
        log_file = batch.log_file
        slug = log_file.project_slug

        if not file_in_project(batch, options.project, slug_cwd):
            logger.debug("Project filter %r skips %s", options.project, log_file.path)
            continue

        for record in usage_bearing(batch.records):
            if cutoff is not None and record.timestamp < cutoff:
                continue

            model = record.model
            usage = record.usage
            cost = calculate_cost(model, usage, table)
            timestamp = record.timestamp

            if report.date_from is None or timestamp < report.date_from:
                report.date_from = timestamp
            if report.date_to is None or timestamp > report.date_to:
                report.date_to = timestamp

            report.grand.add(usage, cost)
            report.model_summaries.setdefault(model, UsageTotals()).add(usage, cost)

            project = projects.get(slug)
            if project is None:
                project = projects[slug] = ProjectSummary(slug=slug)

            session_id = record.session_id or log_file.session_id
            session = sessions.get(session_id)
            if session is None:
                session = sessions[session_id] = SessionSummary(
                    session_id=session_id,
                    project_slug=slug,
                )
            if log_file.kind == FileKind.SUBAGENT:
                session.subagent_totals.add(usage, cost)
                project.subagent_totals.add(usage, cost)
            else:
                session.totals.add(usage, cost)
                session.model_breakdown.setdefault(model, UsageTotals()).add(usage, cost)
                project.totals.add(usage, cost)
                project.model_breakdown.setdefault(model, UsageTotals()).add(usage, cost)
            session.widen(timestamp)

            day = timestamp.astimezone(timezone.utc).strftime("%Y-%m-%d")
            daily.setdefault(day, UsageTotals()).add(usage, cost)

    for slug, project in projects.items():
        project.path = slug_cwd.get(slug) or slug_to_path(slug)
        project.name = folder_name(project.path)

    for session in sessions.values():
        project = projects.get(session.project_slug)
        if project is None:
            session.project_name = folder_name(slug_to_path(session.project_slug))
            continue
        session.project_name = project.name
        project.sessions.append(session)
        project.session_count += 1
        if session.subagent_totals.total_tokens > 0:
            project.subagent_count += 1

    report.projects = sorted(projects.values(), key=lambda p: (-p.totals.total_tokens, p.slug))
    report.sessions = sorted(sessions.values(), key=lambda s: (-s.combined_tokens, s.session_id))
    report.daily_totals = {day: daily[day] for day in sorted(daily)}
    report.daily = build_daily_slice(daily, options.days, today=now.astimezone(timezone.utc).date())

    if options.hour_counts is not None:
        report.peak_hour = peak_hour(options.hour_counts)

    logger.debug(
        "Aggregated %d messages across %d projects and %d sessions",
        report.grand.message_count, len(report.projects), len(report.sessions),
    )
    return report


def usage_bearing(records: Iterable[UsageRecord]) -> Iterable[UsageRecord]:
    """Yield assistant records that carry usage, once per uuid.

    Streamed replies are logged several times under the same uuid, and
    records without a timestamp cannot be placed on any axis.
    """
    seen: Set[str] = set()
    for record in records:
        if record.type != "assistant" or record.usage.is_zero:
            continue
        if record.timestamp is None:
            continue
        if record.uuid:
            if record.uuid in seen:
                continue
            seen.add(record.uuid)
        yield record


def first_cwd(records: Iterable[UsageRecord]) -> str:
    """Working directory of the first record that carries one."""
    for record in records:
        if record.cwd:
            return record.cwd
    return ""


def file_in_project(batch: LogBatch, project: str, slug_cwd: Dict[str, str]) -> bool:
    """Apply the project filter to one log file.

    The first working directory seen for a slug is remembered in
    ``slug_cwd``; a file without one falls back to it.
    """
    slug = batch.log_file.project_slug
    cwd = first_cwd(batch.records)
    if cwd and slug not in slug_cwd:
        slug_cwd[slug] = cwd
    return project_matches(slug, cwd or slug_cwd.get(slug, ""), project)


def project_matches(slug: str, cwd: str, needle: str) -> bool:
    """Case-insensitive substring match against the slug or folder name."""
    needle = needle.lower()
    if not needle:
        return True
    name = folder_name(cwd or slug_to_path(slug))
    return needle in slug.lower() or needle in name.lower()


def folder_name(path: str) -> str:
    """Final component of a POSIX or Windows style path."""
    if not path:
        return ""
    return PurePath(path.replace("\\", "/").rstrip("/")).name or path


def build_daily_slice(
    daily: Mapping[str, UsageTotals],
    days: int,
    today: Optional[date] = None,
) -> List[DailySummary]:
    """Build the ordered per-day slice of the report.

    Args:
        daily: Totals keyed by "YYYY-MM-DD"
        days: Day window; 0 means unbounded
        today: Last date of a bounded window (defaults to current UTC date)

    Returns:
        Exactly ``days`` zero-filled entries ending today when bounded,
        otherwise every day with data, ascending, limited to the last 30
    """
    if days > 0:
        today = today or datetime.now(timezone.utc).date()
        result = []
        for offset in range(days - 1, -1, -1):
            key = (today - timedelta(days=offset)).isoformat()
            totals = daily.get(key)
            result.append(DailySummary(date=key, totals=replace(totals) if totals else UsageTotals()))
        return result

    result = [DailySummary(date=key, totals=replace(daily[key])) for key in sorted(daily)]
    return result[-MAX_DISPLAY_DAYS:]


def peak_hour(hour_counts: Mapping[Any, int]) -> Optional[int]:
    """Hour of day with the highest activity count.

    Ties go to the lowest hour. Keys that are not hours 0-23 are ignored.

    Returns:
        Peak hour, or None when no hour has a positive count
    """
    best: Optional[int] = None
    best_count = 0
    for key, count in hour_counts.items():
        try:
            hour = int(key)
        except (TypeError, ValueError):
            continue
        if not 0 <= hour <= 23 or not isinstance(count, (int, float)) or count <= 0:
            continue
        if count > best_count or (count == best_count and best is not None and hour < best):
            best = hour
            best_count = count
    return best


def _breakdown_dict(breakdown: Mapping[str, UsageTotals]) -> Dict[str, Dict[str, Any]]:
    return {model: breakdown[model].to_dict() for model in sorted(breakdown)}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None
