"""
Prompt clarity analysis.

Tracks user prompts and the first assistant reply of every session,
derives per-session clarity metrics, and rolls them up into overall,
weekly and hour-of-day summaries.

Metrics per session (sessions need at least one user message):
- correction rate: corrections / max(messages - 1, 1), capped at 1
- clarification rate: 1 if the first reply asked a clarifying question
- front-load ratio: length of the first message / length of all messages
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Optional

from .aggregator import file_in_project
from .coaching import CoachingTip, select_coaching_tips
from .metrics import METRIC_DESCRIPTIONS, ClarityMetrics, clarity_score
from .signals import (
    CORRECTION_TYPES,
    CorrectionType,
    classify_correction,
    extract_text,
    has_clarification_signal,
    is_real_user_message,
)
from token_lens.storage.models import FileKind, LogBatch, UsageRecord

logger = logging.getLogger(__name__)

# Overall metrics need at least this many qualifying sessions
MIN_SESSIONS = 2
# Best/worst hour need at least this many populated hours
MIN_POPULATED_HOURS = 2


@dataclass(frozen=True)
class SessionClarity:
    """Clarity metrics of one qualifying session."""
    session_id: str
    metrics: ClarityMetrics
    start_time: Optional[datetime] = None


@dataclass
class SessionClarityState:
    """Running clarity state for one session."""
    session_id: str
    user_messages: List[str] = field(default_factory=list)
    first_assistant_text: str = ""
    had_clarification: bool = False
    correction_count: int = 0
    corrections_by_type: Dict[CorrectionType, int] = field(default_factory=dict)
    start_time: Optional[datetime] = None

    def observe(self, record: UsageRecord) -> None:
        """Fold one record into the session state."""
        if record.timestamp is not None and (self.start_time is None or record.timestamp < self.start_time):
            self.start_time = record.timestamp

        if is_real_user_message(record):
            text = extract_text(record.content)
            if text:
                # The first message cannot walk anything back
                if self.user_messages:
                    correction = classify_correction(text)
                    if correction != CorrectionType.NONE:
                        self.correction_count += 1
                        self.corrections_by_type[correction] = self.corrections_by_type.get(correction, 0) + 1
                self.user_messages.append(text)

        elif record.type == "assistant" and not self.first_assistant_text:
            text = extract_text(record.content)
            if text:
                self.first_assistant_text = text
                self.had_clarification = has_clarification_signal(text)

    def metrics(self) -> Optional[ClarityMetrics]:
        """Derive session metrics, or None for sessions without prompts."""
        count = len(self.user_messages)
        if count == 0:
            return None

        denom = max(count - 1, 1)
        correction_rate = min(self.correction_count / denom, 1.0)

        total_length = sum(len(message) for message in self.user_messages)
        front_load = len(self.user_messages[0]) / total_length if total_length else 0.0

        clarification_rate = 1.0 if self.had_clarification else 0.0

        by_type = {
            correction_type.value: self.corrections_by_type[correction_type] / denom
            for correction_type in CORRECTION_TYPES
            if self.corrections_by_type.get(correction_type)
        }

        return ClarityMetrics(
            correction_rate=correction_rate,
            clarification_rate=clarification_rate,
            front_load_ratio=front_load,
            score=clarity_score(front_load, correction_rate, clarification_rate),
            corrections_by_type=by_type,
        )


@dataclass(frozen=True)
class WeeklyClarity:
    """Mean clarity for sessions starting in one Monday-based week."""
    week_start: str  # "YYYY-MM-DD" Monday
    metrics: ClarityMetrics
    session_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"week_start": self.week_start, "session_count": self.session_count, **self.metrics.to_dict()}


@dataclass(frozen=True)
class HourlyClarityBucket:
    """Mean clarity for sessions starting at one local hour of day.

    A bucket without sessions has no metrics rather than a zero score.
    """
    hour: int
    metrics: Optional[ClarityMetrics] = None
    session_count: int = 0

    @property
    def has_data(self) -> bool:
        return self.session_count > 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"hour": self.hour, "session_count": self.session_count}
        data.update(self.metrics.to_dict() if self.metrics else {"score": None})
        return data


@dataclass(frozen=True)
class ClarityReport:
    """Top-level clarity result attached to the usage report.

    With fewer than two qualifying sessions only ``session_count`` is set
    and ``has_sufficient_data`` is False.
    """
    session_count: int
    overall: Optional[ClarityMetrics] = None
    weekly: List[WeeklyClarity] = field(default_factory=list)
    hourly: List[HourlyClarityBucket] = field(default_factory=list)
    best_hour: Optional[int] = None
    worst_hour: Optional[int] = None
    score_delta: Optional[float] = None
    tips: List[CoachingTip] = field(default_factory=list)

    @property
    def has_sufficient_data(self) -> bool:
        return self.overall is not None

    def bucket_for(self, hour: int) -> Optional[HourlyClarityBucket]:
        for bucket in self.hourly:
            if bucket.hour == hour:
                return bucket
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_count": self.session_count,
            "sufficient_data": self.has_sufficient_data,
            "overall": self.overall.to_dict() if self.overall else None,
            "weekly": [w.to_dict() for w in self.weekly],
            "hourly": [h.to_dict() for h in self.hourly],
            "best_hour": self.best_hour,
            "worst_hour": self.worst_hour,
            "score_delta": self.score_delta,
            "tips": [t.to_dict() for t in self.tips],
            "metric_descriptions": dict(METRIC_DESCRIPTIONS),
        }


def collect_session_clarity(
    batches: Iterable[LogBatch],
    cutoff: Optional[datetime] = None,
    project: str = "",
) -> List[SessionClarity]:
    """Accumulate clarity state over main-session logs.

    Subagent logs are ignored: their prompts are written by the parent
    session, not the user.

    Args:
        batches: Decoded log files
        cutoff: Oldest allowed record timestamp; records without a
            timestamp are always kept
        project: Case-insensitive project filter, applied per file

    Returns:
        Metrics for every session with at least one user message, in
        first-seen order
    """
    states: Dict[str, SessionClarityState] = {}
    slug_cwd: Dict[str, str] = {}

    for batch in batches:
        log_file = batch.log_file
        if not file_in_project(batch, project, slug_cwd):
            continue
        if log_file.kind != FileKind.SESSION:
            continue

        for record in batch.records:
            if cutoff is not None and record.timestamp is not None and record.timestamp < cutoff:
                continue
            session_id = record.session_id or log_file.session_id
            state = states.get(session_id)
            if state is None:
                state = states[session_id] = SessionClarityState(session_id=session_id)
            state.observe(record)

    sessions = []
    for state in states.values():
        metrics = state.metrics()
        if metrics is None:
            continue
        sessions.append(SessionClarity(session_id=state.session_id, metrics=metrics, start_time=state.start_time))
    return sessions


def mean_metrics(metrics: List[ClarityMetrics]) -> ClarityMetrics:
    """Unweighted mean of each metric across sessions.

    A correction type is included when any session recorded it; sessions
    without it contribute 0.
    """
    n = len(metrics)
    if n == 0:
        raise ValueError("Cannot average an empty list of metrics")

    seen_types = {key for m in metrics for key in m.corrections_by_type}
    by_type = {
        correction_type.value: sum(m.corrections_by_type.get(correction_type.value, 0.0) for m in metrics) / n
        for correction_type in CORRECTION_TYPES
        if correction_type.value in seen_types
    }
    return ClarityMetrics(
        correction_rate=sum(m.correction_rate for m in metrics) / n,
        clarification_rate=sum(m.clarification_rate for m in metrics) / n,
        front_load_ratio=sum(m.front_load_ratio for m in metrics) / n,
        score=sum(m.score for m in metrics) / n,
        corrections_by_type=by_type,
    )


def monday_of(moment: datetime) -> date:
    """Monday (UTC) of the week containing ``moment``."""
    day = moment.astimezone(timezone.utc).date()
    return day - timedelta(days=day.weekday())


def weekly_buckets(sessions: Iterable[SessionClarity]) -> List[WeeklyClarity]:
    """Group sessions by the Monday of their start, ascending."""
    weeks: Dict[str, List[ClarityMetrics]] = {}
    for session in sessions:
        if session.start_time is None:
            continue
        weeks.setdefault(monday_of(session.start_time).isoformat(), []).append(session.metrics)

    return [
        WeeklyClarity(week_start=key, metrics=mean_metrics(weeks[key]), session_count=len(weeks[key]))
        for key in sorted(weeks)
    ]


def hourly_buckets(sessions: Iterable[SessionClarity], tz: Optional[tzinfo] = None) -> List[HourlyClarityBucket]:
    """Group sessions by local hour of day of their start.

    Args:
        sessions: Qualifying sessions
        tz: Timezone for the hour of day (defaults to the system zone)

    Returns:
        24 buckets, hour 0 first; empty hours carry no metrics
    """
    hours: Dict[int, List[ClarityMetrics]] = {}
    for session in sessions:
        if session.start_time is None:
            continue
        hour = session.start_time.astimezone(tz).hour
        hours.setdefault(hour, []).append(session.metrics)

    buckets = []
    for hour in range(24):
        samples = hours.get(hour)
        if samples:
            buckets.append(HourlyClarityBucket(hour=hour, metrics=mean_metrics(samples), session_count=len(samples)))
        else:
            buckets.append(HourlyClarityBucket(hour=hour))
    return buckets


def best_and_worst_hour(buckets: Iterable[HourlyClarityBucket]):
    """Hours with the highest and lowest mean score.

    Both are None unless at least two distinct hours have samples, so a
    lone hour is never reported as the best. Ties go to the lowest hour.

    Returns:
        Tuple of (best_hour, worst_hour)
    """
    populated = [bucket for bucket in buckets if bucket.has_data]
    if len(populated) < MIN_POPULATED_HOURS:
        return None, None
    best = min(populated, key=lambda b: (-b.metrics.score, b.hour))
    worst = min(populated, key=lambda b: (b.metrics.score, b.hour))
    return best.hour, worst.hour


def week_score_delta(weekly: List[WeeklyClarity]) -> Optional[float]:
    """Score change between the two most recent weeks."""
    if len(weekly) < 2:
        return None
    return weekly[-1].metrics.score - weekly[-2].metrics.score


def compute_clarity(
    batches: Iterable[LogBatch],
    cutoff: Optional[datetime] = None,
    project: str = "",
    tz: Optional[tzinfo] = None,
    today: Optional[date] = None,
) -> ClarityReport:
    """Build the clarity report for a set of decoded logs.

    Args:
        batches: Decoded log files
        cutoff: Oldest allowed record timestamp, or None for all time
        project: Case-insensitive project filter
        tz: Timezone for hour-of-day buckets (defaults to the system zone)
        today: Date that picks the coaching tip rotation

    Returns:
        ClarityReport; insufficient-data form below two qualifying sessions
    """
    sessions = collect_session_clarity(batches, cutoff=cutoff, project=project)
    if len(sessions) < MIN_SESSIONS:
        logger.debug("Clarity needs %d sessions, found %d", MIN_SESSIONS, len(sessions))
        return ClarityReport(session_count=len(sessions))

    overall = mean_metrics([s.metrics for s in sessions])
    weekly = weekly_buckets(sessions)
    hourly = hourly_buckets(sessions, tz=tz)
    best_hour, worst_hour = best_and_worst_hour(hourly)

    return ClarityReport(
        session_count=len(sessions),
        overall=overall,
        weekly=weekly,
        hourly=hourly,
        best_hour=best_hour,
        worst_hour=worst_hour,
        score_delta=week_score_delta(weekly),
        tips=select_coaching_tips(overall, today=today),
    )
