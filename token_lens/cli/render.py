"""
Terminal rendering of the usage report.

Turns a finished AggregatedReport into Rich tables; no computation
happens here beyond formatting.
"""

from decimal import Decimal
from typing import Optional

from rich.console import Console
from rich.table import Table

from token_lens.core.aggregator import AggregatedReport, UsageTotals
from token_lens.core.clarity import ClarityReport
from token_lens.core.insights import InsightSeverity, format_token_count
from token_lens.core.metrics import (
    METRIC_DESCRIPTIONS,
    ClarityMetrics,
    Metric,
    MetricLevel,
    clarity_score_insight,
    metric_insight,
)
from token_lens.core.signals import CORRECTION_TYPES

TOP_SESSIONS = 10
TREND_BAR_WIDTH = 30

LEVEL_STYLES = {
    MetricLevel.GOOD: "green",
    MetricLevel.OK: "yellow",
    MetricLevel.WARN: "red",
}

SEVERITY_MARKERS = {
    InsightSeverity.GOOD: "[green]✓[/]",
    InsightSeverity.INFO: "[cyan]i[/]",
    InsightSeverity.WARN: "[yellow]![/]",
}

METRIC_LABELS = {
    Metric.CORRECTION_RATE: "Correction rate",
    Metric.CLARIFICATION_RATE: "Clarification rate",
    Metric.FRONT_LOAD_RATIO: "Front-load ratio",
}


def _format_currency(amount: float) -> str:
    """Format currency with proper symbols and formatting."""
    return f"${abs(amount):,.2f}"


def format_rate(rate: Decimal) -> str:
    return f"${rate:,.2f}"


def _format_percent(value: float) -> str:
    return f"{value * 100:.1f}%"


def _styled(level: MetricLevel, text: str) -> str:
    style = LEVEL_STYLES[level]
    return f"[{style}]{text}[/{style}]"


def render_report(console: Console, report: AggregatedReport) -> None:
    """Print every section of the report in display order."""
    _render_header(console, report)
    _render_summary(console, report)
    _render_models(console, report)
    _render_projects(console, report)
    _render_sessions(console, report)
    _render_daily(console, report)
    _render_insights(console, report)
    if report.clarity is not None:
        _render_clarity(console, report.clarity)
        _render_tips(console, report.clarity)


def _render_header(console: Console, report: AggregatedReport) -> None:
    console.print("\n[bold]Claude Code Token Usage[/bold]")
    console.print("-" * 40)
    if report.date_from and report.date_to:
        console.print(f"Period: {report.date_from:%Y-%m-%d} to {report.date_to:%Y-%m-%d}")
    filters = []
    if report.filter_days:
        filters.append(f"last {report.filter_days} days")
    if report.filter_project:
        filters.append(f"project contains '{report.filter_project}'")
    if filters:
        console.print(f"Filter: {', '.join(filters)}")


def _render_summary(console: Console, report: AggregatedReport) -> None:
    grand = report.grand
    table = Table(title="Overall", show_header=False)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Total tokens", format_token_count(grand.total_tokens))
    table.add_row("Input", format_token_count(grand.input_tokens))
    table.add_row("Output", format_token_count(grand.output_tokens))
    table.add_row("Cache write", format_token_count(grand.cache_creation_input_tokens))
    table.add_row("Cache read", format_token_count(grand.cache_read_input_tokens))
    table.add_row("Cache efficiency", _format_percent(grand.cache_efficiency))
    table.add_row("Estimated cost", _format_currency(grand.cost_usd))
    table.add_row("Sessions", str(len(report.sessions)))
    table.add_row("Messages", str(grand.message_count))
    console.print(table)


def _totals_row(totals: UsageTotals):
    return (
        format_token_count(totals.input_tokens),
        format_token_count(totals.output_tokens),
        format_token_count(totals.cache_creation_input_tokens),
        format_token_count(totals.cache_read_input_tokens),
        _format_currency(totals.cost_usd),
    )


def _render_models(console: Console, report: AggregatedReport) -> None:
    table = Table(title="By model")
    table.add_column("Model")
    table.add_column("Msgs", justify="right")
    for heading in ("Input", "Output", "Cache W", "Cache R", "Cost"):
        table.add_column(heading, justify="right")

    ranked = sorted(report.model_summaries.items(), key=lambda item: (-item[1].total_tokens, item[0]))
    for model, totals in ranked:
        table.add_row(model, str(totals.message_count), *_totals_row(totals))
    console.print(table)


def _render_projects(console: Console, report: AggregatedReport) -> None:
    table = Table(title="By project")
    table.add_column("Project")
    table.add_column("Sessions", justify="right")
    table.add_column("w/ subagents", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Subagents", justify="right")
    table.add_column("Cost", justify="right")
    for project in report.projects:
        table.add_row(
            project.name or project.slug,
            str(project.session_count),
            str(project.subagent_count),
            format_token_count(project.totals.total_tokens),
            format_token_count(project.subagent_totals.total_tokens),
            _format_currency(project.totals.cost_usd + project.subagent_totals.cost_usd),
        )
    console.print(table)


def _render_sessions(console: Console, report: AggregatedReport) -> None:
    table = Table(title=f"Top {TOP_SESSIONS} sessions")
    table.add_column("Session")
    table.add_column("Project")
    table.add_column("Started")
    table.add_column("Tokens", justify="right")
    table.add_column("Subagents", justify="right")
    table.add_column("Cost", justify="right")
    for session in report.sessions[:TOP_SESSIONS]:
        started = f"{session.start_time:%Y-%m-%d %H:%M}" if session.start_time else "-"
        table.add_row(
            session.session_id[:8],
            session.project_name,
            started,
            format_token_count(session.combined_tokens),
            format_token_count(session.subagent_totals.total_tokens),
            _format_currency(session.totals.cost_usd + session.subagent_totals.cost_usd),
        )
    console.print(table)


def _render_daily(console: Console, report: AggregatedReport) -> None:
    if not report.daily:
        return
    peak = max(day.totals.total_tokens for day in report.daily)
    table = Table(title="Daily trend")
    table.add_column("Date")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("")
    for day in report.daily:
        tokens = day.totals.total_tokens
        width = round(tokens / peak * TREND_BAR_WIDTH) if peak else 0
        table.add_row(day.date, format_token_count(tokens), _format_currency(day.totals.cost_usd), "█" * width)
    console.print(table)


def _render_insights(console: Console, report: AggregatedReport) -> None:
    if not report.insights:
        return
    console.print("\n[bold]Insights[/bold]")
    for insight in report.insights:
        console.print(f" {SEVERITY_MARKERS[insight.severity]} {insight.message}")


def _score_delta_text(delta: Optional[float]) -> str:
    if delta is None:
        return ""
    return f" ({'+' if delta >= 0 else ''}{delta:.1f} vs last week)"


def _render_clarity(console: Console, clarity: ClarityReport) -> None:
    console.print("\n[bold]Prompt clarity[/bold]")
    if not clarity.has_sufficient_data:
        console.print(
            f"[dim]Not enough sessions for clarity analysis "
            f"(found {clarity.session_count}, need at least 2).[/]"
        )
        return

    overall = clarity.overall
    band = clarity_score_insight(overall.score)
    console.print(
        f"Clarity score: {_styled(band.level, f'{overall.score:.0f}/100')}"
        f"{_score_delta_text(clarity.score_delta)} across {clarity.session_count} sessions"
    )
    console.print(f"[dim]{band.oneliner}[/]")
    console.print(f"[dim]{METRIC_DESCRIPTIONS['clarity_score']}[/]")

    _render_metric_rows(console, overall)
    _render_weekly(console, clarity)
    _render_hours(console, clarity)


def _render_metric_rows(console: Console, overall: ClarityMetrics) -> None:
    table = Table(show_header=True)
    table.add_column("Signal")
    table.add_column("Value", justify="right")
    table.add_column("")
    for metric in Metric:
        value = overall.value(metric)
        insight = metric_insight(metric, value)
        table.add_row(METRIC_LABELS[metric], _styled(insight.level, _format_percent(value)), insight.oneliner)
        table.add_row("", "", f"[dim]{METRIC_DESCRIPTIONS[metric.value]}[/]")
        if metric == Metric.CORRECTION_RATE and overall.has_typed_corrections:
            for correction_type in CORRECTION_TYPES:
                rate = overall.corrections_by_type.get(correction_type.value)
                if rate:
                    table.add_row(f"  {correction_type.value}", _format_percent(rate), "")
    console.print(table)


def _render_weekly(console: Console, clarity: ClarityReport) -> None:
    if len(clarity.weekly) < 2:
        return
    table = Table(title="Weekly clarity")
    table.add_column("Week of")
    table.add_column("Sessions", justify="right")
    table.add_column("Score", justify="right")
    for week in clarity.weekly:
        level = clarity_score_insight(week.metrics.score).level
        table.add_row(week.week_start, str(week.session_count), _styled(level, f"{week.metrics.score:.0f}"))
    console.print(table)


def _render_hours(console: Console, clarity: ClarityReport) -> None:
    if clarity.best_hour is None or clarity.worst_hour is None:
        return
    best = clarity.bucket_for(clarity.best_hour)
    worst = clarity.bucket_for(clarity.worst_hour)
    console.print(
        f"Clearest prompts around {best.hour:02d}:00 (score {best.metrics.score:.0f}), "
        f"least clear around {worst.hour:02d}:00 (score {worst.metrics.score:.0f})"
    )


def _render_tips(console: Console, clarity: ClarityReport) -> None:
    if not clarity.tips:
        return
    console.print("\n[bold]Coaching[/bold]")
    for tip in clarity.tips:
        console.print(f"\n {_styled(tip.level, '●')} [bold]{tip.headline}[/bold]")
        console.print(f"   {tip.technique}")
        console.print(f"   [red]Weak:[/]   {tip.weak_example}")
        console.print(f"   [green]Strong:[/] {tip.strong_example}")
