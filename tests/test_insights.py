"""
Unit tests for insight generation.

Tests rule order, thresholds, and unknown model reporting.
"""

from token_lens.core.aggregator import AggregatedReport, SessionSummary, UsageTotals
from token_lens.core.insights import InsightSeverity, format_token_count, generate_insights


def _report(grand, models=None, sessions=None, peak_hour=None, parse_errors=0):
    return AggregatedReport(
        grand=grand,
        model_summaries=models or {"claude-sonnet-4-20250514": grand},
        sessions=sessions or [],
        peak_hour=peak_hour,
        parse_errors=parse_errors,
    )


def _messages(insights, severity=None):
    return [i.message for i in insights if severity is None or i.severity == severity]


class TestCacheInsight:
    """Test the cache efficiency rule."""

    def test_excellent_cache(self):
        grand = UsageTotals(input_tokens=100, output_tokens=10, cache_read_input_tokens=900)
        insights = generate_insights(_report(grand))
        assert insights[0].severity == InsightSeverity.GOOD
        assert "90.0%" in insights[0].message

    def test_moderate_cache(self):
        grand = UsageTotals(input_tokens=500, output_tokens=10, cache_read_input_tokens=500)
        assert generate_insights(_report(grand))[0].severity == InsightSeverity.INFO

    def test_low_cache(self):
        grand = UsageTotals(input_tokens=900, output_tokens=10, cache_read_input_tokens=100)
        assert generate_insights(_report(grand))[0].severity == InsightSeverity.WARN

    def test_empty_report_has_no_insights(self):
        """Nothing is said about an empty report."""
        assert generate_insights(AggregatedReport()) == []


class TestUsageInsights:
    """Test verbosity, subagent, peak hour, and parse error rules."""

    def test_verbose_output(self):
        """Output above 30% of all tokens is flagged."""
        grand = UsageTotals(input_tokens=60, output_tokens=40)
        messages = _messages(generate_insights(_report(grand)), InsightSeverity.WARN)
        assert any("Output tokens are 40%" in m for m in messages)

    def test_subagent_overhead(self):
        grand = UsageTotals(input_tokens=100, output_tokens=10, cache_read_input_tokens=900)
        session = SessionSummary(
            session_id="s",
            project_slug="-p",
            subagent_totals=UsageTotals(input_tokens=252),
        )
        messages = _messages(generate_insights(_report(grand, sessions=[session])))
        assert any("Subagents consumed 25%" in m for m in messages)

    def test_peak_hour(self):
        grand = UsageTotals(input_tokens=100, output_tokens=10, cache_read_input_tokens=900)
        messages = _messages(generate_insights(_report(grand, peak_hour=23)))
        assert any("23:00-00:00" in m for m in messages)

    def test_no_peak_hour_no_insight(self):
        grand = UsageTotals(input_tokens=100, output_tokens=10, cache_read_input_tokens=900)
        assert not any("peak" in m for m in _messages(generate_insights(_report(grand))))

    def test_parse_errors_last(self):
        """Parse errors are reported after every other rule."""
        grand = UsageTotals(input_tokens=100, output_tokens=10, cache_read_input_tokens=900)
        insights = generate_insights(_report(grand, parse_errors=3))
        assert insights[-1].message.startswith("3 log line(s)")


class TestUnknownModelInsight:
    """Test unrecognized model reporting."""

    def test_one_insight_per_unknown_model(self):
        """Each unknown model id is reported exactly once."""
        grand = UsageTotals(input_tokens=100, output_tokens=10, cache_read_input_tokens=900)
        models = {
            "foo-bar-9000": UsageTotals(input_tokens=50),
            "claude-sonnet-4-20250514": UsageTotals(input_tokens=50),
            "zeta-1": UsageTotals(input_tokens=10),
        }
        messages = _messages(generate_insights(_report(grand, models=models)))

        unknown = [m for m in messages if "not in the pricing table" in m]
        assert len(unknown) == 2
        assert "'foo-bar-9000'" in unknown[0]
        assert "'zeta-1'" in unknown[1]


class TestFormatting:
    """Test compact token formatting."""

    def test_format_token_count(self):
        assert format_token_count(999) == "999"
        assert format_token_count(1_500) == "1.5K"
        assert format_token_count(2_300_000) == "2.3M"
