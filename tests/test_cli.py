"""
Tests for the CLI interface.
"""
import json
import os
from unittest.mock import patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from token_lens.cli.main import app, EXIT_CODE_OK, EXIT_CODE_ERROR
from token_lens.core.analysis import analyze_usage
from token_lens.core.metrics import METRIC_DESCRIPTIONS, Metric

from conftest import SESSION_B

runner = CliRunner()


@pytest.fixture
def populated_home(claude_home, assistant, user):
    """A Claude data directory with two sessions."""
    claude_home.write_session([
        user("Add pagination to the orders endpoint using cursor tokens.", "2025-06-09T09:00:00Z"),
        assistant("a1", "2025-06-09T09:00:05Z", input_tokens=200, output_tokens=100, cache_read=2000,
                  text="Here is the paginated endpoint."),
    ])
    claude_home.write_session([
        user("Write a migration for the status column.", "2025-06-10T14:00:00Z", session_id=SESSION_B),
        assistant("b1", "2025-06-10T14:00:05Z", session_id=SESSION_B, model="foo-bar-9000",
                  input_tokens=100, output_tokens=20),
    ], session_id=SESSION_B)
    return claude_home


class TestReportCommand:
    """Test the report command."""

    def test_report_renders_sections(self, populated_home):
        """Test the terminal report."""
        result = runner.invoke(app, ["report", "--claude-dir", str(populated_home.root)])

        assert result.exit_code == EXIT_CODE_OK
        assert "Claude Code Token Usage" in result.output
        assert "By model" in result.output
        assert "Insights" in result.output
        assert "Prompt clarity" in result.output

    def test_report_explains_clarity_metrics(self, populated_home):
        """Each clarity metric row carries its description."""
        with patch("token_lens.cli.main.console", Console(width=300)):
            result = runner.invoke(app, ["report", "--claude-dir", str(populated_home.root)])

        assert result.exit_code == EXIT_CODE_OK
        assert METRIC_DESCRIPTIONS["clarity_score"] in result.output
        for metric in Metric:
            assert METRIC_DESCRIPTIONS[metric.value] in result.output

    def test_report_json(self, populated_home):
        """Test that --json prints a parseable report."""
        result = runner.invoke(app, ["report", "--json", "--claude-dir", str(populated_home.root)])

        assert result.exit_code == EXIT_CODE_OK
        data = json.loads(result.stdout)
        assert data["grand"]["total_tokens"] == 2420
        assert data["clarity"]["session_count"] == 2
        assert any("foo-bar-9000" in i["message"] for i in data["insights"])

    def test_report_project_filter(self, populated_home):
        """Test that a non-matching project filter reports no data."""
        result = runner.invoke(app, [
            "report", "--claude-dir", str(populated_home.root), "--project", "nothing-here"
        ])

        assert result.exit_code == EXIT_CODE_OK
        assert "No token data found" in result.output

    def test_missing_claude_dir(self, tmp_path):
        """Test that a missing data directory fails."""
        result = runner.invoke(app, ["report", "--claude-dir", str(tmp_path / "missing")])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "Claude data directory not found" in result.output

    def test_empty_claude_dir(self, claude_home):
        """Test that a directory without logs is not an error."""
        result = runner.invoke(app, ["report", "--claude-dir", str(claude_home.root)])

        assert result.exit_code == EXIT_CODE_OK
        assert "No token data found" in result.output

    def test_config_supplies_defaults(self, populated_home, tmp_path):
        """Test that config values are used when flags are absent."""
        config_path = tmp_path / "token-lens.yaml"
        config_path.write_text(
            f"claude_dir: {populated_home.root}\n"
            "days: 3\n"
            "pricing:\n"
            "  foo-bar:\n"
            "    input: 1\n    output: 2\n    cache_write: 0\n    cache_read: 0\n",
            encoding="utf-8",
        )

        with patch("token_lens.cli.main.analyze_usage", wraps=analyze_usage) as analyze:
            result = runner.invoke(app, ["report", "--json", "--config", str(config_path)])

        assert result.exit_code == EXIT_CODE_OK
        options = analyze.call_args[0][0]
        assert options.days == 3
        assert analyze.call_args[1]["table"].is_known("foo-bar-9000")

    def test_flags_override_config(self, populated_home, tmp_path):
        """Test that --days wins over the config file."""
        config_path = tmp_path / "token-lens.yaml"
        config_path.write_text(f"claude_dir: {populated_home.root}\ndays: 3\n", encoding="utf-8")

        with patch("token_lens.cli.main.analyze_usage") as analyze:
            analyze.return_value.to_dict.return_value = {}
            result = runner.invoke(app, ["report", "--json", "--days", "0", "--config", str(config_path)])

        assert result.exit_code == EXIT_CODE_OK
        assert analyze.call_args[0][0].days == 0

    def test_invalid_config(self, tmp_path):
        """Test that configuration errors exit with an error."""
        config_path = tmp_path / "bad.yaml"
        config_path.write_text("budget: 100\n", encoding="utf-8")

        result = runner.invoke(app, ["report", "--config", str(config_path)])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "Error:" in result.output
        assert "Unknown configuration keys" in result.output

    def test_missing_config_file(self, tmp_path):
        result = runner.invoke(app, ["report", "--config", os.path.join(str(tmp_path), "none.yaml")])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "Config file not found" in result.output

    def test_negative_days_rejected(self, populated_home):
        """Test that typer validates the day window."""
        result = runner.invoke(app, ["report", "--days", "-1", "--claude-dir", str(populated_home.root)])
        assert result.exit_code != EXIT_CODE_OK


class TestPricingCommand:
    """Test the pricing command."""

    def test_known_model(self):
        """Test that a versioned id shows its family rates."""
        result = runner.invoke(app, ["pricing", "claude-sonnet-4-5-20250929"])

        assert result.exit_code == EXIT_CODE_OK
        assert "claude-sonnet-4" in result.output
        assert "$15.00" in result.output

    def test_unknown_model(self):
        """Test that unknown models are reported, not rejected."""
        result = runner.invoke(app, ["pricing", "foo-bar-9000"])

        assert result.exit_code == EXIT_CODE_OK
        assert "unknown" in result.output


def test_no_command_shows_hint():
    """Test the bare invocation."""
    result = runner.invoke(app, [])
    assert result.exit_code == EXIT_CODE_OK
    assert "--help" in result.output
