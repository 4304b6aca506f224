"""
Unit tests for the log storage layer.

Tests file discovery, JSONL decoding, and the stats cache.
"""

from datetime import datetime, timezone

from token_lens.storage.models import ContentBlock, FileKind, StatsCache, UsageRecord, parse_timestamp
from token_lens.storage.repository import (
    SessionLogRepository,
    classify_path,
    decode_lines,
    slug_to_path,
)

from conftest import SESSION_A, SESSION_B, SLUG


class TestDiscovery:
    """Test discovery and classification of log files."""

    def test_sessions_and_subagents_classified(self, claude_home, assistant):
        """Main logs and subagent logs are both discovered."""
        record = assistant("u1", "2025-06-01T10:00:00Z", input_tokens=10)
        claude_home.write_session([record])
        claude_home.write_subagent([record], agent_id="beef01")

        files = SessionLogRepository(str(claude_home.root)).discover_files()

        by_kind = {f.kind: f for f in files}
        assert len(files) == 2
        session, subagent = by_kind[FileKind.SESSION], by_kind[FileKind.SUBAGENT]
        assert session.session_id == SESSION_A
        assert session.project_slug == SLUG
        assert subagent.session_id == SESSION_A
        assert subagent.agent_id == "agent-beef01"

    def test_unrecognized_files_ignored(self, claude_home):
        """Files outside the two layouts are skipped."""
        stray = claude_home.projects / SLUG / "notes.jsonl"
        stray.parent.mkdir(parents=True)
        stray.write_text("{}\n", encoding="utf-8")

        assert SessionLogRepository(str(claude_home.root)).discover_files() == []

    def test_missing_projects_dir(self, tmp_path):
        """A Claude dir without projects yields no files."""
        repository = SessionLogRepository(str(tmp_path))
        assert repository.exists()
        assert repository.discover_files() == []

    def test_missing_claude_dir(self, tmp_path):
        """exists() reports a missing data directory."""
        assert not SessionLogRepository(str(tmp_path / "nope")).exists()

    def test_classify_path_rejects_non_uuid(self, tmp_path):
        """Session file names must be UUIDs."""
        assert classify_path(tmp_path, tmp_path / SLUG / "session.jsonl") is None
        assert classify_path(tmp_path, tmp_path / SLUG / f"{SESSION_B}.jsonl").kind == FileKind.SESSION


class TestDecoding:
    """Test JSONL decoding and parse error accounting."""

    def test_malformed_lines_counted(self, claude_home, assistant):
        """Bad lines are skipped and tallied, good lines survive."""
        good = assistant("u1", "2025-06-01T10:00:00Z", input_tokens=10)
        claude_home.write_session([good], extra_lines=['{"type": "assistant", "trunc', "[1, 2]", ""])
        repository = SessionLogRepository(str(claude_home.root))

        batches = repository.read_batches()

        assert len(batches) == 1
        assert len(batches[0].records) == 1
        assert batches[0].parse_errors == 2

    def test_decode_lines_skips_blank(self):
        """Blank lines are neither records nor errors."""
        records, errors = decode_lines(["", "   ", '{"type": "user"}'])
        assert len(records) == 1
        assert errors == 0

    def test_record_fields(self, assistant):
        """Verify the JSONL fields each record carries."""
        raw = assistant("u1", "2025-06-01T10:00:00.123Z", input_tokens=5, output_tokens=7, text="Hello")
        record = UsageRecord.from_dict(raw)

        assert record.type == "assistant"
        assert record.session_id == SESSION_A
        assert record.model == "claude-sonnet-4-5-20250929"
        assert record.usage.input_tokens == 5
        assert record.usage.output_tokens == 7
        assert record.content == (ContentBlock(type="text", text="Hello"),)
        assert record.timestamp.tzinfo is not None

    def test_record_without_message(self):
        """Records missing a message decode with empty values."""
        record = UsageRecord.from_dict({"type": "summary"})
        assert record.model == ""
        assert record.usage.is_zero
        assert record.content is None


class TestTimestamps:
    """Test timestamp parsing."""

    def test_zulu_suffix(self):
        """Verify the Z suffix is understood as UTC."""
        assert parse_timestamp("2025-06-01T10:00:00Z") == datetime(2025, 6, 1, 10, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self):
        """Verify offsets are normalized to UTC."""
        parsed = parse_timestamp("2025-06-01T12:00:00+02:00")
        assert parsed == datetime(2025, 6, 1, 10, tzinfo=timezone.utc)

    def test_invalid(self):
        """Invalid or missing timestamps parse to None."""
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None
        assert parse_timestamp(1717236000) is None


class TestStatsCache:
    """Test stats cache reading."""

    def test_hour_counts_read(self, claude_home):
        """Only hourCounts is decoded; other summary fields are ignored."""
        claude_home.write_stats_cache({"hourCounts": {"9": 4, "14": 11}, "totalSessions": 3})
        cache = SessionLogRepository(str(claude_home.root)).read_stats_cache()

        assert cache.hour_counts == {"9": 4, "14": 11}
        assert cache == StatsCache(hour_counts={"9": 4, "14": 11})

    def test_missing_cache(self, claude_home):
        """No cache file means no cache."""
        assert SessionLogRepository(str(claude_home.root)).read_stats_cache() is None

    def test_malformed_cache(self, claude_home):
        """A corrupt cache is ignored rather than raised."""
        claude_home.write_stats_cache(raw="{not json")
        assert SessionLogRepository(str(claude_home.root)).read_stats_cache() is None

    def test_non_object_cache(self, claude_home):
        """A JSON array is not a cache."""
        claude_home.write_stats_cache(raw="[1, 2, 3]")
        assert SessionLogRepository(str(claude_home.root)).read_stats_cache() is None


class TestSlugToPath:
    """Test slug path reconstruction."""

    def test_leading_dash_becomes_root(self):
        """The leading dash stands for the root separator."""
        assert slug_to_path("-Users-me-app") == "/Users-me-app"

    def test_empty(self):
        assert slug_to_path("") == ""
