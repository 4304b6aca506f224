"""
Repository pattern for log access.

Discovers session log files under the Claude data directory and decodes
them into immutable records. This is the only module that touches the
filesystem; everything under ``token_lens.core`` is pure computation.
"""

import json
import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional

from .models import FileKind, LogBatch, LogFile, StatsCache, UsageRecord

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
AGENT_FILE_PATTERN = re.compile(r"^agent-[0-9a-f]+\.jsonl$")

DEFAULT_CLAUDE_DIR = "~/.claude"


class SessionLogRepository:
    """Repository for discovering and reading session logs.

    Provides a read-only view over ``<claude_dir>/projects``; logs are
    append-only and never modified here.
    """

    def __init__(self, claude_dir: str = DEFAULT_CLAUDE_DIR):
        """Initialize the repository with a Claude data directory.

        Args:
            claude_dir: Path to the Claude data directory (``~`` expanded)
        """
        self.claude_dir = Path(claude_dir).expanduser()

    @property
    def projects_dir(self) -> Path:
        return self.claude_dir / "projects"

    def exists(self) -> bool:
        """True when the Claude data directory is present."""
        return self.claude_dir.is_dir()

    def discover_files(self) -> List[LogFile]:
        """Find and classify every session and subagent log.

        Returns:
            Classified log files sorted by path; empty when the projects
            directory does not exist
        """
        if not self.projects_dir.is_dir():
            logger.debug("No projects directory at %s", self.projects_dir)
            return []

        files = []
        for path in sorted(self.projects_dir.rglob("*.jsonl")):
            log_file = classify_path(self.projects_dir, path)
            if log_file is None:
                logger.debug("Skipping unrecognized log file %s", path)
                continue
            files.append(log_file)

        logger.debug("Discovered %d log files under %s", len(files), self.projects_dir)
        return files

    def read_batch(self, log_file: LogFile) -> LogBatch:
        """Decode every record of one log file.

        Malformed lines are skipped and counted; an unreadable file counts
        as a single parse error.

        Args:
            log_file: File to decode

        Returns:
            LogBatch with records in file order and the parse error count
        """
        try:
            with open(log_file.path, "r", encoding="utf-8", errors="replace") as f:
                records, errors = decode_lines(f)
        except OSError as e:
            logger.warning("Could not read %s: %s", log_file.path, e)
            return LogBatch(log_file=log_file, parse_errors=1)

        if errors:
            logger.debug("%d malformed line(s) in %s", errors, log_file.path)
        return LogBatch(log_file=log_file, records=tuple(records), parse_errors=errors)

    def read_batches(self, files: Optional[Iterable[LogFile]] = None) -> List[LogBatch]:
        """Decode a set of files, discovering them first if none are given."""
        if files is None:
            files = self.discover_files()
        return [self.read_batch(log_file) for log_file in files]

    def read_stats_cache(self) -> Optional[StatsCache]:
        """Read ``stats-cache.json``.

        Returns:
            Parsed cache, or None if the file is missing or malformed
        """
        path = self.claude_dir / "stats-cache.json"
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable stats cache %s: %s", path, e)
            return None

        if not isinstance(raw, dict):
            logger.debug("Ignoring stats cache %s: not a JSON object", path)
            return None
        return StatsCache.from_dict(raw)


def decode_lines(lines: Iterable[str]):
    """Decode JSONL lines into records.

    Returns:
        Tuple of (records, parse_errors)
    """
    records = []
    errors = 0
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            raw = json.loads(line)
        except ValueError:
            errors += 1
            continue
        if not isinstance(raw, dict):
            errors += 1
            continue
        records.append(UsageRecord.from_dict(raw))
    return records, errors


def classify_path(projects_dir: Path, path: Path) -> Optional[LogFile]:
    """Classify a JSONL path relative to the projects directory.

    ``<slug>/<uuid>.jsonl`` is a main session log;
    ``<slug>/<uuid>/subagents/agent-<hex>.jsonl`` is a subagent log.
    Anything else returns None.
    """
    try:
        parts = path.relative_to(projects_dir).parts
    except ValueError:
        return None

    if len(parts) == 2:
        session_id = parts[1][:-len(".jsonl")]
        if UUID_PATTERN.match(session_id):
            return LogFile(
                path=path,
                kind=FileKind.SESSION,
                project_slug=parts[0],
                session_id=session_id,
            )
    elif len(parts) == 4 and parts[2] == "subagents" and AGENT_FILE_PATTERN.match(parts[3]):
        return LogFile(
            path=path,
            kind=FileKind.SUBAGENT,
            project_slug=parts[0],
            session_id=parts[1],
            agent_id=parts[3][:-len(".jsonl")],
        )
    return None


def slug_to_path(slug: str) -> str:
    """Best-effort path for a project slug such as ``-Users-me-app``.

    Strips the leading separator placeholder and treats the rest as an
    absolute path. Prefer a working directory from the records when one
    is available.
    """
    if not slug:
        return ""
    return "/" + slug[1:] if slug.startswith("-") else "/" + slug
