"""
Data models for the log storage layer.

Defines decoded log records and the file descriptors they come from.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from token_lens.core.token_counter import TokenUsage


class FileKind(Enum):
    """Distinguishes main session logs from subagent logs."""
    SESSION = "session"    # <slug>/<uuid>.jsonl
    SUBAGENT = "subagent"  # <slug>/<uuid>/subagents/agent-<id>.jsonl


@dataclass(frozen=True)
class ContentBlock:
    """One typed block of message content."""
    type: str
    text: str = ""


Content = Union[str, Tuple[ContentBlock, ...], None]


@dataclass(frozen=True)
class UsageRecord:
    """Immutable record decoded from one JSONL log line.

    Only assistant records carry model and token usage; every record may
    carry message content.
    """
    type: str
    session_id: str = ""
    timestamp: Optional[datetime] = None
    cwd: str = ""
    model: str = ""
    usage: TokenUsage = field(default_factory=TokenUsage)
    content: Content = None
    uuid: str = ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "UsageRecord":
        """Decode a raw JSONL object.

        Args:
            raw: Parsed JSON object for one line

        Returns:
            Decoded record; missing fields fall back to empty values
        """
        message = raw.get("message")
        if not isinstance(message, dict):
            message = {}
        return cls(
            type=_as_str(raw.get("type")),
            session_id=_as_str(raw.get("sessionId")),
            timestamp=parse_timestamp(raw.get("timestamp")),
            cwd=_as_str(raw.get("cwd")),
            model=_as_str(message.get("model")),
            usage=TokenUsage.from_dict(message.get("usage")),
            content=_decode_content(message.get("content")),
            uuid=_as_str(raw.get("uuid")),
        )


@dataclass(frozen=True)
class LogFile:
    """A discovered JSONL file and its classification."""
    path: Path
    kind: FileKind
    project_slug: str
    session_id: str
    agent_id: str = ""  # empty for FileKind.SESSION


@dataclass(frozen=True)
class LogBatch:
    """All records decoded from one log file."""
    log_file: LogFile
    records: Tuple[UsageRecord, ...] = ()
    parse_errors: int = 0


@dataclass(frozen=True)
class StatsCache:
    """Pre-aggregated summary written alongside the session logs."""
    hour_counts: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "StatsCache":
        hour_counts = raw.get("hourCounts")
        if not isinstance(hour_counts, dict):
            hour_counts = {}
        return cls(
            hour_counts={str(k): v for k, v in hour_counts.items() if isinstance(v, int)},
        )


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive timestamps are taken as UTC. Returns None when absent or invalid.
    """
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _decode_content(value: Any) -> Content:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        blocks = []
        for item in value:
            if isinstance(item, dict):
                blocks.append(ContentBlock(
                    type=_as_str(item.get("type")),
                    text=_as_str(item.get("text")),
                ))
        return tuple(blocks)
    return None


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""
