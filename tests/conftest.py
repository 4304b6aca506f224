"""
Shared fixtures for building Claude data directories and log records.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import pytest

SESSION_A = "11111111-1111-4111-8111-111111111111"
SESSION_B = "22222222-2222-4222-8222-222222222222"
SESSION_C = "33333333-3333-4333-8333-333333333333"

SLUG = "-Users-dev-webapp"
CWD = "/Users/dev/webapp"
SONNET = "claude-sonnet-4-5-20250929"


def assistant_record(
    uuid: str,
    timestamp: str,
    model: str = SONNET,
    input_tokens: int = 0,
    output_tokens: int = 0,
    cache_write: int = 0,
    cache_read: int = 0,
    session_id: str = SESSION_A,
    cwd: str = CWD,
    text: str = "",
) -> Dict[str, Any]:
    """Raw JSONL object for an assistant message."""
    message = {
        "model": model,
        "usage": {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "cache_creation_input_tokens": cache_write,
            "cache_read_input_tokens": cache_read,
        },
    }
    if text:
        message["content"] = [{"type": "text", "text": text}]
    return {
        "type": "assistant",
        "uuid": uuid,
        "timestamp": timestamp,
        "sessionId": session_id,
        "cwd": cwd,
        "message": message,
    }


def user_record(
    text: str,
    timestamp: str,
    session_id: str = SESSION_A,
    cwd: str = CWD,
    uuid: str = "",
) -> Dict[str, Any]:
    """Raw JSONL object for a typed user prompt."""
    return {
        "type": "user",
        "uuid": uuid,
        "timestamp": timestamp,
        "sessionId": session_id,
        "cwd": cwd,
        "message": {"role": "user", "content": text},
    }


def tool_result_record(timestamp: str, session_id: str = SESSION_A) -> Dict[str, Any]:
    """Raw JSONL object for a tool result sent back as a user message."""
    return {
        "type": "user",
        "timestamp": timestamp,
        "sessionId": session_id,
        "message": {"role": "user", "content": [{"type": "tool_result", "content": "ok"}]},
    }


class ClaudeHome:
    """Writes log files into a temporary Claude data directory."""

    def __init__(self, root: Path):
        self.root = root
        self.projects = root / "projects"
        self.projects.mkdir(parents=True)

    def write_session(
        self,
        records: Iterable[Dict[str, Any]],
        session_id: str = SESSION_A,
        slug: str = SLUG,
        extra_lines: Iterable[str] = (),
    ) -> Path:
        path = self.projects / slug / f"{session_id}.jsonl"
        self._write(path, records, extra_lines)
        return path

    def write_subagent(
        self,
        records: Iterable[Dict[str, Any]],
        agent_id: str = "a1b2c3",
        session_id: str = SESSION_A,
        slug: str = SLUG,
    ) -> Path:
        path = self.projects / slug / session_id / "subagents" / f"agent-{agent_id}.jsonl"
        self._write(path, records, ())
        return path

    def write_stats_cache(self, data: Optional[Dict[str, Any]] = None, raw: str = "") -> Path:
        path = self.root / "stats-cache.json"
        path.write_text(raw or json.dumps(data or {}), encoding="utf-8")
        return path

    @staticmethod
    def _write(path: Path, records: Iterable[Dict[str, Any]], extra_lines: Iterable[str]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record) for record in records]
        lines.extend(extra_lines)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")


@pytest.fixture
def claude_home(tmp_path):
    """Empty Claude data directory with a projects folder."""
    return ClaudeHome(tmp_path / ".claude")


@pytest.fixture
def assistant():
    return assistant_record


@pytest.fixture
def user():
    return user_record


@pytest.fixture
def tool_result():
    return tool_result_record
