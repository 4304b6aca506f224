"""
Token counting and usage tracking.

Holds the raw four-way token counts reported for a single assistant message.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation.

    Contains exact token counts as logged by the API, without estimation
    or model-specific logic.
    """
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        """Total tokens used across all four token kinds."""
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_input_tokens
            + self.cache_read_input_tokens
        )

    @property
    def is_zero(self) -> bool:
        """True for streaming prefix acknowledgments that carry no usage."""
        return self.total_tokens == 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TokenUsage":
        """Build usage from a ``message.usage`` mapping, tolerating gaps."""
        if not isinstance(data, dict):
            return cls()
        return cls(
            input_tokens=_as_count(data.get("input_tokens")),
            output_tokens=_as_count(data.get("output_tokens")),
            cache_creation_input_tokens=_as_count(data.get("cache_creation_input_tokens")),
            cache_read_input_tokens=_as_count(data.get("cache_read_input_tokens")),
        )


def _as_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(int(value), 0)
