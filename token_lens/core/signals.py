"""
Lexical clarity signals.

Classifies user follow-ups as corrections (scope, format or intent) and
first assistant replies as clarifying questions using curated phrase lists.
These are heuristics over the text, not semantic analysis.
"""

from enum import Enum
from typing import Iterable

from token_lens.storage.models import Content, UsageRecord

# Only the opening of a follow-up is inspected for walk-back language
CORRECTION_PREVIEW_CHARS = 200


class CorrectionType(Enum):
    """Kinds of correction a follow-up message can express."""
    SCOPE = "scope"    # restricts which files or interfaces change
    FORMAT = "format"  # restricts output medium, length or verbosity
    INTENT = "intent"  # the ask was misunderstood
    NONE = "none"


# Typed corrections in reporting order
CORRECTION_TYPES = (CorrectionType.SCOPE, CorrectionType.FORMAT, CorrectionType.INTENT)

WALK_BACK_PHRASES = (
    "no,", "no.", "no!", "actually", "wait,", "wait.",
    "that's not", "thats not", "not quite", "not right",
    "wrong,", "wrong.", "instead,", "instead.",
    "nevermind", "never mind", "scratch that", "forget that",
    "undo", "revert", "roll back", "go back", "try again", "start over",
    "don't do that", "do not do that", "stop,",
)

SCOPE_PHRASES = (
    "only change", "only modify", "only touch", "only edit", "only update",
    "don't touch", "do not touch", "don't modify", "do not modify",
    "don't change", "do not change", "leave the", "leave it", "leave that",
    "other files", "that file", "this file only", "just this file",
    "just the file", "just that function", "the interface", "the signature",
    "public api", "out of scope", "too many files", "unrelated",
    "keep the rest", "rest of the code",
)

FORMAT_PHRASES = (
    "too long", "too verbose", "too wordy", "too much text", "shorter",
    "more concise", "be concise", "briefly", "no explanation",
    "without explanation", "just the code", "only the code", "code only",
    "as a table", "in a table", "as a list", "bullet", "as json", "in json",
    "markdown", "prose", "one line", "a single line", "output format",
    "the format", "formatting", "as a snippet", "as code",
)

INTENT_PHRASES = (
    "not what i", "i meant", "what i meant", "what i want is",
    "you misunderstood", "misunderstood", "misread", "i was asking",
    "my question was", "i asked for", "i asked you", "wrong thing",
    "let me rephrase", "to clarify", "that isn't what", "that is not what",
)

CLARIFICATION_PHRASES = (
    "could you clarify", "can you clarify", "what do you mean",
    "do you want", "which do you", "can you specify", "could you specify",
    "are you referring", "could you provide more", "can you provide more",
    "what type of", "what kind of", "can you elaborate", "could you elaborate",
    "what exactly", "do you mean", "which one", "before i proceed",
    "would you like me to",
)


def _contains_any(text: str, phrases: Iterable[str]) -> bool:
    return any(phrase in text for phrase in phrases)


def classify_correction(text: str) -> CorrectionType:
    """Classify a follow-up user message.

    A walk-back phrase marks a correction attempt; scope language then
    makes it SCOPE, otherwise format language makes it FORMAT. Intent
    mismatch language is INTENT with or without a walk-back. A walk-back
    matching no sub-type falls into INTENT as the catch-all bucket.

    Callers must not pass a session's first user message: it cannot walk
    anything back.

    Args:
        text: Extracted message text

    Returns:
        The correction type, or CorrectionType.NONE
    """
    preview = text[:CORRECTION_PREVIEW_CHARS].lower()
    walk_back = _contains_any(preview, WALK_BACK_PHRASES)

    if walk_back and _contains_any(preview, SCOPE_PHRASES):
        return CorrectionType.SCOPE
    if walk_back and _contains_any(preview, FORMAT_PHRASES):
        return CorrectionType.FORMAT
    if _contains_any(preview, INTENT_PHRASES):
        return CorrectionType.INTENT
    if walk_back:
        return CorrectionType.INTENT
    return CorrectionType.NONE


def has_clarification_signal(text: str) -> bool:
    """True when an assistant reply asks the user to disambiguate."""
    return _contains_any(text.lower(), CLARIFICATION_PHRASES)


def extract_text(content: Content) -> str:
    """Plain text of message content.

    Strings pass through; for block lists only ``text`` blocks contribute,
    joined by newlines. Tool use and tool result blocks are excluded.
    """
    if isinstance(content, str):
        return content
    if not content:
        return ""
    return "\n".join(block.text for block in content if block.type == "text" and block.text)


def is_real_user_message(record: UsageRecord) -> bool:
    """True for genuine user prompts rather than tool result payloads."""
    if record.type != "user":
        return False
    content = record.content
    if isinstance(content, str):
        return bool(content)
    if not content:
        return False
    return content[0].type != "tool_result"
