"""
Unit tests for lexical clarity signals.

Tests correction classification, clarification detection, and text extraction.
"""

import pytest

from token_lens.core.signals import (
    CORRECTION_PREVIEW_CHARS,
    CorrectionType,
    classify_correction,
    extract_text,
    has_clarification_signal,
    is_real_user_message,
)
from token_lens.storage.models import ContentBlock, UsageRecord


class TestCorrectionClassification:
    """Test follow-up message classification."""

    def test_scope_correction(self):
        """Walk-back plus scope language is a scope correction."""
        text = "No, only change the parser module and leave the tests alone"
        assert classify_correction(text) == CorrectionType.SCOPE

    def test_format_correction(self):
        """Walk-back plus format language is a format correction."""
        text = "Actually, that is too long. Just the code please"
        assert classify_correction(text) == CorrectionType.FORMAT

    def test_scope_wins_over_format(self):
        """Scope is checked before format."""
        text = "No, don't touch other files and keep it shorter"
        assert classify_correction(text) == CorrectionType.SCOPE

    def test_intent_without_walk_back(self):
        """Intent mismatch needs no walk-back phrase."""
        assert classify_correction("Hmm, I meant the billing page") == CorrectionType.INTENT

    def test_bare_walk_back_falls_into_intent(self):
        """A walk-back with no sub-type language is an intent correction."""
        assert classify_correction("Wait, try again from the top") == CorrectionType.INTENT

    def test_case_insensitive(self):
        assert classify_correction("ACTUALLY, ONLY CHANGE the router") == CorrectionType.SCOPE

    @pytest.mark.parametrize("text", [
        "Great, now add tests for the new endpoint",
        "Looks good. Please also update the README",
        "",
    ])
    def test_clean_messages(self, text):
        """Ordinary follow-ups are not corrections."""
        assert classify_correction(text) == CorrectionType.NONE

    def test_only_preview_inspected(self):
        """Walk-back language past the preview window is ignored."""
        text = "Please continue with the plan. " * 10 + "actually, only change the parser"
        assert len(text) > CORRECTION_PREVIEW_CHARS
        assert classify_correction(text) == CorrectionType.NONE


class TestClarification:
    """Test clarifying question detection."""

    def test_clarifying_reply(self):
        """A request to specify counts as clarification."""
        assert has_clarification_signal("Before I start, could you clarify which database you use?")

    def test_plain_reply(self):
        """A direct answer is not a clarification."""
        assert not has_clarification_signal("Here is the updated function with error handling.")


class TestTextExtraction:
    """Test message content handling."""

    def test_string_content(self):
        assert extract_text("hello") == "hello"

    def test_only_text_blocks_joined(self):
        """Tool blocks contribute no text."""
        content = (
            ContentBlock(type="text", text="first"),
            ContentBlock(type="tool_use"),
            ContentBlock(type="text", text="second"),
        )
        assert extract_text(content) == "first\nsecond"

    def test_empty_content(self):
        assert extract_text(None) == ""
        assert extract_text(()) == ""

    def test_real_user_message(self):
        """Typed prompts are real user messages."""
        record = UsageRecord(type="user", content="Fix the bug")
        assert is_real_user_message(record)

    def test_tool_result_not_user_message(self):
        """Tool results travel as user records but are not prompts."""
        record = UsageRecord(type="user", content=(ContentBlock(type="tool_result"),))
        assert not is_real_user_message(record)

    def test_assistant_not_user_message(self):
        assert not is_real_user_message(UsageRecord(type="assistant", content="Done"))
