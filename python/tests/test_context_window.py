"""Tests for token estimation, context compaction and Anthropic beta headers."""

from datetime import UTC, datetime

from vid0.constants import ANTHROPIC_BETA_HEADERS
from vid0.services.context_window import (
    SUMMARY_PREFIX,
    StructuredNote,
    compact_context,
    create_context_management_headers,
    estimate_context_tokens,
    estimate_tokens,
    format_note,
    should_compact,
)


def _conversation(count: int, size: int = 400) -> list[dict]:
    roles = ("user", "assistant")
    return [{"role": roles[i % 2], "content": "x" * size} for i in range(count)]


class TestEstimateTokens:
    def test_empty_text(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens(None) == 0

    def test_rounds_up(self):
        assert estimate_tokens("abc") == 1
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_breakdown_by_role(self):
        estimate = estimate_context_tokens(
            [
                {"role": "system", "content": "x" * 8},
                {"role": "user", "content": "x" * 4},
                {"role": "assistant", "content": "x" * 12},
                {"role": "data", "content": "x" * 4},
            ]
        )
        assert estimate.total == 7
        assert estimate.by_role == {"system": 2, "user": 1, "assistant": 3, "tool": 0}

    def test_structured_content_is_serialized(self):
        parts = [{"type": "text", "text": "hi"}]
        estimate = estimate_context_tokens([{"role": "user", "content": parts}])
        assert estimate.total == estimate_tokens('[{"type":"text","text":"hi"}]')


class TestCompaction:
    def test_under_threshold_is_unchanged(self):
        messages = _conversation(4)
        result = compact_context(messages, threshold=1000)
        assert result.compacted is False
        assert result.messages is messages
        assert result.tokens_saved == 0

    def test_exactly_at_threshold_is_unchanged(self):
        messages = _conversation(2, size=400)  # 200 tokens
        assert should_compact(messages, threshold=200) is False
        assert compact_context(messages, threshold=200).compacted is False

    def test_over_threshold_keeps_recent_messages(self):
        messages = _conversation(20)
        result = compact_context(messages, threshold=100, preserve_recent=4)

        assert result.compacted is True
        assert result.original_count == 20
        assert result.final_count == 5
        assert result.messages[0]["role"] == "system"
        assert result.messages[0]["content"].startswith(SUMMARY_PREFIX)
        assert result.messages[1:] == messages[-4:]
        assert result.tokens_saved > 0
        assert "16 messages" in result.summary

    def test_summary_counts_roles(self):
        result = compact_context(_conversation(6), threshold=10, preserve_recent=2)
        assert "User messages: 2" in result.summary
        assert "Assistant responses: 2" in result.summary

    def test_nothing_older_than_window_is_unchanged(self):
        messages = _conversation(3, size=4000)
        result = compact_context(messages, threshold=10, preserve_recent=10)
        assert result.compacted is False
        assert result.messages is messages


class TestNotes:
    def test_format_note(self):
        note = StructuredNote(
            timestamp=datetime(2026, 5, 1, 12, 0, tzinfo=UTC),
            category="decision",
            content="Ship the shorter intro",
        )
        assert format_note(note) == "- ✅ **2026-05-01** [decision]: Ship the shorter intro"


class TestBetaHeaders:
    def test_no_features_no_header(self):
        assert create_context_management_headers() == {}

    def test_single_feature(self):
        headers = create_context_management_headers(context_management=True)
        assert headers == {"anthropic-beta": ANTHROPIC_BETA_HEADERS["context_management"]}

    def test_features_joined_in_order(self):
        headers = create_context_management_headers(
            context_management=True, token_efficient=True, extended_context=True
        )
        assert headers["anthropic-beta"] == ",".join(
            [
                ANTHROPIC_BETA_HEADERS["context_management"],
                ANTHROPIC_BETA_HEADERS["token_efficient"],
                ANTHROPIC_BETA_HEADERS["extended_context"],
            ]
        )
