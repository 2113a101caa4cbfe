"""Tests for summary normalization and the offline placeholder."""
import pytest

from conversation_summarizer.summaries import clean_summary, mock_summary
from conversation_summarizer.summaries.types import count_words

SAMPLES = [
    "",
    "   ",
    "Summary: The fox jumps",
    "summary:   The fox jumps.",
    "Here's a summary: Cats sleep a lot",
    "HERE'S A SUMMARY:\n\nCats sleep.",
    "The text discusses: tides and moons!",
    "This text is about: nothing?",
    "Summary: Summary: nested preambles",
    "  Summary: leading whitespace before the preamble",
    "Line one\n\n\nLine two\n   Line three",
    "Summary:",
    "Summary:   ",
    "Already tidy.",
    "Ends with a question?",
    "Ends with ellipsis...",
    "Summary of the meeting: budget approved",
    "\tTabs\tand\tnewlines\n",
]


class TestCleanSummary:
    """Tests for clean_summary."""

    def test_strips_summary_prefix(self):
        assert clean_summary("Summary: The fox jumps") == "The fox jumps."

    def test_strips_prefix_case_insensitively(self):
        assert clean_summary("here's a summary: Cats sleep a lot") == "Cats sleep a lot."

    @pytest.mark.parametrize(
        "preamble",
        ["Summary:", "Here's a summary:", "The text discusses:", "This text is about:"],
    )
    def test_strips_each_known_preamble(self, preamble):
        assert clean_summary(f"{preamble} Tides follow the moon.") == "Tides follow the moon."

    def test_keeps_non_preamble_text_starting_with_summary(self):
        assert clean_summary("Summary of the meeting: budget approved") == (
            "Summary of the meeting: budget approved."
        )

    def test_collapses_blank_lines_and_spaces(self):
        assert clean_summary("Line one\n\n\nLine two\n   Line three") == "Line one Line two Line three."

    def test_keeps_existing_terminal_punctuation(self):
        assert clean_summary("Is it done?") == "Is it done?"
        assert clean_summary("It is done!") == "It is done!"
        assert clean_summary("It is done.") == "It is done."

    def test_empty_stays_empty(self):
        assert clean_summary("") == ""
        assert clean_summary("Summary:   ") == ""

    @pytest.mark.parametrize("raw", SAMPLES)
    def test_idempotent(self, raw):
        once = clean_summary(raw)
        assert clean_summary(once) == once

    @pytest.mark.parametrize("raw", SAMPLES)
    def test_non_empty_output_ends_in_terminal_punctuation(self, raw):
        cleaned = clean_summary(raw)
        if cleaned:
            assert cleaned[-1] in ".!?"


class TestMockSummary:
    """Tests for the offline placeholder summary."""

    def test_embeds_length_and_word_count(self):
        text = "one two three four five six seven eight nine ten"
        summary = mock_summary(text, 3)
        assert "3" in summary
        assert "10" in summary
        assert summary.startswith("This is a 3-sentence summary of 10 words.")

    def test_is_deterministic(self):
        assert mock_summary("a b c", 2) == mock_summary("a b c", 2)

    def test_counts_words_ignoring_surrounding_whitespace(self):
        assert "of 3 words" in mock_summary("  a bb   ccc \n", 1)


class TestCountWords:
    def test_simple(self):
        assert count_words("a bb ccc") == 3

    def test_ignores_leading_and_trailing_whitespace(self):
        assert count_words("   a bb ccc\n\t") == 3

    def test_empty(self):
        assert count_words("   ") == 0
