"""Prompt templates for the summarization backends."""
from __future__ import annotations

from typing import List, Mapping

OLLAMA_PROMPT_TEMPLATE = (
    "Summarize the following text in exactly {max_length} sentences. "
    "Be concise and capture the key points:\n\n{text}\n\nSummary:"
)

OPENAI_SYSTEM_TEMPLATE = (
    "You are a helpful assistant that summarizes text in exactly {max_length} sentences."
)

OPENAI_USER_TEMPLATE = "Summarize this text: {text}"

MOCK_SUMMARY_TEMPLATE = (
    "This is a {max_length}-sentence summary of {word_count} words. "
    "The text discusses various topics and concepts. "
    "Key points have been identified and condensed for clarity."
)

CONNECTION_TEST_TEXT = "This is a test message to verify the AI service is working correctly."


def build_ollama_prompt(text: str, max_length: int) -> str:
    return OLLAMA_PROMPT_TEMPLATE.format(max_length=max_length, text=text)


def build_openai_messages(text: str, max_length: int) -> List[Mapping[str, str]]:
    return [
        {"role": "system", "content": OPENAI_SYSTEM_TEMPLATE.format(max_length=max_length)},
        {"role": "user", "content": OPENAI_USER_TEMPLATE.format(text=text)},
    ]
