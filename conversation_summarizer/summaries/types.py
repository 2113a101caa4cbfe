"""Dataclasses shared across the summaries feature."""
from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

DEFAULT_SOURCE_LABEL = "Manual Selection"

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_RANDOM_LENGTH = 9


def count_words(text: str) -> int:
    """Return the number of whitespace-delimited tokens in ``text``."""
    return len(text.split())


def utc_now() -> datetime:
    """Current UTC time truncated to whole milliseconds."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def generate_summary_id(rng: Optional[random.Random] = None) -> str:
    """Millisecond timestamp followed by a short base-36 random suffix."""
    chooser = rng or random
    suffix = "".join(chooser.choice(_ID_ALPHABET) for _ in range(_ID_RANDOM_LENGTH))
    return f"{int(time.time() * 1000)}{suffix}"


@dataclass(frozen=True)
class SummaryRecord:
    """One stored summary and the text it was produced from."""

    id: str
    original_text: str
    summary_text: str
    created_at: datetime
    word_count: int
    source: Optional[str] = None

    @classmethod
    def create(
        cls,
        record_id: str,
        original_text: str,
        summary_text: str,
        *,
        source: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> "SummaryRecord":
        trimmed = original_text.strip()
        return cls(
            id=record_id,
            original_text=trimmed,
            summary_text=summary_text.strip(),
            created_at=created_at or utc_now(),
            word_count=count_words(trimmed),
            source=source,
        )

    @property
    def source_label(self) -> str:
        return self.source or DEFAULT_SOURCE_LABEL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "original_text": self.original_text,
            "summary_text": self.summary_text,
            "created_at": self.created_at.isoformat(timespec="milliseconds"),
            "word_count": self.word_count,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SummaryRecord":
        """Rebuild a record from its persisted form.

        The word count is recomputed from the original text rather than
        trusted from the document.
        """
        record_id = data.get("id")
        original_text = data.get("original_text")
        summary_text = data.get("summary_text")
        created_raw = data.get("created_at")
        if not isinstance(record_id, str) or not record_id:
            raise ValueError("summary entry is missing an id")
        if not isinstance(original_text, str) or not isinstance(summary_text, str):
            raise ValueError(f"summary entry {record_id} is missing its text fields")
        if not isinstance(created_raw, str):
            raise ValueError(f"summary entry {record_id} is missing created_at")

        created_at = datetime.fromisoformat(created_raw)
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        source = data.get("source")
        return cls.create(
            record_id,
            original_text,
            summary_text,
            source=source if isinstance(source, str) and source else None,
            created_at=created_at,
        )


@dataclass(frozen=True)
class ConnectionStatus:
    """Outcome of a diagnostic round trip through the configured provider."""

    success: bool
    message: str
