"""Renderers for exporting the summary collection."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

from .storage import dump_summaries
from .types import SummaryRecord

EXPORT_TITLE = "AI Conversation Summaries"
NOTHING_TO_EXPORT = "No summaries to export"


class ExportFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "md"
    TEXT = "txt"

    @classmethod
    def for_path(cls, path: Path) -> "ExportFormat":
        """Pick a format from the file extension; unknown extensions get plain text."""
        suffix = Path(path).suffix.lower()
        if suffix == ".json":
            return cls.JSON
        if suffix in {".md", ".markdown"}:
            return cls.MARKDOWN
        return cls.TEXT


@dataclass(frozen=True)
class ExportResult:
    written: bool
    message: str
    path: Optional[Path] = None
    format: Optional[ExportFormat] = None
    count: int = 0


def format_local_time(value: datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def render(
    records: Sequence[SummaryRecord],
    fmt: ExportFormat,
    *,
    generated_at: Optional[datetime] = None,
) -> str:
    if fmt is ExportFormat.JSON:
        return dump_summaries(records) + "\n"
    generated_at = generated_at or datetime.now().astimezone()
    if fmt is ExportFormat.MARKDOWN:
        return render_markdown(records, generated_at)
    return render_text(records, generated_at)


def render_markdown(records: Sequence[SummaryRecord], generated_at: datetime) -> str:
    lines: List[str] = [
        f"# {EXPORT_TITLE}",
        "",
        f"Generated on: {format_local_time(generated_at)}",
        "",
        f"Total summaries: {len(records)}",
        "",
        "---",
        "",
    ]
    for index, record in enumerate(records, start=1):
        lines.extend(
            [
                f"## Summary {index}",
                "",
                f"**Created:** {format_local_time(record.created_at)}",
                f"**Word Count:** {record.word_count}",
                f"**Source:** {record.source_label}",
                "",
                "### Summary",
                record.summary_text,
                "",
                "### Original Text",
                record.original_text,
                "",
                "---",
                "",
            ]
        )
    return "\n".join(lines)


def render_text(records: Sequence[SummaryRecord], generated_at: datetime) -> str:
    lines: List[str] = [
        EXPORT_TITLE,
        "=" * 30,
        "",
        f"Generated on: {format_local_time(generated_at)}",
        f"Total summaries: {len(records)}",
        "",
    ]
    for index, record in enumerate(records, start=1):
        lines.extend(
            [
                f"Summary {index}",
                "-" * 15,
                f"Created: {format_local_time(record.created_at)}",
                f"Word Count: {record.word_count}",
                f"Source: {record.source_label}",
                "",
                f"Summary: {record.summary_text}",
                "",
                f"Original: {record.original_text}",
                "",
                "=" * 50,
                "",
            ]
        )
    return "\n".join(lines)
