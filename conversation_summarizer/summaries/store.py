"""Ordered, persisted collection of summaries and the operations that mutate it."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Mapping, Optional, Set, Tuple

from .client import SummarizerClient, SummarizerError, clean_summary
from .config import ConfigError
from .export import NOTHING_TO_EXPORT, ExportFormat, ExportResult, render
from .storage import load_summaries, summaries_path_for, write_summaries, write_text_atomic
from .types import SummaryRecord, generate_summary_id


class SummaryCreationFailed(RuntimeError):
    """Raised by ``SummaryStore.add`` when the summarizer fails."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Failed to create summary: {cause}")
        self.cause = cause


class PersistenceError(RuntimeError):
    """Raised when the backing file cannot be written."""


class ExportError(PersistenceError):
    """Raised when an export target cannot be written."""


ADDED = "added"
CLEARED = "cleared"
PERSIST_FAILED = "persist-failed"


@dataclass(frozen=True)
class StoreEvent:
    """Change notification delivered to store subscribers."""

    kind: str
    record: Optional[SummaryRecord] = None
    error: Optional[Exception] = None


Subscriber = Callable[[StoreEvent], None]

WELCOME_ENTRIES: Tuple[Tuple[str, str], ...] = (
    (
        "Welcome to AI Conversation Summarizer! This tool helps you summarize selected text.",
        "Welcome! The summarizer is ready to summarize your text selections.",
    ),
    (
        "To use: 1. Select some text 2. Press n in the browser or pipe it to "
        "`conversation-summarizer summarize` 3. View the results here",
        "Instructions: select text, send it to the summarizer and review the result here.",
    ),
)


class SummaryStore:
    """Owns the newest-first summary collection and keeps it on disk."""

    def __init__(
        self,
        client: SummarizerClient,
        storage_path: Optional[Path] = None,
        *,
        seed_welcome: bool = False,
        id_factory: Callable[[], str] = generate_summary_id,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self.storage_path = Path(storage_path).expanduser() if storage_path else summaries_path_for()
        self.seed_welcome = seed_welcome
        self._id_factory = id_factory
        self._logger = logger or logging.getLogger(__name__)
        self._records: List[SummaryRecord] = []
        self._issued_ids: Set[str] = set()
        self._subscribers: List[Subscriber] = []
        self._lock = asyncio.Lock()
        self.last_persist_error: Optional[PersistenceError] = None
        self.load()

    # ---- Read access ----------------------------------------------------
    @property
    def client(self) -> SummarizerClient:
        return self._client

    @property
    def records(self) -> Tuple[SummaryRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[SummaryRecord]:
        return iter(tuple(self._records))

    def get(self, record_id: str) -> Optional[SummaryRecord]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    # ---- Observers ------------------------------------------------------
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for change events; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ---- Mutations ------------------------------------------------------
    async def add(self, text: str, source: Optional[str] = None) -> SummaryRecord:
        """Summarize ``text`` and store the result at the head of the collection."""

        original_text = text.strip()
        try:
            summary = await self._client.summarize(original_text)
        except (SummarizerError, ConfigError) as exc:
            self._logger.warning("Summary creation failed: %s", exc)
            raise SummaryCreationFailed(exc) from exc

        async with self._lock:
            record = SummaryRecord.create(self._next_id(), original_text, summary, source=source)
            self._records.insert(0, record)
            await self._persist_reporting_errors()

        self._log_debug(ADDED, {"id": record.id, "word_count": record.word_count, "source": source})
        self._emit(StoreEvent(ADDED, record=record))
        return record

    async def clear_all(self) -> None:
        """Drop every record, reseeding the welcome entries when enabled."""

        async with self._lock:
            self._records = self._welcome_records() if self.seed_welcome else []
            await self._persist_reporting_errors()

        self._log_debug(CLEARED, {"remaining": len(self._records)})
        self._emit(StoreEvent(CLEARED))

    # ---- Persistence ----------------------------------------------------
    def load(self) -> None:
        records = load_summaries(self.storage_path)
        self._records = records
        self._issued_ids.update(record.id for record in records)
        self._log_debug("load", {"path": str(self.storage_path), "count": len(records)})

    async def persist(self) -> None:
        snapshot = list(self._records)
        try:
            await asyncio.to_thread(write_summaries, self.storage_path, snapshot)
        except OSError as exc:
            raise PersistenceError(f"Failed to save summaries to {self.storage_path}: {exc}") from exc
        self.last_persist_error = None

    async def _persist_reporting_errors(self) -> None:
        try:
            await self.persist()
        except PersistenceError as exc:
            self.last_persist_error = exc
            self._logger.error("%s", exc)
            self._emit(StoreEvent(PERSIST_FAILED, error=exc))

    # ---- Export ---------------------------------------------------------
    def render_export(self, fmt: ExportFormat) -> str:
        return render(list(self._records), fmt)

    async def export(self, target: Path) -> ExportResult:
        """Write the collection to ``target`` in the format its extension implies."""

        records = list(self._records)
        if not records:
            return ExportResult(written=False, message=NOTHING_TO_EXPORT)

        target = Path(target).expanduser()
        fmt = ExportFormat.for_path(target)
        content = render(records, fmt)
        try:
            await asyncio.to_thread(write_text_atomic, target, content)
        except OSError as exc:
            raise ExportError(f"Export failed: {exc}") from exc

        self._log_debug("export", {"path": str(target), "format": fmt.value, "count": len(records)})
        return ExportResult(
            written=True,
            message=f"Summaries exported to {target}",
            path=target,
            format=fmt,
            count=len(records),
        )

    # ---- Helpers --------------------------------------------------------
    def _next_id(self) -> str:
        record_id = self._id_factory()
        while record_id in self._issued_ids:
            record_id = self._id_factory()
        self._issued_ids.add(record_id)
        return record_id

    def _welcome_records(self) -> List[SummaryRecord]:
        return [
            SummaryRecord.create(self._next_id(), text, clean_summary(summary), source="welcome")
            for text, summary in WELCOME_ENTRIES
        ]

    def _emit(self, event: StoreEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                self._logger.exception("Summary store subscriber failed on %s event", event.kind)

    def _log_debug(self, event: str, extra: Mapping[str, object]) -> None:
        payload = {"event": event, "storage_path": str(self.storage_path)}
        payload.update(dict(extra))
        self._logger.debug("summary-store", extra={"summary": payload})
