from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import pydoc
from prompt_toolkit.application import Application, run_in_terminal
from prompt_toolkit.data_structures import Point
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, Layout, ScrollOffsets, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.layout.dimension import D
from prompt_toolkit.styles import Style

from .summaries import (
    ConfigError,
    ExportError,
    StoreEvent,
    SummaryCreationFailed,
    SummaryRecord,
    SummaryStore,
)
from .summaries.export import format_local_time
from .summaries.store import ADDED, PERSIST_FAILED

DETAIL_PREVIEW_WIDTH = 100


class SummaryBrowser:
    """Interactive browser backed by prompt_toolkit."""

    PAGE_JUMP = 10

    def __init__(self, store: SummaryStore) -> None:
        self.store = store
        self.selected_index = 0
        count = len(store)
        noun = "summary" if count == 1 else "summaries"
        self.status: str = f"{count} {noun} in {store.storage_path}"
        self._app: Optional[Application] = None
        self._active_task: Optional[asyncio.Task[None]] = None
        self._unsubscribe = store.subscribe(self._on_store_event)
        self._update_table_cache()

    def _update_table_cache(self) -> None:
        from .cli import format_summary_table

        header, rows = format_summary_table(self.store.records)
        self._table_header = header
        self._table_rows = rows
        if self._table_rows:
            self.selected_index = min(self.selected_index, len(self._table_rows) - 1)
        else:
            self.selected_index = 0

    def _on_store_event(self, event: StoreEvent) -> None:
        if event.kind == ADDED:
            self.selected_index = 0
        if event.kind == PERSIST_FAILED and event.error is not None:
            self.status = f"Warning: {event.error}"
        self._update_table_cache()
        self._invalidate()

    def _invalidate(self) -> None:
        if self._app:
            self._app.invalidate()

    def _current_record(self) -> Optional[SummaryRecord]:
        records = self.store.records
        if not records:
            return None
        index = min(max(self.selected_index, 0), len(records) - 1)
        return records[index]

    # ---- Layout helpers -------------------------------------------------
    def _entry_fragments(self) -> list[tuple[str, str]]:
        fragments: list[tuple[str, str]] = []
        for idx, line in enumerate(self._table_rows):
            style = "class:summary-list.selected" if idx == self.selected_index else "class:summary-list"
            fragments.append((style, line))
            if idx != len(self._table_rows) - 1:
                fragments.append(("", "\n"))
        return fragments

    def _header_fragment(self) -> list[tuple[str, str]]:
        return [("class:summary-list.header", self._table_header)]

    def _detail_fragments(self) -> list[tuple[str, str]]:
        record = self._current_record()
        if record is None:
            return [("class:detail", "No summaries yet. Press n to summarize some text.")]

        from .cli import describe_record, truncate

        lines = [
            f"Summary {self.selected_index + 1} ({describe_record(record)})",
            f"Summary: {truncate(record.summary_text, DETAIL_PREVIEW_WIDTH)}",
            f"Word Count: {record.word_count}",
            f"Created: {format_local_time(record.created_at)}",
            f"Source: {record.source_label}",
        ]
        return [("class:detail", "\n".join(lines))]

    def _instructions_fragment(self) -> list[tuple[str, str]]:
        text = (
            "Up/Down navigate | PgUp/PgDn jump | Home/End | Enter/s view | "
            "n new | e export | C clear | t test | q quit"
        )
        return [("class:instructions", text)]

    def _status_fragment(self) -> list[tuple[str, str]]:
        return [("class:status", self.status)]

    # ---- Actions --------------------------------------------------------
    def _handle_view(self) -> None:
        record = self._current_record()
        if record is None:
            self.status = "No summary selected."
            self._invalidate()
            return

        from .cli import render_record_detail

        text = render_record_detail(record, index=self.selected_index + 1)

        def display() -> None:  # pragma: no cover - interactive
            pydoc.pager(text)

        run_in_terminal(display)
        self.status = f"Displayed summary {record.id}"
        self._invalidate()

    def _handle_new(self) -> None:
        if self._busy():
            return

        def ask() -> None:  # pragma: no cover - interactive
            text = self._prompt_text()
            if text is None:
                self.status = "Summary cancelled."
                return
            self._start_task(self._add_worker(text), f"Summarizing {len(text.split())} words...")

        run_in_terminal(ask)
        self._invalidate()

    def _prompt_text(self) -> Optional[str]:
        print("Paste the text to summarize, then finish with an empty line.")
        lines: list[str] = []
        while True:
            try:
                line = input()
            except (KeyboardInterrupt, EOFError):
                return None
            if not line.strip():
                break
            lines.append(line)
        text = "\n".join(lines)
        if not text.strip():
            return None

        try:
            config = self.store.client.current_config()
        except ConfigError as exc:
            print(f"Invalid configuration: {exc}")
            return None
        if not config.auto_summarize:
            try:
                confirm = input(f"Summarize {len(text.split())} words with {config.provider.value}? [Y/n]: ")
            except (KeyboardInterrupt, EOFError):
                return None
            if confirm.strip().lower() in {"n", "no"}:
                return None
        return text

    async def _add_worker(self, text: str) -> None:
        try:
            record = await self.store.add(text, source="browser")
        except SummaryCreationFailed as exc:
            self.status = str(exc)
        else:
            if self.store.last_persist_error is None:
                self.status = f"Added summary {record.id}"

    def _handle_export(self) -> None:
        if self._busy():
            return

        def ask() -> None:  # pragma: no cover - interactive
            default_path = Path.cwd() / "ai-summaries.md"
            try:
                response = input(f"Export destination (.md, .json or .txt) [{default_path}]: ")
            except (KeyboardInterrupt, EOFError):
                self.status = "Export cancelled."
                return
            destination = Path(response.strip()).expanduser() if response.strip() else default_path
            self._start_task(self._export_worker(destination), f"Exporting to {destination}...")

        run_in_terminal(ask)
        self._invalidate()

    async def _export_worker(self, destination: Path) -> None:
        try:
            result = await self.store.export(destination)
        except ExportError as exc:
            self.status = str(exc)
        else:
            self.status = result.message

    def _handle_clear(self) -> None:
        if self._busy():
            return

        def ask() -> None:  # pragma: no cover - interactive
            try:
                confirm = input(f"Remove all {len(self.store)} summaries? [y/N]: ")
            except (KeyboardInterrupt, EOFError):
                confirm = ""
            if confirm.strip().lower() not in {"y", "yes"}:
                self.status = "Clear cancelled."
                return
            self._start_task(self._clear_worker(), "Clearing summaries...")

        run_in_terminal(ask)
        self._invalidate()

    async def _clear_worker(self) -> None:
        await self.store.clear_all()
        if self.store.last_persist_error is None:
            self.status = "Summaries cleared."

    def _handle_test_connection(self) -> None:
        if self._busy():
            return
        self._start_task(self._test_worker(), "Testing connection...")

    async def _test_worker(self) -> None:
        status = await self.store.client.test_connection()
        self.status = status.message

    def _busy(self) -> bool:
        if self._active_task and not self._active_task.done():
            self.status = "Another operation is already in progress."
            self._invalidate()
            return True
        return False

    def _start_task(self, coro, status: str) -> None:
        self.status = status
        if self._app is None:  # pragma: no cover - defensive
            coro.close()
            return

        async def worker() -> None:
            try:
                await coro
            finally:
                self._active_task = None
                self._invalidate()

        self._active_task = self._app.create_background_task(worker())
        self._invalidate()

    async def _cleanup(self) -> None:
        self._unsubscribe()
        if self._active_task and not self._active_task.done():
            self._active_task.cancel()
        await self.store.client.close()

    # ---- Key bindings ---------------------------------------------------
    def _build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add("up")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._move_selection(-1)

        @kb.add("down")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._move_selection(1)

        @kb.add("pageup")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._move_selection(-self.PAGE_JUMP)

        @kb.add("pagedown")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._move_selection(self.PAGE_JUMP)

        @kb.add("home")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._set_selection(0)

        @kb.add("end")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            if self._table_rows:
                self._set_selection(len(self._table_rows) - 1)

        @kb.add("enter")
        @kb.add("s")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._handle_view()

        @kb.add("n")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._handle_new()

        @kb.add("e")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._handle_export()

        @kb.add("C")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._handle_clear()

        @kb.add("t")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._handle_test_connection()

        @kb.add("q")
        @kb.add("Q")
        @kb.add("escape")
        @kb.add("c-c")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            event.app.exit(result=0)

        return kb

    # ---- Selection helpers ----------------------------------------------
    def _move_selection(self, delta: int) -> None:
        if not self._table_rows:
            return
        new_index = max(0, min(len(self._table_rows) - 1, self.selected_index + delta))
        self._set_selection(new_index)

    def _set_selection(self, index: int) -> None:
        if not self._table_rows or index == self.selected_index:
            return
        self.selected_index = index
        self._invalidate()

    # ---- Public API -----------------------------------------------------
    def run(self) -> int:
        return asyncio.run(self._run_async())

    async def _run_async(self) -> int:
        def cursor_position() -> Point:
            if not self._table_rows:
                return Point(0, 0)
            index = min(max(self.selected_index, 0), len(self._table_rows) - 1)
            return Point(0, index)

        header_window = Window(
            content=FormattedTextControl(self._header_fragment, focusable=False),
            height=1,
            always_hide_cursor=True,
        )
        body_window = Window(
            content=FormattedTextControl(
                self._entry_fragments,
                focusable=True,
                get_cursor_position=cursor_position,
            ),
            height=D(min=3),
            wrap_lines=False,
            always_hide_cursor=True,
            scroll_offsets=ScrollOffsets(top=2, bottom=2),
        )
        detail_window = Window(
            content=FormattedTextControl(self._detail_fragments, focusable=False),
            height=D(min=5),
            wrap_lines=True,
            always_hide_cursor=True,
        )
        instructions_window = Window(
            content=FormattedTextControl(self._instructions_fragment),
            height=1,
            always_hide_cursor=True,
        )
        status_window = Window(
            content=FormattedTextControl(self._status_fragment),
            height=1,
            always_hide_cursor=True,
        )

        layout = Layout(
            HSplit(
                [
                    header_window,
                    body_window,
                    Window(height=1, char="-", always_hide_cursor=True),
                    detail_window,
                    Window(height=1, char="-", always_hide_cursor=True),
                    instructions_window,
                    status_window,
                ]
            )
        )

        style = Style.from_dict(
            {
                "summary-list": "",
                "summary-list.selected": "reverse",
                "summary-list.header": "bold",
                "instructions": "fg:#888888",
                "status": "fg:#000000 bg:#e5e5e5",
                "detail": "",
            }
        )

        self._app = Application(
            layout=layout,
            key_bindings=self._build_key_bindings(),
            style=style,
            full_screen=True,
        )
        try:
            result = await self._app.run_async()
        finally:
            await self._cleanup()
        return 0 if result is None else result


def browse_summaries(store: SummaryStore) -> int:
    browser = SummaryBrowser(store)
    return browser.run()
