from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from .summaries import (
    ConfigError,
    ConfigLoader,
    ExportError,
    ExportFormat,
    SummarizerClient,
    SummaryCreationFailed,
    SummaryRecord,
    SummaryStore,
    load_openai_api_key,
)
from .summaries.config import get_default_config_path
from .summaries.export import NOTHING_TO_EXPORT, format_local_time
from .summaries.storage import get_default_data_dir, summaries_path_for

SUMMARY_PREVIEW_WIDTH = 60


def build_config_loader(args: argparse.Namespace) -> ConfigLoader:
    overrides = {
        "provider": getattr(args, "provider", None),
        "model": getattr(args, "model", None),
        "max_summary_length": getattr(args, "max_summary_length", None),
        "timeout": getattr(args, "timeout", None),
    }
    return ConfigLoader(getattr(args, "config", None), overrides=overrides)


def create_summary_store(
    args: argparse.Namespace, *, seed_welcome: bool = False
) -> tuple[SummaryStore, SummarizerClient]:
    loader = build_config_loader(args)
    # Fail fast on a broken config file rather than on the first request.
    loader.load()
    client = SummarizerClient(loader, openai_api_key=load_openai_api_key())
    data_dir = (args.data_dir or get_default_data_dir()).expanduser()
    store = SummaryStore(client, summaries_path_for(data_dir), seed_welcome=seed_welcome)
    return store, client


def format_time_ago(created_at: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    minutes = int((now - created_at).total_seconds() // 60)
    if minutes < 1:
        return "now"
    if minutes < 60:
        return f"{minutes}m"
    if minutes < 1440:
        return f"{minutes // 60}h"
    return f"{minutes // 1440}d"


def describe_record(record: SummaryRecord, now: Optional[datetime] = None) -> str:
    return f"{record.word_count}w • {format_time_ago(record.created_at, now)}"


def truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: max(0, width - 3)] + "..."


def format_summary_table(
    records: Sequence[SummaryRecord], now: Optional[datetime] = None
) -> tuple[str, list[str]]:
    if not records:
        header = "Idx  Id  Words  Age  Source  Summary"
        return header, []

    now = now or datetime.now(timezone.utc)
    ages = [format_time_ago(record.created_at, now) for record in records]
    index_width = max(len("Idx"), len(str(len(records))))
    id_width = max(len("Id"), max(len(record.id) for record in records))
    words_width = max(len("Words"), max(len(str(record.word_count)) for record in records))
    age_width = max(len("Age"), max(len(age) for age in ages))
    source_width = max(len("Source"), max(len(record.source_label) for record in records))

    header = (
        f"{'Idx'.rjust(index_width)}  "
        f"{'Id'.ljust(id_width)}  "
        f"{'Words'.rjust(words_width)}  "
        f"{'Age'.rjust(age_width)}  "
        f"{'Source'.ljust(source_width)}  "
        "Summary"
    )

    lines: list[str] = []
    for index, (record, age) in enumerate(zip(records, ages), start=1):
        line = (
            f"{str(index).rjust(index_width)}  "
            f"{record.id.ljust(id_width)}  "
            f"{str(record.word_count).rjust(words_width)}  "
            f"{age.rjust(age_width)}  "
            f"{record.source_label.ljust(source_width)}  "
            f"{truncate(record.summary_text, SUMMARY_PREVIEW_WIDTH)}"
        )
        lines.append(line)
    return header, lines


def render_record_detail(record: SummaryRecord, index: Optional[int] = None) -> str:
    title = f"Summary {index}" if index is not None else f"Summary {record.id}"
    lines = [
        title,
        f"Id: {record.id}",
        f"Created: {format_local_time(record.created_at)}",
        f"Word Count: {record.word_count}",
        f"Source: {record.source_label}",
        "",
        "Summary:",
        record.summary_text,
        "",
        "Original Text:",
        record.original_text,
    ]
    return "\n".join(lines)


def resolve_record(store: SummaryStore, candidate: str) -> tuple[int, SummaryRecord]:
    stripped = candidate.strip()
    records = store.records
    if not records:
        raise LookupError("No summaries stored yet.")

    record = store.get(stripped)
    if record is not None:
        return records.index(record) + 1, record

    if stripped.isdigit():
        index = int(stripped)
        if not 1 <= index <= len(records):
            raise LookupError(f"Summary index {index} out of range (1..{len(records)}).")
        return index, records[index - 1]

    raise LookupError(f"Summary not found: {candidate}. Hint: use an index from `list` or a full id.")


def read_input_text(args: argparse.Namespace) -> str:
    if args.text:
        return " ".join(args.text)
    if args.file:
        return args.file.expanduser().read_text(encoding="utf-8")
    return sys.stdin.read()


# ---- Command handlers -------------------------------------------------
async def _summarize(store: SummaryStore, text: str, source: Optional[str]) -> SummaryRecord:
    try:
        return await store.add(text, source)
    finally:
        await store.client.close()


def handle_summarize(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    try:
        text = read_input_text(args)
    except OSError as exc:
        parser.error(f"Unable to read input: {exc}")
        return 2
    if not text.strip():
        parser.error("Please provide some text to summarize.")
        return 2

    store, _ = create_summary_store(args)
    try:
        record = asyncio.run(_summarize(store, text, args.source))
    except SummaryCreationFailed as exc:
        print(str(exc), file=sys.stderr)
        return 1

    if store.last_persist_error is not None:
        print(f"Warning: {store.last_persist_error}", file=sys.stderr)
    print(render_record_detail(record, index=1))
    return 0


def handle_list(args: argparse.Namespace) -> int:
    store, client = create_summary_store(args)
    asyncio.run(client.close())
    records = store.records[: args.limit] if args.limit else store.records
    if not records:
        print(f"No summaries stored in {store.storage_path}")
        return 0

    print(f"Summaries in {store.storage_path} ({len(store)} total)")
    header, lines = format_summary_table(records)
    print(header)
    for line in lines:
        print(line)
    return 0


def handle_show(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    store, client = create_summary_store(args)
    asyncio.run(client.close())
    try:
        index, record = resolve_record(store, args.summary)
    except LookupError as exc:
        parser.error(str(exc))
        return 2
    print(render_record_detail(record, index=index))
    return 0


async def _clear(store: SummaryStore) -> None:
    try:
        await store.clear_all()
    finally:
        await store.client.close()


def handle_clear(args: argparse.Namespace) -> int:
    store, _ = create_summary_store(args, seed_welcome=args.welcome)
    asyncio.run(_clear(store))
    if store.last_persist_error is not None:
        print(f"Warning: {store.last_persist_error}", file=sys.stderr)
        return 1
    print(f"Cleared summaries in {store.storage_path}")
    return 0


async def _export(store: SummaryStore, target: Path):
    try:
        return await store.export(target)
    finally:
        await store.client.close()


def handle_export(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    if args.stdout and args.output is None and args.format is None:
        parser.error("--stdout requires an output path or --format to choose the export format.")
    if not args.stdout and args.output is None:
        parser.error("Specify an output path or --stdout.")

    store, client = create_summary_store(args)

    if args.stdout:
        asyncio.run(client.close())
        if not len(store):
            print(NOTHING_TO_EXPORT)
            return 0
        fmt = ExportFormat(args.format) if args.format else ExportFormat.for_path(args.output)
        sys.stdout.write(store.render_export(fmt))
        return 0

    try:
        result = asyncio.run(_export(store, args.output))
    except ExportError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    print(result.message)
    return 0


async def _test_connection(client: SummarizerClient):
    async with client:
        return await client.test_connection()


def handle_test_connection(args: argparse.Namespace) -> int:
    _, client = create_summary_store(args)
    status = asyncio.run(_test_connection(client))
    print(status.message)
    return 0 if status.success else 1


def handle_config(args: argparse.Namespace) -> int:
    loader = build_config_loader(args)
    config = loader.load()
    data_dir = (args.data_dir or get_default_data_dir()).expanduser()
    print(f"Config file: {loader.path}{'' if loader.path.is_file() else ' (not found, using defaults)'}")
    for key, value in config.as_dict().items():
        print(f"{key}: {value}")
    print(f"openai_api_key: {'set' if load_openai_api_key() else 'missing'}")
    print(f"storage: {summaries_path_for(data_dir)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="conversation-summarizer",
        description="Summarize text through a local model server, OpenAI or an offline placeholder, and manage the saved summaries.",
    )
    p.add_argument(
        "--data-dir",
        type=Path,
        help="Directory holding summaries.json (default: $CONVERSATION_SUMMARIZER_HOME or ~/.conversation-summarizer)",
    )
    p.add_argument(
        "--config",
        type=Path,
        help=f"YAML config file (default: {get_default_config_path()})",
    )
    p.add_argument("--provider", choices=["ollama", "openai", "mock"], help="Override the configured provider")
    p.add_argument("--model", help="Override the model used by the local provider")
    p.add_argument("--max-summary-length", type=int, help="Override the target sentence count")
    p.add_argument("--timeout", type=float, help="Override the request timeout in seconds")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = p.add_subparsers(dest="cmd", required=True)

    p_summarize = sub.add_parser("summarize", help="Summarize text and store the result")
    p_summarize.add_argument("text", nargs="*", help="Text to summarize (default: read from stdin)")
    p_summarize.add_argument("-f", "--file", type=Path, help="Read the text to summarize from a file")
    p_summarize.add_argument("--source", default="cli", help="Source tag stored with the summary (default: cli)")

    p_list = sub.add_parser("list", help="List stored summaries, newest first")
    p_list.add_argument("--limit", type=int, default=20, help="Limit number of entries (default: 20, 0 for all)")

    p_show = sub.add_parser("show", help="Show one stored summary")
    p_show.add_argument("summary", help="Summary index from `list` or a full summary id")

    p_clear = sub.add_parser("clear", help="Remove every stored summary")
    p_clear.add_argument("--welcome", action="store_true", help="Reseed the welcome entries after clearing")

    p_export = sub.add_parser("export", help="Export summaries as JSON, Markdown or plain text")
    p_export.add_argument("output", nargs="?", type=Path, help="Output path; the extension picks the format")
    p_export.add_argument("--format", choices=[fmt.value for fmt in ExportFormat], help="Format used with --stdout")
    p_export.add_argument("--stdout", action="store_true", help="Write the export to stdout instead of a file")

    sub.add_parser("test-connection", help="Check that the configured provider answers")
    sub.add_parser("config", help="Print the resolved configuration")
    sub.add_parser("browse", help="Interactively browse stored summaries")

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.cmd == "summarize":
            return handle_summarize(args, parser)
        if args.cmd == "list":
            return handle_list(args)
        if args.cmd == "show":
            return handle_show(args, parser)
        if args.cmd == "clear":
            return handle_clear(args)
        if args.cmd == "export":
            return handle_export(args, parser)
        if args.cmd == "test-connection":
            return handle_test_connection(args)
        if args.cmd == "config":
            return handle_config(args)
        if args.cmd == "browse":
            try:
                from .browser import browse_summaries
            except ModuleNotFoundError as exc:
                if exc.name == "prompt_toolkit":
                    parser.error(
                        "Interactive browsing requires optional dependency 'prompt_toolkit'. "
                        "Install it from the repo with `python -m pip install .[browser]`."
                    )
                raise
            store, _ = create_summary_store(args, seed_welcome=True)
            return browse_summaries(store)
    except ConfigError as exc:
        parser.error(str(exc))
        return 2

    parser.error("Unknown command")
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
