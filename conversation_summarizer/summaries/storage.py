"""Filesystem helpers for locating and persisting the summary collection."""
from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional

from .types import SummaryRecord

_SUMMARIES_FILENAME = "summaries.json"

logger = logging.getLogger(__name__)


def get_default_data_dir() -> Path:
    override = os.getenv("CONVERSATION_SUMMARIZER_HOME")
    if override and override.strip():
        return Path(override.strip()).expanduser()
    return Path("~/.conversation-summarizer").expanduser()


def summaries_path_for(data_dir: Optional[Path] = None) -> Path:
    """Return the JSON document path holding the persisted collection."""
    root = Path(data_dir).expanduser() if data_dir else get_default_data_dir()
    return root / _SUMMARIES_FILENAME


def load_summaries(path: Path) -> List[SummaryRecord]:
    """Read the persisted collection, treating a missing or corrupt file as empty."""
    path = Path(path)
    try:
        raw_text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except OSError as exc:
        logger.warning("Unable to read summaries from %s: %s", path, exc)
        return []

    try:
        payload = json.loads(raw_text)
    except ValueError as exc:
        logger.warning("Ignoring corrupt summaries file %s: %s", path, exc)
        return []
    if not isinstance(payload, list):
        logger.warning("Ignoring summaries file %s: expected a JSON array", path)
        return []

    records: List[SummaryRecord] = []
    for index, entry in enumerate(payload):
        if not isinstance(entry, dict):
            logger.warning("Skipping summary entry %d in %s: not an object", index, path)
            continue
        try:
            records.append(SummaryRecord.from_dict(entry))
        except ValueError as exc:
            logger.warning("Skipping summary entry %d in %s: %s", index, path, exc)
    return records


def dump_summaries(records: Iterable[SummaryRecord]) -> str:
    return json.dumps([record.to_dict() for record in records], indent=2, ensure_ascii=False)


def write_summaries(path: Path, records: Iterable[SummaryRecord]) -> None:
    """Replace the persisted collection with ``records``."""
    write_text_atomic(Path(path), dump_summaries(records) + "\n")


def _current_umask() -> int:
    mask = os.umask(0o022)
    os.umask(mask)
    return mask


_UMASK = _current_umask()


def _target_mode(path: Path) -> int:
    """Keep an existing file's permissions, otherwise honour the process umask."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        return 0o666 & ~_UMASK


def write_text_atomic(path: Path, content: str) -> None:
    """Write ``content`` to a sibling temp file, then swap it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.chmod(tmp_name, _target_mode(path))
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
