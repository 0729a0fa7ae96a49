"""
Reading and writing event log files.

Three layouts are accepted on input:
    - a JSON array of events
    - a JSON object with an ``events`` array
    - JSON lines, one event per line

Entries are returned raw (not validated) so that the sanitizer can decide
what to keep. Logs are written back as a JSON array in the camelCase wire
format.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from cardreplay.errors import EventLogLoadError, SnapshotInvalidError
from cardreplay.schema import GameStateSnapshot, UIActionEvent
from cardreplay.snapshots import deserialize_snapshot

logger = logging.getLogger(__name__)


def load_raw_event_log(path: Path | str) -> list[Any]:
    """
    Load raw event entries from a file.

    Args:
        path: Path to a JSON or JSON-lines log

    Returns:
        List of raw entries, in file order

    Raises:
        EventLogLoadError: If the file is missing or cannot be parsed
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise EventLogLoadError(path=str(path), reason=str(e)) from e

    entries = parse_raw_event_log(text, source=str(path))
    logger.debug("Loaded %d raw entries from %s", len(entries), path)
    return entries


def parse_raw_event_log(text: str, source: str = "<string>") -> list[Any]:
    """Parse log text in any of the supported layouts."""
    stripped = text.strip()
    if not stripped:
        return []

    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        return _parse_json_lines(stripped, source)

    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        events = data.get("events")
        if isinstance(events, list):
            return events
        # A single JSON object on one line is a one-entry JSON-lines log
        return [data]
    raise EventLogLoadError(path=source, reason=f"Unexpected top-level JSON type: {type(data).__name__}")


def _parse_json_lines(text: str, source: str) -> list[Any]:
    entries = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            entries.append(json.loads(line))
        except json.JSONDecodeError as e:
            raise EventLogLoadError(path=source, reason=f"line {lineno}: {e.msg}") from e
    return entries


def dump_event_log(events: Iterable[UIActionEvent], indent: int = 2) -> str:
    """Serialize events to a JSON array string."""
    return json.dumps([event.to_json_dict() for event in events], indent=indent)


def write_event_log(events: Iterable[UIActionEvent], path: Path | str) -> Path:
    """Write events to a JSON file and return the path."""
    path = Path(path)
    path.write_text(dump_event_log(events) + "\n", encoding="utf-8")
    return path


def load_snapshot(path: Path | str) -> GameStateSnapshot:
    """
    Load a single game state snapshot from a JSON file.

    Raises:
        SnapshotInvalidError: If the file cannot be read or is not a valid snapshot
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SnapshotInvalidError(reason=f"{path}: {e}") from e
    return deserialize_snapshot(text)
