"""
Event log validation and sanitization.

Recorded logs come from a UI in the wild and may contain truncated or
malformed entries. ``validate_and_sanitize_event_log`` splits raw entries
into replayable events and corrupted entries:

- entries missing a timestamp, type or payload are corrupted
- entries missing an ID get a fresh one; entries missing a component get a
  placeholder. These are "sanitized" rather than corrupted
- invalid embedded snapshots are dropped and the event is kept

``validate_event_sequence`` is the stricter check used before replay: every
event must be well formed and timestamps must not go backwards.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from pydantic import ValidationError

from cardreplay.errors import (
    CardReplayError,
    EmptyEventLogError,
    EventOrderError,
    InvalidEventError,
)
from cardreplay.ids import new_event_id
from cardreplay.schema import (
    EventType,
    SanitizationReport,
    UIActionEvent,
    parse_timestamp,
)
from cardreplay.snapshots import is_valid_snapshot

logger = logging.getLogger(__name__)

DEFAULT_PLACEHOLDER_COMPONENT = "Unknown"

_REQUIRED_FIELDS = ("timestamp", "type", "data")
_SNAPSHOT_FIELDS = (
    ("gameStateBefore", "game_state_before"),
    ("gameStateAfter", "game_state_after"),
)


@dataclass(frozen=True)
class CorruptedEntry:
    """
    A raw entry that could not be turned into an event.

    Attributes:
        index: Position in the raw log
        entry: The entry as it was read
        reason: Why it was rejected
    """

    index: int
    entry: Any
    reason: str


@dataclass
class SanitizationResult:
    """Output of validate_and_sanitize_event_log."""

    valid_events: list[UIActionEvent] = field(default_factory=list)
    corrupted_events: list[CorruptedEntry] = field(default_factory=list)
    sanitization_report: SanitizationReport = field(
        default_factory=lambda: SanitizationReport(
            total_events=0, valid_events=0, corrupted_events=0, sanitized_events=0
        )
    )


def validate_and_sanitize_event_log(
    raw_entries: Sequence[Any],
    placeholder_component: str = DEFAULT_PLACEHOLDER_COMPONENT,
    id_factory: Callable[[], str] = new_event_id,
) -> SanitizationResult:
    """
    Partition raw log entries into valid and corrupted events.

    Input order is preserved in ``valid_events``; ordering is not enforced
    here. Nothing in ``raw_entries`` is modified.

    Args:
        raw_entries: Entries as read from a log file
        placeholder_component: Component name for entries that lack one
        id_factory: Issues IDs for entries that lack one

    Returns:
        SanitizationResult with the valid events, corrupted entries and counters
    """
    result = SanitizationResult()
    sanitized = 0

    for index, entry in enumerate(raw_entries):
        if isinstance(entry, UIActionEvent):
            result.valid_events.append(entry)
            continue

        event, repaired, reason = _sanitize_entry(entry, placeholder_component, id_factory)
        if event is None:
            logger.debug("Entry %d corrupted: %s", index, reason)
            result.corrupted_events.append(CorruptedEntry(index=index, entry=entry, reason=reason))
            continue

        result.valid_events.append(event)
        if repaired:
            sanitized += 1

    result.sanitization_report = SanitizationReport(
        total_events=len(raw_entries),
        valid_events=len(result.valid_events),
        corrupted_events=len(result.corrupted_events),
        sanitized_events=sanitized,
        warnings=check_event_ordering(result.valid_events),
    )

    logger.info(
        "Sanitized event log: %d total, %d valid, %d corrupted, %d repaired",
        len(raw_entries),
        len(result.valid_events),
        len(result.corrupted_events),
        sanitized,
    )
    return result


def _sanitize_entry(
    entry: Any,
    placeholder_component: str,
    id_factory: Callable[[], str],
) -> tuple[UIActionEvent | None, bool, str]:
    """Return ``(event, repaired, reason)``; event is None when corrupted."""
    if not isinstance(entry, Mapping):
        return None, False, "Entry is not an object"

    missing = [name for name in _REQUIRED_FIELDS if entry.get(name) in (None, "")]
    if missing:
        return None, False, f"Missing required field(s): {', '.join(missing)}"

    try:
        EventType(entry["type"])
    except ValueError:
        return None, False, f"Unrecognized event type: {entry['type']!r}"

    try:
        parse_timestamp(entry["timestamp"])
    except (TypeError, ValueError):
        return None, False, f"Invalid timestamp: {entry['timestamp']!r}"

    if not isinstance(entry["data"], Mapping):
        return None, False, "Event data must be an object"

    cleaned = dict(entry)
    repaired = False

    if not isinstance(cleaned.get("id"), str) or not cleaned.get("id"):
        cleaned["id"] = id_factory()
        repaired = True

    if not isinstance(cleaned.get("component"), str) or not cleaned.get("component"):
        cleaned["component"] = placeholder_component
        repaired = True

    for wire_name, attr_name in _SNAPSHOT_FIELDS:
        for key in (wire_name, attr_name):
            if key in cleaned and cleaned[key] is not None and not is_valid_snapshot(cleaned[key]):
                del cleaned[key]
                repaired = True

    try:
        event = UIActionEvent.model_validate(cleaned)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        return None, False, f"Invalid event structure: {location}: {first['msg']}"

    return event, repaired, ""


def check_event_ordering(events: Sequence[UIActionEvent]) -> list[str]:
    """
    Report ordering problems among valid events.

    Timestamps must not go backwards, and snapshot sequence numbers must
    increase with event order.
    """
    warnings: list[str] = []
    previous_time = None
    previous_sequence = None

    for index, event in enumerate(events):
        occurred = event.occurred_at
        if previous_time is not None and occurred < previous_time:
            warnings.append(f"Event {event.id} at index {index} is earlier than the event before it")
        previous_time = occurred

        for snapshot in (event.game_state_before, event.game_state_after):
            if snapshot is None:
                continue
            sequence = snapshot.metadata.sequence_number
            if previous_sequence is not None and sequence < previous_sequence:
                warnings.append(
                    f"Snapshot sequence number {sequence} in event {event.id} "
                    f"follows {previous_sequence}"
                )
            previous_sequence = sequence

    return warnings


def validate_event_sequence(events: Sequence[Any]) -> tuple[list[UIActionEvent], list[CardReplayError]]:
    """
    Validate a sequence of events for replay.

    Accepts UIActionEvent instances or raw mappings. A sequence is replayable
    when it is non-empty, every event is well formed and timestamps are
    non-decreasing.

    Returns:
        ``(events, problems)``; the sequence is replayable when problems is empty
    """
    if not events:
        return [], [EmptyEventLogError()]

    parsed: list[UIActionEvent] = []
    problems: list[CardReplayError] = []

    for index, raw in enumerate(events):
        if isinstance(raw, UIActionEvent):
            parsed.append(raw)
            continue
        try:
            parsed.append(UIActionEvent.model_validate(raw))
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            problems.append(InvalidEventError(index=index, reason=f"{location}: {first['msg']}"))

    if problems:
        return parsed, problems

    for index in range(1, len(parsed)):
        previous, current = parsed[index - 1], parsed[index]
        if current.occurred_at < previous.occurred_at:
            problems.append(EventOrderError(
                index=index,
                previous=previous.timestamp,
                current=current.timestamp,
            ))

    return parsed, problems
