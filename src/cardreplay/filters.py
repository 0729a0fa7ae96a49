"""
Filtering and searching recorded events.

filter_events narrows a log by structured criteria; search_events does a
free-text search over selected event fields.
"""

import json
from datetime import datetime
from typing import Callable, Iterable, Literal, Sequence

from pydantic import BaseModel, ConfigDict, Field

from cardreplay.schema import EventType, UIActionEvent, parse_timestamp

SnapshotRequirement = Literal["before", "after", "both", "either", "none"]

SEARCHABLE_FIELDS = ("id", "type", "component", "data")


class EventFilter(BaseModel):
    """
    Criteria for filter_events. Unset criteria match everything.

    Attributes:
        event_types: Keep only these event types
        components: Keep only events from these components
        start: Keep events at or after this ISO timestamp
        end: Keep events at or before this ISO timestamp
        min_duration_ms: Keep events whose recorded operation took longer
        snapshots: Which recorded snapshots an event must carry
        text: Case-insensitive substring searched in id, type, component and data
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    event_types: list[EventType] | None = None
    components: list[str] | None = None
    start: str | None = None
    end: str | None = None
    min_duration_ms: float | None = Field(default=None, ge=0)
    snapshots: SnapshotRequirement | None = None
    text: str | None = None


def filter_events(
    events: Iterable[UIActionEvent],
    criteria: EventFilter | None = None,
    predicate: Callable[[UIActionEvent], bool] | None = None,
) -> list[UIActionEvent]:
    """
    Return the events matching every criterion, in their original order.

    Args:
        events: Events to filter
        criteria: Structured criteria
        predicate: Extra test applied after the criteria
    """
    criteria = criteria or EventFilter()
    start = parse_timestamp(criteria.start) if criteria.start else None
    end = parse_timestamp(criteria.end) if criteria.end else None
    types = set(criteria.event_types) if criteria.event_types else None
    components = set(criteria.components) if criteria.components else None

    matched = []
    for event in events:
        if types is not None and event.type not in types:
            continue
        if components is not None and event.component not in components:
            continue
        if not _in_range(event.occurred_at, start, end):
            continue
        if criteria.min_duration_ms is not None and (
            event.performance is None
            or event.performance.operation_duration <= criteria.min_duration_ms
        ):
            continue
        if criteria.snapshots is not None and not _has_snapshots(event, criteria.snapshots):
            continue
        if criteria.text and not search_events([event], criteria.text):
            continue
        if predicate is not None and not predicate(event):
            continue
        matched.append(event)
    return matched


def _in_range(moment: datetime, start: datetime | None, end: datetime | None) -> bool:
    if start is not None and moment < start:
        return False
    if end is not None and moment > end:
        return False
    return True


def _has_snapshots(event: UIActionEvent, requirement: SnapshotRequirement) -> bool:
    before = event.game_state_before is not None
    after = event.game_state_after is not None
    if requirement == "before":
        return before
    if requirement == "after":
        return after
    if requirement == "both":
        return before and after
    if requirement == "either":
        return before or after
    return not before and not after


def search_events(
    events: Iterable[UIActionEvent],
    query: str,
    case_sensitive: bool = False,
    exact_match: bool = False,
    fields: Sequence[str] = SEARCHABLE_FIELDS,
) -> list[UIActionEvent]:
    """
    Free-text search over event fields.

    The ``data`` field is searched in its JSON form, so payload keys and
    values both match.

    Args:
        events: Events to search
        query: Text to look for
        case_sensitive: Match case exactly
        exact_match: Require a field to equal the query instead of containing it
        fields: Event fields to search (any of id, type, component, data)

    Raises:
        ValueError: If an unknown field is requested
    """
    unknown = set(fields) - set(SEARCHABLE_FIELDS)
    if unknown:
        msg = f"Unknown search fields: {', '.join(sorted(unknown))}"
        raise ValueError(msg)

    needle = query if case_sensitive else query.lower()
    matched = []
    for event in events:
        for name in fields:
            haystack = _field_text(event, name)
            if not case_sensitive:
                haystack = haystack.lower()
            if (haystack == needle) if exact_match else (needle in haystack):
                matched.append(event)
                break
    return matched


def _field_text(event: UIActionEvent, name: str) -> str:
    if name == "type":
        return event.type.value
    if name == "data":
        return json.dumps(event.data.to_json_dict(), sort_keys=True)
    return str(getattr(event, name))
