"""
Event log analysis.

analyze_events() summarizes a recorded log for a developer looking into a
session: a per-event timeline, events grouped into interactions (a drag is
followed from start to drop or cancel), performance figures and a list of
anomalies.

Anomalies reported:
    - slow_event: operation took longer than slow_event_threshold_ms
    - inactivity_gap: more than inactivity_threshold_ms between two events
    - missing_game_state: a move or state event without an after-snapshot
    - validation_failure_burst: consecutive failed validations in a component
    - dropped_interaction: a drag that never ended with drop or cancel
    - sequence_duration_warning: a drag that lasted longer than the
      inactivity threshold
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from pydantic import BaseModel, Field

from cardreplay.schema import EventType, MoveValidationResult, UIActionEvent, parse_timestamp

logger = logging.getLogger(__name__)


class InteractionType(str, Enum):
    DRAG = "drag"
    MOVE = "move"
    CLICK = "click"
    STATE = "state"
    OTHER = "other"


class InteractionOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class AnomalyType(str, Enum):
    SLOW_EVENT = "slow_event"
    VALIDATION_FAILURE_BURST = "validation_failure_burst"
    INACTIVITY_GAP = "inactivity_gap"
    MISSING_GAME_STATE = "missing_game_state"
    DROPPED_INTERACTION = "dropped_interaction"
    SEQUENCE_DURATION_WARNING = "sequence_duration_warning"


_INTERACTION_TYPES: dict[EventType, InteractionType] = {
    EventType.DRAG_START: InteractionType.DRAG,
    EventType.DRAG_HOVER: InteractionType.DRAG,
    EventType.DRAG_DROP: InteractionType.DRAG,
    EventType.DRAG_CANCEL: InteractionType.DRAG,
    EventType.MOVE_ATTEMPT: InteractionType.MOVE,
    EventType.MOVE_EXECUTED: InteractionType.MOVE,
    EventType.MOVE_VALIDATED: InteractionType.MOVE,
    EventType.AUTO_MOVE: InteractionType.MOVE,
    EventType.CARD_CLICK: InteractionType.CLICK,
    EventType.BUTTON_CLICK: InteractionType.CLICK,
    EventType.ZONE_CLICK: InteractionType.CLICK,
    EventType.STATE_CHANGE: InteractionType.STATE,
    EventType.CARD_FLIP: InteractionType.STATE,
    EventType.SCORE_UPDATE: InteractionType.STATE,
    EventType.WIN_CONDITION: InteractionType.STATE,
}

# Event types expected to carry an after-snapshot
STATE_CAPTURING_TYPES = frozenset({
    EventType.MOVE_EXECUTED,
    EventType.MOVE_VALIDATED,
    EventType.STATE_CHANGE,
    EventType.WIN_CONDITION,
})


# =============================================================================
# Report Models
# =============================================================================


class AnalysisOptions(BaseModel):
    """Thresholds used by analyze_events."""

    slow_event_threshold_ms: float = Field(default=150, ge=0)
    inactivity_threshold_ms: float = Field(default=15_000, ge=0)
    consecutive_failure_threshold: int = Field(default=3, ge=1)


class TimelineEntry(BaseModel):
    event_id: str
    timestamp: str
    type: EventType
    component: str
    duration_ms: float | None = None
    description: str
    has_state_before: bool
    has_state_after: bool


class PerformanceSummary(BaseModel):
    sample_count: int = 0
    average_duration: float = 0.0
    max_duration: float = 0.0


class InteractionSequence(BaseModel):
    """One user interaction: a whole drag, or a single non-drag event."""

    sequence_id: str
    component: str
    interaction_type: InteractionType
    card_id: str | None = None
    start_timestamp: str
    end_timestamp: str
    duration_ms: float = 0.0
    event_ids: list[str]
    outcome: InteractionOutcome = InteractionOutcome.UNKNOWN
    validations_failed: int = 0
    performance: PerformanceSummary = Field(default_factory=PerformanceSummary)


class Anomaly(BaseModel):
    type: AnomalyType
    message: str
    event_id: str | None = None
    timestamp: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SlowEvent(BaseModel):
    event_id: str
    type: EventType
    component: str
    duration_ms: float
    threshold_ms: float


class Timeframe(BaseModel):
    start: str | None = None
    end: str | None = None
    duration_ms: float = 0.0


class EventCounts(BaseModel):
    total_events: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    by_component: dict[str, int] = Field(default_factory=dict)


class PerformanceOverview(BaseModel):
    events_with_metrics: int = 0
    average_duration: float = 0.0
    max_duration: float = 0.0
    slow_events: list[SlowEvent] = Field(default_factory=list)


class AnalysisReport(BaseModel):
    """Everything analyze_events found in a log."""

    timeframe: Timeframe
    counts: EventCounts
    performance: PerformanceOverview
    timeline: list[TimelineEntry]
    interactions: list[InteractionSequence]
    anomalies: list[Anomaly]
    notes: list[str]

    def anomalies_of(self, anomaly_type: AnomalyType) -> list[Anomaly]:
        return [anomaly for anomaly in self.anomalies if anomaly.type == anomaly_type]


# =============================================================================
# Analysis
# =============================================================================


@dataclass
class _OpenDrag:
    sequence_id: str
    component: str
    card_id: str
    start_timestamp: str
    events: list[UIActionEvent] = field(default_factory=list)


def analyze_events(
    events: Sequence[UIActionEvent],
    options: AnalysisOptions | None = None,
) -> AnalysisReport:
    """
    Analyze a recorded event log.

    Events are ordered by timestamp first; ties keep their log order.

    Args:
        events: Validated events, e.g. the valid_events of a sanitization pass
        options: Thresholds (defaults: 150ms slow event, 15s inactivity,
                 3 consecutive validation failures)

    Returns:
        AnalysisReport
    """
    options = options or AnalysisOptions()
    ordered = sorted(events, key=lambda event: event.occurred_at)

    counts = EventCounts(total_events=len(ordered))
    timeline: list[TimelineEntry] = []
    interactions: list[InteractionSequence] = []
    anomalies: list[Anomaly] = []
    slow_events: list[SlowEvent] = []
    durations: list[float] = []
    failures: dict[str, int] = {}
    open_drags: dict[str, _OpenDrag] = {}
    previous: UIActionEvent | None = None

    for event in ordered:
        counts.by_type[event.type.value] = counts.by_type.get(event.type.value, 0) + 1
        counts.by_component[event.component] = counts.by_component.get(event.component, 0) + 1

        if previous is not None:
            gap = _elapsed_ms(previous.timestamp, event.timestamp)
            if gap > options.inactivity_threshold_ms:
                anomalies.append(Anomaly(
                    type=AnomalyType.INACTIVITY_GAP,
                    event_id=event.id,
                    timestamp=event.timestamp,
                    message=f"Inactivity gap of {gap / 1000:.1f}s detected between events",
                    metadata={"gap_ms": gap, "previous_event_id": previous.id},
                ))

        duration = event.performance.operation_duration if event.performance else None
        timeline.append(TimelineEntry(
            event_id=event.id,
            timestamp=event.timestamp,
            type=event.type,
            component=event.component,
            duration_ms=duration,
            description=describe_event(event),
            has_state_before=event.game_state_before is not None,
            has_state_after=event.game_state_after is not None,
        ))

        if duration is not None:
            durations.append(duration)
            if duration > options.slow_event_threshold_ms:
                slow_events.append(SlowEvent(
                    event_id=event.id,
                    type=event.type,
                    component=event.component,
                    duration_ms=duration,
                    threshold_ms=options.slow_event_threshold_ms,
                ))
                anomalies.append(Anomaly(
                    type=AnomalyType.SLOW_EVENT,
                    event_id=event.id,
                    timestamp=event.timestamp,
                    message=f"{event.type.value} exceeded slow-event threshold ({duration:g}ms)",
                    metadata={
                        "duration_ms": duration,
                        "threshold_ms": options.slow_event_threshold_ms,
                        "component": event.component,
                    },
                ))

        if event.type in STATE_CAPTURING_TYPES and event.game_state_after is None:
            anomalies.append(Anomaly(
                type=AnomalyType.MISSING_GAME_STATE,
                event_id=event.id,
                timestamp=event.timestamp,
                message=f"{event.type.value} did not capture a post-event game state snapshot",
                metadata={"component": event.component, "type": event.type.value},
            ))

        _track_validation_failures(event, options.consecutive_failure_threshold, failures, anomalies)

        interaction_type = _INTERACTION_TYPES.get(event.type, InteractionType.OTHER)
        if interaction_type == InteractionType.DRAG and event.data.card is not None:
            _track_drag(event, open_drags, interactions, anomalies, options)
        else:
            interactions.append(_single_event_interaction(event, interaction_type))

        previous = event

    for drag in open_drags.values():
        last = drag.events[-1]
        sequence = _close_drag(drag, last)
        anomalies.append(Anomaly(
            type=AnomalyType.DROPPED_INTERACTION,
            event_id=last.id,
            timestamp=last.timestamp,
            message="Drag sequence did not complete with drop or cancel event",
            metadata={
                "card_id": drag.card_id,
                "component": drag.component,
                "duration_ms": sequence.duration_ms,
                "events_captured": len(drag.events),
            },
        ))
        interactions.append(sequence)

    notes = []
    if not slow_events:
        notes.append("No slow events detected with current thresholds.")
    if not durations:
        notes.append("No performance metrics were captured in the provided events.")

    timeframe = Timeframe()
    if ordered:
        start, end = ordered[0].timestamp, ordered[-1].timestamp
        timeframe = Timeframe(start=start, end=end, duration_ms=_elapsed_ms(start, end))

    report = AnalysisReport(
        timeframe=timeframe,
        counts=counts,
        performance=PerformanceOverview(
            events_with_metrics=len(durations),
            average_duration=sum(durations) / len(durations) if durations else 0.0,
            max_duration=max(durations, default=0.0),
            slow_events=slow_events,
        ),
        timeline=timeline,
        interactions=sorted(interactions, key=lambda item: parse_timestamp(item.start_timestamp)),
        anomalies=anomalies,
        notes=notes,
    )
    logger.info(
        "Analyzed %d events: %d interactions, %d anomalies",
        counts.total_events,
        len(report.interactions),
        len(anomalies),
    )
    return report


def describe_event(event: UIActionEvent) -> str:
    """One-line description: component, type, then card, move, validity and duration when present."""
    parts = [event.component, event.type.value]
    if event.data.card is not None:
        parts.append(f"card={event.data.card.id}")
    move_type = getattr(event.data, "move_type", None)
    if move_type:
        parts.append(f"move={move_type}")
    validation = _validation(event)
    if validation is not None:
        parts.append(f"valid={str(validation.is_valid).lower()}")
    if event.performance is not None:
        parts.append(f"duration={event.performance.operation_duration:g}ms")
    return " | ".join(parts)


def _elapsed_ms(start: str, end: str) -> float:
    delta = parse_timestamp(end) - parse_timestamp(start)
    return max(0.0, delta.total_seconds() * 1000)


def _validation(event: UIActionEvent) -> MoveValidationResult | None:
    return getattr(event.data, "validation_result", None)


def _track_validation_failures(
    event: UIActionEvent,
    threshold: int,
    failures: dict[str, int],
    anomalies: list[Anomaly],
) -> None:
    validation = _validation(event)
    if validation is not None and not validation.is_valid:
        count = failures.get(event.component, 0) + 1
        failures[event.component] = count
        if count >= threshold:
            anomalies.append(Anomaly(
                type=AnomalyType.VALIDATION_FAILURE_BURST,
                event_id=event.id,
                timestamp=event.timestamp,
                message=f"{count} consecutive validation failures detected in {event.component}",
                metadata={
                    "component": event.component,
                    "threshold": threshold,
                    "last_reason": validation.reason,
                    "violations": validation.rule_violations,
                },
            ))
    elif event.type in (EventType.MOVE_EXECUTED, EventType.MOVE_VALIDATED):
        failures[event.component] = 0


def _track_drag(
    event: UIActionEvent,
    open_drags: dict[str, _OpenDrag],
    interactions: list[InteractionSequence],
    anomalies: list[Anomaly],
    options: AnalysisOptions,
) -> None:
    card_id = event.data.card.id
    drag = open_drags.get(card_id)
    if drag is None:
        drag = _OpenDrag(
            sequence_id=f"drag-{card_id}-{event.timestamp}",
            component=event.component,
            card_id=card_id,
            start_timestamp=event.timestamp,
        )
        open_drags[card_id] = drag
    drag.events.append(event)

    if event.type not in (EventType.DRAG_DROP, EventType.DRAG_CANCEL):
        return

    sequence = _close_drag(drag, event)
    interactions.append(sequence)
    del open_drags[card_id]
    if sequence.duration_ms > options.inactivity_threshold_ms:
        anomalies.append(Anomaly(
            type=AnomalyType.SEQUENCE_DURATION_WARNING,
            event_id=event.id,
            timestamp=event.timestamp,
            message=f"Drag sequence for card {card_id} took {sequence.duration_ms / 1000:.1f}s",
            metadata={
                "component": drag.component,
                "duration_ms": sequence.duration_ms,
                "events_captured": len(drag.events),
            },
        ))


def _close_drag(drag: _OpenDrag, closing: UIActionEvent) -> InteractionSequence:
    outcome = InteractionOutcome.UNKNOWN
    if closing.type == EventType.DRAG_DROP:
        validation = _validation(closing)
        if validation is None or validation.is_valid:
            outcome = InteractionOutcome.SUCCESS
        else:
            outcome = InteractionOutcome.FAILED
    elif closing.type == EventType.DRAG_CANCEL:
        outcome = InteractionOutcome.CANCELLED

    return InteractionSequence(
        sequence_id=drag.sequence_id,
        component=drag.component,
        interaction_type=InteractionType.DRAG,
        card_id=drag.card_id,
        start_timestamp=drag.start_timestamp,
        end_timestamp=closing.timestamp,
        duration_ms=_elapsed_ms(drag.start_timestamp, closing.timestamp),
        event_ids=[event.id for event in drag.events],
        outcome=outcome,
        validations_failed=sum(
            1 for event in drag.events
            if (validation := _validation(event)) is not None and not validation.is_valid
        ),
        performance=_summarize_performance(drag.events),
    )


def _single_event_interaction(
    event: UIActionEvent,
    interaction_type: InteractionType,
) -> InteractionSequence:
    validation = _validation(event)
    failed_validation = validation is not None and not validation.is_valid

    outcome = InteractionOutcome.UNKNOWN
    if interaction_type == InteractionType.MOVE:
        if event.type == EventType.MOVE_EXECUTED:
            success = getattr(event.data, "move_success", None)
            outcome = InteractionOutcome.FAILED if success is False else InteractionOutcome.SUCCESS
        elif event.type == EventType.MOVE_ATTEMPT and failed_validation:
            outcome = InteractionOutcome.FAILED
    elif interaction_type == InteractionType.CLICK:
        outcome = InteractionOutcome.SUCCESS

    return InteractionSequence(
        sequence_id=event.id,
        component=event.component,
        interaction_type=interaction_type,
        card_id=event.data.card.id if event.data.card is not None else None,
        start_timestamp=event.timestamp,
        end_timestamp=event.timestamp,
        event_ids=[event.id],
        outcome=outcome,
        validations_failed=1 if failed_validation else 0,
        performance=_summarize_performance([event]),
    )


def _summarize_performance(events: Sequence[UIActionEvent]) -> PerformanceSummary:
    durations = [event.performance.operation_duration for event in events if event.performance]
    if not durations:
        return PerformanceSummary()
    return PerformanceSummary(
        sample_count=len(durations),
        average_duration=sum(durations) / len(durations),
        max_duration=max(durations),
    )
