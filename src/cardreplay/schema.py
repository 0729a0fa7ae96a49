"""
Schema definitions for cardreplay.

This module defines the Pydantic models used throughout cardreplay:
- CardSnapshot/GameStateSnapshot: Recorded game state at a point in time
- UIActionEvent and its payload variants: One recorded UI action
- GameState: Live state exchanged with a game engine adapter
- ReplayOptions/ReplayResult/StepResult/ReplayState: Replay session records
- SanitizationReport: Counters produced when cleaning a raw log

Design Decisions:
    - Python attributes are snake_case; the JSON form uses camelCase aliases
      so recorded logs round-trip without loss
    - Recorded data (events, snapshots) is frozen
    - Event payloads are a tagged union selected by the event type
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# Enums
# =============================================================================


class EventType(str, Enum):
    """Every kind of UI action the recorder emits."""

    # Drag & drop
    DRAG_START = "drag_start"
    DRAG_HOVER = "drag_hover"
    DRAG_DROP = "drag_drop"
    DRAG_CANCEL = "drag_cancel"

    # Clicks
    CARD_CLICK = "card_click"
    BUTTON_CLICK = "button_click"
    ZONE_CLICK = "zone_click"

    # Moves
    MOVE_ATTEMPT = "move_attempt"
    MOVE_EXECUTED = "move_executed"
    MOVE_VALIDATED = "move_validated"
    AUTO_MOVE = "auto_move"

    # State
    STATE_CHANGE = "state_change"
    CARD_FLIP = "card_flip"
    SCORE_UPDATE = "score_update"
    WIN_CONDITION = "win_condition"


class GameType(str, Enum):
    """Supported solitaire variants."""

    KLONDIKE = "klondike"
    SPIDER = "spider"
    FREECELL = "freecell"


class Suit(str, Enum):
    """Card suits."""

    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"
    SPADES = "spades"


class ReplayPhase(str, Enum):
    """Lifecycle phase of a replay session."""

    IDLE = "idle"
    INITIALIZED = "initialized"
    REPLAYING = "replaying"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"


class ErrorKind(str, Enum):
    """Where in the replay pipeline an error record came from."""

    EXECUTION = "execution"
    CONSISTENCY = "consistency"
    VALIDATION = "validation"


# Event types that change piles through the adapter
MOVE_EVENT_TYPES = frozenset({
    EventType.MOVE_EXECUTED,
    EventType.DRAG_DROP,
    EventType.AUTO_MOVE,
})

# Event types whose recorded after-state is adopted as-is
STATE_EVENT_TYPES = frozenset({
    EventType.STATE_CHANGE,
    EventType.CARD_FLIP,
})


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp.

    Naive timestamps are treated as UTC so that mixed logs still compare.

    Raises:
        ValueError: If the value is not a valid ISO-8601 timestamp
    """
    if not isinstance(value, str) or not value:
        msg = f"Invalid timestamp: {value!r}"
        raise ValueError(msg)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class WireModel(BaseModel):
    """Base for records that travel as camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Dump in the camelCase wire format, omitting unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Snapshot Models
# =============================================================================


class Position(WireModel):
    """
    Screen position of a card or drop target.

    Attributes:
        x: Horizontal coordinate
        y: Vertical coordinate
        zone: Optional pile label (e.g., "tableau-0", "foundation-hearts")
    """

    x: float
    y: float
    zone: str | None = None


class CardSnapshot(WireModel):
    """A single card as it looked when the snapshot was taken."""

    id: str = Field(..., min_length=1)
    suit: str = Field(..., min_length=1)
    rank: int = Field(..., ge=1, le=13, description="1 (ace) through 13 (king)")
    face_up: bool
    draggable: bool
    position: Position


class SnapshotMetadata(WireModel):
    """Why and when a snapshot was captured."""

    snapshot_reason: str
    triggered_by: str
    sequence_number: int = Field(..., ge=0)


class GameStateSnapshot(WireModel):
    """
    Complete recorded game state.

    Attributes:
        timestamp: ISO timestamp of capture
        game_type: Solitaire variant
        tableau: Tableau piles, bottom card first
        foundation: Foundation piles, bottom card first
        stock: Stock pile, if the variant has one
        waste: Waste pile, if the variant has one
        free_cells: Free cells, for FreeCell
        score: Score at capture time
        move_count: Number of moves made so far
        game_start_time: ISO timestamp of when the game began
        metadata: Capture reason, trigger and sequence number
    """

    timestamp: str
    game_type: GameType
    tableau: list[list[CardSnapshot]]
    foundation: list[list[CardSnapshot]]
    stock: list[CardSnapshot] | None = None
    waste: list[CardSnapshot] | None = None
    free_cells: list[CardSnapshot] | None = None
    score: int
    move_count: int = Field(..., ge=0)
    game_start_time: str
    metadata: SnapshotMetadata

    @field_validator("timestamp", "game_start_time")
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        """Reject timestamps that are not ISO-8601."""
        parse_timestamp(v)
        return v


class GameState(BaseModel):
    """
    Live game state exchanged with a game engine adapter.

    Unlike snapshots this is mutable and carries no capture metadata.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        validate_assignment=True,
    )

    game_type: GameType
    tableau: list[list[CardSnapshot]] = Field(default_factory=list)
    foundation: list[list[CardSnapshot]] = Field(default_factory=list)
    stock: list[CardSnapshot] | None = None
    waste: list[CardSnapshot] | None = None
    free_cells: list[CardSnapshot] | None = None
    score: int = 0
    move_count: int = Field(default=0, ge=0)
    time_started: str | None = None


# =============================================================================
# Event Models
# =============================================================================


class PerformanceMetrics(WireModel):
    """Timing recorded alongside an event, in milliseconds."""

    operation_duration: float = Field(..., ge=0)
    render_time: float | None = None
    validation_time: float | None = None
    state_update_time: float | None = None
    animation_duration: float | None = None
    memory_usage: int | None = None


class MoveValidationResult(WireModel):
    """Outcome of a move validation recorded by the UI."""

    is_valid: bool
    reason: str
    rule_violations: list[str] | None = None
    suggested_moves: list[Position] | None = None
    validation_time: float = 0.0


class EventPayload(WireModel):
    """Fields shared by all payload variants. Unknown keys are preserved."""

    model_config = ConfigDict(extra="allow")

    card: CardSnapshot | None = None
    source_position: Position | None = None
    target_position: Position | None = None


class DragPayload(EventPayload):
    """Payload of drag start/hover/drop/cancel events."""

    validation_result: MoveValidationResult | None = None


class ClickPayload(EventPayload):
    """Payload of card, button and zone clicks."""

    click_target: str | None = None
    click_coordinates: Position | None = None


class MovePayload(EventPayload):
    """Payload of move attempts, executions, validations and auto moves."""

    move_type: Literal["user", "auto", "undo"] | None = None
    move_success: bool | None = None
    move_reason: str | None = None
    validation_result: MoveValidationResult | None = None


class StatePayload(EventPayload):
    """Payload of state changes, flips, score updates and wins."""

    change_type: str | None = None
    changed_elements: list[str] | None = None


PAYLOAD_TYPES: dict[EventType, type[EventPayload]] = {
    EventType.DRAG_START: DragPayload,
    EventType.DRAG_HOVER: DragPayload,
    EventType.DRAG_DROP: DragPayload,
    EventType.DRAG_CANCEL: DragPayload,
    EventType.CARD_CLICK: ClickPayload,
    EventType.BUTTON_CLICK: ClickPayload,
    EventType.ZONE_CLICK: ClickPayload,
    EventType.MOVE_ATTEMPT: MovePayload,
    EventType.MOVE_EXECUTED: MovePayload,
    EventType.MOVE_VALIDATED: MovePayload,
    EventType.AUTO_MOVE: MovePayload,
    EventType.STATE_CHANGE: StatePayload,
    EventType.CARD_FLIP: StatePayload,
    EventType.SCORE_UPDATE: StatePayload,
    EventType.WIN_CONDITION: StatePayload,
}


class UIActionEvent(WireModel):
    """
    One recorded UI action.

    The ``data`` payload variant is chosen by ``type``; see PAYLOAD_TYPES.

    Attributes:
        id: Unique event identifier
        timestamp: ISO timestamp of the action
        type: Kind of action
        component: UI component that emitted it
        data: Type-specific payload
        performance: Optional timing information
        game_state_before: Snapshot taken before the action
        game_state_after: Snapshot taken after the action
    """

    id: str = Field(..., min_length=1)
    timestamp: str
    type: EventType
    component: str = Field(..., min_length=1)
    data: DragPayload | ClickPayload | MovePayload | StatePayload
    performance: PerformanceMetrics | None = None
    game_state_before: GameStateSnapshot | None = None
    game_state_after: GameStateSnapshot | None = None

    @model_validator(mode="before")
    @classmethod
    def bind_payload(cls, values: Any) -> Any:
        """Parse ``data`` with the payload model registered for ``type``."""
        if not isinstance(values, dict):
            return values
        data = values.get("data")
        try:
            event_type = EventType(values.get("type"))
        except ValueError:
            return values
        payload_type = PAYLOAD_TYPES[event_type]
        if isinstance(data, dict):
            values = {**values, "data": payload_type.model_validate(data)}
        elif isinstance(data, EventPayload) and not isinstance(data, payload_type):
            values = {**values, "data": payload_type.model_validate(data.model_dump(by_alias=True))}
        return values

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        """Reject timestamps that are not ISO-8601."""
        parse_timestamp(v)
        return v

    @property
    def occurred_at(self) -> datetime:
        """Timestamp as an aware datetime."""
        return parse_timestamp(self.timestamp)


# =============================================================================
# Replay Models
# =============================================================================


class ReplayOptions(BaseModel):
    """
    Options for a replay session.

    Attributes:
        events: Events to replay, in chronological order
        step_by_step: Wait for next_step() instead of running to the end
        validate_states: Compare replayed state against recorded snapshots
        stop_at_step: Stop after this many steps (bulk mode only)
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    events: list[UIActionEvent]
    step_by_step: bool = False
    validate_states: bool = True
    stop_at_step: int | None = Field(default=None, ge=0)


class ReplayErrorRecord(BaseModel):
    """One error observed during replay."""

    model_config = ConfigDict(frozen=True)

    step: int
    error: str
    recoverable: bool
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    event_id: str | None = None
    event_type: EventType | None = None
    category: str | None = None
    kind: ErrorKind = ErrorKind.EXECUTION


class ReplayPerformance(BaseModel):
    """Timing of a replay session, in milliseconds."""

    model_config = ConfigDict(frozen=True)

    total_replay_time: float = 0.0
    average_event_processing_time: float = 0.0
    validation_time: float = 0.0


class ReplayResult(BaseModel):
    """Aggregate outcome of a replay session."""

    model_config = ConfigDict(frozen=True)

    success: bool
    steps_executed: int = 0
    errors: list[ReplayErrorRecord] = Field(default_factory=list)
    performance: ReplayPerformance = Field(default_factory=ReplayPerformance)
    final_game_state: GameState | None = None


class StepResult(BaseModel):
    """Outcome of a single next_step() call."""

    model_config = ConfigDict(frozen=True)

    success: bool
    step: int = 0
    error: str | None = None
    game_state: GameState | None = None
    recovered: bool = False
    processing_time: float = 0.0


class RecreationResult(BaseModel):
    """Outcome of rebuilding game state from a list of events."""

    model_config = ConfigDict(frozen=True)

    success: bool
    game_state: GameState | None = None
    errors: list[ReplayErrorRecord] = Field(default_factory=list)


class ReplayState(BaseModel):
    """Read-only view of a replay controller."""

    model_config = ConfigDict(frozen=True)

    phase: ReplayPhase
    current_step: int
    total_steps: int
    is_replaying: bool
    is_paused: bool
    current_game_state: GameState | None = None
    errors: list[ReplayErrorRecord] = Field(default_factory=list)


class SanitizationReport(BaseModel):
    """Counters describing what sanitization did to a raw log."""

    model_config = ConfigDict(frozen=True)

    total_events: int
    valid_events: int
    corrupted_events: int
    sanitized_events: int
    warnings: list[str] = Field(default_factory=list)
