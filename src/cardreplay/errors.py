"""
Exception hierarchy for cardreplay.

All cardreplay exceptions inherit from CardReplayError, allowing callers to
catch every package-specific failure with a single except clause.

Exception Categories:
    - EventLogError: The event log is empty, malformed or out of order
    - ReplayExecutionError: Applying an event to the game engine failed
    - ConsistencyError: Replayed state drifted from a recorded snapshot
    - ControllerError: The replay controller was driven incorrectly
    - ConfigError: Configuration or adapter lookup failed

Execution errors carry a category, and ``recoverable`` follows from it
through RECOVERABLE_CATEGORIES. The replay controller uses them to decide
between falling back to a recorded snapshot and halting the session.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


# =============================================================================
# Error Codes
# =============================================================================

# Event log errors: 1xxx
ERROR_EVENT_LOG_EMPTY = 1001
ERROR_EVENT_INVALID = 1002
ERROR_EVENT_OUT_OF_ORDER = 1003
ERROR_EVENT_LOG_LOAD = 1004

# Execution errors: 2xxx
ERROR_MISSING_EVENT_DATA = 2001
ERROR_MISSING_CARD_DATA = 2002
ERROR_INVALID_CARD_SNAPSHOT = 2003
ERROR_GAME_ENGINE = 2004
ERROR_STATE_CORRUPTION = 2005
ERROR_INVALID_GAME_TYPE = 2006

# Consistency errors: 3xxx
ERROR_STATE_INCONSISTENT = 3001
ERROR_SNAPSHOT_INVALID = 3002

# Controller errors: 4xxx
ERROR_ADAPTER_NOT_ATTACHED = 4001
ERROR_STEP_IN_PROGRESS = 4002
ERROR_INVALID_TRANSITION = 4003

# Configuration errors: 5xxx
ERROR_CONFIG_INVALID = 5001
ERROR_ADAPTER_NOT_FOUND = 5002


class ErrorCategory(str, Enum):
    """
    Closed set of failure categories known to the replay engine.

    Every failure raised while applying an event falls into exactly one of
    these. Categories decide whether replay can continue.
    """

    MISSING_EVENT_DATA = "missing_event_data"
    MISSING_CARD_DATA = "missing_card_data"
    INVALID_CARD_SNAPSHOT = "invalid_card_snapshot"
    INVALID_EVENT_STRUCTURE = "invalid_event_structure"
    ANIMATION_TIMING = "animation_timing"
    VALIDATION_TIMEOUT = "validation_timeout"
    UI_SYNCHRONIZATION = "ui_synchronization"
    STATE_INCONSISTENCY = "state_inconsistency"
    FATAL_ENGINE = "fatal_engine"
    STATE_CORRUPTION = "state_corruption"
    RESOURCE_EXHAUSTION = "resource_exhaustion"
    INVALID_GAME_TYPE = "invalid_game_type"
    CORRUPTED_LOG = "corrupted_log"
    UNKNOWN = "unknown"


# Categories not listed here are fatal
RECOVERABLE_CATEGORIES = frozenset({
    ErrorCategory.MISSING_EVENT_DATA,
    ErrorCategory.MISSING_CARD_DATA,
    ErrorCategory.INVALID_CARD_SNAPSHOT,
    ErrorCategory.INVALID_EVENT_STRUCTURE,
    ErrorCategory.ANIMATION_TIMING,
    ErrorCategory.VALIDATION_TIMEOUT,
    ErrorCategory.UI_SYNCHRONIZATION,
    ErrorCategory.STATE_INCONSISTENCY,
})


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class CardReplayError(Exception):
    """
    Base exception for all cardreplay errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    category: ClassVar[ErrorCategory | None] = None

    @property
    def recoverable(self) -> bool:
        """Whether replay may continue past this error, decided by category."""
        return self.category in RECOVERABLE_CATEGORIES

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
            "category": self.category.value if self.category else None,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Event Log Errors
# =============================================================================


@dataclass
class EventLogError(CardReplayError):
    """Base class for problems with the event log itself."""

    category: ClassVar[ErrorCategory | None] = ErrorCategory.CORRUPTED_LOG


@dataclass
class EmptyEventLogError(EventLogError):
    """Raised when a log contains no events to replay."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Event log contains no events"
        if self.code == 0:
            self.code = ERROR_EVENT_LOG_EMPTY


@dataclass
class InvalidEventError(EventLogError):
    """
    Raised when an event does not have the required structure.

    Attributes:
        index: Position of the offending event in the log
        reason: What is wrong with it
    """

    index: int = -1
    reason: str = ""

    category: ClassVar[ErrorCategory | None] = ErrorCategory.INVALID_EVENT_STRUCTURE

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid event structure at index {self.index}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_EVENT_INVALID
        self.context.update({"index": self.index, "reason": self.reason})


@dataclass
class EventOrderError(EventLogError):
    """Raised when event timestamps go backwards."""

    index: int = -1
    previous: str = ""
    current: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Event at index {self.index} is out of chronological order: "
                f"{self.current} precedes {self.previous}"
            )
        if self.code == 0:
            self.code = ERROR_EVENT_OUT_OF_ORDER
        if not self.suggestion:
            self.suggestion = "Sort the log by timestamp before replaying it"
        self.context.update({
            "index": self.index,
            "previous": self.previous,
            "current": self.current,
        })


@dataclass
class EventLogLoadError(EventLogError):
    """Raised when an event log file cannot be read or parsed."""

    path: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to load event log {self.path}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_EVENT_LOG_LOAD
        if not self.suggestion:
            self.suggestion = "Logs must be a JSON array, an object with an 'events' array, or JSON lines"
        self.context.update({"path": self.path, "reason": self.reason})


# =============================================================================
# Execution Errors
# =============================================================================


@dataclass
class ReplayExecutionError(CardReplayError):
    """
    Base class for failures while applying an event to the game engine.

    Attributes:
        event_id: ID of the event being applied
        event_type: Type of the event being applied
    """

    event_id: str | None = None
    event_type: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.event_id is not None:
            self.context["event_id"] = self.event_id
        if self.event_type is not None:
            self.context["event_type"] = self.event_type


@dataclass
class MissingEventDataError(ReplayExecutionError):
    """Raised when a move event lacks its source or target position."""

    missing: list[str] = field(default_factory=list)

    category: ClassVar[ErrorCategory | None] = ErrorCategory.MISSING_EVENT_DATA

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Missing event data for move execution"
            if self.missing:
                self.message += f": {', '.join(self.missing)}"
        if self.code == 0:
            self.code = ERROR_MISSING_EVENT_DATA
        super().__post_init__()
        self.context["missing"] = self.missing


@dataclass
class MissingCardDataError(ReplayExecutionError):
    """Raised when a move event does not say which card moved."""

    category: ClassVar[ErrorCategory | None] = ErrorCategory.MISSING_CARD_DATA

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Missing card data for move execution"
        if self.code == 0:
            self.code = ERROR_MISSING_CARD_DATA
        super().__post_init__()


@dataclass
class InvalidCardSnapshotError(ReplayExecutionError):
    """Raised when an engine cannot locate or accept the card in an event."""

    card_id: str | None = None

    category: ClassVar[ErrorCategory | None] = ErrorCategory.INVALID_CARD_SNAPSHOT

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid card snapshot: {self.card_id}"
        if self.code == 0:
            self.code = ERROR_INVALID_CARD_SNAPSHOT
        super().__post_init__()
        self.context["card_id"] = self.card_id


@dataclass
class GameEngineError(ReplayExecutionError):
    """Raised when the game engine fails in a way replay cannot recover from."""

    category: ClassVar[ErrorCategory | None] = ErrorCategory.FATAL_ENGINE

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Fatal game engine error"
        if self.code == 0:
            self.code = ERROR_GAME_ENGINE
        super().__post_init__()


@dataclass
class StateCorruptionError(ReplayExecutionError):
    """Raised when engine state is corrupted beyond repair."""

    category: ClassVar[ErrorCategory | None] = ErrorCategory.STATE_CORRUPTION

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Critical state corruption"
        if self.code == 0:
            self.code = ERROR_STATE_CORRUPTION
        super().__post_init__()


@dataclass
class InvalidGameTypeError(ReplayExecutionError):
    """Raised when an adapter is asked to run a game type it does not support."""

    game_type: str = ""

    category: ClassVar[ErrorCategory | None] = ErrorCategory.INVALID_GAME_TYPE

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid game type: {self.game_type}"
        if self.code == 0:
            self.code = ERROR_INVALID_GAME_TYPE
        super().__post_init__()
        self.context["game_type"] = self.game_type


# =============================================================================
# Consistency Errors
# =============================================================================


@dataclass
class ConsistencyError(CardReplayError):
    """Base class for snapshot and state comparison failures."""


@dataclass
class StateInconsistencyError(ConsistencyError):
    """
    Raised when replayed state does not match the recorded snapshot.

    Attributes:
        step: Replay step at which drift was detected
        inconsistencies: Individual mismatch descriptions
    """

    step: int = -1
    inconsistencies: list[str] = field(default_factory=list)

    category: ClassVar[ErrorCategory | None] = ErrorCategory.STATE_INCONSISTENCY

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"State inconsistency at step {self.step}: {'; '.join(self.inconsistencies)}"
            )
        if self.code == 0:
            self.code = ERROR_STATE_INCONSISTENT
        self.context.update({"step": self.step, "inconsistencies": self.inconsistencies})


@dataclass
class SnapshotInvalidError(ConsistencyError):
    """Raised when a serialized snapshot cannot be parsed or validated."""

    reason: str = ""

    category: ClassVar[ErrorCategory | None] = ErrorCategory.INVALID_CARD_SNAPSHOT

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid game state snapshot: {self.reason}"
        if self.code == 0:
            self.code = ERROR_SNAPSHOT_INVALID
        self.context["reason"] = self.reason


# =============================================================================
# Controller Errors
# =============================================================================


@dataclass
class ControllerError(CardReplayError):
    """Base class for misuse of the replay controller."""


@dataclass
class AdapterNotAttachedError(ControllerError):
    """Raised when replay starts without a game engine adapter."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "No game engine adapter attached to the replay controller"
        if self.code == 0:
            self.code = ERROR_ADAPTER_NOT_ATTACHED
        if not self.suggestion:
            self.suggestion = "Pass an adapter to ReplayController() or start_replay()"


@dataclass
class StepInProgressError(ControllerError):
    """Raised when next_step() is called while another step is still running."""

    step: int = -1

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Step {self.step} is still in progress"
        if self.code == 0:
            self.code = ERROR_STEP_IN_PROGRESS
        if not self.suggestion:
            self.suggestion = "Await the pending next_step() before requesting another"
        self.context["step"] = self.step


@dataclass
class InvalidTransitionError(ControllerError):
    """Raised when an operation is not allowed in the controller's current phase."""

    operation: str = ""
    phase: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot {self.operation} while replay is {self.phase}"
        if self.code == 0:
            self.code = ERROR_INVALID_TRANSITION
        self.context.update({"operation": self.operation, "phase": self.phase})


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigError(CardReplayError):
    """Raised when configuration is invalid."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID


@dataclass
class AdapterNotFoundError(ConfigError):
    """Raised when an adapter cannot be resolved by game type or import path."""

    name: str = ""
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Adapter not found: {self.name}"
        if self.code == 0:
            self.code = ERROR_ADAPTER_NOT_FOUND
        if not self.suggestion and self.available:
            self.suggestion = f"Available adapters: {', '.join(self.available)}"
        self.context.update({"name": self.name, "available": self.available})
