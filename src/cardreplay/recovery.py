"""
Error classification and state recovery for replay.

Classification is a closed policy:

1. cardreplay exceptions carry their own category
2. MemoryError is resource exhaustion
3. other exceptions are matched against a fixed phrase table, fatal
   categories first
4. anything else is UNKNOWN, which is fatal

Whichever path finds the category, recoverability is decided by the same
category set (RECOVERABLE_CATEGORIES unless the classifier is given another).

Recoverable failures fall back to a recorded state (see
``select_fallback_state``); fatal failures stop the replay.
"""

from dataclasses import dataclass
from typing import Sequence

from cardreplay.errors import RECOVERABLE_CATEGORIES, CardReplayError, ErrorCategory
from cardreplay.schema import GameState, UIActionEvent
from cardreplay.snapshots import state_from_snapshot


@dataclass(frozen=True)
class Classification:
    """Category of a failure and whether replay may continue past it."""

    category: ErrorCategory
    recoverable: bool


# Fatal categories come first so that a message naming both kinds is fatal
PHRASE_TABLE: tuple[tuple[ErrorCategory, tuple[str, ...]], ...] = (
    (ErrorCategory.FATAL_ENGINE, ("fatal game engine error",)),
    (ErrorCategory.STATE_CORRUPTION, ("critical state corruption",)),
    (ErrorCategory.RESOURCE_EXHAUSTION, ("memory allocation failure", "system resource exhaustion")),
    (ErrorCategory.INVALID_GAME_TYPE, ("invalid game type",)),
    (ErrorCategory.CORRUPTED_LOG, ("corrupted event log structure",)),
    (ErrorCategory.MISSING_EVENT_DATA, ("missing event data",)),
    (ErrorCategory.MISSING_CARD_DATA, ("missing card data",)),
    (ErrorCategory.INVALID_CARD_SNAPSHOT, ("invalid card snapshot",)),
    (ErrorCategory.INVALID_EVENT_STRUCTURE, ("invalid event structure",)),
    (ErrorCategory.ANIMATION_TIMING, ("animation timing mismatch", "non-critical animation error")),
    (ErrorCategory.VALIDATION_TIMEOUT, ("validation timeout", "performance metric collection failed")),
    (ErrorCategory.UI_SYNCHRONIZATION, ("ui synchronization issue",)),
    (ErrorCategory.STATE_INCONSISTENCY, ("state consistency validation failed",)),
)


class ErrorClassifier:
    """Decides whether a replay failure is recoverable."""

    def __init__(
        self,
        phrase_table: Sequence[tuple[ErrorCategory, tuple[str, ...]]] = PHRASE_TABLE,
        recoverable_categories: frozenset[ErrorCategory] = RECOVERABLE_CATEGORIES,
    ) -> None:
        self._phrase_table = tuple(
            (category, tuple(phrase.lower() for phrase in phrases))
            for category, phrases in phrase_table
        )
        self._recoverable = recoverable_categories

    def classify(self, error: BaseException) -> Classification:
        """Categorize an exception raised while applying an event."""
        if isinstance(error, CardReplayError) and error.category is not None:
            return self._result(error.category)
        if isinstance(error, MemoryError):
            return self._result(ErrorCategory.RESOURCE_EXHAUSTION)

        message = str(error).lower()
        for category, phrases in self._phrase_table:
            if any(phrase in message for phrase in phrases):
                return self._result(category)
        return self._result(ErrorCategory.UNKNOWN)

    def is_recoverable(self, error: BaseException) -> bool:
        """Shortcut for ``classify(error).recoverable``."""
        return self.classify(error).recoverable

    def _result(self, category: ErrorCategory) -> Classification:
        return Classification(category, category in self._recoverable)


@dataclass(frozen=True)
class Fallback:
    """A state to resume from and where it came from."""

    state: GameState
    source: str


def select_fallback_state(
    event: UIActionEvent,
    last_valid_state: GameState | None,
    upcoming_events: Sequence[UIActionEvent] = (),
) -> Fallback | None:
    """
    Pick the state to continue from after a recoverable failure.

    Tried in order: the event's after-snapshot, its before-snapshot, the
    last state known to be valid, then the before-snapshot of the first
    upcoming event that has one.

    Returns:
        Fallback, or None when no candidate exists
    """
    if event.game_state_after is not None:
        return Fallback(state_from_snapshot(event.game_state_after), "game_state_after")
    if event.game_state_before is not None:
        return Fallback(state_from_snapshot(event.game_state_before), "game_state_before")
    if last_valid_state is not None:
        return Fallback(last_valid_state.model_copy(deep=True), "last_valid_state")
    for upcoming in upcoming_events:
        if upcoming.game_state_before is not None:
            return Fallback(state_from_snapshot(upcoming.game_state_before), "next_event_state_before")
    return None
