"""
Unit tests for error hierarchy.

Tests cover:
- Base CardReplayError behavior
- Event log errors with context
- Execution errors, their categories and recoverability
- Controller and configuration errors
- Error serialization
"""

import pytest

from cardreplay.errors import (
    ERROR_ADAPTER_NOT_FOUND,
    ERROR_EVENT_INVALID,
    ERROR_EVENT_LOG_EMPTY,
    ERROR_GAME_ENGINE,
    ERROR_MISSING_EVENT_DATA,
    AdapterNotAttachedError,
    AdapterNotFoundError,
    CardReplayError,
    ConfigError,
    EmptyEventLogError,
    ErrorCategory,
    EventLogError,
    EventLogLoadError,
    EventOrderError,
    GameEngineError,
    InvalidCardSnapshotError,
    InvalidEventError,
    InvalidGameTypeError,
    InvalidTransitionError,
    MissingCardDataError,
    MissingEventDataError,
    ReplayExecutionError,
    SnapshotInvalidError,
    StateCorruptionError,
    StateInconsistencyError,
    StepInProgressError,
)


class TestCardReplayError:
    """Tests for base CardReplayError."""

    def test_basic_error(self) -> None:
        """Create a basic error with message."""
        err = CardReplayError(message="Something went wrong", code=9999)
        assert err.message == "Something went wrong"
        assert err.code == 9999
        assert err.suggestion is None
        assert err.context == {}

    def test_str_includes_code_and_suggestion(self) -> None:
        """String form shows the code and suggestion."""
        err = CardReplayError(message="Failed", code=1, suggestion="Try again")
        assert str(err) == "[E1] Failed\nSuggestion: Try again"

    def test_str_without_suggestion(self) -> None:
        err = CardReplayError(message="Failed", code=7)
        assert str(err) == "[E7] Failed"

    def test_is_exception(self) -> None:
        """Errors can be raised and caught as CardReplayError."""
        with pytest.raises(CardReplayError):
            raise GameEngineError()

    def test_to_dict(self) -> None:
        """Serialization includes category and recoverability."""
        data = MissingCardDataError(event_id="event-1").to_dict()
        assert data["error_type"] == "MissingCardDataError"
        assert data["category"] == "missing_card_data"
        assert data["recoverable"] is True
        assert data["context"]["event_id"] == "event-1"

    def test_base_has_no_category(self) -> None:
        assert CardReplayError().to_dict()["category"] is None


class TestEventLogErrors:
    """Tests for problems with the log itself."""

    def test_empty_log(self) -> None:
        err = EmptyEventLogError()
        assert err.message == "Event log contains no events"
        assert err.code == ERROR_EVENT_LOG_EMPTY
        assert isinstance(err, EventLogError)
        assert err.category == ErrorCategory.CORRUPTED_LOG

    def test_invalid_event(self) -> None:
        """Invalid events name their index and reason."""
        err = InvalidEventError(index=3, reason="type: Field required")
        assert err.message == "Invalid event structure at index 3: type: Field required"
        assert err.code == ERROR_EVENT_INVALID
        assert err.context == {"index": 3, "reason": "type: Field required"}
        assert err.recoverable is True

    def test_out_of_order(self) -> None:
        err = EventOrderError(index=2, previous="b", current="a")
        assert "index 2" in err.message
        assert err.suggestion is not None
        assert err.context["previous"] == "b"

    def test_load_error(self) -> None:
        err = EventLogLoadError(path="log.json", reason="line 2: Expecting value")
        assert "log.json" in err.message
        assert "line 2" in err.message


class TestExecutionErrors:
    """Tests for failures while applying events."""

    @pytest.mark.parametrize(
        ("error", "category", "recoverable"),
        [
            (MissingEventDataError(), ErrorCategory.MISSING_EVENT_DATA, True),
            (MissingCardDataError(), ErrorCategory.MISSING_CARD_DATA, True),
            (InvalidCardSnapshotError(card_id="c1"), ErrorCategory.INVALID_CARD_SNAPSHOT, True),
            (GameEngineError(), ErrorCategory.FATAL_ENGINE, False),
            (StateCorruptionError(), ErrorCategory.STATE_CORRUPTION, False),
            (InvalidGameTypeError(game_type="hearts"), ErrorCategory.INVALID_GAME_TYPE, False),
        ],
    )
    def test_category_and_recoverability(self, error, category, recoverable) -> None:
        assert isinstance(error, ReplayExecutionError)
        assert error.category == category
        assert error.recoverable is recoverable

    def test_missing_event_data_lists_fields(self) -> None:
        err = MissingEventDataError(event_id="e1", missing=["sourcePosition"])
        assert err.message == "Missing event data for move execution: sourcePosition"
        assert err.code == ERROR_MISSING_EVENT_DATA
        assert err.context == {"event_id": "e1", "missing": ["sourcePosition"]}

    def test_default_messages_match_classifier_phrases(self) -> None:
        """Default messages carry the phrase the classifier looks for."""
        assert GameEngineError().message == "Fatal game engine error"
        assert GameEngineError().code == ERROR_GAME_ENGINE
        assert StateCorruptionError().message == "Critical state corruption"
        assert "Invalid game type" in InvalidGameTypeError(game_type="x").message

    def test_custom_message_kept(self) -> None:
        err = InvalidCardSnapshotError(card_id="c1", message="c1 is not in tableau-0")
        assert err.message == "c1 is not in tableau-0"
        assert err.context["card_id"] == "c1"


class TestConsistencyErrors:
    def test_state_inconsistency(self) -> None:
        err = StateInconsistencyError(step=4, inconsistencies=["Score mismatch: 1 vs 2"])
        assert err.message == "State inconsistency at step 4: Score mismatch: 1 vs 2"
        assert err.recoverable is True

    def test_snapshot_invalid(self) -> None:
        err = SnapshotInvalidError(reason="score: Field required")
        assert err.message == "Invalid game state snapshot: score: Field required"
        assert err.category == ErrorCategory.INVALID_CARD_SNAPSHOT
        assert err.recoverable is True


class TestControllerErrors:
    """Tests for controller misuse errors."""

    def test_adapter_not_attached(self) -> None:
        err = AdapterNotAttachedError()
        assert "adapter" in err.message
        assert err.suggestion is not None

    def test_step_in_progress(self) -> None:
        assert StepInProgressError(step=2).message == "Step 2 is still in progress"

    def test_invalid_transition(self) -> None:
        err = InvalidTransitionError(operation="start replay", phase="idle")
        assert err.message == "Cannot start replay while replay is idle"

    def test_misuse_errors_are_not_recoverable(self) -> None:
        for err in (AdapterNotAttachedError(), StepInProgressError(step=1), ConfigError()):
            assert err.category is None
            assert err.recoverable is False


class TestConfigErrors:
    def test_adapter_not_found_suggests_available(self) -> None:
        err = AdapterNotFoundError(name="hearts", available=["freecell", "klondike"])
        assert isinstance(err, ConfigError)
        assert err.message == "Adapter not found: hearts"
        assert err.code == ERROR_ADAPTER_NOT_FOUND
        assert err.suggestion == "Available adapters: freecell, klondike"
