"""
Unit tests for event log sanitization and sequence validation.

Tests cover:
- Corrupted entries and their reasons
- Repairs (missing ID, missing component, invalid snapshots)
- Ordering warnings
- Strict sequence validation used before replay
"""

import pytest

from cardreplay.errors import EmptyEventLogError, EventOrderError, InvalidEventError
from cardreplay.sanitize import (
    check_event_ordering,
    validate_and_sanitize_event_log,
    validate_event_sequence,
)
from cardreplay.schema import UIActionEvent


def _ids():
    counter = iter(range(1, 100))
    return lambda: f"generated-{next(counter)}"


class TestValidateAndSanitize:
    """Tests for validate_and_sanitize_event_log."""

    def test_clean_log(self, game_log) -> None:
        result = validate_and_sanitize_event_log(game_log)
        report = result.sanitization_report
        assert [e.id for e in result.valid_events] == ["event-1", "event-2", "event-3"]
        assert result.corrupted_events == []
        assert (report.total_events, report.valid_events, report.corrupted_events) == (3, 3, 0)
        assert report.sanitized_events == 0
        assert report.warnings == []

    def test_empty_log(self) -> None:
        report = validate_and_sanitize_event_log([]).sanitization_report
        assert report.total_events == 0
        assert report.valid_events == 0

    @pytest.mark.parametrize(
        ("entry", "reason"),
        [
            ("not an event", "Entry is not an object"),
            ({"type": "drag_start", "data": {}}, "Missing required field(s): timestamp"),
            ({"timestamp": "2024-01-01T00:00:00Z"}, "Missing required field(s): type, data"),
            (
                {"timestamp": "2024-01-01T00:00:00Z", "type": "shuffle", "data": {}},
                "Unrecognized event type: 'shuffle'",
            ),
            (
                {"timestamp": "soon", "type": "drag_start", "data": {}},
                "Invalid timestamp: 'soon'",
            ),
            (
                {"timestamp": "2024-01-01T00:00:00Z", "type": "drag_start", "data": [1, 2]},
                "Event data must be an object",
            ),
        ],
    )
    def test_corrupted_reasons(self, entry, reason) -> None:
        result = validate_and_sanitize_event_log([entry])
        assert result.valid_events == []
        assert len(result.corrupted_events) == 1
        corrupted = result.corrupted_events[0]
        assert corrupted.index == 0
        assert corrupted.entry == entry
        assert corrupted.reason == reason

    def test_structural_failure_is_corrupted(self, make_event) -> None:
        entry = make_event("e1", "2024-01-01T00:00:00Z", "move_executed", data={"moveType": "magic"})
        result = validate_and_sanitize_event_log([entry])
        assert result.corrupted_events[0].reason.startswith("Invalid event structure")

    def test_missing_id_is_repaired(self, make_event) -> None:
        entry = make_event(None, "2024-01-01T00:00:00Z", "drag_start")
        result = validate_and_sanitize_event_log([entry], id_factory=_ids())
        assert result.valid_events[0].id == "generated-1"
        assert result.sanitization_report.sanitized_events == 1
        assert "id" not in entry

    def test_missing_component_gets_placeholder(self, make_event) -> None:
        entry = make_event("e1", "2024-01-01T00:00:00Z", "drag_start", component=None)
        result = validate_and_sanitize_event_log([entry], placeholder_component="Board")
        assert result.valid_events[0].component == "Board"
        assert result.sanitization_report.sanitized_events == 1

    def test_missing_id_and_component_counts_once(self, make_event) -> None:
        entry = make_event(None, "2024-01-01T00:00:00Z", "drag_start", component=None)
        result = validate_and_sanitize_event_log([entry], id_factory=_ids())
        assert result.valid_events[0].component == "Unknown"
        assert result.sanitization_report.sanitized_events == 1

    def test_invalid_snapshot_dropped(self, make_event, make_snapshot) -> None:
        """An invalid embedded snapshot is removed and the event kept."""
        broken = make_snapshot()
        del broken["score"]
        entry = make_event("e1", "2024-01-01T00:00:00Z", "state_change", after=broken)
        result = validate_and_sanitize_event_log([entry])
        event = result.valid_events[0]
        assert event.game_state_after is None
        assert result.sanitization_report.sanitized_events == 1
        assert "gameStateAfter" in entry

    def test_preserves_order_and_indexes(self, game_log) -> None:
        entries = [game_log[0], 42, game_log[1], {"bad": True}, game_log[2]]
        result = validate_and_sanitize_event_log(entries)
        assert [e.id for e in result.valid_events] == ["event-1", "event-2", "event-3"]
        assert [c.index for c in result.corrupted_events] == [1, 3]
        assert result.sanitization_report.total_events == 5

    def test_existing_events_pass_through(self, game_log) -> None:
        event = UIActionEvent.model_validate(game_log[0])
        result = validate_and_sanitize_event_log([event])
        assert result.valid_events == [event]

    def test_out_of_order_is_warning_not_corruption(self, game_log) -> None:
        result = validate_and_sanitize_event_log([game_log[1], game_log[0]])
        assert len(result.valid_events) == 2
        assert any("earlier than the event before it" in w for w in result.sanitization_report.warnings)


class TestCheckEventOrdering:
    def test_sequence_number_regression(self, make_event, make_snapshot) -> None:
        events = [
            UIActionEvent.model_validate(
                make_event("a", "2024-01-01T00:00:01Z", "state_change", after=make_snapshot(sequence=5))
            ),
            UIActionEvent.model_validate(
                make_event("b", "2024-01-01T00:00:02Z", "state_change", after=make_snapshot(sequence=3))
            ),
        ]
        assert check_event_ordering(events) == ["Snapshot sequence number 3 in event b follows 5"]


class TestValidateEventSequence:
    """Tests for strict pre-replay validation."""

    def test_valid(self, game_log) -> None:
        events, problems = validate_event_sequence(game_log)
        assert problems == []
        assert len(events) == 3

    def test_empty(self) -> None:
        events, problems = validate_event_sequence([])
        assert events == []
        assert len(problems) == 1
        assert isinstance(problems[0], EmptyEventLogError)

    def test_malformed_event(self, game_log) -> None:
        broken = dict(game_log[1])
        del broken["type"]
        _, problems = validate_event_sequence([game_log[0], broken])
        assert len(problems) == 1
        assert isinstance(problems[0], InvalidEventError)
        assert problems[0].index == 1

    def test_out_of_order(self, game_log) -> None:
        _, problems = validate_event_sequence([game_log[0], game_log[2], game_log[1]])
        assert len(problems) == 1
        assert isinstance(problems[0], EventOrderError)
        assert problems[0].index == 2

    def test_equal_timestamps_allowed(self, make_event) -> None:
        events = [
            make_event("a", "2024-01-01T00:00:00Z", "drag_start"),
            make_event("b", "2024-01-01T00:00:00Z", "drag_drop"),
        ]
        _, problems = validate_event_sequence(events)
        assert problems == []
