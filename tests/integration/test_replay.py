"""
Integration tests for replaying logs against the built-in adapter.

Tests cover:
- Sanitize, then replay a log with PileMoveAdapter
- Drift detection when the log and the engine disagree
- Recovery from a move the engine cannot apply
- Recreating state at an intermediate step
- Reading a log file written in JSON lines
"""

import json

import pytest

from cardreplay import PileMoveAdapter, ReplayController, validate_and_sanitize_event_log
from cardreplay.adapters import create_adapter
from cardreplay.eventlog import load_raw_event_log
from cardreplay.schema import ErrorKind, ReplayPhase


class TestEndToEnd:
    """Full pipeline with PileMoveAdapter."""

    @pytest.mark.asyncio
    async def test_clean_log_replays_without_errors(self, game_log) -> None:
        sanitized = validate_and_sanitize_event_log(game_log)
        controller = ReplayController(adapter=PileMoveAdapter())
        assert controller.initialize_replay({"events": sanitized.valid_events})

        result = await controller.start_replay()

        assert result.success is True
        assert result.steps_executed == 3
        assert result.errors == []
        final = result.final_game_state
        assert [c.id for c in final.tableau[0]] == ["card-ks", "card-2s"]
        assert [c.id for c in final.foundation[0]] == ["card-ah"]
        assert final.tableau[0][0].face_up is True
        assert controller.phase == ReplayPhase.COMPLETED

    @pytest.mark.asyncio
    async def test_corrupted_entries_are_skipped(self, game_log) -> None:
        raw = [game_log[0], {"garbage": True}, game_log[1], "??", game_log[2]]
        sanitized = validate_and_sanitize_event_log(raw)
        assert sanitized.sanitization_report.corrupted_events == 2

        controller = ReplayController(adapter=create_adapter("klondike"))
        controller.initialize_replay({"events": sanitized.valid_events})
        result = await controller.start_replay()
        assert result.success is True

    @pytest.mark.asyncio
    async def test_scoring_engine_drifts(self, game_log) -> None:
        """An engine that scores moves disagrees with a log that did not."""
        controller = ReplayController(adapter=PileMoveAdapter(points_per_move=5))
        controller.initialize_replay({"events": game_log})
        result = await controller.start_replay()

        assert result.success is False
        assert result.steps_executed == 3
        assert [e.kind for e in result.errors] == [ErrorKind.CONSISTENCY, ErrorKind.CONSISTENCY]
        assert "Score mismatch: 5 vs 0" in result.errors[0].error
        assert "Score mismatch: 10 vs 0" in result.errors[1].error

    @pytest.mark.asyncio
    async def test_unknown_card_recovers_from_snapshot(self, game_log) -> None:
        game_log[1]["data"]["card"]["id"] = "card-missing"
        controller = ReplayController(adapter=PileMoveAdapter())
        controller.initialize_replay({"events": game_log})
        result = await controller.start_replay()

        assert result.success is True
        assert len(result.errors) == 1
        assert result.errors[0].category == "invalid_card_snapshot"
        assert "card-missing is not in tableau-0" in result.errors[0].error
        # The engine was resynchronized, so the next move still applies
        assert result.final_game_state.move_count == 2

    @pytest.mark.asyncio
    async def test_step_by_step_matches_bulk(self, game_log) -> None:
        bulk = ReplayController(adapter=PileMoveAdapter())
        bulk.initialize_replay({"events": game_log})
        bulk_result = await bulk.start_replay()

        stepped = ReplayController(adapter=PileMoveAdapter())
        stepped.initialize_replay({"events": game_log, "step_by_step": True})
        await stepped.start_replay()
        while stepped.is_active:
            await stepped.next_step()
        step_result = stepped.finalize_replay()

        assert step_result.final_game_state == bulk_result.final_game_state
        assert step_result.steps_executed == bulk_result.steps_executed


class TestRecreate:
    @pytest.mark.asyncio
    async def test_state_after_first_move(self, game_log, first_move_snapshot, to_state) -> None:
        result = await ReplayController().recreate_game_state_from_events(
            game_log, stop_at_step=2, adapter=PileMoveAdapter()
        )
        expected = to_state(first_move_snapshot)
        assert result.success
        assert [c.id for c in result.game_state.tableau[0]] == [c.id for c in expected.tableau[0]]
        assert result.game_state.move_count == 1

    @pytest.mark.asyncio
    async def test_validate_states_reports_drift(self, game_log) -> None:
        result = await ReplayController().recreate_game_state_from_events(
            game_log, adapter=PileMoveAdapter(points_per_move=1), validate_states=True
        )
        assert result.success is False
        assert all(e.kind == ErrorKind.CONSISTENCY for e in result.errors)


class TestJsonLinesLog:
    @pytest.mark.asyncio
    async def test_replay_from_file(self, game_log, temp_dir) -> None:
        path = temp_dir / "session.jsonl"
        path.write_text("\n".join(json.dumps(entry) for entry in game_log))

        raw = load_raw_event_log(path)
        controller = ReplayController(adapter=PileMoveAdapter())
        assert controller.initialize_replay({"events": raw})
        result = await controller.start_replay()
        assert result.success
