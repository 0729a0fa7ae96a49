"""
Integration tests for the report module.

Tests cover:
- JSON replay, sanitization, comparison and analysis reports
- Console output for each report kind
"""

import json
from io import StringIO

import pytest
import pytest_asyncio
from rich.console import Console

from cardreplay import PileMoveAdapter, ReplayController, UIActionEvent
from cardreplay.analysis import analyze_events
from cardreplay.consistency import perform_comprehensive_state_validation
from cardreplay.report import (
    build_analysis_report,
    build_comparison_report,
    build_replay_report,
    generate_replay_json,
    generate_sanitization_json,
    print_analysis,
    print_comparison,
    print_game_state,
    print_replay_result,
    print_sanitization_report,
    print_step_results,
)
from cardreplay.sanitize import validate_and_sanitize_event_log
from cardreplay.schema import GameStateSnapshot
from cardreplay.snapshots import (
    compare_snapshots,
    create_diff_summary,
    state_from_snapshot,
    validate_snapshot_integrity,
)


def _console() -> tuple[Console, StringIO]:
    buffer = StringIO()
    return Console(file=buffer, force_terminal=False, width=120), buffer


@pytest_asyncio.fixture
async def replay_result(game_log):
    controller = ReplayController(adapter=PileMoveAdapter(points_per_move=5))
    controller.initialize_replay({"events": game_log})
    return await controller.start_replay()


@pytest.fixture
def snapshots(initial_snapshot, first_move_snapshot):
    return (
        GameStateSnapshot.model_validate(initial_snapshot),
        GameStateSnapshot.model_validate(first_move_snapshot),
    )


@pytest.fixture
def analysis(game_log):
    return analyze_events([UIActionEvent.model_validate(entry) for entry in game_log])


class TestJsonReport:
    """Tests for JSON report generation."""

    @pytest.mark.asyncio
    async def test_replay_report(self, replay_result) -> None:
        report = json.loads(generate_replay_json(replay_result, total_events=3))
        assert report["report_type"] == "replay"
        assert report["report_version"] == "1.0"
        assert report["success"] is False
        assert report["statistics"] == {
            "total_events": 3,
            "steps_executed": 3,
            "errors": 2,
            "recoverable_errors": 2,
            "fatal_errors": 0,
        }
        assert report["errors"][0]["kind"] == "consistency"
        assert report["errors"][0]["event_type"] == "move_executed"
        assert report["final_game_state"]["moveCount"] == 2
        assert "gameType" in report["final_game_state"]
        assert "steps" not in report

    @pytest.mark.asyncio
    async def test_replay_report_with_steps(self, game_log) -> None:
        controller = ReplayController(adapter=PileMoveAdapter())
        controller.initialize_replay({"events": game_log, "step_by_step": True})
        await controller.start_replay()
        steps = [await controller.next_step() for _ in range(3)]
        report = build_replay_report(controller.finalize_replay(), steps=steps)
        assert [s["step"] for s in report["steps"]] == [0, 1, 2]
        assert all(s["success"] for s in report["steps"])

    def test_sanitization_report(self, game_log) -> None:
        result = validate_and_sanitize_event_log([game_log[0], {"type": "drag_start"}])
        report = json.loads(generate_sanitization_json(result))
        assert report["report_type"] == "sanitization"
        assert report["statistics"]["corrupted_events"] == 1
        assert report["corrupted"][0]["index"] == 1
        assert report["corrupted"][0]["reason"].startswith("Missing required field(s)")

    def test_comparison_report(self, snapshots) -> None:
        first, second = snapshots
        consistency = perform_comprehensive_state_validation(state_from_snapshot(second), first)
        report = build_comparison_report(
            compare_snapshots(first, second),
            create_diff_summary(first, second),
            [validate_snapshot_integrity(first)],
            consistency,
        )
        json.dumps(report)
        assert report["are_equal"] is False
        assert report["summary"]["cards_flipped"] == 1
        assert report["integrity"][0]["card_count"] == 3
        assert report["consistency"]["is_valid"] is False
        assert report["consistency"]["validation_report"]["tableau_valid"] is False

    def test_analysis_report(self, analysis) -> None:
        report = build_analysis_report(analysis)
        json.dumps(report)
        assert report["report_type"] == "analysis"
        assert "timeline" not in report
        assert report["anomalies"][0]["type"] == "dropped_interaction"
        assert report["interactions"][1]["outcome"] == "success"

        with_timeline = build_analysis_report(analysis, include_timeline=True)
        assert with_timeline["timeline"][1]["type"] == "move_executed"


class TestConsoleReport:
    """Tests for Rich console output."""

    @pytest.mark.asyncio
    async def test_replay_result(self, replay_result) -> None:
        console, buffer = _console()
        print_replay_result(replay_result, console, total_events=3, verbose=True)
        output = buffer.getvalue()
        assert "FAILED" in output
        assert "3/3 steps" in output
        assert "Score mismatch" in output
        assert "Game state" in output

    @pytest.mark.asyncio
    async def test_passed_header(self, game_log) -> None:
        controller = ReplayController(adapter=PileMoveAdapter())
        controller.initialize_replay({"events": game_log})
        result = await controller.start_replay()
        console, buffer = _console()
        print_replay_result(result, console)
        assert "PASSED" in buffer.getvalue()

    @pytest.mark.asyncio
    async def test_step_results(self, game_log) -> None:
        controller = ReplayController(adapter=PileMoveAdapter())
        controller.initialize_replay({"events": game_log, "step_by_step": True})
        await controller.start_replay()
        steps = [await controller.next_step()]
        console, buffer = _console()
        print_step_results(steps, console)
        assert "✓" in buffer.getvalue()

    def test_game_state(self, snapshots) -> None:
        console, buffer = _console()
        print_game_state(state_from_snapshot(snapshots[0]), console)
        output = buffer.getvalue()
        assert "tableau[0]" in output
        assert "1 of hearts" in output
        assert "foundation[3]" in output

    def test_sanitization(self, game_log) -> None:
        result = validate_and_sanitize_event_log([game_log[0], 7])
        console, buffer = _console()
        print_sanitization_report(result, console)
        output = buffer.getvalue()
        assert "1 corrupted" in output
        assert "Entry is not an object" in output

    def test_identical_snapshots(self, snapshots) -> None:
        first = snapshots[0]
        console, buffer = _console()
        print_comparison(compare_snapshots(first, first), create_diff_summary(first, first), console=console)
        assert "Snapshots are identical" in buffer.getvalue()

    def test_differences(self, snapshots) -> None:
        first, second = snapshots
        console, buffer = _console()
        print_comparison(
            compare_snapshots(first, second),
            create_diff_summary(first, second),
            [validate_snapshot_integrity(first)],
            console=console,
            verbose=True,
        )
        output = buffer.getvalue()
        assert "differences" in output
        assert "cardFaceUp" in output
        assert "Unexpected card count" in output

    def test_analysis(self, analysis) -> None:
        console, buffer = _console()
        print_analysis(analysis, console)
        output = buffer.getvalue()
        assert "Analyzed 3 events over 2.0s: 3 interactions, 1 anomalies" in output
        assert "dropped_interaction" in output
        assert "move_executed" in output
        assert "No performance metrics were captured" in output

    def test_analysis_verbose_lists_timeline(self, analysis) -> None:
        console, buffer = _console()
        print_analysis(analysis, console, verbose=True)
        assert "GameBoard | move_executed | card=card-2s | move=user" in buffer.getvalue()
