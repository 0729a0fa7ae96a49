"""
JSON report generator for cardreplay.

Generates structured JSON output for programmatic consumption.

Design Principles:
    - Consistent schema: every report carries report_version and generated_at
    - Human-readable keys: snake_case names
    - Game state is written in the camelCase snapshot format so it can be
      fed back into other tools
"""

import json
from dataclasses import asdict
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Sequence

from cardreplay.analysis import AnalysisReport
from cardreplay.consistency import ConsistencyResult
from cardreplay.sanitize import SanitizationResult
from cardreplay.schema import GameState, ReplayErrorRecord, ReplayResult, StepResult
from cardreplay.snapshots import DiffSummary, IntegrityReport, SnapshotComparison

REPORT_VERSION = "1.0"


def _envelope(kind: str) -> dict[str, Any]:
    return {
        "report_version": REPORT_VERSION,
        "report_type": kind,
        "generated_at": datetime.now(UTC).isoformat(),
    }


def _serialize_state(state: GameState | None) -> dict[str, Any] | None:
    if state is None:
        return None
    return state.model_dump(by_alias=True, exclude_none=True, mode="json")


def _serialize_error(error: ReplayErrorRecord) -> dict[str, Any]:
    return {
        "step": error.step,
        "error": error.error,
        "recoverable": error.recoverable,
        "kind": error.kind.value,
        "category": error.category,
        "event_id": error.event_id,
        "event_type": error.event_type.value if error.event_type else None,
        "timestamp": error.timestamp,
    }


def build_replay_report(
    result: ReplayResult,
    total_events: int | None = None,
    steps: Sequence[StepResult] = (),
) -> dict[str, Any]:
    """
    Build a report dictionary for a replay.

    Args:
        result: Aggregate replay result
        total_events: Number of events in the replayed log
        steps: Per-step results, when the replay was driven step by step

    Returns:
        Dictionary with the full replay report
    """
    report = _envelope("replay")
    report.update({
        "success": result.success,
        "statistics": {
            "total_events": total_events,
            "steps_executed": result.steps_executed,
            "errors": len(result.errors),
            "recoverable_errors": sum(1 for e in result.errors if e.recoverable),
            "fatal_errors": sum(1 for e in result.errors if not e.recoverable),
        },
        "performance": {
            "total_replay_time_ms": result.performance.total_replay_time,
            "average_event_processing_time_ms": result.performance.average_event_processing_time,
            "validation_time_ms": result.performance.validation_time,
        },
        "errors": [_serialize_error(e) for e in result.errors],
        "final_game_state": _serialize_state(result.final_game_state),
    })
    if steps:
        report["steps"] = [
            {
                "step": step.step,
                "success": step.success,
                "recovered": step.recovered,
                "error": step.error,
                "processing_time_ms": step.processing_time,
            }
            for step in steps
        ]
    return report


def build_sanitization_report(result: SanitizationResult) -> dict[str, Any]:
    """Build a report dictionary for a sanitization pass."""
    summary = result.sanitization_report
    report = _envelope("sanitization")
    report.update({
        "statistics": {
            "total_events": summary.total_events,
            "valid_events": summary.valid_events,
            "corrupted_events": summary.corrupted_events,
            "sanitized_events": summary.sanitized_events,
        },
        "warnings": list(summary.warnings),
        "corrupted": [
            {"index": entry.index, "reason": entry.reason, "entry": entry.entry}
            for entry in result.corrupted_events
        ],
    })
    return report


def build_comparison_report(
    comparison: SnapshotComparison,
    summary: DiffSummary,
    integrity: Sequence[IntegrityReport] = (),
    consistency: ConsistencyResult | None = None,
) -> dict[str, Any]:
    """Build a report dictionary for a snapshot comparison."""
    report = _envelope("comparison")
    report.update({
        "are_equal": comparison.are_equal,
        "summary": asdict(summary),
        "differences_by_type": comparison.differences_by_type,
        "differences": [asdict(diff) for diff in comparison.differences],
        "integrity": [
            {
                "is_valid": item.is_valid,
                "errors": item.errors,
                "warnings": item.warnings,
                "card_count": item.card_count,
                "unique_card_ids": item.unique_card_ids,
            }
            for item in integrity
        ],
    })
    if consistency is not None:
        report["consistency"] = {
            "is_valid": consistency.is_valid,
            "inconsistencies": consistency.inconsistencies,
            "validation_report": asdict(consistency.validation_report),
        }
    return report


def build_analysis_report(analysis: AnalysisReport, include_timeline: bool = False) -> dict[str, Any]:
    """
    Build a report dictionary for a log analysis.

    The per-event timeline is left out unless include_timeline is set.
    """
    report = _envelope("analysis")
    report.update(analysis.model_dump(mode="json", exclude=None if include_timeline else {"timeline"}))
    return report


def to_json(report: dict[str, Any], indent: int = 2) -> str:
    """Serialize a report dictionary."""
    return json.dumps(report, indent=indent, default=_json_serializer)


def generate_replay_json(
    result: ReplayResult,
    total_events: int | None = None,
    steps: Sequence[StepResult] = (),
    indent: int = 2,
) -> str:
    """Generate a JSON report string for a replay."""
    return to_json(build_replay_report(result, total_events, steps), indent=indent)


def generate_sanitization_json(result: SanitizationResult, indent: int = 2) -> str:
    """Generate a JSON report string for a sanitization pass."""
    return to_json(build_sanitization_report(result), indent=indent)


def _json_serializer(obj: Any) -> Any:
    """Custom JSON serializer for non-standard types."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "model_dump"):
        return obj.model_dump(by_alias=True, exclude_none=True, mode="json")
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
