"""
Reporting module for cardreplay.

Output formats:
    - Console: Rich terminal output with status icons and tables
    - JSON: Structured output for programmatic consumption

Example:
    from cardreplay.report import generate_replay_json, print_replay_result

    print_replay_result(result, total_events=len(events))
    json_str = generate_replay_json(result, total_events=len(events))
"""

from cardreplay.report.console import (
    print_analysis,
    print_comparison,
    print_game_state,
    print_replay_result,
    print_sanitization_report,
    print_step_results,
)
from cardreplay.report.json import (
    build_analysis_report,
    build_comparison_report,
    build_replay_report,
    build_sanitization_report,
    generate_replay_json,
    generate_sanitization_json,
    to_json,
)

__all__ = [
    "print_analysis",
    "print_comparison",
    "print_game_state",
    "print_replay_result",
    "print_sanitization_report",
    "print_step_results",
    "build_analysis_report",
    "build_comparison_report",
    "build_replay_report",
    "build_sanitization_report",
    "generate_replay_json",
    "generate_sanitization_json",
    "to_json",
]
