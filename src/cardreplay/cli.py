"""
CLI entry point for cardreplay.

Commands:
    sanitize    Clean a raw event log and report what was dropped or repaired
    replay      Replay a log against a game engine adapter
    recreate    Rebuild the game state reached after N events
    compare     Compare two recorded snapshots
    filter      Select events by type, component, text or snapshots
    analyze     Summarize a log: timeline, interactions and anomalies

The CLI is thin: it parses arguments, loads files and delegates to the
controller, sanitizer and report modules.
"""

import asyncio
import json
import traceback
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from cardreplay import __version__
from cardreplay.adapters import GameEngineAdapter, default_registry, load_adapter_factory
from cardreplay.analysis import AnalysisOptions, analyze_events
from cardreplay.config import ReplayConfig, load_config
from cardreplay.consistency import perform_comprehensive_state_validation
from cardreplay.controller import ReplayController
from cardreplay.errors import CardReplayError
from cardreplay.eventlog import load_raw_event_log, load_snapshot, write_event_log
from cardreplay.filters import EventFilter, filter_events
from cardreplay.logging_config import setup_logging
from cardreplay.report import (
    build_analysis_report,
    build_comparison_report,
    generate_replay_json,
    generate_sanitization_json,
    print_analysis,
    print_comparison,
    print_game_state,
    print_replay_result,
    print_sanitization_report,
    print_step_results,
    to_json,
)
from cardreplay.sanitize import SanitizationResult, validate_and_sanitize_event_log
from cardreplay.schema import EventType, GameType, ReplayResult, StepResult
from cardreplay.snapshots import (
    create_diff_summary,
    compare_snapshots,
    significant_differences,
    state_from_snapshot,
    validate_snapshot_integrity,
)

# Initialize Typer app with metadata
app = typer.Typer(
    name="cardreplay",
    help="Replay and validate recorded solitaire UI action logs.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()

LogPath = Annotated[
    Path,
    typer.Argument(
        help="Path to the event log (JSON array, {\"events\": [...]}, or JSON lines).",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output results in JSON format.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", help="Enable verbose output.")]
DebugOption = Annotated[bool, typer.Option("--debug", help="Enable debug logging and full error tracebacks.")]
AdapterOption = Annotated[
    Optional[str],
    typer.Option(
        "--adapter",
        "-a",
        help="Adapter factory to import, as package.module:attribute.",
    ),
]
GameOption = Annotated[
    Optional[GameType],
    typer.Option(
        "--game",
        "-g",
        help="Game type for the built-in adapter. Defaults to the log's game type.",
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]cardreplay[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    cardreplay - Replay recorded solitaire sessions against a game engine.

    Sanitize logs, replay them step by step, and find where the engine's
    state drifts from what the UI recorded.
    """
    pass


# =============================================================================
# Helpers
# =============================================================================


def _configure(config: ReplayConfig, verbose: bool, debug: bool) -> None:
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    else:
        level = config.logging.level
    setup_logging(level=level, fmt=config.logging.format)


def _fail(error_type: str, message: str, json_output: bool, debug: bool) -> NoReturn:
    """Report an error and exit with code 1."""
    if json_output:
        _output_json_error(error_type, message, debug)
    else:
        console.print(f"[red]{message}[/red]")
        if debug:
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
    raise typer.Exit(code=1)


def _output_json_error(error_type: str, message: str, include_traceback: bool = False) -> None:
    """Output an error in JSON format."""
    output = {
        "error": True,
        "error_type": error_type,
        "message": message,
    }
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2))


def _read_log(log_path: Path, json_output: bool, debug: bool) -> list[Any]:
    try:
        return load_raw_event_log(log_path)
    except CardReplayError as e:
        _fail("log_load_error", f"Error loading event log: {e.message}", json_output, debug)


def _load_log(
    log_path: Path,
    sanitize: bool,
    placeholder: str,
    json_output: bool,
    debug: bool,
) -> tuple[list[Any], SanitizationResult | None]:
    raw = _read_log(log_path, json_output, debug)
    if not sanitize:
        return raw, None
    result = validate_and_sanitize_event_log(raw, placeholder_component=placeholder)
    return list(result.valid_events), result


def _detect_game_type(events: list[Any]) -> GameType:
    for event in events:
        for attr, key in (("game_state_before", "gameStateBefore"), ("game_state_after", "gameStateAfter")):
            snapshot = getattr(event, attr, None)
            if snapshot is not None:
                return snapshot.game_type
            if isinstance(event, dict) and isinstance(event.get(key), dict):
                try:
                    return GameType(event[key].get("gameType"))
                except ValueError:
                    continue
    return GameType.KLONDIKE


def _build_adapter(
    adapter_spec: str | None,
    game: GameType | None,
    events: list[Any],
) -> GameEngineAdapter:
    if adapter_spec:
        factory = load_adapter_factory(adapter_spec)
        return factory()
    return default_registry.create(game or _detect_game_type(events))


# =============================================================================
# Commands
# =============================================================================


@app.command()
def sanitize(
    log_path: LogPath,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--out",
            "-o",
            help="Write the valid events to this file.",
            resolve_path=True,
        ),
    ] = None,
    placeholder: Annotated[
        str,
        typer.Option("--placeholder", help="Component name for events that lack one."),
    ] = "Unknown",
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Clean a raw event log.

    Drops corrupted entries, repairs missing IDs and components, and removes
    invalid embedded snapshots.

    Example:
        $ cardreplay sanitize session.json --out clean.json
    """
    _configure(ReplayConfig(), verbose, debug)
    raw = _read_log(log_path, json_output, debug)
    result = validate_and_sanitize_event_log(raw, placeholder_component=placeholder)

    if output is not None:
        write_event_log(result.valid_events, output)
        if verbose and not json_output:
            console.print(f"[dim]Wrote {len(result.valid_events)} events to {output}[/dim]")

    if json_output:
        print(generate_sanitization_json(result))
    else:
        print_sanitization_report(result, console, verbose=verbose)

    raise typer.Exit(code=0 if result.valid_events else 1)


@app.command()
def replay(
    log_path: LogPath,
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to a YAML configuration file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    adapter_spec: AdapterOption = None,
    game: GameOption = None,
    stop_at: Annotated[
        Optional[int],
        typer.Option("--stop-at", min=0, help="Stop after this many steps."),
    ] = None,
    no_validate: Annotated[
        bool,
        typer.Option("--no-validate", help="Skip comparing replayed state with recorded snapshots."),
    ] = False,
    steps: Annotated[
        bool,
        typer.Option("--steps", help="Drive the replay one step at a time and list every step."),
    ] = False,
    no_sanitize: Annotated[
        bool,
        typer.Option("--no-sanitize", help="Replay the log as-is; any malformed entry fails the replay."),
    ] = False,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Replay an event log against a game engine adapter.

    Exits with code 0 when every step replayed without fatal errors or state
    drift, 1 otherwise.

    Example:
        $ cardreplay replay clean.json --adapter mygame.engine:make_adapter
    """
    try:
        config = load_config(config_path) if config_path else ReplayConfig()
    except (OSError, yaml.YAMLError, ValidationError) as e:
        _fail("config_load_error", f"Error loading config: {e}", json_output, debug)

    _configure(config, verbose, debug)
    sanitize_log = config.sanitize.enabled and not no_sanitize
    events, cleaned = _load_log(
        log_path, sanitize_log, config.sanitize.placeholder_component, json_output, debug
    )
    if cleaned is not None and cleaned.corrupted_events and verbose and not json_output:
        console.print(f"[yellow]Skipped {len(cleaned.corrupted_events)} corrupted entries[/yellow]")

    try:
        adapter = _build_adapter(adapter_spec, game, events)
    except CardReplayError as e:
        _fail("adapter_error", f"Error loading adapter: {e.message}", json_output, debug)

    step_mode = steps or config.replay.step_by_step
    limit = stop_at if stop_at is not None else config.replay.stop_at_step
    controller = ReplayController(adapter=adapter)
    initialized = controller.initialize_replay({
        "events": events,
        "step_by_step": step_mode,
        "validate_states": config.replay.validate_states and not no_validate,
        "stop_at_step": limit,
    })
    if not initialized:
        _fail(
            "log_validation_error",
            "Event log failed validation (empty, malformed or out of order); run with --verbose for details",
            json_output,
            debug,
        )

    try:
        result, step_results = asyncio.run(_drive(controller, step_mode, limit))
    except CardReplayError as e:
        _fail("replay_error", f"Replay failed: {e.message}", json_output, debug)

    if json_output:
        print(generate_replay_json(result, total_events=len(events), steps=step_results))
    else:
        if step_results:
            print_step_results(step_results, console)
            console.print()
        print_replay_result(result, console, total_events=len(events), verbose=verbose)

    raise typer.Exit(code=0 if result.success else 1)


async def _drive(
    controller: ReplayController,
    step_mode: bool,
    limit: int | None,
) -> tuple[ReplayResult, list[StepResult]]:
    result = await controller.start_replay()
    if not step_mode:
        return result, []

    step_results = []
    while controller.is_active and (limit is None or controller.current_step < limit):
        step = await controller.next_step()
        step_results.append(step)
    return controller.finalize_replay(), step_results


@app.command()
def recreate(
    log_path: LogPath,
    stop_at: Annotated[
        Optional[int],
        typer.Option("--stop-at", min=0, help="Apply at most this many events."),
    ] = None,
    initial_state: Annotated[
        Optional[Path],
        typer.Option(
            "--initial-state",
            help="Snapshot JSON to start from instead of the first event's before-state.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    adapter_spec: AdapterOption = None,
    game: GameOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Rebuild the game state reached after replaying events.

    Example:
        $ cardreplay recreate clean.json --stop-at 25 --json
    """
    _configure(ReplayConfig(), verbose, debug)
    events, _ = _load_log(log_path, True, "Unknown", json_output, debug)

    try:
        seed = state_from_snapshot(load_snapshot(initial_state)) if initial_state else None
        adapter = _build_adapter(adapter_spec, game, events)
        result = asyncio.run(
            ReplayController().recreate_game_state_from_events(
                events,
                stop_at_step=stop_at,
                initial_state=seed,
                adapter=adapter,
            )
        )
    except CardReplayError as e:
        _fail("recreate_error", f"Recreation failed: {e.message}", json_output, debug)

    if json_output:
        print(to_json({
            "success": result.success,
            "errors": [error.model_dump(mode="json") for error in result.errors],
            "game_state": (
                result.game_state.model_dump(by_alias=True, exclude_none=True, mode="json")
                if result.game_state else None
            ),
        }))
    else:
        icon = "[green]✓[/green]" if result.success else "[red]✗[/red]"
        console.print(f"{icon} Recreated state from {len(events)} events")
        for error in result.errors:
            console.print(f"  [yellow]• step {error.step}: {error.error}[/yellow]")
        if result.game_state is not None:
            print_game_state(result.game_state, console)

    raise typer.Exit(code=0 if result.success else 1)


@app.command()
def compare(
    expected_path: Annotated[
        Path,
        typer.Argument(help="Recorded snapshot JSON.", exists=True, readable=True, resolve_path=True),
    ],
    actual_path: Annotated[
        Path,
        typer.Argument(help="Snapshot JSON to compare against it.", exists=True, readable=True, resolve_path=True),
    ],
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Compare two snapshots and check each for integrity problems.

    Exits with code 0 when they differ only in capture time and sequence
    number, 1 otherwise.

    Example:
        $ cardreplay compare expected.json actual.json
    """
    _configure(ReplayConfig(), verbose, debug)
    try:
        expected = load_snapshot(expected_path)
        actual = load_snapshot(actual_path)
    except CardReplayError as e:
        _fail("snapshot_load_error", f"Error loading snapshot: {e.message}", json_output, debug)

    comparison = compare_snapshots(expected, actual)
    summary = create_diff_summary(expected, actual)
    integrity = [validate_snapshot_integrity(expected), validate_snapshot_integrity(actual)]
    consistency = perform_comprehensive_state_validation(state_from_snapshot(actual), expected)

    if json_output:
        print(to_json(build_comparison_report(comparison, summary, integrity, consistency)))
    else:
        print_comparison(comparison, summary, integrity, consistency, console, verbose=verbose)

    raise typer.Exit(code=0 if not significant_differences(expected, actual) else 1)


@app.command("filter")
def filter_command(
    log_path: LogPath,
    event_types: Annotated[
        Optional[list[EventType]],
        typer.Option("--type", "-t", help="Keep only this event type (repeatable)."),
    ] = None,
    components: Annotated[
        Optional[list[str]],
        typer.Option("--component", help="Keep only events from this component (repeatable)."),
    ] = None,
    search: Annotated[
        Optional[str],
        typer.Option("--search", "-s", help="Case-insensitive text to find in id, type, component or data."),
    ] = None,
    snapshots: Annotated[
        Optional[str],
        typer.Option("--snapshots", help="Require snapshots: before, after, both, either or none."),
    ] = None,
    min_duration: Annotated[
        Optional[float],
        typer.Option("--min-duration", help="Keep events whose operation took longer (ms)."),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Write the matching events to this file.", resolve_path=True),
    ] = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Select events from a log.

    Example:
        $ cardreplay filter clean.json --type move_executed --snapshots after
    """
    _configure(ReplayConfig(), verbose, debug)
    try:
        criteria = EventFilter(
            event_types=event_types or None,
            components=components or None,
            text=search,
            snapshots=snapshots,
            min_duration_ms=min_duration,
        )
    except ValidationError as e:
        _fail("invalid_filter", f"Invalid filter: {e.errors()[0]['msg']}", json_output, debug)

    events, _ = _load_log(log_path, True, "Unknown", json_output, debug)
    matched = filter_events(events, criteria)

    if output is not None:
        write_event_log(matched, output)

    if json_output:
        print(json.dumps([event.to_json_dict() for event in matched], indent=2))
    else:
        table = Table(show_header=True, header_style="bold")
        table.add_column("#", style="dim", justify="right")
        table.add_column("Timestamp", style="dim")
        table.add_column("Type", style="cyan")
        table.add_column("Component")
        table.add_column("ID", overflow="fold")
        for index, event in enumerate(matched, start=1):
            table.add_row(str(index), event.timestamp, event.type.value, event.component, event.id)
        console.print(table)
        console.print(f"[dim]{len(matched)} of {len(events)} events matched[/dim]")

    raise typer.Exit(code=0)


@app.command()
def analyze(
    log_path: LogPath,
    slow_ms: Annotated[
        float,
        typer.Option("--slow-ms", min=0, help="Report events whose operation took longer (ms)."),
    ] = 150,
    gap_ms: Annotated[
        float,
        typer.Option("--gap-ms", min=0, help="Report pauses between events longer than this (ms)."),
    ] = 15_000,
    failures: Annotated[
        int,
        typer.Option("--failures", min=1, help="Consecutive validation failures that count as a burst."),
    ] = 3,
    timeline: Annotated[
        bool,
        typer.Option("--timeline", help="Include the per-event timeline in JSON output."),
    ] = False,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Summarize a log: timeline, interactions, performance and anomalies.

    Example:
        $ cardreplay analyze session.json --slow-ms 100
    """
    _configure(ReplayConfig(), verbose, debug)
    events, _ = _load_log(log_path, True, "Unknown", json_output, debug)
    options = AnalysisOptions(
        slow_event_threshold_ms=slow_ms,
        inactivity_threshold_ms=gap_ms,
        consecutive_failure_threshold=failures,
    )
    report = analyze_events(events, options)

    if json_output:
        print(to_json(build_analysis_report(report, include_timeline=timeline)))
    else:
        print_analysis(report, console, verbose=verbose)

    raise typer.Exit(code=0)


if __name__ == "__main__":
    app()
