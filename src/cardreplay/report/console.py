"""
Console report generator for cardreplay.

Renders replay results, step tables, sanitization reports, snapshot
comparisons and log analyses with Rich.

Design Principles:
    - Status at a glance: icons and colors for outcome
    - Summary first, details on request (verbose)
"""

from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from cardreplay.analysis import AnalysisReport
from cardreplay.consistency import ConsistencyResult
from cardreplay.sanitize import SanitizationResult
from cardreplay.schema import GameState, ReplayResult, StepResult
from cardreplay.snapshots import DiffSummary, IntegrityReport, SnapshotComparison

# Status icons
ICON_SUCCESS = "[green]✓[/green]"
ICON_ERROR = "[red]✗[/red]"
ICON_RECOVERED = "[yellow]↻[/yellow]"
ICON_WARNING = "[yellow]![/yellow]"

MAX_LISTED = 10


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def print_replay_result(
    result: ReplayResult,
    console: Console | None = None,
    total_events: int | None = None,
    verbose: bool = False,
) -> None:
    """
    Print a replay summary.

    Args:
        result: Aggregate replay result
        console: Rich Console instance (creates one if not provided)
        total_events: Number of events in the replayed log
        verbose: Show every error and the final pile sizes
    """
    if console is None:
        console = Console()

    header = Text()
    header.append(" Replay ", style="bold")
    if result.success:
        header.append("PASSED", style="bold green")
    else:
        header.append("FAILED", style="bold red")
    header.append(" │ ", style="dim")
    steps = f"{result.steps_executed}"
    if total_events is not None:
        steps += f"/{total_events}"
    header.append(f"{steps} steps")
    console.print(Panel(header, expand=False))

    recoverable = sum(1 for e in result.errors if e.recoverable)
    fatal = len(result.errors) - recoverable
    perf = result.performance
    console.print(
        f"  [dim]Errors:[/dim] {len(result.errors)} "
        f"([yellow]{recoverable} recoverable[/yellow], [red]{fatal} fatal[/red])"
    )
    console.print(
        f"  [dim]Time:[/dim] {perf.total_replay_time:.1f}ms total, "
        f"{perf.average_event_processing_time:.2f}ms/event, "
        f"{perf.validation_time:.2f}ms validating"
    )

    if result.errors:
        console.print()
        table = Table(show_header=True, header_style="bold", expand=True)
        table.add_column("Step", style="dim", width=5, justify="right")
        table.add_column("", width=2)
        table.add_column("Kind", width=12)
        table.add_column("Event", style="cyan", width=16)
        table.add_column("Error", overflow="fold")

        shown = result.errors if verbose else result.errors[:MAX_LISTED]
        for error in shown:
            icon = ICON_RECOVERED if error.recoverable else ICON_ERROR
            event_type = error.event_type.value if error.event_type else ""
            table.add_row(
                str(error.step),
                icon,
                error.kind.value,
                event_type,
                error.error if verbose else _truncate(error.error, 100),
            )
        console.print(table)
        if len(result.errors) > len(shown):
            console.print(f"[dim]  ... and {len(result.errors) - len(shown)} more (use --verbose)[/dim]")

    if verbose and result.final_game_state is not None:
        console.print()
        print_game_state(result.final_game_state, console)


def print_step_results(steps: Sequence[StepResult], console: Console | None = None) -> None:
    """Print one row per executed step."""
    if console is None:
        console = Console()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Step", style="dim", width=5, justify="right")
    table.add_column("Status", width=6, justify="center")
    table.add_column("Time", justify="right", width=10)
    table.add_column("Details", overflow="fold")

    for step in steps:
        if step.recovered:
            icon = ICON_RECOVERED
        elif step.success:
            icon = ICON_SUCCESS
        else:
            icon = ICON_ERROR
        table.add_row(
            str(step.step),
            icon,
            f"{step.processing_time:.2f}ms",
            _truncate(step.error, 80) if step.error else "",
        )
    console.print(table)


def print_game_state(state: GameState, console: Console | None = None) -> None:
    """Print pile sizes and totals for a game state."""
    if console is None:
        console = Console()

    console.print(
        f"[bold]Game state[/bold] [dim]({state.game_type.value}, "
        f"score {state.score}, {state.move_count} moves)[/dim]"
    )
    table = Table(show_header=True, header_style="bold")
    table.add_column("Pile")
    table.add_column("Cards", justify="right")
    table.add_column("Top card")

    def add(name: str, pile: list) -> None:
        top = pile[-1] if pile else None
        label = f"{top.rank} of {top.suit}" + ("" if top.face_up else " (down)") if top else "-"
        table.add_row(name, str(len(pile)), label)

    for i, pile in enumerate(state.tableau):
        add(f"tableau[{i}]", pile)
    for i, pile in enumerate(state.foundation):
        add(f"foundation[{i}]", pile)
    for name in ("stock", "waste", "free_cells"):
        pile = getattr(state, name)
        if pile is not None:
            add(name, pile)
    console.print(table)


def print_sanitization_report(
    result: SanitizationResult,
    console: Console | None = None,
    verbose: bool = False,
) -> None:
    """Print sanitization counters, warnings and corrupted entries."""
    if console is None:
        console = Console()

    report = result.sanitization_report
    icon = ICON_SUCCESS if report.corrupted_events == 0 else ICON_WARNING
    console.print(
        f"{icon} Sanitized [bold]{report.total_events}[/bold] entries: "
        f"[green]{report.valid_events} valid[/green], "
        f"[red]{report.corrupted_events} corrupted[/red], "
        f"[yellow]{report.sanitized_events} repaired[/yellow]"
    )

    for warning in report.warnings[:MAX_LISTED] if not verbose else report.warnings:
        console.print(f"  [yellow]• {warning}[/yellow]")

    if result.corrupted_events:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Index", style="dim", justify="right")
        table.add_column("Reason", overflow="fold")
        shown = result.corrupted_events if verbose else result.corrupted_events[:MAX_LISTED]
        for entry in shown:
            table.add_row(str(entry.index), entry.reason)
        console.print(table)
        if len(result.corrupted_events) > len(shown):
            console.print(
                f"[dim]  ... and {len(result.corrupted_events) - len(shown)} more (use --verbose)[/dim]"
            )


def print_comparison(
    comparison: SnapshotComparison,
    summary: DiffSummary,
    integrity: Sequence[IntegrityReport] = (),
    consistency: ConsistencyResult | None = None,
    console: Console | None = None,
    verbose: bool = False,
) -> None:
    """Print the differences between two snapshots."""
    if console is None:
        console = Console()

    if comparison.are_equal:
        console.print(f"{ICON_SUCCESS} Snapshots are identical")
    else:
        console.print(
            f"{ICON_ERROR} [bold]{summary.total_differences}[/bold] differences "
            f"in {', '.join(summary.affected_areas)}"
        )
        console.print(
            f"  [dim]Cards moved:[/dim] {summary.cards_moved}  "
            f"[dim]flipped:[/dim] {summary.cards_flipped}  "
            f"[dim]score changed:[/dim] {'yes' if summary.score_changed else 'no'}  "
            f"[dim]move count changed:[/dim] {'yes' if summary.move_count_changed else 'no'}"
        )
        table = Table(show_header=True, header_style="bold")
        table.add_column("Type", style="cyan")
        table.add_column("Path")
        table.add_column("First", overflow="fold")
        table.add_column("Second", overflow="fold")
        shown = comparison.differences if verbose else comparison.differences[:MAX_LISTED * 2]
        for diff in shown:
            table.add_row(diff.type, diff.path, str(diff.value1), str(diff.value2))
        console.print(table)
        if len(comparison.differences) > len(shown):
            console.print(
                f"[dim]  ... and {len(comparison.differences) - len(shown)} more (use --verbose)[/dim]"
            )

    for label, report in zip(("first", "second"), integrity):
        for error in report.errors:
            console.print(f"  {ICON_ERROR} [red]{label}: {error}[/red]")
        for warning in report.warnings:
            console.print(f"  {ICON_WARNING} [yellow]{label}: {warning}[/yellow]")

    if consistency is not None and not consistency.is_valid:
        console.print("[bold]Game state inconsistencies[/bold]")
        for issue in consistency.inconsistencies:
            console.print(f"  • {issue}")


def print_analysis(
    report: AnalysisReport,
    console: Console | None = None,
    verbose: bool = False,
) -> None:
    """
    Print a log analysis.

    Args:
        report: Result of analyze_events
        console: Rich Console instance (creates one if not provided)
        verbose: Also print the per-event timeline and every anomaly
    """
    if console is None:
        console = Console()

    frame = report.timeframe
    icon = ICON_SUCCESS if not report.anomalies else ICON_WARNING
    console.print(
        f"{icon} Analyzed [bold]{report.counts.total_events}[/bold] events "
        f"over {frame.duration_ms / 1000:.1f}s: "
        f"{len(report.interactions)} interactions, {len(report.anomalies)} anomalies"
    )
    if frame.start is not None:
        console.print(f"  [dim]From[/dim] {frame.start} [dim]to[/dim] {frame.end}")

    perf = report.performance
    if perf.events_with_metrics:
        console.print(
            f"  [dim]Timing:[/dim] {perf.events_with_metrics} events measured, "
            f"{perf.average_duration:.1f}ms average, {perf.max_duration:.1f}ms max, "
            f"{len(perf.slow_events)} slow"
        )

    if report.counts.by_type:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Event type", style="cyan")
        table.add_column("Count", justify="right")
        for event_type, count in sorted(report.counts.by_type.items(), key=lambda item: -item[1]):
            table.add_row(event_type, str(count))
        console.print(table)

    if report.anomalies:
        table = Table(show_header=True, header_style="bold", title="Anomalies")
        table.add_column("Type", style="yellow")
        table.add_column("Event", style="dim")
        table.add_column("Message", overflow="fold")
        shown = report.anomalies if verbose else report.anomalies[:MAX_LISTED]
        for anomaly in shown:
            table.add_row(anomaly.type.value, anomaly.event_id or "", anomaly.message)
        console.print(table)
        if len(report.anomalies) > len(shown):
            console.print(
                f"[dim]  ... and {len(report.anomalies) - len(shown)} more (use --verbose)[/dim]"
            )

    if verbose:
        for entry in report.timeline:
            console.print(f"  [dim]{entry.timestamp}[/dim] {entry.description}")

    for note in report.notes:
        console.print(f"  [dim]{note}[/dim]")
