"""
Consistency validation between replayed state and recorded snapshots.

After each replayed step the live GameState from the adapter is compared
with the snapshot the UI recorded after the same action. Any difference is
reported as a human-readable inconsistency; nothing is modified.

Checks, in order:
    - basic properties: game type, score, move count
    - tableau and foundation: pile counts, pile sizes, then card by card
    - stock, waste and free cells: presence, size, then card by card

Cards are compared on rank, suit and face-up state only. IDs and screen
positions are not part of game state and may legitimately differ between
engines.
"""

from dataclasses import dataclass, field

from cardreplay.schema import CardSnapshot, GameState, GameStateSnapshot


@dataclass
class ValidationReport:
    """Which parts of the state matched."""

    basic_properties_valid: bool = True
    tableau_valid: bool = True
    foundation_valid: bool = True
    stock_valid: bool = True
    waste_valid: bool = True
    free_cells_valid: bool = True


@dataclass
class ConsistencyResult:
    """
    Result of comparing replayed state with a recorded snapshot.

    Attributes:
        inconsistencies: One message per mismatch
        validation_report: Per-area pass/fail flags
    """

    inconsistencies: list[str] = field(default_factory=list)
    validation_report: ValidationReport = field(default_factory=ValidationReport)

    @property
    def is_valid(self) -> bool:
        """True when no inconsistencies were found."""
        return not self.inconsistencies


def perform_comprehensive_state_validation(
    replayed: GameState,
    expected: GameStateSnapshot,
) -> ConsistencyResult:
    """
    Compare replayed state against a recorded snapshot.

    Args:
        replayed: State produced by the game engine adapter
        expected: Snapshot recorded after the same action

    Returns:
        ConsistencyResult listing every mismatch
    """
    result = ConsistencyResult()
    report = result.validation_report

    basic = _compare_basic(replayed, expected)
    result.inconsistencies.extend(basic)
    report.basic_properties_valid = not basic

    tableau = _compare_pile_groups(replayed.tableau, expected.tableau, "tableau")
    result.inconsistencies.extend(tableau)
    report.tableau_valid = not tableau

    foundation = _compare_pile_groups(replayed.foundation, expected.foundation, "foundation")
    result.inconsistencies.extend(foundation)
    report.foundation_valid = not foundation

    stock = _compare_optional_pile(replayed.stock, expected.stock, "stock", "Stock")
    result.inconsistencies.extend(stock)
    report.stock_valid = not stock

    waste = _compare_optional_pile(replayed.waste, expected.waste, "waste", "Waste")
    result.inconsistencies.extend(waste)
    report.waste_valid = not waste

    free_cells = _compare_optional_pile(
        replayed.free_cells, expected.free_cells, "freeCells", "Free cells"
    )
    result.inconsistencies.extend(free_cells)
    report.free_cells_valid = not free_cells

    return result


def _compare_basic(replayed: GameState, expected: GameStateSnapshot) -> list[str]:
    issues = []
    if replayed.game_type != expected.game_type:
        issues.append(
            f"Game type mismatch: {replayed.game_type.value} vs {expected.game_type.value}"
        )
    if replayed.score != expected.score:
        issues.append(f"Score mismatch: {replayed.score} vs {expected.score}")
    if replayed.move_count != expected.move_count:
        issues.append(f"Move count mismatch: {replayed.move_count} vs {expected.move_count}")
    return issues


def _compare_pile_groups(
    replayed: list[list[CardSnapshot]],
    expected: list[list[CardSnapshot]],
    area: str,
) -> list[str]:
    if len(replayed) != len(expected):
        return [f"{area} pile count mismatch: {len(replayed)} vs {len(expected)}"]

    issues = []
    for index, (pile, expected_pile) in enumerate(zip(replayed, expected)):
        issues.extend(_compare_cards(pile, expected_pile, f"{area}[{index}]"))
    return issues


def _compare_optional_pile(
    replayed: list[CardSnapshot] | None,
    expected: list[CardSnapshot] | None,
    location: str,
    label: str,
) -> list[str]:
    if expected is not None and replayed is None:
        return [f"{label} pile missing in replayed state"]
    if expected is None and replayed is not None:
        return [f"Unexpected {label.lower()} pile in replayed state"]
    if expected is None or replayed is None:
        return []
    return _compare_cards(replayed, expected, location)


def _compare_cards(
    replayed: list[CardSnapshot],
    expected: list[CardSnapshot],
    location: str,
) -> list[str]:
    if len(replayed) != len(expected):
        return [f"{location} size mismatch: {len(replayed)} vs {len(expected)}"]

    issues = []
    for index, (card, expected_card) in enumerate(zip(replayed, expected)):
        at = f"{location}[{index}]"
        if card.rank != expected_card.rank:
            issues.append(f"Card rank mismatch at {at}: {card.rank} vs {expected_card.rank}")
        if card.suit != expected_card.suit:
            issues.append(f"Card suit mismatch at {at}: {card.suit} vs {expected_card.suit}")
        if card.face_up != expected_card.face_up:
            issues.append(
                f"Card faceUp mismatch at {at}: {card.face_up} vs {expected_card.face_up}"
            )
    return issues
