"""
Snapshot utilities.

- SnapshotFactory: capture a GameState as a GameStateSnapshot with sequence numbers
- state_from_snapshot: turn a recorded snapshot into adapter-facing state
- serialize_snapshot/deserialize_snapshot: lossless JSON form
- compare_snapshots/significant_differences: field-level differences by path
- validate_snapshot_integrity: duplicate cards, bad suits, variant layout
- create_diff_summary: counts of moved/flipped cards and changed totals
"""

import hashlib
import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable

from pydantic import ValidationError

from cardreplay.errors import SnapshotInvalidError
from cardreplay.ids import utc_timestamp
from cardreplay.schema import (
    CardSnapshot,
    GameState,
    GameStateSnapshot,
    GameType,
    SnapshotMetadata,
    Suit,
)

# Piles compared card by card, in report order
PILE_NAMES = ("tableau", "foundation", "stock", "waste", "free_cells")

# Expected deck size and (tableau, foundation) layout per variant
VARIANT_LAYOUT: dict[GameType, tuple[int, int, int]] = {
    GameType.KLONDIKE: (52, 7, 4),
    GameType.FREECELL: (52, 8, 4),
    GameType.SPIDER: (104, 10, 8),
}

_WIRE_PILE_NAMES = {"free_cells": "freeCells"}


class SnapshotFactory:
    """
    Creates snapshots from live game state.

    The factory owns a monotonically increasing sequence counter, so every
    snapshot it creates is ordered after the previous one.
    """

    def __init__(self, clock: Callable[[], str] = utc_timestamp) -> None:
        self._clock = clock
        self._sequence = 0

    @property
    def sequence(self) -> int:
        """Sequence number of the most recently created snapshot."""
        return self._sequence

    def reset(self) -> None:
        """Restart numbering from zero."""
        self._sequence = 0

    def create_snapshot(
        self,
        state: GameState,
        reason: str,
        triggered_by: str = "SnapshotFactory.create_snapshot",
    ) -> GameStateSnapshot:
        """Capture ``state`` as a new snapshot."""
        self._sequence += 1
        now = self._clock()
        return GameStateSnapshot(
            timestamp=now,
            game_type=state.game_type,
            tableau=[list(pile) for pile in state.tableau],
            foundation=[list(pile) for pile in state.foundation],
            stock=list(state.stock) if state.stock is not None else None,
            waste=list(state.waste) if state.waste is not None else None,
            free_cells=list(state.free_cells) if state.free_cells is not None else None,
            score=state.score,
            move_count=state.move_count,
            game_start_time=state.time_started or now,
            metadata=SnapshotMetadata(
                snapshot_reason=reason,
                triggered_by=triggered_by,
                sequence_number=self._sequence,
            ),
        )


def state_from_snapshot(snapshot: GameStateSnapshot) -> GameState:
    """Build a fresh, independently mutable GameState from a snapshot."""
    return GameState(
        game_type=snapshot.game_type,
        tableau=[list(pile) for pile in snapshot.tableau],
        foundation=[list(pile) for pile in snapshot.foundation],
        stock=list(snapshot.stock) if snapshot.stock is not None else None,
        waste=list(snapshot.waste) if snapshot.waste is not None else None,
        free_cells=list(snapshot.free_cells) if snapshot.free_cells is not None else None,
        score=snapshot.score,
        move_count=snapshot.move_count,
        time_started=snapshot.game_start_time,
    )


def serialize_snapshot(snapshot: GameStateSnapshot, indent: int | None = None) -> str:
    """Serialize a snapshot to its camelCase JSON form."""
    return json.dumps(snapshot.to_json_dict(), indent=indent)


def deserialize_snapshot(text: str) -> GameStateSnapshot:
    """
    Parse and validate a snapshot from JSON text.

    Raises:
        SnapshotInvalidError: If the text is not JSON or not a valid snapshot
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SnapshotInvalidError(reason=f"not valid JSON: {e.msg}") from e
    try:
        return GameStateSnapshot.model_validate(data)
    except ValidationError as e:
        raise SnapshotInvalidError(reason=_first_error(e)) from e


def is_valid_snapshot(data: Any) -> bool:
    """Check whether raw data would validate as a GameStateSnapshot."""
    if isinstance(data, GameStateSnapshot):
        return True
    try:
        GameStateSnapshot.model_validate(data)
    except ValidationError:
        return False
    return True


def snapshot_fingerprint(snapshot: GameStateSnapshot) -> str:
    """
    SHA-256 over the game content of a snapshot.

    Capture time and metadata are excluded, so two snapshots of the same
    position share a fingerprint.
    """
    content = snapshot.to_json_dict()
    for key in ("timestamp", "gameStartTime", "metadata"):
        content.pop(key, None)
    canonical = json.dumps(content, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]


# =============================================================================
# Comparison
# =============================================================================


@dataclass(frozen=True)
class SnapshotDifference:
    """
    One difference between two snapshots.

    Attributes:
        type: Kind of difference (e.g., "score", "cardRank", "arrayLength")
        path: Location, e.g. "tableau[2][0].rank"
        value1: Value in the first snapshot (None when absent)
        value2: Value in the second snapshot (None when absent)
    """

    type: str
    path: str
    value1: Any
    value2: Any


@dataclass
class SnapshotComparison:
    """Result of comparing two snapshots."""

    differences: list[SnapshotDifference] = field(default_factory=list)

    @property
    def are_equal(self) -> bool:
        """True when no differences were found."""
        return not self.differences

    @property
    def differences_by_type(self) -> dict[str, int]:
        """Count of differences per difference type."""
        return dict(Counter(d.type for d in self.differences))

    @property
    def affected_areas(self) -> list[str]:
        """Top-level areas with at least one difference, in first-seen order."""
        areas: list[str] = []
        for diff in self.differences:
            area = diff.path.split("[")[0].split(".")[0]
            if area not in areas:
                areas.append(area)
        return areas


def compare_snapshots(first: GameStateSnapshot, second: GameStateSnapshot) -> SnapshotComparison:
    """List every difference between two snapshots."""
    comparison = SnapshotComparison()
    diffs = comparison.differences

    for attr, wire in (
        ("timestamp", "timestamp"),
        ("game_type", "gameType"),
        ("score", "score"),
        ("move_count", "moveCount"),
    ):
        v1, v2 = getattr(first, attr), getattr(second, attr)
        if v1 != v2:
            value1 = v1.value if isinstance(v1, GameType) else v1
            value2 = v2.value if isinstance(v2, GameType) else v2
            diffs.append(SnapshotDifference(wire, wire, value1, value2))

    if first.metadata.sequence_number != second.metadata.sequence_number:
        diffs.append(SnapshotDifference(
            "sequenceNumber",
            "metadata.sequenceNumber",
            first.metadata.sequence_number,
            second.metadata.sequence_number,
        ))

    diffs.extend(_compare_piles(first.tableau, second.tableau, "tableau"))
    diffs.extend(_compare_piles(first.foundation, second.foundation, "foundation"))
    for name in ("stock", "waste", "free_cells"):
        pile1, pile2 = getattr(first, name), getattr(second, name)
        if pile1 is not None or pile2 is not None:
            diffs.extend(_compare_piles(
                [pile1 or []],
                [pile2 or []],
                _WIRE_PILE_NAMES.get(name, name),
            ))

    return comparison


def significant_differences(
    first: GameStateSnapshot,
    second: GameStateSnapshot,
    ignore_timestamps: bool = True,
) -> list[SnapshotDifference]:
    """Differences excluding capture bookkeeping (timestamps, sequence numbers)."""
    result = []
    for diff in compare_snapshots(first, second).differences:
        if ignore_timestamps and "timestamp" in diff.path:
            continue
        if "sequenceNumber" in diff.path:
            continue
        result.append(diff)
    return result


def _compare_piles(
    piles1: list[list[CardSnapshot]],
    piles2: list[list[CardSnapshot]],
    area: str,
) -> list[SnapshotDifference]:
    diffs: list[SnapshotDifference] = []
    for i in range(max(len(piles1), len(piles2))):
        pile1 = piles1[i] if i < len(piles1) else []
        pile2 = piles2[i] if i < len(piles2) else []
        if len(pile1) != len(pile2):
            diffs.append(SnapshotDifference("arrayLength", f"{area}[{i}].length", len(pile1), len(pile2)))
        for j in range(max(len(pile1), len(pile2))):
            path = f"{area}[{i}][{j}]"
            card1 = pile1[j] if j < len(pile1) else None
            card2 = pile2[j] if j < len(pile2) else None
            if card1 is None and card2 is not None:
                diffs.append(SnapshotDifference("cardMissing", path, None, card2.id))
            elif card1 is not None and card2 is None:
                diffs.append(SnapshotDifference("cardExtra", path, card1.id, None))
            elif card1 is not None and card2 is not None:
                diffs.extend(_compare_cards(card1, card2, path))
    return diffs


def _compare_cards(card1: CardSnapshot, card2: CardSnapshot, path: str) -> list[SnapshotDifference]:
    diffs = []
    for attr, kind, wire in (
        ("id", "cardId", "id"),
        ("suit", "cardSuit", "suit"),
        ("rank", "cardRank", "rank"),
        ("face_up", "cardFaceUp", "faceUp"),
        ("draggable", "cardDraggable", "draggable"),
    ):
        v1, v2 = getattr(card1, attr), getattr(card2, attr)
        if v1 != v2:
            diffs.append(SnapshotDifference(kind, f"{path}.{wire}", v1, v2))
    pos1, pos2 = card1.position, card2.position
    if (pos1.x, pos1.y) != (pos2.x, pos2.y):
        diffs.append(SnapshotDifference(
            "cardPosition",
            f"{path}.position",
            {"x": pos1.x, "y": pos1.y},
            {"x": pos2.x, "y": pos2.y},
        ))
    return diffs


# =============================================================================
# Integrity
# =============================================================================


@dataclass
class IntegrityReport:
    """Result of checking a snapshot for impossible card layouts."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    card_count: int = 0
    unique_card_ids: int = 0

    @property
    def is_valid(self) -> bool:
        """True when no errors were found. Warnings do not count."""
        return not self.errors


def iter_cards(snapshot: GameStateSnapshot | GameState):
    """Yield ``(location, card)`` for every card in every pile."""
    for name in PILE_NAMES:
        piles = getattr(snapshot, name)
        if piles is None:
            continue
        wire = _WIRE_PILE_NAMES.get(name, name)
        if name in ("tableau", "foundation"):
            for i, pile in enumerate(piles):
                for card in pile:
                    yield f"{wire}[{i}]", card
        else:
            for card in piles:
                yield wire, card


def validate_snapshot_integrity(snapshot: GameStateSnapshot) -> IntegrityReport:
    """Check card count, duplicate IDs, suits and the variant's pile layout."""
    report = IntegrityReport()
    seen: set[str] = set()
    duplicates: list[str] = []
    valid_suits = {suit.value for suit in Suit}

    for location, card in iter_cards(snapshot):
        report.card_count += 1
        if card.id in seen:
            duplicates.append(f"{card.id} (found in {location})")
        else:
            seen.add(card.id)
        if card.suit not in valid_suits:
            report.errors.append(f"Invalid suit '{card.suit}' for card {card.id} in {location}")

    report.unique_card_ids = len(seen)
    if duplicates:
        report.errors.append(f"Duplicate card IDs found: {', '.join(duplicates)}")

    deck_size, tableau_piles, foundation_piles = VARIANT_LAYOUT[snapshot.game_type]
    if report.card_count != deck_size:
        report.warnings.append(f"Unexpected card count: {report.card_count} (expected {deck_size})")

    variant = snapshot.game_type.value.capitalize()
    if len(snapshot.tableau) != tableau_piles:
        report.errors.append(
            f"{variant} should have {tableau_piles} tableau columns, found {len(snapshot.tableau)}"
        )
    if len(snapshot.foundation) != foundation_piles:
        report.errors.append(
            f"{variant} should have {foundation_piles} foundation piles, found {len(snapshot.foundation)}"
        )
    if snapshot.game_type == GameType.FREECELL and snapshot.free_cells and len(snapshot.free_cells) > 4:
        report.errors.append(f"Freecell has at most 4 free cells, found {len(snapshot.free_cells)}")

    return report


# =============================================================================
# Diff Summary
# =============================================================================


@dataclass
class DiffSummary:
    """Condensed view of a snapshot comparison."""

    total_differences: int = 0
    cards_moved: int = 0
    cards_flipped: int = 0
    draggability_changed: int = 0
    score_changed: bool = False
    move_count_changed: bool = False
    game_type_changed: bool = False
    affected_areas: list[str] = field(default_factory=list)


def create_diff_summary(first: GameStateSnapshot, second: GameStateSnapshot) -> DiffSummary:
    """Summarize the differences between two snapshots."""
    comparison = compare_snapshots(first, second)
    counts = comparison.differences_by_type
    return DiffSummary(
        total_differences=len(comparison.differences),
        cards_moved=counts.get("cardPosition", 0),
        cards_flipped=counts.get("cardFaceUp", 0),
        draggability_changed=counts.get("cardDraggable", 0),
        score_changed="score" in counts,
        move_count_changed="moveCount" in counts,
        game_type_changed="gameType" in counts,
        affected_areas=comparison.affected_areas,
    )
