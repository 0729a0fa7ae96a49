"""
Reference adapter that moves cards between piles without applying rules.

PileMoveAdapter trusts the log: a recorded move is applied as long as the
card is found in the source pile. It is useful for checking that a log is
self-consistent and as a template for real engine adapters.

Zones:
    tableau-<n>, foundation-<n>, foundation-<suit>, stock, waste, freecell-<n>
"""

import logging
from dataclasses import dataclass

from cardreplay.adapters.base import GameEngineAdapter
from cardreplay.errors import (
    InvalidCardSnapshotError,
    InvalidEventError,
    InvalidGameTypeError,
    MissingEventDataError,
)
from cardreplay.schema import CardSnapshot, GameState, GameType, Position, Suit
from cardreplay.snapshots import VARIANT_LAYOUT

logger = logging.getLogger(__name__)

_AREA_ALIASES = {
    "tableau": "tableau",
    "column": "tableau",
    "foundation": "foundation",
    "stock": "stock",
    "waste": "waste",
    "freecell": "free_cells",
    "freecells": "free_cells",
    "cell": "free_cells",
}

_SUIT_ORDER = [suit.value for suit in Suit]

# Cards landing here are always face up
_FACE_UP_AREAS = frozenset({"foundation", "waste", "free_cells"})


@dataclass(frozen=True)
class PileRef:
    """A pile addressed by a zone label."""

    area: str
    index: int = 0


def parse_zone(zone: str) -> PileRef:
    """
    Parse a zone label into a pile reference.

    Raises:
        ValueError: If the label does not name a known pile
    """
    normalized = "-".join(zone.strip().lower().replace("_", " ").split())
    normalized = normalized.replace("free-cell", "freecell")
    area_text, _, index_text = normalized.partition("-")

    area = _AREA_ALIASES.get(area_text)
    if area is None:
        raise ValueError(f"Unrecognized zone: {zone!r}")

    if not index_text:
        return PileRef(area)
    if index_text.isdigit():
        return PileRef(area, int(index_text))
    if area == "foundation" and index_text in _SUIT_ORDER:
        return PileRef(area, _SUIT_ORDER.index(index_text))
    raise ValueError(f"Unrecognized zone: {zone!r}")


class PileMoveAdapter(GameEngineAdapter):
    """
    Adapter that applies recorded moves literally.

    Moving a tableau card carries every card stacked on top of it. The card
    exposed underneath is turned face up when ``auto_flip`` is set.

    Attributes:
        game_type: Variant this adapter plays
        auto_flip: Turn newly exposed tableau cards face up
        points_per_move: Added to the score for every move
    """

    def __init__(
        self,
        game_type: GameType = GameType.KLONDIKE,
        auto_flip: bool = True,
        points_per_move: int = 0,
    ) -> None:
        self.game_type = GameType(game_type)
        self.auto_flip = auto_flip
        self.points_per_move = points_per_move
        self._state = self._empty_state()

    def _empty_state(self) -> GameState:
        _, tableau_piles, foundation_piles = VARIANT_LAYOUT[self.game_type]
        return GameState(
            game_type=self.game_type,
            tableau=[[] for _ in range(tableau_piles)],
            foundation=[[] for _ in range(foundation_piles)],
            stock=[] if self.game_type != GameType.FREECELL else None,
            waste=[] if self.game_type == GameType.KLONDIKE else None,
            free_cells=[] if self.game_type == GameType.FREECELL else None,
        )

    def set_game_state(self, state: GameState) -> None:
        if state.game_type != self.game_type:
            raise InvalidGameTypeError(game_type=state.game_type.value)
        self._state = state.model_copy(deep=True)

    def get_game_state(self) -> GameState:
        return self._state.model_copy(deep=True)

    def execute_move(self, source: Position, target: Position, card: CardSnapshot) -> GameState:
        missing = [
            name
            for name, position in (("source zone", source), ("target zone", target))
            if not position.zone
        ]
        if missing:
            raise MissingEventDataError(missing=missing)

        try:
            from_ref = parse_zone(source.zone)
            to_ref = parse_zone(target.zone)
        except ValueError as e:
            raise InvalidEventError(reason=str(e)) from e

        state = self._state.model_copy(deep=True)
        from_pile = self._pile(state, from_ref)
        to_pile = self._pile(state, to_ref)

        position = next((i for i, c in enumerate(from_pile) if c.id == card.id), None)
        if position is None:
            raise InvalidCardSnapshotError(
                card_id=card.id,
                message=f"Invalid card snapshot: {card.id} is not in {source.zone}",
            )

        moving = from_pile[position:]
        del from_pile[position:]
        if to_ref.area in _FACE_UP_AREAS:
            moving = [c if c.face_up else c.model_copy(update={"face_up": True}) for c in moving]
        to_pile.extend(moving)

        if self.auto_flip and from_ref.area == "tableau" and from_pile and not from_pile[-1].face_up:
            from_pile[-1] = from_pile[-1].model_copy(update={"face_up": True})

        state.move_count += 1
        state.score += self.points_per_move
        self._state = state

        logger.debug(
            "Moved %d card(s) from %s to %s", len(moving), source.zone, target.zone
        )
        return state.model_copy(deep=True)

    def _pile(self, state: GameState, ref: PileRef) -> list[CardSnapshot]:
        if ref.area in ("tableau", "foundation"):
            piles = getattr(state, ref.area)
            if ref.index >= len(piles):
                raise InvalidEventError(
                    reason=f"{ref.area} pile {ref.index} does not exist ({len(piles)} piles)"
                )
            return piles[ref.index]

        pile = getattr(state, ref.area)
        if pile is None:
            setattr(state, ref.area, [])
            pile = getattr(state, ref.area)
        return pile

    def __repr__(self) -> str:
        return f"<PileMoveAdapter: {self.game_type.value}>"
