"""
Pytest configuration and fixtures for cardreplay tests.

This module provides shared fixtures used across unit and integration
tests: raw log entries in the camelCase wire format, and scripted game
engine adapters that record how the controller drives them.

The sample game is a small Klondike position:

    initial:  tableau[0] = [K♠ (down), A♥]   tableau[1] = [2♠]
    move 1:   A♥ tableau-0 -> foundation-hearts   (K♠ is turned up)
    move 2:   2♠ tableau-1 -> tableau-0
"""

import asyncio
import tempfile
from pathlib import Path
from typing import Any, Generator

import pytest

from cardreplay.adapters import GameEngineAdapter
from cardreplay.schema import GameState, GameStateSnapshot
from cardreplay.snapshots import state_from_snapshot


# =============================================================================
# Wire-format builders
# =============================================================================


def _card(
    card_id: str,
    suit: str = "hearts",
    rank: int = 1,
    face_up: bool = True,
    x: float = 0.0,
    y: float = 0.0,
) -> dict[str, Any]:
    return {
        "id": card_id,
        "suit": suit,
        "rank": rank,
        "faceUp": face_up,
        "draggable": face_up,
        "position": {"x": x, "y": y},
    }


def _snapshot(
    tableau: list[list[dict]] | None = None,
    foundation: list[list[dict]] | None = None,
    score: int = 0,
    move_count: int = 0,
    sequence: int = 1,
    timestamp: str = "2024-01-01T00:00:00.000Z",
    game_type: str = "klondike",
    **extra: Any,
) -> dict[str, Any]:
    data = {
        "timestamp": timestamp,
        "gameType": game_type,
        "tableau": tableau if tableau is not None else [[] for _ in range(7)],
        "foundation": foundation if foundation is not None else [[] for _ in range(4)],
        "stock": [],
        "waste": [],
        "score": score,
        "moveCount": move_count,
        "gameStartTime": "2024-01-01T00:00:00.000Z",
        "metadata": {
            "snapshotReason": "test",
            "triggeredBy": "conftest",
            "sequenceNumber": sequence,
        },
    }
    data.update(extra)
    return data


def _event(
    event_id: str | None,
    timestamp: str,
    event_type: str,
    data: dict[str, Any] | None = None,
    component: str | None = "GameBoard",
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "timestamp": timestamp,
        "type": event_type,
        "data": data if data is not None else {},
    }
    if event_id is not None:
        entry["id"] = event_id
    if component is not None:
        entry["component"] = component
    if before is not None:
        entry["gameStateBefore"] = before
    if after is not None:
        entry["gameStateAfter"] = after
    return entry


def _zone(zone: str) -> dict[str, Any]:
    return {"x": 10.0, "y": 20.0, "zone": zone}


def _to_state(snapshot: dict[str, Any]) -> GameState:
    return state_from_snapshot(GameStateSnapshot.model_validate(snapshot))


@pytest.fixture
def make_card():
    """Build a card in the wire format."""
    return _card


@pytest.fixture
def make_snapshot():
    """Build a Klondike snapshot in the wire format."""
    return _snapshot


@pytest.fixture
def make_event():
    """Build a raw event entry in the wire format."""
    return _event


@pytest.fixture
def zone():
    """Build a position dict with a zone label."""
    return _zone


@pytest.fixture
def to_state():
    """Convert a wire-format snapshot into a GameState."""
    return _to_state


# =============================================================================
# Sample game
# =============================================================================


@pytest.fixture
def initial_snapshot() -> dict[str, Any]:
    """Position before any move."""
    tableau = [[] for _ in range(7)]
    tableau[0] = [_card("card-ks", "spades", 13, face_up=False), _card("card-ah", "hearts", 1)]
    tableau[1] = [_card("card-2s", "spades", 2)]
    return _snapshot(tableau=tableau, sequence=1, timestamp="2024-01-01T00:00:00.000Z")


@pytest.fixture
def first_move_snapshot() -> dict[str, Any]:
    """Position after A♥ went to the foundation."""
    tableau = [[] for _ in range(7)]
    tableau[0] = [_card("card-ks", "spades", 13)]
    tableau[1] = [_card("card-2s", "spades", 2)]
    foundation = [[_card("card-ah", "hearts", 1)], [], [], []]
    return _snapshot(
        tableau=tableau,
        foundation=foundation,
        move_count=1,
        sequence=2,
        timestamp="2024-01-01T00:00:02.000Z",
    )


@pytest.fixture
def second_move_snapshot() -> dict[str, Any]:
    """Position after 2♠ went onto K♠."""
    tableau = [[] for _ in range(7)]
    tableau[0] = [_card("card-ks", "spades", 13), _card("card-2s", "spades", 2)]
    foundation = [[_card("card-ah", "hearts", 1)], [], [], []]
    return _snapshot(
        tableau=tableau,
        foundation=foundation,
        move_count=2,
        sequence=3,
        timestamp="2024-01-01T00:00:03.000Z",
    )


@pytest.fixture
def game_log(initial_snapshot, first_move_snapshot, second_move_snapshot) -> list[dict[str, Any]]:
    """Three raw events: a drag start and two executed moves."""
    return [
        _event(
            "event-1",
            "2024-01-01T00:00:01.000Z",
            "drag_start",
            data={"card": _card("card-ah"), "sourcePosition": _zone("tableau-0")},
            component="Card",
            before=initial_snapshot,
        ),
        _event(
            "event-2",
            "2024-01-01T00:00:02.000Z",
            "move_executed",
            data={
                "card": _card("card-ah"),
                "sourcePosition": _zone("tableau-0"),
                "targetPosition": _zone("foundation-hearts"),
                "moveType": "user",
                "moveSuccess": True,
            },
            before=initial_snapshot,
            after=first_move_snapshot,
        ),
        _event(
            "event-3",
            "2024-01-01T00:00:03.000Z",
            "move_executed",
            data={
                "card": _card("card-2s", "spades", 2),
                "sourcePosition": _zone("tableau-1"),
                "targetPosition": _zone("tableau-0"),
                "moveType": "user",
                "moveSuccess": True,
            },
            before=first_move_snapshot,
            after=second_move_snapshot,
        ),
    ]


@pytest.fixture
def expected_states(first_move_snapshot, second_move_snapshot) -> list[GameState]:
    """States a correct engine returns for the two moves in game_log."""
    return [_to_state(first_move_snapshot), _to_state(second_move_snapshot)]


# =============================================================================
# Scripted adapters
# =============================================================================


class ScriptedAdapter(GameEngineAdapter):
    """
    Adapter that returns scripted results and records every call.

    Attributes:
        results: Value returned by the n-th execute_move (state, dict, None, ...)
        errors: Exception raised by the n-th execute_move
        on_move: Optional hook called with the move index before anything else
        set_error: Exception raised by every set_game_state call
    """

    def __init__(self, results=None, errors=None, on_move=None, set_error=None) -> None:
        self.results = list(results or [])
        self.errors = dict(errors or {})
        self.on_move = on_move
        self.set_error = set_error
        self.state: GameState | None = None
        self.calls: list[tuple[str, Any]] = []
        self.move_calls = 0

    def set_game_state(self, state):
        self.calls.append(("set", state))
        if self.set_error is not None:
            raise self.set_error
        self.state = state

    def execute_move(self, source, target, card):
        index = self.move_calls
        self.move_calls += 1
        self.calls.append(("move", card.id))
        if self.on_move is not None:
            self.on_move(index)
        if index in self.errors:
            raise self.errors[index]
        if index < len(self.results):
            result = self.results[index]
            if isinstance(result, GameState):
                self.state = result
            return result
        return self.state

    def get_game_state(self):
        self.calls.append(("get", None))
        return self.state


class AsyncScriptedAdapter(ScriptedAdapter):
    """ScriptedAdapter with coroutine methods; moves wait for ``gate`` to open."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.gate = asyncio.Event()
        self.gate.set()

    async def set_game_state(self, state):
        super().set_game_state(state)

    async def execute_move(self, source, target, card):
        await self.gate.wait()
        return super().execute_move(source, target, card)

    async def get_game_state(self):
        return super().get_game_state()


@pytest.fixture
def scripted_adapter(expected_states) -> ScriptedAdapter:
    """Scripted adapter that plays game_log correctly."""
    return ScriptedAdapter(results=expected_states)


@pytest.fixture
def async_adapter(expected_states) -> AsyncScriptedAdapter:
    """Coroutine adapter that plays game_log correctly."""
    return AsyncScriptedAdapter(results=expected_states)


@pytest.fixture
def adapter_class():
    """The ScriptedAdapter class, for tests that need a custom script."""
    return ScriptedAdapter


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
