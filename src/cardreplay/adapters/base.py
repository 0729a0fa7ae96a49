"""
Game engine adapter interface.

The replay controller never applies solitaire rules itself. It drives an
adapter, which wraps whatever engine owns the rules, through the recorded
moves and reads back the resulting state.

Implementations may define any of the three methods as coroutines; the
controller awaits results that are awaitable.

Why ABC over Protocol?
    - The controller rejects objects that do not subclass GameEngineAdapter,
      so a half-implemented engine fails at attach time, not mid-replay
"""

from abc import ABC, abstractmethod

from cardreplay.schema import CardSnapshot, GameState, Position


class GameEngineAdapter(ABC):
    """
    Abstract base class for game engines driven by replay.

    Subclasses must implement set_game_state, execute_move and get_game_state.
    Raise cardreplay.errors exceptions (or ones whose message names a known
    failure) so the controller can tell recoverable failures from fatal ones.
    """

    @abstractmethod
    def set_game_state(self, state: GameState) -> None:
        """
        Replace the engine's current state.

        Called to seed a replay and to resynchronize after recovering from
        an error.
        """
        ...

    @abstractmethod
    def execute_move(self, source: Position, target: Position, card: CardSnapshot) -> GameState:
        """
        Move ``card`` from ``source`` to ``target``.

        Args:
            source: Where the card was picked up (zone identifies the pile)
            target: Where the card was dropped
            card: The card that moved

        Returns:
            The engine state after the move
        """
        ...

    @abstractmethod
    def get_game_state(self) -> GameState:
        """Return the engine's current state."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"
