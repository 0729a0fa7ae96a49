"""
cardreplay - Replay and validate recorded solitaire UI action logs.

A recorded log of UI action events is sanitized, then replayed event by
event against a game engine adapter. After each move the engine's state is
compared with the snapshot the UI recorded, failures are classified as
recoverable or fatal, and the replay can be stepped, paused and stopped.

Example usage:
    $ cardreplay sanitize session.json --out clean.json
    $ cardreplay replay clean.json --game klondike
    $ cardreplay recreate clean.json --stop-at 25
"""

__version__ = "0.1.0"
__author__ = "cardreplay contributors"

from cardreplay.adapters import GameEngineAdapter, PileMoveAdapter
from cardreplay.controller import ReplayController
from cardreplay.sanitize import validate_and_sanitize_event_log
from cardreplay.schema import GameState, GameStateSnapshot, ReplayOptions, UIActionEvent

__all__ = [
    "__version__",
    "__author__",
    "GameEngineAdapter",
    "PileMoveAdapter",
    "ReplayController",
    "validate_and_sanitize_event_log",
    "GameState",
    "GameStateSnapshot",
    "ReplayOptions",
    "UIActionEvent",
]
