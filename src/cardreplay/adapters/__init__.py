"""
Game engine adapters.

The replay controller drives a GameEngineAdapter through recorded moves.
Adapters are looked up by game type in an AdapterRegistry or imported from
a "package.module:attribute" path.

Built-in adapters:
    - PileMoveAdapter: applies recorded moves literally, without rules
"""

from cardreplay.adapters.base import GameEngineAdapter
from cardreplay.adapters.piles import PileMoveAdapter, PileRef, parse_zone
from cardreplay.adapters.registry import (
    AdapterRegistry,
    create_adapter,
    default_registry,
    load_adapter_factory,
)

__all__ = [
    "GameEngineAdapter",
    "PileMoveAdapter",
    "PileRef",
    "parse_zone",
    "AdapterRegistry",
    "create_adapter",
    "default_registry",
    "load_adapter_factory",
]
