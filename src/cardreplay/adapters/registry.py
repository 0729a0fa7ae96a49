"""
Adapter registry for cardreplay.

Maps game types to factories that build a fresh adapter per replay.

Design:
    - Single default registry (default_registry) with PileMoveAdapter for
      every supported variant
    - Separate registries for testing/isolation
    - Custom engines load from "package.module:attribute" import paths

Usage:
    from cardreplay.adapters.registry import default_registry

    adapter = default_registry.create(GameType.KLONDIKE)
"""

import importlib
from functools import partial
from typing import Callable, Iterator

from cardreplay.adapters.base import GameEngineAdapter
from cardreplay.adapters.piles import PileMoveAdapter
from cardreplay.errors import AdapterNotFoundError
from cardreplay.schema import GameType

AdapterFactory = Callable[[], GameEngineAdapter]


class AdapterRegistry:
    """
    Registry for looking up adapter factories by game type.

    Attributes:
        _factories: Internal mapping of game types to factories
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._factories: dict[GameType, AdapterFactory] = {}

    def register(self, game_type: GameType | str, factory: AdapterFactory) -> None:
        """
        Register a factory for a game type, replacing any existing one.

        Raises:
            ValueError: If factory is not callable
        """
        if not callable(factory):
            msg = "Adapter factory must be callable"
            raise ValueError(msg)
        self._factories[GameType(game_type)] = factory

    def create(self, game_type: GameType | str) -> GameEngineAdapter:
        """
        Build a new adapter for a game type.

        Raises:
            AdapterNotFoundError: If nothing is registered for the game type
        """
        factory = self._factories.get(_coerce(game_type))
        if factory is None:
            raise AdapterNotFoundError(name=str(getattr(game_type, "value", game_type)), available=self.list_game_types())
        return factory()

    def has(self, game_type: GameType | str) -> bool:
        """Check if a factory is registered for a game type."""
        return _coerce(game_type) in self._factories

    def unregister(self, game_type: GameType | str) -> bool:
        """Remove a factory, returning False if none was registered."""
        return self._factories.pop(_coerce(game_type), None) is not None

    def list_game_types(self) -> list[str]:
        """Registered game types in sorted order."""
        return sorted(game_type.value for game_type in self._factories)

    def __len__(self) -> int:
        return len(self._factories)

    def __iter__(self) -> Iterator[GameType]:
        return iter(self._factories)

    def __contains__(self, game_type: object) -> bool:
        return isinstance(game_type, (GameType, str)) and self.has(game_type)

    def __repr__(self) -> str:
        return f"<AdapterRegistry: [{', '.join(self.list_game_types())}]>"


def _coerce(game_type: GameType | str) -> GameType | None:
    try:
        return GameType(game_type)
    except ValueError:
        return None


def load_adapter_factory(spec: str) -> AdapterFactory:
    """
    Import an adapter factory from a "package.module:attribute" path.

    The attribute may be a GameEngineAdapter subclass or any callable that
    returns an adapter.

    Raises:
        AdapterNotFoundError: If the module or attribute cannot be found
    """
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise AdapterNotFoundError(
            name=spec,
            suggestion="Use the form package.module:attribute",
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise AdapterNotFoundError(name=spec, message=f"Cannot import {module_name}: {e}") from e

    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise AdapterNotFoundError(name=spec, message=f"{module_name} has no callable {attr!r}")
    return factory


def _build_default_registry() -> AdapterRegistry:
    registry = AdapterRegistry()
    for game_type in GameType:
        registry.register(game_type, partial(PileMoveAdapter, game_type))
    return registry


# Global default registry instance
default_registry = _build_default_registry()


def create_adapter(game_type: GameType | str) -> GameEngineAdapter:
    """Build an adapter from the default registry."""
    return default_registry.create(game_type)
