"""
SwordFight CLI — game/engine.py
Engine boundary: what the front-end needs from the combat engine.
=================================================================
Stack:       Python 3.11+ | importlib | typing.Protocol

Architecture notes
------------------
- The combat engine is an external package. It is located at startup from
  an import path ("module:attribute", config key engine.backend) so the
  front-end never imports it directly.
- The engine talks to the UI only through the EventBus and KeyValueStore
  passed in EngineContext. No globals are installed for it.
- Protocols below document the attributes actually read; engine objects
  are duck-typed against them.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence

from pydantic import ValidationError

from game.events import EventBus, KeyValueStore
from game.models import CharacterProfile, SelectableItem, SwordfightError

logger = logging.getLogger(__name__)

COMPUTER_OPPONENT = "computer"


class EngineLoadError(SwordfightError):
    """The configured engine backend cannot be imported or is unusable."""


@dataclass
class EngineContext:
    bus: EventBus
    store: KeyValueStore


# ============================================================
# CONTRACT
# ============================================================

class Combatant(Protocol):
    name: str
    health: int
    starting_health: int
    weapon: Any
    shield: Any
    is_computer: bool
    moves: Sequence[Any]


class DuelGame(Protocol):
    my_character: Combatant
    opponents_character: Combatant
    round_number: int

    def available_moves(self) -> Optional[Sequence[Any]]: ...

    def set_up(self) -> None: ...


class EngineBackend(Protocol):
    def load_characters(self) -> Iterable[Any]: ...

    def create_game(
        self,
        game_id: str,
        *,
        context: EngineContext,
        opponent: Optional[str],
        options: Mapping[str, Any],
    ) -> DuelGame: ...


# ============================================================
# LOADING
# ============================================================

_REQUIRED = ("load_characters", "create_game")


def load_backend(path: str) -> EngineBackend:
    """
    Resolves "package.module:attribute". A class attribute is instantiated
    with no arguments; anything else is used as-is.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise EngineLoadError(f"Engine backend must look like 'module:attribute', got {path!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise EngineLoadError(f"Cannot import engine module {module_name!r}: {exc}") from exc

    try:
        backend = getattr(module, attr)
    except AttributeError as exc:
        raise EngineLoadError(f"Engine module {module_name!r} has no attribute {attr!r}") from exc

    if isinstance(backend, type):
        backend = backend()

    missing = [name for name in _REQUIRED if not callable(getattr(backend, name, None))]
    if missing:
        raise EngineLoadError(f"Engine backend {path!r} is missing {', '.join(missing)}")

    logger.info("Engine backend loaded from %s", path)
    return backend


# ============================================================
# HELPERS
# ============================================================

def character_profiles(backend: EngineBackend) -> List[CharacterProfile]:
    """Fighter catalog from the engine, validated. Empty catalog is an error."""
    profiles: List[CharacterProfile] = []
    for raw in backend.load_characters():
        try:
            if isinstance(raw, Mapping):
                profiles.append(CharacterProfile.model_validate(dict(raw)))
            else:
                profiles.append(CharacterProfile.model_validate(raw, from_attributes=True))
        except ValidationError as exc:
            raise EngineLoadError(f"Engine returned an invalid character: {exc}") from exc
    if not profiles:
        raise EngineLoadError("Engine returned no characters")
    return profiles


def move_items(moves: Optional[Iterable[Any]]) -> List[SelectableItem]:
    return [SelectableItem.from_source(move) for move in moves or ()]


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def find_move(game: DuelGame, move_id: Any) -> Optional[SelectableItem]:
    """Looks a move up in the player's full move list. Ids compare as strings."""
    wanted = str(move_id)
    for move in getattr(game.my_character, "moves", None) or ():
        if str(_field(move, "id")) == wanted:
            return SelectableItem.from_source(move)
    return None


def close_game(game: Optional[DuelGame]) -> None:
    close = getattr(game, "close", None)
    if callable(close):
        close()
