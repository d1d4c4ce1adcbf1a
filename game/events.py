"""
SwordFight CLI — game/events.py
Engine boundary: typed event bus and the key-value store handed to the engine.
==============================================================================
Stack:       Python 3.11+ | Pydantic v2 | bespoke pub-sub

Architecture notes
------------------
- The engine never sees process-wide globals. Bus and store are built per
  session and injected through EngineContext (game/engine.py).
- Dispatch is synchronous and in subscription order. Wildcard key "*"
  receives every emitted event after the specific subscribers.
- A raising subscriber is logged and skipped; emission always continues.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ============================================================
# CANONICAL EVENT KEYS
# Names are fixed by the engine contract. Never use raw strings.
# ============================================================

EVT_START              = "start"
EVT_SETUP              = "setup"
EVT_ROUND              = "round"
EVT_MY_MOVE            = "myMove"
EVT_OPPONENTS_MOVE     = "opponentsMove"
EVT_VICTORY            = "victory"
EVT_DEFEAT             = "defeat"

# Multiplayer only
EVT_ROOM_FULL          = "roomFull"
EVT_NAME               = "name"
EVT_OPPONENT_CHARACTER = "opponentCharacter"

# Outbound: the only event the front-end produces
EVT_INPUT_MOVE         = "inputMove"

WILDCARD = "*"

# Store keys shared with the engine
KEY_PLAYER_NAME    = "playerName"
KEY_CHARACTER_SLUG = "myCharacterSlug"


class GameEvent(BaseModel):
    """Envelope for every engine event. `detail` mirrors the engine payload."""
    name: str
    detail: Dict[str, Any] = Field(default_factory=dict)


HandlerFn = Callable[[GameEvent], None]


class EventBus:
    """
    Synchronous pub-sub. One bus per game session, shared with the engine.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[HandlerFn]] = {}

    def subscribe(self, event_name: str, handler: HandlerFn) -> None:
        self._subscribers.setdefault(event_name, []).append(handler)

    def unsubscribe(self, event_name: str, handler: HandlerFn) -> None:
        if event_name in self._subscribers:
            self._subscribers[event_name] = [
                h for h in self._subscribers[event_name] if h is not handler
            ]

    def emit(self, event: GameEvent) -> None:
        targets = (
            self._subscribers.get(event.name, [])
            + self._subscribers.get(WILDCARD, [])
        )
        for handler in targets:
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                logger.exception("Handler error on '%s'", event.name)

    def publish(self, event_name: str, detail: Optional[Dict[str, Any]] = None) -> None:
        """Shorthand for emit(GameEvent(...))."""
        self.emit(GameEvent(name=event_name, detail=detail or {}))


class KeyValueStore:
    """
    Minimal string store shared with the engine (player name, character slug).
    Lives for the process only; nothing is written to disk.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data
