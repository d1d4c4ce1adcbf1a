"""
Test doubles: a scripted terminal, a scripted key source and a tiny
in-process duel engine that speaks the engine event contract.
"""
import asyncio
import contextlib
import io
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from game.config import AppConfig, MultiplayerConfig, TimingConfig
from game.engine import EngineContext
from game.events import (
    EVT_INPUT_MOVE,
    EVT_MY_MOVE,
    EVT_ROUND,
    EVT_SETUP,
    EVT_START,
    EVT_VICTORY,
)
from ui.terminal import Terminal, decode_keys


FAST_TIMING = TimingConfig(selection_confirm_s=0, setup_delay_s=0, round_reveal_s=[0, 0, 0, 0])


def fast_config(**multiplayer) -> AppConfig:
    return AppConfig(timing=FAST_TIMING, multiplayer=MultiplayerConfig(**multiplayer))


# ============================================================
# TERMINAL & KEYS
# ============================================================

class ScriptedTerminal(Terminal):
    """Terminal over StringIO with a switchable interactive flag."""

    def __init__(self, interactive: bool = True, height: int = 40, answers=()):
        super().__init__(stdin=io.StringIO(""), stdout=io.StringIO())
        self._interactive = interactive
        self._height = height
        self.answers = list(answers)
        self.raw_entries = 0
        self.raw_exits = 0
        self.frames: List[List[str]] = []

    @property
    def is_interactive(self) -> bool:
        return self._interactive

    @property
    def height(self) -> int:
        return self._height

    @property
    def output(self) -> str:
        return self.stdout.getvalue()

    @contextlib.contextmanager
    def raw_mode(self):
        self.raw_entries += 1
        try:
            yield
        finally:
            self.raw_exits += 1

    def draw_frame(self, lines) -> None:
        self.frames.append(list(lines))
        super().draw_frame(lines)

    async def question(self, prompt: str) -> str:
        self.write(prompt)
        return self.answers.pop(0) if self.answers else ""


class ScriptedKeySource:
    """Replays raw key chunks. Every prompt reads from the same script."""

    def __init__(self, *chunks: str):
        self._keys = [key for chunk in chunks for key in decode_keys(chunk)]
        self.opened = 0

    def feed(self, *chunks: str) -> None:
        self._keys.extend(key for chunk in chunks for key in decode_keys(chunk))

    @property
    def remaining(self) -> int:
        return len(self._keys)

    async def keys(self):
        self.opened += 1
        while self._keys:
            yield self._keys.pop(0)
            await asyncio.sleep(0)


UP = "\x1b[A"
DOWN = "\x1b[B"
PAGE_UP = "\x1b[5~"
PAGE_DOWN = "\x1b[6~"
ENTER = "\r"
ESCAPE = "\x1b"
CTRL_C = "\x03"


# ============================================================
# ENGINE
# ============================================================

MOVES = [
    {"id": 1, "name": "Thrust", "tag": "Attack", "range": "close", "mod": 2, "type": "thrust"},
    {"id": 2, "name": "Parry", "tag": "Defense", "range": "close", "mod": 0, "type": "parry"},
    {"id": 3, "name": "Leap", "tag": "Jump", "range": "medium", "mod": -1, "type": "jump"},
]

CHARACTERS = [
    {"slug": "human-fighter", "name": "Human Fighter", "description": "Sword and shield"},
    {"slug": "goblin", "name": "Goblin", "description": "Small and vicious"},
]


@dataclass
class FakeCombatant:
    name: str
    health: int = 10
    starting_health: int = 10
    weapon: bool = True
    shield: bool = True
    is_computer: bool = True
    moves: List[Dict[str, Any]] = field(default_factory=list)


def side(move: Dict[str, Any], total: int = 0, score: Any = "", stance: str = "Ready",
         bonus: int = 0, modifier: Optional[int] = 0, restrict=(), allow_only=(), next_bonus=()):
    return {
        "myMove": {"id": move["id"], "name": move["name"], "tag": move["tag"]},
        "result": {
            "name": stance,
            "range": "close",
            "restrict": list(restrict),
            "allowOnly": list(allow_only),
            "score": score,
        },
        "score": score,
        "moveModifier": modifier,
        "bonus": bonus,
        "totalScore": total,
        "nextRoundBonus": list(next_bonus),
    }


def round_payload(my_total: int = 5, opp_total: int = 0, my_score: Any = 5, opp_score: Any = ""):
    return {
        "myRoundData": side(MOVES[0], total=my_total, score=my_score, stance="Off balance"),
        "opponentsRoundData": side(MOVES[1], total=opp_total, score=opp_score, stance="Guarding"),
    }


class FakeGame:
    """
    Minimal duel engine. `on_input(game, move_id)` runs when the UI sends
    inputMove; by default the move is only recorded.
    """

    def __init__(self, context: EngineContext, game_id: str = "test", opponent=None, options=None,
                 moves=None, on_input: Optional[Callable[["FakeGame", Any], None]] = None):
        self.context = context
        self.game_id = game_id
        self.opponent = opponent
        self.options = dict(options or {})
        self.my_character = FakeCombatant("Hero", moves=list(MOVES if moves is None else moves))
        self.opponents_character = FakeCombatant("Goblin")
        self.round_number = 0
        self.set_up_calls = 0
        self.inputs: List[Any] = []
        self.closed = False
        self.on_input = on_input
        context.bus.subscribe(EVT_INPUT_MOVE, self._input)

    def available_moves(self):
        return self.my_character.moves

    def set_up(self) -> None:
        self.set_up_calls += 1
        self.context.bus.publish(EVT_SETUP)

    def close(self) -> None:
        self.closed = True

    def _input(self, event) -> None:
        move_id = event.detail["move"]
        self.inputs.append(move_id)
        if self.on_input is not None:
            self.on_input(self, move_id)


def resolve_with_victory(game: FakeGame, move_id: Any) -> None:
    """One exchange: the opponent drops to zero and the player wins."""
    bus = game.context.bus
    bus.publish(EVT_MY_MOVE, {"id": move_id})
    game.round_number += 1
    game.opponents_character.health = 0
    bus.publish(EVT_ROUND, round_payload(my_total=10, my_score=8))
    bus.publish(EVT_VICTORY)


def start_single_game(game: FakeGame) -> None:
    game.on_input = resolve_with_victory
    game.context.bus.publish(EVT_START)


class FakeBackend:
    """Engine backend; each create_game pops the next script (default: quick win)."""

    def __init__(self, characters=None, scripts=()):
        self.characters = list(CHARACTERS if characters is None else characters)
        self.scripts = list(scripts)
        self.created: List[FakeGame] = []

    def load_characters(self):
        return list(self.characters)

    def create_game(self, game_id, *, context, opponent, options):
        game = FakeGame(context, game_id=game_id, opponent=opponent, options=options)
        self.created.append(game)
        script = self.scripts.pop(0) if self.scripts else start_single_game
        script(game)
        return game
