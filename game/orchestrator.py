"""
SwordFight CLI — game/orchestrator.py
Event orchestrator: engine events in, paced output and move prompts out.
========================================================================
Stack:       Python 3.11+ | asyncio

Architecture notes
------------------
Phases: IDLE -> AWAITING_ENGINE_START -> SETTING_UP -> AWAITING_MOVE
        -> ROUND_RESOLVING -> (AWAITING_MOVE | GAME_OVER)

- Bus handlers are synchronous and only enqueue a job. One worker drains
  the queue, so jobs (paced round reveals, prompts) run one at a time in
  delivery order and their output never interleaves.
- At most one move prompt is pending or open (`waiting_for_move`). A
  second request is logged and dropped, not queued.
- myMove events repeating the last processed move id are ignored.
- The session ends by resolving `run()` with a SessionOutcome; the caller
  decides whether the process exits or returns to the mode menu.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum, auto
from functools import partial
from typing import Awaitable, Callable, Optional

from game.config import TimingConfig
from game.engine import DuelGame, find_move, move_items
from game.events import (
    EVT_DEFEAT,
    EVT_INPUT_MOVE,
    EVT_MY_MOVE,
    EVT_OPPONENTS_MOVE,
    EVT_ROUND,
    EVT_SETUP,
    EVT_START,
    EVT_VICTORY,
    EventBus,
    GameEvent,
)
from game.models import GameMode, PayloadError, RoundSnapshot, SwordfightError, parse_round_payload
from game.multiplayer import TEARDOWN_TIMED_OUT, MultiplayerSession, MultiplayerState
from ui.ansi import blue, bold, cyan, dim, green, magenta, red, separator, yellow
from ui.renderer import HEALTH_BAR_LENGTH, battle_status, damage_report, defeat_box, effects_report, moves_used, victory_box
from ui.screens import MoveScreen
from ui.selection import SelectionMenu
from ui.terminal import KeySource, Terminal, UserAbort

logger = logging.getLogger(__name__)

SEPARATOR_WIDTH = 80

Job = Callable[[], Awaitable[None]]


class Phase(Enum):
    IDLE = auto()
    AWAITING_ENGINE_START = auto()
    SETTING_UP = auto()
    AWAITING_MOVE = auto()
    ROUND_RESOLVING = auto()
    GAME_OVER = auto()


class SessionOutcome(Enum):
    VICTORY = auto()
    DEFEAT = auto()
    ABORTED = auto()     # Escape / Ctrl-C
    TIMED_OUT = auto()   # multiplayer move timeout
    CLOSED = auto()      # multiplayer session ended by the engine (room full)

    @property
    def ends_process(self) -> bool:
        return self in (SessionOutcome.VICTORY, SessionOutcome.DEFEAT, SessionOutcome.ABORTED)


@dataclass
class SessionState:
    game_started: bool = False
    initial_setup_complete: bool = False
    waiting_for_move: bool = False
    last_round_data: Optional[RoundSnapshot] = None
    last_opponents_round_data: Optional[RoundSnapshot] = None
    game_mode: GameMode = GameMode.SINGLE
    phase: Phase = Phase.IDLE
    last_processed_move_id: Optional[str] = None
    rounds_seen: int = 0
    multiplayer: Optional[MultiplayerState] = None


class GameOrchestrator:
    """
    Owns one game session. Must be constructed inside a running event
    loop; subscribe() before the engine game is created so no event is
    missed.
    """

    def __init__(
        self,
        terminal: Terminal,
        key_source: KeySource,
        menu: SelectionMenu,
        bus: EventBus,
        player_name: str,
        timing: TimingConfig,
        bar_length: int = HEALTH_BAR_LENGTH,
    ) -> None:
        self._terminal = terminal
        self._keys = key_source
        self._menu = menu
        self._bus = bus
        self.player_name = player_name
        self.timing = timing
        self.bar_length = bar_length
        self.game: Optional[DuelGame] = None
        self.multiplayer: Optional[MultiplayerSession] = None
        self.state = SessionState()

        loop = asyncio.get_running_loop()
        self._closed: asyncio.Future = loop.create_future()
        self._jobs: asyncio.Queue = asyncio.Queue()

    # ============================================================
    # WIRING
    # ============================================================

    def attach_multiplayer(self, session: MultiplayerSession) -> None:
        self.multiplayer = session
        self.state.game_mode = GameMode.MULTIPLAYER
        self.state.multiplayer = session.state

    def subscribe(self) -> None:
        bus = self._bus
        bus.subscribe(EVT_START, partial(self._enqueue_event, self._handle_start))
        bus.subscribe(EVT_SETUP, partial(self._enqueue_event, self._handle_setup))
        bus.subscribe(EVT_ROUND, partial(self._enqueue_event, self._handle_round))
        bus.subscribe(EVT_MY_MOVE, partial(self._enqueue_event, self._handle_my_move))
        bus.subscribe(EVT_OPPONENTS_MOVE, partial(self._enqueue_event, self._handle_opponents_move))
        bus.subscribe(EVT_VICTORY, partial(self._enqueue_event, self._handle_victory))
        bus.subscribe(EVT_DEFEAT, partial(self._enqueue_event, self._handle_defeat))
        bus.subscribe(EVT_INPUT_MOVE, self._log_input_move)
        if self.multiplayer is not None:
            self.multiplayer.subscribe(bus)

    def begin(self) -> None:
        self.state.phase = Phase.AWAITING_ENGINE_START

    def attach(self, game: DuelGame) -> None:
        self.game = game

    # ============================================================
    # JOB QUEUE
    # ============================================================

    def _enqueue_event(self, handler: Callable[[GameEvent], Awaitable[None]], event: GameEvent) -> None:
        logger.debug("'%s' event fired", event.name)
        self._jobs.put_nowait(partial(handler, event))

    async def run(self) -> SessionOutcome:
        """Processes jobs until the session closes."""
        worker = asyncio.create_task(self._drain())
        try:
            return await self._closed
        finally:
            worker.cancel()
            await asyncio.gather(worker, return_exceptions=True)
            if self.multiplayer is not None:
                self.multiplayer.cleanup()

    async def _drain(self) -> None:
        while True:
            job: Job = await self._jobs.get()
            try:
                await job()
            except UserAbort:
                self.abort()
            except SwordfightError as exc:
                logger.exception("Session error")
                self._out(red(f"❌ {exc}"))
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unhandled error while processing a game event")
                self._out(red(f"❌ Unexpected error: {exc}"))
            finally:
                self._jobs.task_done()

    def _close(self, outcome: SessionOutcome) -> None:
        if not self._closed.done():
            logger.info("Session closed: %s", outcome.name)
            self._closed.set_result(outcome)

    def abort(self) -> None:
        logger.info("Session aborted by user")
        if self.multiplayer is not None:
            self.multiplayer.disconnect()
        self._close(SessionOutcome.ABORTED)

    def handle_teardown(self, reason: str) -> None:
        """Multiplayer gave up on the session; the process carries on."""
        self._close(SessionOutcome.TIMED_OUT if reason == TEARDOWN_TIMED_OUT else SessionOutcome.CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed.done()

    # ============================================================
    # OUTPUT HELPERS
    # ============================================================

    def _out(self, *lines: str) -> None:
        for line in lines:
            self._terminal.print(line)

    async def _pause(self, step: int) -> None:
        delays = self.timing.round_reveal_s
        if step < len(delays) and delays[step] > 0:
            await asyncio.sleep(delays[step])

    @property
    def round_number(self) -> int:
        return getattr(self.game, "round_number", 0) or 0

    def _both_alive(self) -> bool:
        game = self.game
        if game is None:
            return False
        return game.my_character.health > 0 and game.opponents_character.health > 0

    def _opponent_name(self) -> str:
        opponent = getattr(self.game, "opponents_character", None)
        return getattr(opponent, "name", "your opponent")

    # ============================================================
    # HANDLERS
    # ============================================================

    async def _handle_start(self, event: GameEvent) -> None:
        self.state.phase = Phase.SETTING_UP
        self._out(cyan("🚀 Connection established! Initializing battle..."))

        if self.multiplayer is not None and self.multiplayer.active:
            game = event.detail.get("game") or self.game
            opponent = getattr(game, "opponents_character", None)
            if opponent is not None:
                self.multiplayer.handle_connection(opponent)
        self._out("")
        self.state.game_started = True

        if self.game is None:
            raise PayloadError("start event arrived before the game was created")
        try:
            self.game.set_up()
        except Exception as exc:  # noqa: BLE001
            logger.exception("game.set_up() failed")
            self._out(red(f"❌ Error in game setup: {exc}"))

    async def _handle_setup(self, event: GameEvent) -> None:
        if self.state.initial_setup_complete:
            logger.debug("Repeated setup event at round %s", self.round_number)
            self.request_move_prompt()
            return

        self._out(dim("⚙️  Game setup completed - ready for battle..."), "")
        self.state.initial_setup_complete = True
        self.state.phase = Phase.AWAITING_MOVE
        self.request_move_prompt(delay=self.timing.setup_delay_s)

    async def _handle_round(self, event: GameEvent) -> None:
        my_round, opponents_round = parse_round_payload(event.detail)
        logger.debug("Round %s resolved", self.round_number)

        self.state.last_processed_move_id = None
        self.state.last_round_data = my_round
        self.state.last_opponents_round_data = opponents_round
        self.state.rounds_seen += 1

        await self.display_round_results(my_round, opponents_round)

        if self._both_alive():
            self.state.phase = Phase.AWAITING_MOVE
            self.request_move_prompt()

    async def _handle_my_move(self, event: GameEvent) -> None:
        move_id = event.detail.get("id")
        if move_id is None:
            raise PayloadError("myMove event carries no move id")
        key = str(move_id)
        if key == self.state.last_processed_move_id:
            logger.debug("[DUPLICATE] Ignoring repeated myMove for move %s", key)
            return
        self.state.last_processed_move_id = key

        move = find_move(self.game, move_id) if self.game is not None else None
        if move is None:
            logger.warning("myMove refers to unknown move id %r", move_id)
            return
        self._out(f"{cyan('🎯 Processing:')} {bold(move.label)}")

        mp = self.multiplayer
        if mp is None or not mp.active:
            return
        self._out(dim("⏳ Waiting for opponent's move..."))
        if mp.peer_connected:
            mp.arm_move_timeout()
            rounds_at_send = self.state.rounds_seen
            mp.arm_relay_probe(
                lambda: self.state.last_processed_move_id == key and self.state.rounds_seen == rounds_at_send
            )

    async def _handle_opponents_move(self, event: GameEvent) -> None:
        if self.multiplayer is not None:
            self.multiplayer.clear_move_timeout()
        self._out(yellow("📨 Opponent move received!"), "")

    async def _handle_victory(self, event: GameEvent) -> None:
        await self._finish(SessionOutcome.VICTORY)

    async def _handle_defeat(self, event: GameEvent) -> None:
        await self._finish(SessionOutcome.DEFEAT)

    def _log_input_move(self, event: GameEvent) -> None:
        logger.debug("'inputMove' fired with move %r", event.detail.get("move"))

    # ============================================================
    # MOVE PROMPT
    # ============================================================

    def request_move_prompt(self, delay: float = 0.0) -> bool:
        """Queues the move prompt unless one is already pending or open."""
        if self.state.waiting_for_move:
            logger.debug("Move prompt already active; request ignored")
            return False
        if self.state.phase in (Phase.ROUND_RESOLVING, Phase.GAME_OVER):
            logger.debug("Move prompt not expected in phase %s; request ignored", self.state.phase.name)
            return False
        self.state.waiting_for_move = True
        self._jobs.put_nowait(partial(self._prompt_for_move, delay))
        return True

    async def _prompt_for_move(self, delay: float) -> None:
        try:
            if delay > 0:
                await asyncio.sleep(delay)
            if self.state.phase is Phase.GAME_OVER:
                return
            self._out(dim("Press Enter to see available moves..."))
            await self._terminal.wait_for_enter(self._keys)
            self._out("")

            moves = move_items(self.game.available_moves()) if self.game is not None else []
            if not moves:
                logger.error("Engine offered no moves at round %s", self.round_number)
                self._out(red("❌ No moves available!"))
                return

            screen = MoveScreen(
                self.game,
                self.player_name,
                self.state.last_round_data,
                self.state.last_opponents_round_data,
                self.bar_length,
            )
            chosen = await screen.select(self._menu, moves)
            self.state.phase = Phase.ROUND_RESOLVING
            self._bus.publish(EVT_INPUT_MOVE, {"move": chosen.id})
        finally:
            self.state.waiting_for_move = False

    # ============================================================
    # ROUND DISPLAY
    # ============================================================

    async def display_round_results(self, my_round: RoundSnapshot, opponents_round: RoundSnapshot) -> None:
        number = self.round_number
        self._out("", bold(cyan(separator(SEPARATOR_WIDTH))), "")
        self._out(bold(magenta(f"⚔️  ROUND {number} RESULTS ⚔️")), magenta("═" * 26))

        if number > 0:
            await self.display_combat_details(my_round, opponents_round)
            self._out(bold(f"Round {number - 1} completed"), bold(blue(f"🎯 Round {number} begins!")), "")
        else:
            self._out(
                battle_status(self.game, self.player_name, self.bar_length),
                "",
                dim("⚙️  Initial setup completed - both fighters have taken their starting positions."),
                bold(blue(f"🎯 Round {number} begins!")),
                "",
            )

    async def display_combat_details(self, my_round: RoundSnapshot, opponents_round: RoundSnapshot) -> None:
        """Reveals a round in order: maneuver, moves, damage, effects, status."""
        self._out(dim("⚔️  Combat maneuver completed."), "")
        await self._pause(0)
        self._out(*moves_used(my_round, opponents_round))
        await self._pause(1)
        self._out(*damage_report(my_round, opponents_round))
        await self._pause(2)
        self._out(*effects_report(my_round, opponents_round))
        await self._pause(3)
        self._out(battle_status(self.game, self.player_name, self.bar_length), "")

    # ============================================================
    # GAME OVER
    # ============================================================

    async def _finish(self, outcome: SessionOutcome) -> None:
        self.state.phase = Phase.GAME_OVER
        last, last_opponent = self.state.last_round_data, self.state.last_opponents_round_data
        if last is not None and last_opponent is not None:
            await self._display_final_round(last, last_opponent, outcome)

        opponent = self._opponent_name()
        box = victory_box(opponent) if outcome is SessionOutcome.VICTORY else defeat_box(opponent)
        self._out("", "", box, "")
        self._out(
            dim("Thanks for playing SwordFight CLI!"),
            dim("May your blade stay sharp, warrior."),
            "",
        )
        if self.multiplayer is not None:
            self.multiplayer.disconnect()
        self._close(outcome)

    async def _display_final_round(
        self, my_round: RoundSnapshot, opponents_round: RoundSnapshot, outcome: SessionOutcome
    ) -> None:
        self._out("", bold(cyan(separator(SEPARATOR_WIDTH))), "")
        self._out(bold(magenta(f"⚔️  FINAL ROUND {self.round_number} RESULTS ⚔️")), magenta("═" * 31))
        await self.display_combat_details(my_round, opponents_round)
        if outcome is SessionOutcome.VICTORY:
            self._out(bold(green("🎯 Battle concluded - Victory achieved!")), "")
        else:
            self._out(bold(red("💀 Battle concluded - Defeat...")), "")
