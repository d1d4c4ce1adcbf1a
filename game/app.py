"""
SwordFight CLI — game/app.py
Front-end flow: welcome, player setup, mode choice, one game per loop.
======================================================================
Stack:       Python 3.11+ | asyncio

Each game gets a fresh EventBus and orchestrator. The KeyValueStore
(player name, fighter slug) lives for the whole process. A multiplayer
session that times out or is refused returns here to the mode menu;
victory, defeat and user abort end the process.
"""

from __future__ import annotations

import logging
import random
import time
from typing import List, Optional

from game.config import AppConfig
from game.engine import (
    COMPUTER_OPPONENT,
    EngineBackend,
    EngineContext,
    character_profiles,
    close_game,
)
from game.events import KEY_CHARACTER_SLUG, KEY_PLAYER_NAME, EventBus, KeyValueStore
from game.models import CharacterProfile
from game.multiplayer import MultiplayerSession, normalize_room_id
from game.orchestrator import GameOrchestrator, SessionOutcome
from ui.ansi import bold, create_box, cyan, dim, green, red
from ui.screens import APP_HEADER, MODE_JOIN, MODE_MULTIPLAYER, MODE_SINGLE, CharacterScreen, ModeScreen
from ui.selection import SelectionMenu
from ui.terminal import KeySource, Terminal, UserAbort

logger = logging.getLogger(__name__)

DEFAULT_PLAYER_NAME = "Player"


class SwordfightApp:

    def __init__(
        self,
        config: AppConfig,
        backend: EngineBackend,
        terminal: Terminal,
        key_source: KeySource,
        join_room: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config
        self.backend = backend
        self.terminal = terminal
        self.key_source = key_source
        self.join_room = join_room
        self.rng = rng or random.Random()
        self.store = KeyValueStore()
        self.menu = SelectionMenu(
            terminal,
            key_source,
            confirm_delay=config.timing.selection_confirm_s,
            viewport_reserve=config.display.viewport_reserve,
        )

    def _out(self, *lines: str) -> None:
        for line in lines:
            self.terminal.print(line)

    async def run(self) -> int:
        """Returns the process exit code."""
        try:
            self.show_welcome()
            characters = self.load_characters()
            await self.setup_player(characters)

            pending_join = self.join_room
            while True:
                mode = MODE_JOIN if pending_join else await ModeScreen().choose(self.menu)
                room_id = pending_join
                pending_join = None
                if mode == MODE_JOIN and room_id is None:
                    room_id = await self.ask_room_id()
                    if room_id is None:
                        continue

                outcome = await self.play(mode, characters, room_id)
                if outcome.ends_process:
                    return 0
                logger.info("Session ended with %s; back to mode menu", outcome.name)
                self._out("", dim("Returning to the mode menu..."), "")
        except UserAbort:
            logger.info("User quit")
            self._out("", dim("Goodbye, warrior."))
            return 0

    # ============================================================
    # SETUP
    # ============================================================

    def show_welcome(self) -> None:
        self._out(
            "",
            bold(cyan(APP_HEADER)),
            bold(cyan("═" * 35)),
            dim("Welcome to the command-line sword fighting arena!"),
            "",
        )

    def load_characters(self) -> List[CharacterProfile]:
        self.terminal.write(dim("Loading characters... "))
        characters = character_profiles(self.backend)
        self._out(green("✓ Done"), "")
        logger.info("Loaded %d characters", len(characters))
        return characters

    async def setup_player(self, characters: List[CharacterProfile]) -> CharacterProfile:
        self._out(create_box("PLAYER SETUP"), "")

        name = (await self.terminal.question(cyan("Enter your warrior name: "))).strip()
        name = name or DEFAULT_PLAYER_NAME
        self.store.set(KEY_PLAYER_NAME, name)
        self._out(green(f"Welcome, {bold(name)}!"), "")

        chosen = await CharacterScreen().choose(self.menu, characters)
        self.store.set(KEY_CHARACTER_SLUG, chosen.slug)
        self._out("", f"{green('✓ Character selected:')} {bold(chosen.name)}")
        if chosen.description:
            self._out(dim(f"  {chosen.description}"))
        self._out("")
        return chosen

    async def ask_room_id(self) -> Optional[str]:
        answer = await self.terminal.question(cyan("Enter room ID: "))
        try:
            return normalize_room_id(answer)
        except ValueError as exc:
            logger.info("Rejected room id %r", answer)
            self._out(red(f"❌ {exc}"), "")
            return None

    def pick_opponent(self, characters: List[CharacterProfile], my_slug: str) -> CharacterProfile:
        """Random computer opponent, never the player's own fighter if avoidable."""
        pool = [c for c in characters if c.slug != my_slug] or list(characters)
        return self.rng.choice(pool)

    @property
    def player_name(self) -> str:
        return self.store.get(KEY_PLAYER_NAME) or DEFAULT_PLAYER_NAME

    # ============================================================
    # ONE GAME
    # ============================================================

    async def play(self, mode: str, characters: List[CharacterProfile], room_id: Optional[str] = None) -> SessionOutcome:
        bus = EventBus()
        orchestrator = GameOrchestrator(
            self.terminal, self.key_source, self.menu, bus, self.player_name, self.config.timing,
            bar_length=self.config.display.health_bar_length,
        )
        my_slug = self.store.get(KEY_CHARACTER_SLUG) or self.config.engine.default_character
        options = {KEY_CHARACTER_SLUG: my_slug}
        multiplayer: Optional[MultiplayerSession] = None

        if mode == MODE_SINGLE:
            opponent = self.pick_opponent(characters, my_slug)
            options["opponentCharacterSlug"] = opponent.slug
            game_id = f"cli-game-{int(time.time() * 1000)}"
            opponent_kind: Optional[str] = COMPUTER_OPPONENT
            self._out(create_box("BATTLE BEGINS", "Preparing for combat against computer opponent..."), "")
            self._out(dim(f"Computer opponent: {opponent.name} ({opponent.description})"), "")
        else:
            multiplayer = MultiplayerSession(
                self.terminal, self.config.multiplayer, orchestrator.handle_teardown, self.rng
            )
            orchestrator.attach_multiplayer(multiplayer)
            if mode == MODE_MULTIPLAYER:
                game_id = multiplayer.create_room()
            else:
                game_id = multiplayer.join_room(room_id or "")
            opponent_kind = None
            self._out(bold(cyan("🌐 Initializing multiplayer connection...")))

        orchestrator.subscribe()
        orchestrator.begin()
        logger.info("Creating %s game %s", mode, game_id)
        game = self.backend.create_game(
            game_id,
            context=EngineContext(bus=bus, store=self.store),
            opponent=opponent_kind,
            options=options,
        )
        orchestrator.attach(game)
        if multiplayer is not None and multiplayer.active:
            multiplayer.await_peer()

        try:
            return await orchestrator.run()
        finally:
            close_game(game)
