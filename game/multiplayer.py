"""
SwordFight CLI — game/multiplayer.py
Multiplayer session shim: rooms, peer/move timeouts, relay-failure watch.
=========================================================================
Stack:       Python 3.11+ | asyncio timers | logging.Handler

Architecture notes
------------------
- Transport lives in the engine. This module only decides what the user
  is told and when a multiplayer session is given up on.
- Timers are loop.call_later handles, cancelled on cleanup.
- Relay failures are observed by a logging.Handler attached to the
  transport's loggers. The warning is advisory and shown once.
- Teardown (move timeout, full room) ends the multiplayer session only;
  the owner is told via on_teardown(reason) and the process carries on.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
import string
from dataclasses import dataclass
from typing import Callable, List, Optional

from game.config import MultiplayerConfig
from game.events import EVT_NAME, EVT_OPPONENT_CHARACTER, EVT_ROOM_FULL, EventBus, GameEvent
from ui.ansi import bold, cyan, dim, green, red, yellow
from ui.terminal import Terminal

logger = logging.getLogger(__name__)

ROOM_ID_LENGTH   = 5
ROOM_ID_ALPHABET = string.ascii_uppercase + string.digits
_ROOM_ID_RE      = re.compile(rf"^[A-Z0-9]{{{ROOM_ID_LENGTH}}}$")

TEARDOWN_TIMED_OUT = "timed_out"
TEARDOWN_ROOM_FULL = "room_full"


def generate_room_id(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return "".join(rng.choice(ROOM_ID_ALPHABET) for _ in range(ROOM_ID_LENGTH))


def normalize_room_id(value: str) -> str:
    """Uppercases and validates a room id typed by a user."""
    room_id = value.strip().upper()
    if not _ROOM_ID_RE.match(room_id):
        raise ValueError(f"room id must be {ROOM_ID_LENGTH} letters or digits, got {value!r}")
    return room_id


@dataclass
class MultiplayerState:
    room_id: Optional[str] = None
    peer_connected: bool = False
    relay_failure_count: int = 0
    active: bool = False


class RelayFailureMonitor(logging.Handler):
    """Counts transport log records that report a relay failure."""

    def __init__(self, session: "MultiplayerSession", marker: str) -> None:
        super().__init__(level=logging.DEBUG)
        self._session = session
        self._marker = marker.lower()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
        except Exception:  # noqa: BLE001
            self.handleError(record)
            return
        if self._marker in message.lower():
            self._session.note_relay_failure()


class MultiplayerSession:

    def __init__(
        self,
        terminal: Terminal,
        config: MultiplayerConfig,
        on_teardown: Callable[[str], None],
        rng: Optional[random.Random] = None,
    ) -> None:
        self._terminal = terminal
        self.config = config
        self._on_teardown = on_teardown
        self._rng = rng
        self.state = MultiplayerState()
        self._peer_timer: Optional[asyncio.TimerHandle] = None
        self._move_timer: Optional[asyncio.TimerHandle] = None
        self._probe_timer: Optional[asyncio.TimerHandle] = None
        self._monitor: Optional[RelayFailureMonitor] = None
        self._relay_warned = False

    @property
    def active(self) -> bool:
        return self.state.active

    @property
    def peer_connected(self) -> bool:
        return self.state.peer_connected

    @property
    def room_id(self) -> Optional[str]:
        return self.state.room_id

    def _out(self, *lines: str) -> None:
        for line in lines:
            self._terminal.print(line)

    # ============================================================
    # ROOMS
    # ============================================================

    def create_room(self) -> str:
        room_id = generate_room_id(self._rng)
        self._activate(room_id)
        logger.info("Created room %s", room_id)
        self._out(
            cyan("🌐 Creating multiplayer room..."),
            dim(f"Room ID: {bold(room_id)}"),
            green("✓ Room created successfully!"),
            f"{yellow('📋 Share this room ID with your opponent:')} {bold(cyan(room_id))}",
            "",
            green("📱 Your opponent can join using:"),
            dim(f"   {bold('swordfight --join ' + room_id)}"),
            "",
            dim("💡 Both players need to be online for the connection to succeed"),
            dim("   Keep this session running while your opponent joins"),
        )
        return room_id

    def join_room(self, room_id: str) -> str:
        room_id = normalize_room_id(room_id)
        self._activate(room_id)
        logger.info("Joining room %s", room_id)
        self._out(
            cyan("🌐 Joining multiplayer room..."),
            dim(f"Room ID: {bold(room_id)}"),
            green("✓ Room configuration set!"),
            yellow("🔄 Attempting to connect to host player..."),
            dim("Peer discovery may take a moment"),
            "",
        )
        return room_id

    def _activate(self, room_id: str) -> None:
        self.state = MultiplayerState(room_id=room_id, active=True)
        self._relay_warned = False
        self.attach_monitor()

    def await_peer(self) -> None:
        """Called once the engine game exists and is looking for the peer."""
        self._out(
            green("✓ Game instance created!"),
            yellow("🔄 Waiting for peer discovery and connection..."),
            dim("Keep this window open and share the room ID"),
            "",
        )
        self.arm_peer_timeout()

    # ============================================================
    # TIMERS
    # ============================================================

    @staticmethod
    def _cancel(handle: Optional[asyncio.TimerHandle]) -> None:
        if handle is not None:
            handle.cancel()

    def arm_peer_timeout(self) -> None:
        self._cancel(self._peer_timer)
        loop = asyncio.get_running_loop()
        self._peer_timer = loop.call_later(self.config.peer_timeout_s, self._on_peer_timeout)

    def _on_peer_timeout(self) -> None:
        self._peer_timer = None
        if self.state.active and not self.state.peer_connected:
            minutes = self.config.peer_timeout_s / 60
            logger.warning("No peer after %.0fs in room %s", self.config.peer_timeout_s, self.state.room_id)
            self._out(
                "",
                yellow(f"⏰ No peer connected within {minutes:g} minutes"),
                yellow("🔄 Connection may still be attempting in background"),
                dim("Engine will continue trying or eventually fall back to computer"),
                "",
            )

    def arm_move_timeout(self) -> None:
        """(Re)starts the wait for the opponent's move. Real peers only."""
        self._cancel(self._move_timer)
        loop = asyncio.get_running_loop()
        self._move_timer = loop.call_later(self.config.move_timeout_s, self._on_move_timeout)

    def clear_move_timeout(self) -> None:
        self._cancel(self._move_timer)
        self._move_timer = None

    def _on_move_timeout(self) -> None:
        self._move_timer = None
        if not (self.state.active and self.state.peer_connected):
            return
        minutes = self.config.move_timeout_s / 60
        logger.warning("Move timeout in room %s", self.state.room_id)
        self._out(
            "",
            yellow(f"⏰ Opponent took too long to move ({minutes:g} minutes)"),
            red("🚫 Multiplayer game timed out"),
            dim("You can start a new game or continue against computer"),
        )
        self.cleanup()
        self._on_teardown(TEARDOWN_TIMED_OUT)

    def arm_relay_probe(self, still_waiting: Callable[[], bool]) -> None:
        """After a move goes to a real peer, check back for a reply."""
        self._cancel(self._probe_timer)
        loop = asyncio.get_running_loop()
        self._probe_timer = loop.call_later(self.config.relay_probe_s, self._on_relay_probe, still_waiting)

    def _on_relay_probe(self, still_waiting: Callable[[], bool]) -> None:
        self._probe_timer = None
        if not self.state.active or not still_waiting():
            return
        logger.warning("No reply from peer after %.0fs", self.config.relay_probe_s)
        self._out(
            "",
            yellow("⚠️  Communication Issue Detected"),
            red(f"🚫 No response from opponent after {self.config.relay_probe_s:g} seconds"),
            dim("This usually indicates relay server issues"),
            "",
            dim("💡 Possible solutions:"),
            dim("   • Check your internet connection"),
            dim("   • Try again later (relay servers may be down)"),
            dim("   • Contact support if the issue persists"),
            "",
        )

    # ============================================================
    # CONNECTION & RELAY
    # ============================================================

    def handle_connection(self, opponent) -> None:
        """Branches on whether the engine found a real peer or fell back."""
        if getattr(opponent, "is_computer", False):
            self.state.peer_connected = False
            logger.info("Engine fell back to a computer opponent")
            self._out(
                "",
                yellow("🤖 Engine fell back to computer opponent"),
                dim("Peer connection could not be established"),
                dim("This may be due to network configuration or firewall restrictions"),
            )
        else:
            self.state.peer_connected = True
            self._cancel(self._peer_timer)
            self._peer_timer = None
            logger.info("Real opponent connected in room %s", self.state.room_id)
            self._out(
                "",
                green("🎉 Peer connection established successfully!"),
                green("✅ Real opponent connected! Starting battle..."),
                dim("Moves will be exchanged peer-to-peer"),
            )
            self.arm_move_timeout()

    def note_relay_failure(self) -> None:
        self.state.relay_failure_count += 1
        count = self.state.relay_failure_count
        logger.debug("Relay failure #%d", count)
        if count < self.config.relay_failure_threshold or not self.state.active or self._relay_warned:
            return
        self._relay_warned = True
        self._out(
            "",
            yellow("⚠️  Multiple relay failures detected"),
            red("🌐 Multiplayer connectivity may be compromised"),
            dim("Relay servers appear to be experiencing issues"),
            "",
            dim("💡 This may cause:"),
            dim("   • Delays in move synchronization"),
            dim("   • Players getting stuck waiting for moves"),
            dim("   • Connection timeouts"),
            "",
        )

    def attach_monitor(self) -> None:
        if self._monitor is not None:
            return
        self._monitor = RelayFailureMonitor(self, self.config.relay_failure_marker)
        for name in self.config.relay_loggers:
            logging.getLogger(name).addHandler(self._monitor)

    def detach_monitor(self) -> None:
        if self._monitor is None:
            return
        for name in self.config.relay_loggers:
            logging.getLogger(name).removeHandler(self._monitor)
        self._monitor = None

    # ============================================================
    # ENGINE EVENTS
    # ============================================================

    def subscribe(self, bus: EventBus) -> None:
        bus.subscribe(EVT_ROOM_FULL, self.handle_room_full)
        bus.subscribe(EVT_NAME, self.handle_opponent_name)
        bus.subscribe(EVT_OPPONENT_CHARACTER, self.handle_opponent_character)

    def handle_room_full(self, event: GameEvent) -> None:
        logger.warning("Room %s is full", self.state.room_id)
        self._out(
            "",
            red("❌ Room is full! This game has already started."),
            dim("Try creating a new room or joining a different one."),
        )
        self.cleanup()
        self._on_teardown(TEARDOWN_ROOM_FULL)

    def handle_opponent_name(self, event: GameEvent) -> None:
        name = event.detail.get("name")
        if name and self.state.peer_connected:
            self._out(green(f"👤 Opponent: {name}"))

    def handle_opponent_character(self, event: GameEvent) -> None:
        slug = event.detail.get("characterSlug")
        if slug and self.state.peer_connected:
            self._out(green(f"⚔️ Opponent character: {slug}"))

    # ============================================================
    # LIFECYCLE
    # ============================================================

    def cleanup(self) -> None:
        for handle in (self._peer_timer, self._move_timer, self._probe_timer):
            self._cancel(handle)
        self._peer_timer = self._move_timer = self._probe_timer = None
        self.detach_monitor()
        self.state.active = False
        self.state.peer_connected = False
        self.state.room_id = None

    def disconnect(self) -> None:
        if self.state.active:
            logger.info("Disconnecting from room %s", self.state.room_id)
            self._out(yellow("📡 Disconnecting from multiplayer..."))
        self.cleanup()

    def timers(self) -> List[asyncio.TimerHandle]:
        """Currently armed timer handles."""
        return [h for h in (self._peer_timer, self._move_timer, self._probe_timer) if h is not None]
