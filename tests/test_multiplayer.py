import asyncio
import logging
import random

import pytest

from game.config import MultiplayerConfig
from game.events import EventBus
from game.multiplayer import (
    ROOM_ID_ALPHABET,
    TEARDOWN_ROOM_FULL,
    TEARDOWN_TIMED_OUT,
    MultiplayerSession,
    generate_room_id,
    normalize_room_id,
)
from fakes import FakeCombatant, ScriptedTerminal


def make_session(**overrides):
    terminal = ScriptedTerminal(interactive=False)
    reasons = []
    config = MultiplayerConfig(**overrides)
    session = MultiplayerSession(terminal, config, reasons.append, random.Random(7))
    return session, terminal, reasons


def test_room_ids():
    room_id = generate_room_id(random.Random(1))
    assert len(room_id) == 5
    assert all(ch in ROOM_ID_ALPHABET for ch in room_id)
    assert generate_room_id(random.Random(1)) == room_id


def test_normalize_room_id():
    assert normalize_room_id(" ab12c ") == "AB12C"
    for bad in ("", "ABCD", "ABCDEF", "AB-CD"):
        with pytest.raises(ValueError):
            normalize_room_id(bad)


def test_create_room_announces_join_command():
    session, terminal, _ = make_session()
    room_id = session.create_room()
    assert session.active
    assert session.room_id == room_id
    assert f"swordfight --join {room_id}" in terminal.output
    session.cleanup()


def test_join_room_validates():
    session, _, _ = make_session()
    with pytest.raises(ValueError):
        session.join_room("nope")
    assert not session.active
    assert session.join_room("abcde") == "ABCDE"
    session.cleanup()


def test_computer_fallback_arms_no_move_timer():
    async def scenario():
        session, terminal, _ = make_session()
        session.join_room("ABCDE")
        session.await_peer()
        session.handle_connection(FakeCombatant("Goblin", is_computer=True))
        timers = len(session.timers())
        session.cleanup()
        return session, terminal, timers

    session, terminal, timers = asyncio.run(scenario())
    assert timers == 1   # peer timeout only
    assert not session.peer_connected
    assert "fell back to computer opponent" in terminal.output


def test_move_timeout_tears_down():
    async def scenario():
        session, terminal, reasons = make_session(move_timeout_s=0.01)
        session.create_room()
        session.handle_connection(FakeCombatant("Rival", is_computer=False))
        await asyncio.sleep(0.05)
        return session, terminal, reasons

    session, terminal, reasons = asyncio.run(scenario())
    assert reasons == [TEARDOWN_TIMED_OUT]
    assert not session.active
    assert "Opponent took too long to move" in terminal.output
    assert "Multiplayer game timed out" in terminal.output
    assert session.timers() == []


def test_cleared_move_timeout_does_not_fire():
    async def scenario():
        session, _, reasons = make_session(move_timeout_s=0.01)
        session.create_room()
        session.handle_connection(FakeCombatant("Rival", is_computer=False))
        session.clear_move_timeout()
        await asyncio.sleep(0.05)
        session.cleanup()
        return reasons

    assert asyncio.run(scenario()) == []


def test_peer_timeout_only_warns():
    async def scenario():
        session, terminal, reasons = make_session(peer_timeout_s=0.01)
        session.create_room()
        session.await_peer()
        await asyncio.sleep(0.05)
        active = session.active
        session.cleanup()
        return active, terminal, reasons

    active, terminal, reasons = asyncio.run(scenario())
    assert active
    assert reasons == []
    assert "No peer connected" in terminal.output


def test_relay_probe_warns_only_while_waiting():
    async def scenario(still_waiting):
        session, terminal, _ = make_session(relay_probe_s=0.01)
        session.create_room()
        session.arm_relay_probe(lambda: still_waiting)
        await asyncio.sleep(0.05)
        session.cleanup()
        return terminal.output

    assert "No response from opponent" in asyncio.run(scenario(True))
    assert "No response from opponent" not in asyncio.run(scenario(False))


def test_relay_failures_warn_once():
    session, terminal, _ = make_session(relay_failure_threshold=3)
    session.create_room()
    transport = logging.getLogger("trystero")
    try:
        for _ in range(2):
            transport.warning("Trystero: RELAY FAILURE on wss://relay")
        assert "Multiple relay failures" not in terminal.output
        for _ in range(3):
            transport.warning("Trystero: relay failure on wss://relay")
        transport.warning("unrelated message")
    finally:
        session.cleanup()

    assert session.state.relay_failure_count == 5
    assert terminal.output.count("Multiple relay failures detected") == 1
    assert not transport.handlers


def test_room_full_tears_down():
    session, terminal, reasons = make_session()
    bus = EventBus()
    session.subscribe(bus)
    session.create_room()
    bus.publish("roomFull")
    assert reasons == [TEARDOWN_ROOM_FULL]
    assert not session.active
    assert "Room is full" in terminal.output


def test_opponent_details_need_a_real_peer():
    async def scenario():
        session, terminal, _ = make_session()
        bus = EventBus()
        session.subscribe(bus)
        session.create_room()
        bus.publish("name", {"name": "Rival"})
        before = terminal.output
        session.handle_connection(FakeCombatant("Rival", is_computer=False))
        bus.publish("name", {"name": "Rival"})
        bus.publish("opponentCharacter", {"characterSlug": "goblin"})
        session.cleanup()
        return before, terminal.output

    before, after = asyncio.run(scenario())
    assert "Opponent: Rival" not in before
    assert "👤 Opponent: Rival" in after
    assert "Opponent character: goblin" in after


def test_disconnect():
    session, terminal, _ = make_session()
    session.create_room()
    session.disconnect()
    session.disconnect()
    assert terminal.output.count("Disconnecting") == 1
    assert not session.active
