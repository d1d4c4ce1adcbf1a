import asyncio
import logging

import pytest

from game.models import SelectableItem
from ui.selection import Frame, SelectionError, SelectionMenu, SelectionSession, categorize
from ui.terminal import UserAbort
from fakes import DOWN, ENTER, ESCAPE, PAGE_DOWN, UP, ScriptedKeySource, ScriptedTerminal


def make_items(*names, tag=""):
    return [SelectableItem(id=i + 1, name=name, tag=tag) for i, name in enumerate(names)]


ABC = make_items("A", "B", "C")


def choose(items, *chunks, interactive=True, height=40, view=None):
    terminal = ScriptedTerminal(interactive=interactive, height=height)
    keys = ScriptedKeySource(*chunks)
    menu = SelectionMenu(terminal, keys, confirm_delay=0)
    chosen = asyncio.run(menu.choose(items, view))
    return chosen, terminal


# ============================================================
# SESSION
# ============================================================

def test_down_wraps_around():
    session = SelectionSession(items=ABC, viewport_height=10)
    seen = [session.highlighted_index]
    for _ in range(3):
        session.move_down()
        seen.append(session.highlighted_index)
    assert seen == [0, 1, 2, 0]


def test_up_from_first_goes_to_last():
    session = SelectionSession(items=ABC, viewport_height=10)
    session.move_up()
    assert session.highlighted_index == 2
    assert session.selected.name == "C"


def test_empty_session_rejected():
    with pytest.raises(SelectionError):
        SelectionSession(items=[], viewport_height=10)


def tall_session(count=10, lines_per_item=3, viewport=10):
    items = make_items(*[f"item{i}" for i in range(count)])
    session = SelectionSession(items=items, viewport_height=viewport)
    frame = Frame(
        lines=[""] * (count * lines_per_item),
        anchors={i: i * lines_per_item for i in range(count)},
    )
    session.apply_frame(frame)
    return session


def test_page_scrolls_by_viewport_and_clamps():
    session = tall_session()
    offsets = []
    for _ in range(3):
        session.page(1)
        offsets.append(session.scroll_offset)
    assert offsets == [10, 20, 20]
    assert session.highlighted_index == 0

    for _ in range(3):
        session.page(-1)
    assert session.scroll_offset == 0


def test_offset_stays_within_bounds():
    session = tall_session()
    for _ in range(25):
        session.move_up()
        assert 0 <= session.scroll_offset <= session.max_offset
        anchor = session.anchor_line(session.highlighted_index)
        assert session.scroll_offset <= anchor < session.scroll_offset + session.viewport_height


def test_highlight_outside_viewport_is_centered():
    session = tall_session()
    session.jump(9)
    assert session.scroll_offset == 20   # centered at 22, clamped
    session.jump(4)
    assert session.scroll_offset == 7    # anchor 12 sits mid-viewport


def test_visible_highlight_does_not_scroll():
    session = tall_session()
    session.jump(2)
    assert session.scroll_offset == 0


def test_jump_out_of_range():
    session = SelectionSession(items=ABC, viewport_height=10)
    with pytest.raises(IndexError):
        session.jump(3)


def test_digit_targets():
    session = SelectionSession(items=ABC, viewport_height=10)
    assert session.digit_target("2") == 1
    assert session.digit_target("4") is None
    assert session.digit_target("0") is None

    many = SelectionSession(items=make_items(*"ABCDEFGHIJKL"), viewport_height=10)
    assert many.digit_target("0") == 9
    assert many.digit_target("9") == 8


# ============================================================
# CATEGORIZATION
# ============================================================

def test_categorize_sorts_tags_and_keeps_engine_order():
    items = [
        SelectableItem(id=1, name="Swing", tag="Jump"),
        SelectableItem(id=2, name="Thrust", tag="Attack"),
        SelectableItem(id=3, name="Leap", tag="Jump"),
        SelectableItem(id=4, name="Cut", tag="Attack"),
    ]
    catalog = categorize(items)
    assert catalog.tag_order == ["Attack", "Jump"]
    assert [i.name for i in catalog.ordered] == ["Thrust", "Cut", "Swing", "Leap"]
    assert catalog.display_number(0) == 1


def test_categorize_rejects_duplicate_ids():
    items = [SelectableItem(id=1, name="A"), SelectableItem(id="1", name="B")]
    with pytest.raises(SelectionError, match="duplicate"):
        categorize(items)


def test_categorize_rejects_empty():
    with pytest.raises(SelectionError):
        categorize([])


# ============================================================
# PROMPT
# ============================================================

def test_enter_after_wrapping_returns_first():
    chosen, terminal = choose(ABC, DOWN, DOWN, DOWN, ENTER)
    assert chosen.name == "A"
    assert terminal.raw_entries == terminal.raw_exits == 1
    assert "✓ Selected: A" in terminal.output


def test_one_frame_per_keypress():
    chosen, terminal = choose(ABC, DOWN, UP, UP, ENTER)
    assert chosen.name == "C"
    assert len(terminal.frames) == 4


def test_digit_selects_directly():
    chosen, terminal = choose(ABC, "2")
    assert chosen.name == "B"
    assert any("→ 2. B" in line for line in terminal.frames[-1])


def test_out_of_range_digit_is_ignored():
    chosen, _ = choose(ABC, "7", ENTER)
    assert chosen.name == "A"


def test_unbound_keys_are_ignored():
    chosen, terminal = choose(ABC, "x", "\x1b[C", DOWN, ENTER)
    assert chosen.name == "B"
    assert len(terminal.frames) == 2


def test_escape_aborts_and_restores_terminal():
    terminal = ScriptedTerminal()
    menu = SelectionMenu(terminal, ScriptedKeySource(DOWN, ESCAPE), confirm_delay=0)
    with pytest.raises(UserAbort):
        asyncio.run(menu.choose(ABC))
    assert terminal.raw_exits == 1
    assert "Selected" not in terminal.output


def test_end_of_input_aborts():
    terminal = ScriptedTerminal()
    menu = SelectionMenu(terminal, ScriptedKeySource(DOWN), confirm_delay=0)
    with pytest.raises(UserAbort):
        asyncio.run(menu.choose(ABC))


def test_viewport_shows_a_window_of_long_lists():
    items = make_items(*[f"item{i}" for i in range(30)])
    chosen, terminal = choose(items, PAGE_DOWN, ENTER, height=12)
    assert chosen.name == "item0"
    assert len(terminal.frames[0]) == 10
    assert terminal.frames[1][0].strip().startswith("11.")


def test_non_interactive_auto_selects_first(caplog):
    items = make_items("X", "Y")
    with caplog.at_level(logging.INFO, logger="ui.selection"):
        chosen, terminal = choose(items, interactive=False)
    assert chosen.name == "X"
    assert terminal.raw_entries == 0
    assert "Non-interactive mode: auto-selecting first item..." in terminal.output
    assert "→" not in terminal.output
    assert any("auto-selecting first item 'X'" in r.getMessage() for r in caplog.records)
