"""
SwordFight CLI — ui/selection.py
Selection engine: keyboard-navigable, scrollable, categorized chooser.
=====================================================================
Stack:       Python 3.11+ | asyncio | rich (via ui.ansi)

Architecture notes
------------------
- SelectionSession is the pure state machine (highlight, scroll, paging).
  It never touches the terminal and is tested without one.
- MenuView turns a Catalog plus the highlighted index into a Frame: the
  full list of lines and, per item, the anchor line holding its name.
  Scrolling is measured in frame lines.
- SelectionMenu drives one prompt: raw mode + alternate screen for the
  duration, one frame write per keypress, resolves exactly once.
- Escape / Ctrl-C raise UserAbort. The caller restores nothing; the
  context managers already have by the time it propagates.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence

from game.models import SelectableItem, SwordfightError
from ui.ansi import bold, cyan, dim, green
from ui.terminal import Key, KeyKind, KeySource, Terminal, UserAbort

logger = logging.getLogger(__name__)


# ============================================================
# DESIGN VARIABLE DEFAULTS
# ============================================================

CONFIRM_DELAY_S  = 0.2
VIEWPORT_RESERVE = 2
DIGIT_ZERO_INDEX = 9   # '0' selects the 10th item


class SelectionError(SwordfightError):
    """The menu cannot be shown (no items, duplicate ids)."""


# ============================================================
# CATEGORIZATION
# ============================================================

@dataclass(frozen=True)
class Catalog:
    """Items grouped by tag. `ordered` is the navigation order."""
    ordered: List[SelectableItem]
    tag_order: List[str]
    by_tag: Dict[str, List[SelectableItem]]

    def display_number(self, index: int) -> int:
        return index + 1


def categorize(items: Sequence[SelectableItem]) -> Catalog:
    """
    Groups items by tag. Tags sort lexicographically; items keep engine
    order inside their tag. Display numbers follow the resulting order.
    """
    if not items:
        raise SelectionError("nothing to select")

    by_tag: Dict[str, List[SelectableItem]] = {}
    seen_ids = set()
    for item in items:
        key = str(item.id)
        if key in seen_ids:
            raise SelectionError(f"duplicate item id {item.id!r}")
        seen_ids.add(key)
        by_tag.setdefault(item.tag, []).append(item)

    tag_order = sorted(by_tag)
    ordered = [item for tag in tag_order for item in by_tag[tag]]
    return Catalog(ordered=ordered, tag_order=tag_order, by_tag=by_tag)


# ============================================================
# FRAMES & VIEWS
# ============================================================

@dataclass
class Frame:
    lines: List[str]
    anchors: Dict[int, int] = field(default_factory=dict)


class MenuView(Protocol):
    def compose(self, catalog: Catalog, highlighted: Optional[int]) -> Frame:
        """Full menu content. `highlighted` is None in non-interactive output."""
        ...


class PlainListView:
    """One numbered line per item under an optional title."""

    def __init__(self, title: str = "") -> None:
        self.title = title

    def compose(self, catalog: Catalog, highlighted: Optional[int]) -> Frame:
        lines: List[str] = [bold(self.title)] if self.title else []
        anchors: Dict[int, int] = {}
        for index, item in enumerate(catalog.ordered):
            anchors[index] = len(lines)
            number = f"{catalog.display_number(index)}."
            if index == highlighted:
                lines.append(f"{green('→ ')}{bold(green(number))} {bold(green(item.name))}")
            else:
                lines.append(f"  {cyan(number)} {item.name}")
        return Frame(lines=lines, anchors=anchors)


# ============================================================
# SESSION STATE
# ============================================================

@dataclass
class SelectionSession:
    """
    Transient state of one prompt.
    highlighted_index stays in [0, len(items)); scroll_offset in
    [0, content_height - viewport_height].
    """
    items: Sequence[SelectableItem]
    viewport_height: int
    highlighted_index: int = 0
    scroll_offset: int = 0
    content_height: int = 0
    anchors: Dict[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.items:
            raise SelectionError("nothing to select")
        self.viewport_height = max(1, self.viewport_height)
        if not self.content_height:
            self.content_height = len(self.items)

    @property
    def selected(self) -> SelectableItem:
        return self.items[self.highlighted_index]

    @property
    def max_offset(self) -> int:
        return max(0, self.content_height - self.viewport_height)

    def anchor_line(self, index: int) -> int:
        return self.anchors.get(index, index)

    def _clamp(self, offset: int) -> int:
        return max(0, min(offset, self.max_offset))

    # --- navigation --------------------------------------------------------

    def move_down(self) -> None:
        self.highlighted_index = (self.highlighted_index + 1) % len(self.items)
        self.ensure_visible()

    def move_up(self) -> None:
        self.highlighted_index = (self.highlighted_index - 1) % len(self.items)
        self.ensure_visible()

    def jump(self, index: int) -> None:
        if not 0 <= index < len(self.items):
            raise IndexError(index)
        self.highlighted_index = index
        self.ensure_visible()

    def page(self, direction: int) -> None:
        """Scrolls one viewport up (-1) or down (+1). Highlight is untouched."""
        self.scroll_offset = self._clamp(self.scroll_offset + direction * self.viewport_height)

    def digit_target(self, char: str) -> Optional[int]:
        if char == "0":
            return DIGIT_ZERO_INDEX if len(self.items) > DIGIT_ZERO_INDEX else None
        if len(char) == 1 and "1" <= char <= "9":
            index = int(char) - 1
            return index if index < len(self.items) else None
        return None

    # --- viewport ----------------------------------------------------------

    def ensure_visible(self) -> None:
        """Centers the highlighted anchor when it falls outside the viewport."""
        line = self.anchor_line(self.highlighted_index)
        if self.scroll_offset <= line < self.scroll_offset + self.viewport_height:
            return
        self.scroll_offset = self._clamp(line - self.viewport_height // 2)

    def apply_frame(self, frame: Frame) -> None:
        self.content_height = len(frame.lines)
        self.anchors = dict(frame.anchors)
        self.scroll_offset = self._clamp(self.scroll_offset)

    def visible_lines(self, frame: Frame) -> List[str]:
        return frame.lines[self.scroll_offset:self.scroll_offset + self.viewport_height]


# ============================================================
# PROMPT DRIVER
# ============================================================

class SelectionMenu:
    """Runs selection prompts against a terminal and a key source."""

    def __init__(
        self,
        terminal: Terminal,
        key_source: KeySource,
        confirm_delay: float = CONFIRM_DELAY_S,
        viewport_reserve: int = VIEWPORT_RESERVE,
    ) -> None:
        self._terminal = terminal
        self._keys = key_source
        self.confirm_delay = confirm_delay
        self.viewport_reserve = viewport_reserve

    async def choose(
        self,
        items: Sequence[SelectableItem],
        view: Optional[MenuView] = None,
        noun: str = "item",
    ) -> SelectableItem:
        catalog = categorize(items)
        view = view or PlainListView()

        if not self._terminal.is_interactive:
            chosen = self._auto_select(catalog, view, noun)
        else:
            chosen = await self._interactive(catalog, view)

        self._terminal.print(green(f"✓ Selected: {chosen.label}"))
        self._terminal.print("")
        return chosen

    def _auto_select(self, catalog: Catalog, view: MenuView, noun: str) -> SelectableItem:
        frame = view.compose(catalog, None)
        self._terminal.print("\n".join(frame.lines))
        chosen = catalog.ordered[0]
        logger.info("No interactive terminal; auto-selecting first %s %r", noun, chosen.name)
        self._terminal.print(dim(f"Non-interactive mode: auto-selecting first {noun}..."))
        return chosen

    async def _interactive(self, catalog: Catalog, view: MenuView) -> SelectableItem:
        session = SelectionSession(
            items=catalog.ordered,
            viewport_height=self._terminal.height - self.viewport_reserve,
        )
        with self._terminal.raw_mode(), self._terminal.alternate_screen():
            self._redraw(session, catalog, view)
            async with contextlib.aclosing(self._keys.keys()) as keys:
                async for key in keys:
                    if key.kind is KeyKind.ENTER:
                        return session.selected
                    if key.kind in (KeyKind.ESCAPE, KeyKind.INTERRUPT):
                        raise UserAbort()
                    if key.is_digit:
                        target = session.digit_target(key.char)
                        if target is None:
                            continue
                        session.jump(target)
                        self._redraw(session, catalog, view)
                        await asyncio.sleep(self.confirm_delay)
                        return session.selected
                    if self._navigate(session, key):
                        self._redraw(session, catalog, view)
        logger.info("Input closed during selection")
        raise UserAbort()

    @staticmethod
    def _navigate(session: SelectionSession, key: Key) -> bool:
        if key.kind is KeyKind.UP:
            session.move_up()
        elif key.kind is KeyKind.DOWN:
            session.move_down()
        elif key.kind is KeyKind.PAGE_UP:
            session.page(-1)
        elif key.kind is KeyKind.PAGE_DOWN:
            session.page(1)
        elif key.kind is KeyKind.HOME:
            session.jump(0)
        elif key.kind is KeyKind.END:
            session.jump(len(session.items) - 1)
        else:
            return False
        return True

    def _redraw(self, session: SelectionSession, catalog: Catalog, view: MenuView) -> None:
        frame = view.compose(catalog, session.highlighted_index)
        session.apply_frame(frame)
        self._terminal.draw_frame(session.visible_lines(frame))
