"""
SwordFight CLI — ui/screens.py
Menu screens: fighter, game mode and combat move choosers.
==========================================================
Each screen is a MenuView for the selection engine. The screen lays out
the lines; SelectionMenu owns navigation, scrolling and terminal state.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from game.models import CharacterProfile, RoundSnapshot, SelectableItem
from ui.ansi import blue, bold, create_box, cyan, dim, green, red, yellow
from ui.renderer import HEALTH_BAR_LENGTH, battle_status, format_modifier, move_bonus, range_color, tactical_info
from ui.selection import Catalog, Frame, SelectionMenu

# Lines create_box() emits before the first body line: top, title, tee.
_BOX_BODY_OFFSET = 3

APP_HEADER = "🗡️  ⚔️  SWORDFIGHT CLI  ⚔️  🛡️"


def _tag_color(tag: str):
    if "Extended" in tag:
        return cyan
    if "Shield" in tag:
        return blue
    if "Jump" in tag:
        return yellow
    return green


class BaseScreen:
    """
    A boxed menu with optional lines above (preamble) and below (footer).
    Subclasses describe one item; grouping by tag is opt-in.
    """
    title = ""
    noun = "item"
    grouped = False

    def preamble(self) -> List[str]:
        return []

    def footer(self) -> List[str]:
        return []

    def item_details(self, item: SelectableItem, selected: bool) -> List[str]:
        return []

    def compose(self, catalog: Catalog, highlighted: Optional[int]) -> Frame:
        body: List[str] = []
        body_anchors: Dict[int, int] = {}
        index = 0
        groups = catalog.tag_order if self.grouped else [None]
        for group_no, tag in enumerate(groups):
            members = catalog.by_tag[tag] if tag is not None else catalog.ordered
            if tag:
                color = _tag_color(tag)
                body.append(bold(color(tag.upper())))
                body.append(color("─" * len(tag)))
            for position, item in enumerate(members):
                selected = index == highlighted
                body_anchors[index] = len(body)
                body.append(self._item_line(catalog.display_number(index), item, selected))
                body.extend(self.item_details(item, selected))
                if position < len(members) - 1:
                    body.append("")
                index += 1
            if group_no < len(groups) - 1:
                body.extend(["", ""])

        head = self.preamble()
        lines = head + create_box(self.title, body).split("\n") + self.footer()
        anchors = {i: len(head) + _BOX_BODY_OFFSET + line for i, line in body_anchors.items()}
        return Frame(lines=lines, anchors=anchors)

    @staticmethod
    def _item_line(number: int, item: SelectableItem, selected: bool) -> str:
        if selected:
            return f"{green('→ ')}{bold(green(f'{number}.'))} {bold(green(item.name))}"
        return f"  {cyan(bold(f'{number}.'))} {bold(item.name)}"

    async def select(self, menu: SelectionMenu, items: Sequence[SelectableItem]) -> SelectableItem:
        return await menu.choose(items, self, noun=self.noun)


# ============================================================
# FIGHTER
# ============================================================

class CharacterScreen(BaseScreen):
    title = "⚔️  CHOOSE YOUR FIGHTER"
    noun = "character"

    def item_details(self, item: SelectableItem, selected: bool) -> List[str]:
        if not item.description:
            return []
        return [f"    {green(item.description) if selected else dim(item.description)}"]

    def footer(self) -> List[str]:
        return ["", dim("Use ↑/↓ arrows or numbers to select, Enter to confirm, Esc to quit")]

    async def choose(self, menu: SelectionMenu, characters: Sequence[CharacterProfile]) -> CharacterProfile:
        by_slug = {c.slug: c for c in characters}
        chosen = await self.select(menu, [c.to_item() for c in characters])
        return by_slug[str(chosen.id)]


# ============================================================
# GAME MODE
# ============================================================

MODE_SINGLE      = "single"
MODE_MULTIPLAYER = "multiplayer"
MODE_JOIN        = "join"

MODES = (
    SelectableItem(id=MODE_SINGLE, name="Single Player",
                   description="Fight against a computer opponent"),
    SelectableItem(id=MODE_MULTIPLAYER, name="Create Multiplayer Room",
                   description="Create a room and invite a friend to join"),
    SelectableItem(id=MODE_JOIN, name="Join Multiplayer Room",
                   description="Join an existing multiplayer room"),
)

MODE_EMOJI = {MODE_SINGLE: "🤖", MODE_MULTIPLAYER: "🌐", MODE_JOIN: "🚪"}


class ModeScreen(BaseScreen):
    title = "🎮 SELECT GAME MODE"
    noun = "mode"

    def preamble(self) -> List[str]:
        return ["", bold(cyan(APP_HEADER)), bold(cyan("═" * 35)), ""]

    def footer(self) -> List[str]:
        return ["", dim(f"Use ↑/↓ arrows or numbers 1-{len(MODES)} to select, Enter to confirm, Esc to quit")]

    @staticmethod
    def _item_line(number: int, item: SelectableItem, selected: bool) -> str:
        emoji = MODE_EMOJI.get(str(item.id), "")
        if selected:
            return f"{green('→ ')}{bold(green(f'{number}.'))} {emoji} {bold(green(item.name))}"
        return f"  {cyan(bold(f'{number}.'))} {emoji} {bold(item.name)}"

    def item_details(self, item: SelectableItem, selected: bool) -> List[str]:
        text = item.description or ""
        return [f"       {green(text) if selected else dim(text)}"]

    async def choose(self, menu: SelectionMenu) -> str:
        chosen = await self.select(menu, list(MODES))
        return str(chosen.id)


# ============================================================
# COMBAT MOVES
# ============================================================

class MoveScreen(BaseScreen):
    """
    Move chooser with the battle status and last round's tactical info
    above the list. Bonuses come from the player's last round snapshot.
    """
    title = "⚔️  AVAILABLE COMBAT MOVES"
    noun = "move"
    grouped = True

    def __init__(
        self,
        game: Any,
        player_name: str,
        last_round: Optional[RoundSnapshot] = None,
        last_opponent_round: Optional[RoundSnapshot] = None,
        bar_length: int = HEALTH_BAR_LENGTH,
    ) -> None:
        self.game = game
        self.bar_length = bar_length
        self.player_name = player_name
        self.last_round = last_round
        self.last_opponent_round = last_opponent_round

    @property
    def bonus_entries(self) -> List[Mapping[str, Any]]:
        return self.last_round.next_round_bonus if self.last_round else []

    def preamble(self) -> List[str]:
        lines = battle_status(self.game, self.player_name, self.bar_length).split("\n") + [""]
        info = tactical_info(self.last_round, self.last_opponent_round, self.game.round_number)
        if info:
            lines += info.split("\n")
        return lines

    def footer(self) -> List[str]:
        return [
            "",
            bold(cyan("🎯 Use ↑/↓ arrows to navigate, Enter to select, "
                      "Page Up/Down to scroll, or type a number to choose")),
        ]

    def item_details(self, item: SelectableItem, selected: bool) -> List[str]:
        lines: List[str] = []
        if item.range:
            shown = bold(green(item.range)) if selected else range_color(item.range)(item.range)
            lines.append(f"    Range: {shown}")
        if item.modifier is not None:
            text = format_modifier(item.modifier)
            if selected:
                shown = bold(green(text))
            elif text.startswith("-"):
                shown = red(text)
            elif text == "±0":
                shown = dim(text)
            else:
                shown = green(text)
            lines.append(f"    Modifier: {shown}")
        bonus = move_bonus(item, self.bonus_entries)
        if bonus > 0:
            shown = bold(green(f"+{bonus}")) if selected else green(f"+{bonus}")
            lines.append(f"    Bonus: {shown}")
        return lines
