"""
SwordFight CLI — ui/renderer.py
Game state renderer: engine state to display text.
==================================================
Stack:       Python 3.11+ | rich (via ui.ansi)
Status:      Pure functions. No I/O, no hidden state.

Architecture notes
------------------
- Snapshots are read-only RoundSnapshot models (game/models.py).
- Restrictions shown to a player come from the *opponent's* round result:
  the opponent's view of you decides what you may do next.
- Multi-line outputs are returned as strings (boxes) or lists of lines
  (report chunks the orchestrator prints with pacing in between).
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from game.models import RoundResult, RoundSnapshot, SelectableItem
from ui.ansi import bold, create_box, cyan, dim, green, magenta, red, stylize, yellow


# ============================================================
# DESIGN VARIABLE DEFAULTS
# ============================================================

HEALTH_BAR_LENGTH = 20
LOW_HEALTH_RATIO  = 0.3
MID_HEALTH_RATIO  = 0.6

BAR_FILLED = "█"
BAR_EMPTY  = "░"

BATTLE_STATUS_TITLE = "⚔️  BATTLE STATUS"


# ============================================================
# HEALTH
# ============================================================

def _health_ratio(current: float, maximum: float) -> float:
    if maximum <= 0:
        return 0.0
    return max(0.0, min(1.0, current / maximum))


def health_segments(current: float, maximum: float, length: int = HEALTH_BAR_LENGTH) -> Tuple[int, int]:
    """(filled, empty) segment counts; always sums to `length`."""
    filled = math.floor(length * _health_ratio(current, maximum) + 0.5)
    return filled, length - filled


def health_tier(current: float, maximum: float) -> str:
    ratio = _health_ratio(current, maximum)
    if ratio <= LOW_HEALTH_RATIO:
        return "low"
    if ratio <= MID_HEALTH_RATIO:
        return "mid"
    return "high"


_TIER_COLORS = {"low": red, "mid": yellow, "high": green}


def health_bar(current: float, maximum: float, length: int = HEALTH_BAR_LENGTH) -> str:
    filled, empty = health_segments(current, maximum, length)
    color = _TIER_COLORS[health_tier(current, maximum)]
    return color(BAR_FILLED * filled) + dim(BAR_EMPTY * empty)


# ============================================================
# BONUSES & RESTRICTIONS
# ============================================================

def _amount(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        return 0


def bonus_summary(entries: Optional[Iterable[Mapping[str, Any]]]) -> Optional[Dict[str, int]]:
    """
    Merges `{type: amount}` entries by summing per type. Types netting to
    zero are dropped. Keys keep first-seen order. None when nothing remains.
    """
    totals: Dict[str, int] = {}
    for entry in entries or ():
        for key, value in entry.items():
            totals[key] = totals.get(key, 0) + _amount(value)
    merged = {key: total for key, total in totals.items() if total != 0}
    return merged or None


def move_bonus(item: SelectableItem, entries: Optional[Iterable[Mapping[str, Any]]]) -> int:
    """Total bonus for a move whose type or tag matches a bonus key."""
    total = 0
    for entry in entries or ():
        for key, value in entry.items():
            if key == item.type or key == item.tag:
                total += _amount(value)
    return total


def restriction_list(result: Optional[RoundResult]) -> List[str]:
    if result is None:
        return []
    return list(result.restrict) + [f"Only {allowed}" for allowed in result.allow_only]


def format_modifier(modifier: Union[int, str, None]) -> str:
    """'+2', '-1' or '±0'; signed strings pass through."""
    text = "0" if modifier is None else str(modifier).strip()
    if text.startswith(("+", "-")):
        return text
    if text == "0":
        return "±0"
    return f"+{text}"


def _signed(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)


def _format_bonuses(summary: Optional[Dict[str, int]]) -> str:
    return ", ".join(f"{key} ({_signed(value)})" for key, value in (summary or {}).items())


# ============================================================
# BATTLE STATUS
# ============================================================

def _equipment_lines(combatant: Any) -> List[str]:
    weapon = green("⚔️  Armed") if combatant.weapon else red("❌ Disarmed")
    shield = green("🛡️  Ready") if combatant.shield else red("❌ Lost")
    return [f"   Weapon: {weapon}", f"   Shield: {shield}"]


def _combatant_block(icon: str, label: str, combatant: Any, bar_length: int) -> List[str]:
    bar = health_bar(combatant.health, combatant.starting_health, bar_length)
    return [
        bold(f"{icon} {label}"),
        f"   Health: {bar} {combatant.health}/{combatant.starting_health} HP",
        *_equipment_lines(combatant),
    ]


def battle_status(game: Any, player_name: str, bar_length: int = HEALTH_BAR_LENGTH) -> str:
    """Boxed health/equipment summary for both combatants."""
    if game is None:
        return ""
    body = (
        _combatant_block("👤", player_name, game.my_character, bar_length)
        + [""]
        + _combatant_block("🤖", game.opponents_character.name, game.opponents_character, bar_length)
    )
    return create_box(BATTLE_STATUS_TITLE, body)


# ============================================================
# TACTICAL INFORMATION
# ============================================================

def range_color(range_name: str):
    if range_name == "close":
        return red
    if range_name == "medium":
        return yellow
    return cyan


def stance_lines(my: RoundSnapshot, opponent: RoundSnapshot) -> List[str]:
    return [
        bold(cyan("🤺 Your current status: ")) + stylize(opponent.result.name, "bold on cyan"),
        bold(yellow("👀 You see your opponent: ")) + stylize(my.result.name, "bold on yellow"),
    ]


def _effect_lines(my: RoundSnapshot, opponent: RoundSnapshot, suffix: str) -> List[str]:
    lines: List[str] = []

    mine = restriction_list(opponent.result)
    label = f"▶ Your restrictions{suffix}: "
    lines.append(red(label) + bold(red(", ".join(mine))) if mine else dim(label + "None"))

    theirs = restriction_list(my.result)
    label = f"▶ Opponent restrictions{suffix}: "
    lines.append(magenta(label) + bold(magenta(", ".join(theirs))) if theirs else dim(label + "None"))

    my_bonus = bonus_summary(my.next_round_bonus)
    label = f"▶ Your bonuses{suffix}: "
    lines.append(green(label) + bold(green(_format_bonuses(my_bonus))) if my_bonus else dim(label + "None"))

    their_bonus = bonus_summary(opponent.next_round_bonus)
    label = f"▶ Opponent bonuses{suffix}: "
    lines.append(yellow(label) + bold(yellow(_format_bonuses(their_bonus))) if their_bonus else dim(label + "None"))

    return lines


def tactical_info(
    last: Optional[RoundSnapshot],
    last_opponent: Optional[RoundSnapshot],
    round_number: int,
) -> str:
    """Range, stances and this turn's limits. Empty before the first round."""
    if last is None or last_opponent is None or round_number == 0:
        return ""
    range_name = last.result.range or "unknown"
    lines = [
        bold(cyan("📊 TACTICAL INFORMATION")),
        cyan("═" * 26),
        "",
        bold("🎯 Combat Range: ") + range_color(range_name)(bold(range_name.upper())),
        "",
        *stance_lines(last, last_opponent),
        "",
        bold(red("🚫 RESTRICTIONS & BONUSES")),
        red("─" * 25),
        *_effect_lines(last, last_opponent, " this turn"),
        "",
    ]
    return "\n".join(lines)


# ============================================================
# ROUND REPORT CHUNKS
# ============================================================

def moves_used(my: RoundSnapshot, opponent: RoundSnapshot) -> List[str]:
    return [
        f"{cyan('🤺 Your move:')} {bold(green(my.my_move.label))}",
        f"{yellow('🤖 Opponent:')} {bold(red(opponent.my_move.label))}",
        "",
    ]


def _breakdown(side: RoundSnapshot, with_total: bool) -> str:
    parts: List[str] = []
    if side.score is not None:
        parts.append(f"Base hit: {side.score}")
    if side.move_modifier is not None:
        parts.append(f"Move modifier: {_signed(side.move_modifier)}")
    if side.bonus:
        parts.append(f"Previous round bonus: {_signed(side.bonus)}")
    if not parts:
        return ""
    text = ", ".join(parts)
    if with_total:
        text += f" = {side.total_score}"
    return dim(f"   ({text})")


def _side_damage(side: RoundSnapshot, dealt: str, blocked: str, color) -> List[str]:
    if not side.attempted_hit:
        return []
    if side.total_score > 0:
        lines = [f"{color(dealt)} {bold(color(f'{side.total_score} damage!'))}"]
    elif side.score is not None and side.score > 0:
        lines = [yellow(blocked)]
    else:
        return []
    detail = _breakdown(side, with_total=side.total_score <= 0)
    if detail:
        lines.append(detail)
    return lines


def damage_report(my: RoundSnapshot, opponent: RoundSnapshot) -> List[str]:
    """
    Damage dealt and taken this round. A scoring move that landed for
    nothing is called out; two non-scoring moves get a neutral line.
    """
    lines = _side_damage(my, "💥 You dealt", "⚡ You hit but dealt no damage", green)
    lines += _side_damage(opponent, "💔 You took", "⚡ Opponent hit but dealt no damage", red)
    if not my.attempted_hit and not opponent.attempted_hit:
        lines.append(dim("⚡ Both fighters used positioning moves - no damage attempts"))
    lines.append("")
    return lines


def effects_report(my: RoundSnapshot, opponent: RoundSnapshot) -> List[str]:
    return [
        bold(cyan("📊 CURRENT STATUS")),
        cyan("─" * 17),
        *stance_lines(my, opponent),
        "",
        bold(red("🚫 NEXT ROUND EFFECTS")),
        red("─" * 22),
        *_effect_lines(my, opponent, ""),
        "",
    ]


# ============================================================
# OUTCOME
# ============================================================

def victory_box(opponent_name: str) -> str:
    return create_box("🎉 VICTORY! 🎉", [
        green("Congratulations, warrior!"),
        f"You have defeated {opponent_name}!",
        bold("Your skill with the blade is legendary!"),
    ])


def defeat_box(opponent_name: str) -> str:
    return create_box("💀 DEFEAT 💀", [
        red("The battle is lost..."),
        f"You have been defeated by {opponent_name}.",
        dim("Train harder and return stronger!"),
    ])
