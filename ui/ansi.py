"""
SwordFight CLI — ui/ansi.py
Display primitives: ANSI styling, width measurement, box framing.
=================================================================
Stack:       Python 3.11+ | rich

Styling goes through rich's Style so colour can be switched off in one
place (non-TTY output, `display.color = false`). Width is measured in cells with
ANSI codes stripped, so emoji and box characters line up.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable, List, Optional, Union

from rich.cells import cell_len
from rich.color import ColorSystem
from rich.style import Style
from rich.text import Text


# ============================================================
# BOX CHARACTERS
# ============================================================

BOX_TOP_LEFT     = "┌"
BOX_TOP_RIGHT    = "┐"
BOX_BOTTOM_LEFT  = "└"
BOX_BOTTOM_RIGHT = "┘"
BOX_HORIZONTAL   = "─"
BOX_VERTICAL     = "│"
BOX_TEE_RIGHT    = "├"
BOX_TEE_LEFT     = "┤"

SEPARATOR_CHAR = "━"

DEFAULT_BOX_WIDTH = 50


# ============================================================
# STYLING
# ============================================================

_color_system: Optional[ColorSystem] = ColorSystem.STANDARD


def set_color_enabled(enabled: bool) -> None:
    """Globally enables or disables ANSI colour output."""
    global _color_system
    _color_system = ColorSystem.STANDARD if enabled else None


def color_enabled() -> bool:
    return _color_system is not None


@lru_cache(maxsize=64)
def _style(spec: str) -> Style:
    return Style.parse(spec)


def stylize(text: str, spec: str) -> str:
    """Wraps `text` in the ANSI codes for a rich style spec ("bold red")."""
    if _color_system is None:
        return text
    return _style(spec).render(text, color_system=_color_system)


def bold(text: str) -> str:
    return stylize(text, "bold")


def dim(text: str) -> str:
    return stylize(text, "dim")


def red(text: str) -> str:
    return stylize(text, "red")


def green(text: str) -> str:
    return stylize(text, "green")


def yellow(text: str) -> str:
    return stylize(text, "yellow")


def blue(text: str) -> str:
    return stylize(text, "blue")


def cyan(text: str) -> str:
    return stylize(text, "cyan")


def magenta(text: str) -> str:
    return stylize(text, "magenta")


# ============================================================
# MEASUREMENT
# ============================================================

def strip_ansi(text: str) -> str:
    return Text.from_ansi(text).plain


def display_width(text: str) -> int:
    """Terminal cell width of `text`, ignoring ANSI escape codes."""
    return cell_len(strip_ansi(text))


# ============================================================
# FRAMING
# ============================================================

def create_box(title: str, content: Union[str, Iterable[str]] = "", width: int = DEFAULT_BOX_WIDTH) -> str:
    """
    Frames `content` under a bold title row. The box grows to fit the
    widest line; an empty body renders the title row only.
    """
    lines = _content_lines(content)
    widest = max([display_width(line) for line in lines] + [display_width(title)])
    box_width = max(width, widest + 4)
    inner = box_width - 2

    out = [BOX_TOP_LEFT + BOX_HORIZONTAL * inner + BOX_TOP_RIGHT]
    out.append(_boxed_row(bold(title), display_width(title), inner))
    if lines:
        out.append(BOX_TEE_RIGHT + BOX_HORIZONTAL * inner + BOX_TEE_LEFT)
        for line in lines:
            out.append(_boxed_row(line, display_width(line), inner))
    out.append(BOX_BOTTOM_LEFT + BOX_HORIZONTAL * inner + BOX_BOTTOM_RIGHT)
    return "\n".join(out)


def separator(width: int = DEFAULT_BOX_WIDTH) -> str:
    return SEPARATOR_CHAR * width


def _content_lines(content: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(content, str):
        return content.split("\n") if content.strip() else []
    lines = list(content)
    return lines if any(line.strip() for line in lines) else []


def _boxed_row(text: str, text_width: int, inner: int) -> str:
    padding = max(0, inner - text_width - 1)
    return BOX_VERTICAL + " " + text + " " * padding + BOX_VERTICAL
