"""
SwordFight CLI — ui/terminal.py
Terminal raw-input driver.
==========================
Stack:       Python 3.11+ | termios/tty (POSIX) | asyncio

Architecture notes
------------------
- Terminal owns stdin/stdout. Raw mode and the alternate screen are scoped
  context managers; the saved tty attributes are restored on every exit
  path, including task cancellation.
- Key input is a restartable async iterator (KeySource). Each prompt opens
  its own iterator and closes it on resolution, so the stdin reader is only
  registered while a prompt is listening.
- On platforms without termios (or when stdin is not a TTY) the terminal
  reports itself non-interactive and menus take the auto-select path.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import os
import shutil
import sys
from dataclasses import dataclass
from enum import Enum, auto
from typing import AsyncIterator, Iterator, List, Optional, Protocol, Sequence, TextIO

try:
    import termios  # type: ignore
    import tty  # type: ignore
except ImportError:  # pragma: no cover
    termios = None  # type: ignore
    tty = None  # type: ignore

logger = logging.getLogger(__name__)


# ============================================================
# CONTROL SEQUENCES
# ============================================================

ALT_SCREEN_ON  = "\x1b[?1049h"
ALT_SCREEN_OFF = "\x1b[?1049l"
CLEAR_SCREEN   = "\x1b[2J"
CURSOR_HOME    = "\x1b[H"

ESC    = "\x1b"
CTRL_C = "\x03"
CTRL_D = "\x04"

_READ_CHUNK = 64


class UserAbort(Exception):
    """Escape or Ctrl-C pressed while the terminal was in raw mode."""


# ============================================================
# KEY DECODING
# ============================================================

class KeyKind(Enum):
    UP = auto()
    DOWN = auto()
    LEFT = auto()
    RIGHT = auto()
    PAGE_UP = auto()
    PAGE_DOWN = auto()
    HOME = auto()
    END = auto()
    ENTER = auto()
    ESCAPE = auto()
    INTERRUPT = auto()
    CHAR = auto()
    UNKNOWN = auto()


@dataclass(frozen=True)
class Key:
    kind: KeyKind
    char: str = ""

    @property
    def is_digit(self) -> bool:
        return self.kind is KeyKind.CHAR and self.char.isdigit() and len(self.char) == 1


_SEQUENCES = {
    "[A": KeyKind.UP,
    "[B": KeyKind.DOWN,
    "[C": KeyKind.RIGHT,
    "[D": KeyKind.LEFT,
    "OA": KeyKind.UP,
    "OB": KeyKind.DOWN,
    "OC": KeyKind.RIGHT,
    "OD": KeyKind.LEFT,
    "[5~": KeyKind.PAGE_UP,
    "[6~": KeyKind.PAGE_DOWN,
    "[H": KeyKind.HOME,
    "[F": KeyKind.END,
    "OH": KeyKind.HOME,
    "OF": KeyKind.END,
    "[1~": KeyKind.HOME,
    "[4~": KeyKind.END,
    "[7~": KeyKind.HOME,
    "[8~": KeyKind.END,
}


def decode_keys(chunk: str) -> List[Key]:
    """
    Splits one read from a raw terminal into key events.

    A chunk may hold several keys (fast typing, pasted digits) or one
    escape sequence. A lone ESC at the end of a chunk is the Escape key;
    ESC followed by a printable character is an Alt+key chord and decodes
    as a single UNKNOWN key.
    """
    keys: List[Key] = []
    i = 0
    n = len(chunk)
    while i < n:
        ch = chunk[i]
        if ch == ESC:
            if i + 1 >= n:
                keys.append(Key(KeyKind.ESCAPE))
                i += 1
                continue
            follower = chunk[i + 1]
            if follower not in "[O":
                if follower.isprintable():
                    keys.append(Key(KeyKind.UNKNOWN, ESC + follower))
                    i += 2
                else:
                    keys.append(Key(KeyKind.ESCAPE))
                    i += 1
                continue
            end = _sequence_end(chunk, i + 1)
            body = chunk[i + 1:end]
            keys.append(Key(_SEQUENCES.get(body, KeyKind.UNKNOWN), ESC + body))
            i = end
        elif ch in "\r\n":
            keys.append(Key(KeyKind.ENTER))
            i += 2 if chunk[i:i + 2] == "\r\n" else 1
        elif ch in (CTRL_C, CTRL_D):
            keys.append(Key(KeyKind.INTERRUPT, ch))
            i += 1
        else:
            keys.append(Key(KeyKind.CHAR, ch))
            i += 1
    return keys


def _sequence_end(chunk: str, start: int) -> int:
    """Index just past a CSI/SS3 sequence whose introducer is at `start`."""
    if chunk[start] == "O":
        return min(start + 2, len(chunk))
    j = start + 1
    while j < len(chunk):
        if "@" <= chunk[j] <= "~":
            return j + 1
        j += 1
    return j


# ============================================================
# KEY SOURCES
# ============================================================

class KeySource(Protocol):
    def keys(self) -> AsyncIterator[Key]:
        """A fresh async iterator of decoded keys; ends on end-of-input."""
        ...


class TerminalKeySource:
    """Reads raw keystrokes from the terminal's stdin via the event loop."""

    def __init__(self, terminal: "Terminal") -> None:
        self._terminal = terminal

    async def keys(self) -> AsyncIterator[Key]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[bytes] = asyncio.Queue()
        fd = self._terminal.stdin.fileno()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        def on_readable() -> None:
            try:
                data = os.read(fd, _READ_CHUNK)
            except OSError:
                logger.warning("stdin read failed; treating as end of input", exc_info=True)
                data = b""
            queue.put_nowait(data)

        loop.add_reader(fd, on_readable)
        try:
            while True:
                data = await queue.get()
                if not data:
                    return
                for key in decode_keys(decoder.decode(data)):
                    yield key
        finally:
            loop.remove_reader(fd)


# ============================================================
# TERMINAL
# ============================================================

class Terminal:
    """
    Owns the process's input and output streams for the UI.
    All UI text goes through write()/print() so tests can capture it.
    """

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        # bytes read past the end of the last answered line
        self._pending = bytearray()

    @property
    def is_interactive(self) -> bool:
        """True when raw keyboard input is available."""
        return termios is not None and tty is not None and _isatty(self.stdin)

    @property
    def output_is_tty(self) -> bool:
        return _isatty(self.stdout)

    @property
    def height(self) -> int:
        return shutil.get_terminal_size((80, 24)).lines

    def write(self, text: str) -> None:
        self.stdout.write(text)
        self.stdout.flush()

    def print(self, *parts: object, sep: str = " ") -> None:
        self.write(sep.join(str(p) for p in parts) + "\n")

    @contextlib.contextmanager
    def raw_mode(self) -> Iterator[None]:
        """Disables line buffering and echo; output post-processing stays on."""
        fd = self.stdin.fileno()
        saved = termios.tcgetattr(fd)
        try:
            tty.setraw(fd, when=termios.TCSANOW)
            attrs = termios.tcgetattr(fd)
            attrs[1] |= termios.OPOST
            termios.tcsetattr(fd, termios.TCSANOW, attrs)
            yield
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, saved)

    @contextlib.contextmanager
    def alternate_screen(self) -> Iterator[None]:
        if not self.output_is_tty:
            yield
            return
        self.write(ALT_SCREEN_ON)
        try:
            yield
        finally:
            self.write(ALT_SCREEN_OFF)

    def draw_frame(self, lines: Sequence[str]) -> None:
        """Writes a whole frame in a single call, clearing first on a TTY."""
        body = "\n".join(lines)
        if self.output_is_tty:
            self.write(CLEAR_SCREEN + CURSOR_HOME + body)
        else:
            self.write(body + "\n")

    async def wait_for_enter(self, key_source: KeySource) -> None:
        """Blocks until any key. Ctrl-C raises UserAbort; no-op off a TTY."""
        if not self.is_interactive:
            return
        with self.raw_mode():
            async with contextlib.aclosing(key_source.keys()) as keys:
                async for key in keys:
                    if key.kind is KeyKind.INTERRUPT:
                        raise UserAbort()
                    return

    async def question(self, prompt: str) -> str:
        """
        Line-buffered prompt. End of input yields an empty answer.

        Reads on the event loop; cancelling the prompt (Ctrl-C) returns
        immediately. Streams the loop cannot poll (StringIO, regular files)
        are read directly.
        """
        self.write(prompt)
        fd = _fileno(self.stdin)
        if fd is None:
            return self.stdin.readline().rstrip("\r\n")

        loop = asyncio.get_running_loop()
        line_ready = loop.create_future()

        def on_readable() -> None:
            try:
                data = os.read(fd, _READ_CHUNK)
            except OSError:
                logger.warning("stdin read failed; treating as end of input", exc_info=True)
                data = b""
            self._pending.extend(data)
            if (not data or b"\n" in self._pending) and not line_ready.done():
                line_ready.set_result(None)

        if b"\n" not in self._pending:
            try:
                loop.add_reader(fd, on_readable)
            except PermissionError:
                # regular files cannot be registered with epoll
                return self.stdin.readline().rstrip("\r\n")
            try:
                await line_ready
            finally:
                loop.remove_reader(fd)

        raw, newline, rest = bytes(self._pending).partition(b"\n")
        self._pending = bytearray(rest)
        if not newline:
            # end of input: hand back what was typed
            self._pending.clear()
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")


def _fileno(stream: object) -> Optional[int]:
    """The OS descriptor behind a stream, or None for in-memory streams."""
    fileno = getattr(stream, "fileno", None)
    if fileno is None:
        return None
    try:
        return fileno()
    except (OSError, ValueError):
        # io.UnsupportedOperation is an OSError
        return None


def _isatty(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if isatty is None:
        return False
    try:
        return bool(isatty())
    except ValueError:
        # closed stream
        return False
