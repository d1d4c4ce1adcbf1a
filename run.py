"""
SwordFight CLI — run.py
Main entry point: `swordfight [--join ROOM_ID] [--config PATH] [--log-file PATH] [--verbose]`.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure we can import the swordfight packages
project_root = Path(__file__).parent.resolve()
sys.path.insert(0, str(project_root))

from game.app import SwordfightApp
from game.config import ConfigError, load_config
from game.engine import EngineLoadError, load_backend
from game.logger import setup_logging
from game.multiplayer import normalize_room_id
from ui.ansi import red, set_color_enabled
from ui.terminal import Terminal, TerminalKeySource

logger = logging.getLogger("swordfight")


def _room_id(value):
    try:
        return normalize_room_id(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser():
    parser = argparse.ArgumentParser(
        prog="swordfight",
        description="Sword-fighting duels in your terminal.",
    )
    parser.add_argument("--join", metavar="ROOM_ID", type=_room_id,
                        help="join an existing multiplayer room directly")
    parser.add_argument("--config", metavar="PATH", type=Path,
                        help="path to a swordfight.toml config file")
    parser.add_argument("--log-file", metavar="PATH",
                        help="write diagnostics here (default from config)")
    parser.add_argument("--verbose", action="store_true",
                        help="log debug diagnostics")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"✗ {exc}", file=sys.stderr)
        return 1

    setup_logging(
        args.log_file or config.logging.file,
        logging.DEBUG if args.verbose else config.logging.level,
    )

    terminal = Terminal()
    set_color_enabled(config.display.color and terminal.output_is_tty)

    try:
        backend = load_backend(config.engine.backend)
    except EngineLoadError as exc:
        logger.error("%s", exc)
        terminal.print(red(f"✗ Failed to start game: {exc}"))
        return 1

    app = SwordfightApp(config, backend, terminal, TerminalKeySource(terminal), join_room=args.join)
    try:
        return asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0
    except Exception as exc:  # noqa: BLE001
        logger.exception("Fatal error")
        terminal.print(red(f"✗ {exc}"))
        return 1


if __name__ == "__main__":
    sys.exit(main())
