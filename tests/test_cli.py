import logging

import pytest

import run
from game.logger import setup_logging


@pytest.fixture
def restore_logging():
    """setup_logging() reconfigures the root logger; undo its file handler."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_join_flag_validates_room_id(capsys):
    with pytest.raises(SystemExit) as exc:
        run.main(["--join", "bad"])
    assert exc.value.code == 2
    assert "room id must be" in capsys.readouterr().err


def test_join_flag_normalises():
    args = run.build_parser().parse_args(["--join", "abcde"])
    assert args.join == "ABCDE"


def test_missing_config_exits_1(tmp_path, capsys):
    assert run.main(["--config", str(tmp_path / "missing.toml")]) == 1
    assert "Config file not found" in capsys.readouterr().err


def test_unloadable_engine_exits_1(tmp_path, capsys, restore_logging):
    config = tmp_path / "swordfight.toml"
    config.write_text('[engine]\nbackend = "no_such_engine_module:backend"\n')
    log_file = tmp_path / "logs" / "run.log"

    assert run.main(["--config", str(config), "--log-file", str(log_file)]) == 1

    assert "Failed to start game" in capsys.readouterr().out
    assert "Cannot import engine module" in log_file.read_text()


def test_setup_logging_levels(tmp_path, restore_logging):
    log_file = tmp_path / "nested" / "debug.log"
    setup_logging(str(log_file), "debug")
    assert logging.getLogger().level == logging.DEBUG
    logging.getLogger("swordfight.test").debug("hello from the test")
    assert "hello from the test" in log_file.read_text()

    setup_logging(str(log_file), "nonsense")
    assert logging.getLogger().level == logging.INFO
