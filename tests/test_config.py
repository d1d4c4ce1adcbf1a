from pathlib import Path

import pytest

from game.config import AppConfig, ConfigError, load_config

EXAMPLE = Path(__file__).resolve().parent.parent / "swordfight.example.toml"


def test_missing_default_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = load_config()
    assert config == AppConfig()
    assert config.timing.selection_confirm_s == 0.2
    assert config.multiplayer.move_timeout_s == 600
    assert config.display.health_bar_length == 20


def test_example_file_matches_defaults():
    assert load_config(EXAMPLE) == AppConfig()


def test_partial_file_overrides(tmp_path):
    path = tmp_path / "swordfight.toml"
    path.write_text('[timing]\nsetup_delay_s = 0\n\n[display]\ncolor = false\n')
    config = load_config(path)
    assert config.timing.setup_delay_s == 0
    assert config.timing.round_reveal_s == [0.8, 1.0, 0.8, 0.6]
    assert config.display.color is False


def test_explicit_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.toml")


def test_invalid_toml(tmp_path):
    path = tmp_path / "bad.toml"
    path.write_text("[timing\n")
    with pytest.raises(ConfigError, match="Cannot read"):
        load_config(path)


def test_invalid_values(tmp_path):
    path = tmp_path / "bad.toml"
    path.write_text("[multiplayer]\nmove_timeout_s = -5\n")
    with pytest.raises(ConfigError, match="Invalid config"):
        load_config(path)
