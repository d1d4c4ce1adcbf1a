import pytest

from ui.ansi import color_enabled, set_color_enabled


@pytest.fixture(autouse=True)
def plain_output():
    """Assertions match plain text; colour codes are switched off."""
    previous = color_enabled()
    set_color_enabled(False)
    yield
    set_color_enabled(previous)
