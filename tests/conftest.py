from __future__ import annotations

import json

import pytest

from viewscreen import ui
from viewscreen.events import parse_line
from viewscreen.state import config

_SETTINGS = ("verbose", "no_color", "show_usage", "no_tui", "debug", "width")


@pytest.fixture(autouse=True)
def plain_output():
    """Every test starts from default settings with ANSI colour off."""
    saved = {key: getattr(config, key) for key in _SETTINGS}
    for key in _SETTINGS:
        if key in vars(config):
            delattr(config, key)
    config.no_color = True
    ui.set_color(False)
    yield
    for key, value in saved.items():
        setattr(config, key, value)
    ui.set_color(True)


class FakeMarkdown:
    def __init__(self):
        self.width = 0

    def set_width(self, width: int):
        self.width = width

    def render(self, text: str) -> str:
        return f"<md>{text}</md>\n"


class FakeIndicator:
    def __init__(self):
        self.calls: list[str] = []

    def show(self):
        self.calls.append("show")

    def clear(self):
        self.calls.append("clear")


def line(**event) -> str:
    return json.dumps(event)


def event(**data):
    return parse_line(json.dumps(data))


@pytest.fixture
def fake_markdown() -> FakeMarkdown:
    return FakeMarkdown()


@pytest.fixture
def fake_indicator() -> FakeIndicator:
    return FakeIndicator()
