"""
Shared test fixtures.
"""

import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.events import EventLog
from core.logging import reset_logging


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    """Keep config loading away from the real home directory."""
    monkeypatch.setenv("STATIC_CHATTER_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("STATIC_CHATTER_DATA_DIR", str(tmp_path / "data"))
    for var in list(os.environ):
        if var.startswith("STATIC_CHATTER_") and var not in (
            "STATIC_CHATTER_CONFIG_DIR",
            "STATIC_CHATTER_DATA_DIR",
        ):
            monkeypatch.delenv(var)


@pytest.fixture(autouse=True)
def fresh_logging():
    """Drop handlers bound to captured streams between tests."""
    yield
    reset_logging()
