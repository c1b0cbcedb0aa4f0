"""Shared test fixtures for Streakline tests."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
import yaml

from streakline.clock import Clock
from streakline.store import FileStore, MemoryStore

UTC = ZoneInfo("UTC")

# 2026-02-08 and 2026-02-15 are Sundays.
WEDNESDAY_NOON = datetime(2026, 2, 11, 12, 0, tzinfo=UTC)


class FakeClock(Clock):
    """Clock whose "now" is set by the test."""

    def __init__(self, now: datetime, tz: ZoneInfo = UTC) -> None:
        super().__init__(tz, now_fn=lambda: self.current)
        self.current = now

    def set(self, now: datetime) -> None:
        self.current = now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(WEDNESDAY_NOON)


@pytest.fixture
def make_clock():
    """Factory for clocks at other instants or zones."""
    return FakeClock


@pytest.fixture
def memory_store() -> MemoryStore:
    store = MemoryStore()
    store.create_state("alice")
    return store


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with a config file."""
    root = tmp_path / "workspace"
    (root / "users").mkdir(parents=True)

    config = {
        "timezone": "UTC",
        "classifier": {"model": "gemini-2.5-flash", "timeout_seconds": 5},
        "streaks": {"reset_on_gap": False},
    }
    (root / "config.yaml").write_text(
        yaml.dump(config, default_flow_style=False), encoding="utf-8"
    )

    # Set env vars
    os.environ["STREAKLINE_ROOT"] = str(root)
    previous_key = os.environ.pop("GEMINI_API_KEY", None)
    yield root
    # Cleanup
    if "STREAKLINE_ROOT" in os.environ:
        del os.environ["STREAKLINE_ROOT"]
    if previous_key is not None:
        os.environ["GEMINI_API_KEY"] = previous_key


@pytest.fixture
def file_store(workspace: Path) -> FileStore:
    store = FileStore(workspace)
    store.create_state("alice")
    return store
