"""Pytest configuration for Story Tracker."""
import datetime as dt

import pytest
import pytest_asyncio

from tracker import Tracker
from tracker.base.config import set_config


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    # Tests never pick up a developer's TRACKER_* environment
    for name in (
        "TRACKER_DB_PATH",
        "TRACKER_JOURNAL_MODE",
        "TRACKER_BUSY_TIMEOUT_MS",
        "TRACKER_BACKUPS",
        "TRACKER_MAX_BACKUPS",
        "TRACKER_LOG_LEVEL",
        "TRACKER_LOG_FILE",
        "TRACKER_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)
    set_config(None)
    yield
    set_config(None)


@pytest_asyncio.fixture
async def tracker():
    """In-memory tracker with the schema applied."""
    async with Tracker.open(":memory:") as t:
        await t.initialize_schema()
        yield t


@pytest_asyncio.fixture
async def story(tracker):
    """Tracker holding timeline "main" -> arc "prologue" -> episode 1."""
    await tracker.create_timeline({"name": "main", "description": "Main continuity"})
    await tracker.create_arc(
        {"timeline_name": "main", "name": "prologue", "number": 0, "description": "Before it all"}
    )
    await tracker.create_episode(
        {
            "timeline_name": "main",
            "arc_name": "prologue",
            "number": 1,
            "slug": "first-light",
            "title": "First Light",
            "description": "Opening episode",
        }
    )
    return tracker


@pytest.fixture
def chapter_payload():
    """Factory for a valid chapter dict under main/prologue/1."""

    def make(number: int = 1, **overrides):
        data = {
            "timeline_name": "main",
            "arc_name": "prologue",
            "episode_number": 1,
            "number": number,
            "pov": "Alice",
            "title": f"Chapter {number}",
            "date": dt.date(2024, 1, number),
            "summary": "Things happen.",
            "location": "Harbor",
        }
        data.update(overrides)
        return data

    return make
