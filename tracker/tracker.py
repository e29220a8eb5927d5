"""Tracker facade: one object owning the database handle and every entity store."""
#
# PURPOSE:
# The single entry point applications use. A Tracker opens the database,
# brings the schema up to date on request, and exposes create / list / get /
# update / delete for every hierarchy level.
#
# LIFECYCLE:
#   async with Tracker.open("story.db") as tracker:
#       await tracker.initialize_schema()
#       ...
#
# The storage location is always explicit: a file path or ":memory:".
#

import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Generator, List, Mapping, Optional, Union

from pydantic import BaseModel

from tracker.base.config import StorageConfig, TrackerConfig
from tracker.data.db import Database
from tracker.data.hierarchy_store import ArcStore, ChapterStore, EpisodeStore, PartStore, TimelineStore
from tracker.data.migrations.migration_runner import MigrationRunner
from tracker.data.models import Arc, Chapter, Episode, Part, Timeline
from tracker.data.schema import check_integrity, hierarchy_counts, verify_schema

logger = logging.getLogger(__name__)

Payload = Union[BaseModel, Mapping[str, Any]]


async def initialize_schema(db: Database, runner: Optional[MigrationRunner] = None) -> List[str]:
    """
    Bring a database to the latest schema and verify it.

    Applies every pending migration in order (a no-op when none are
    pending), then checks the cascade invariants. Returns the names of the
    units applied by this call.
    """
    runner = runner or MigrationRunner(db)
    applied = await runner.run()
    await verify_schema(db)
    return applied


class Tracker:
    """Data access for Timeline -> Arc -> Episode -> Part -> Chapter."""

    def __init__(self, db: Database):
        self.db = db
        self.timelines = TimelineStore(db)
        self.arcs = ArcStore(db)
        self.episodes = EpisodeStore(db)
        self.parts = PartStore(db)
        self.chapters = ChapterStore(db)

    @classmethod
    def open(cls, db_path: str, config: Optional[TrackerConfig] = None) -> "_OpenTracker":
        """
        Open a tracker on `db_path` (a file path or ":memory:").

        Works both as `tracker = await Tracker.open(...)` and as
        `async with Tracker.open(...) as tracker:`; the latter closes the
        tracker on every exit path. Connection tuning comes from
        `config.storage` when given; its db_path is replaced by the
        explicit argument.
        """
        storage = replace(config.storage if config else StorageConfig(), db_path=db_path)

        async def connect() -> "Tracker":
            db = await Database.open(db_path, storage)
            return cls(db)

        return _OpenTracker(connect)

    @classmethod
    async def from_config(cls, config: TrackerConfig) -> "Tracker":
        """Open the tracker named by config.storage.db_path."""
        return await cls.open(config.storage.require_db_path(), config)

    async def __aenter__(self) -> "Tracker":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.db.close()

    async def initialize_schema(self) -> List[str]:
        applied = await initialize_schema(self.db)
        logger.info(f"[Tracker] Schema ready ({len(applied)} migration(s) applied)")
        return applied

    init = initialize_schema

    async def check_integrity(self) -> List[Dict[str, Any]]:
        return await check_integrity(self.db)

    async def counts(self) -> Dict[str, int]:
        return await hierarchy_counts(self.db)

    # -------- Timeline --------

    async def create_timeline(self, data: Payload) -> Timeline:
        return await self.timelines.create(data)

    async def get_timelines(self) -> List[Timeline]:
        return await self.timelines.list_by_parent()

    async def get_timeline(self, name: str) -> Timeline:
        return await self.timelines.get(name)

    async def update_timeline(self, name: str, changes: Payload) -> Timeline:
        return await self.timelines.update(name, changes=changes)

    async def delete_timeline(self, name: str) -> None:
        await self.timelines.delete(name)

    # -------- Arc --------

    async def create_arc(self, data: Payload) -> Arc:
        return await self.arcs.create(data)

    async def get_arcs(self, timeline: str) -> List[Arc]:
        return await self.arcs.list_by_parent(timeline)

    async def get_arc(self, timeline: str, arc: str) -> Arc:
        return await self.arcs.get(timeline, arc)

    async def update_arc(self, timeline: str, arc: str, changes: Payload) -> Arc:
        return await self.arcs.update(timeline, arc, changes=changes)

    async def delete_arc(self, timeline: str, arc: str) -> None:
        await self.arcs.delete(timeline, arc)

    # -------- Episode --------

    async def create_episode(self, data: Payload) -> Episode:
        return await self.episodes.create(data)

    async def get_episodes(self, timeline: str, arc: str) -> List[Episode]:
        return await self.episodes.list_by_parent(timeline, arc)

    async def get_episode(self, timeline: str, arc: str, number: int) -> Episode:
        return await self.episodes.get(timeline, arc, number)

    async def update_episode(self, timeline: str, arc: str, number: int, changes: Payload) -> Episode:
        return await self.episodes.update(timeline, arc, number, changes=changes)

    async def delete_episode(self, timeline: str, arc: str, number: int) -> None:
        await self.episodes.delete(timeline, arc, number)

    # -------- Part --------

    async def create_part(self, data: Payload) -> Part:
        return await self.parts.create(data)

    async def get_parts(self, timeline: str, arc: str, episode: int) -> List[Part]:
        return await self.parts.list_by_parent(timeline, arc, episode)

    async def get_part(self, timeline: str, arc: str, episode: int, number: int) -> Part:
        return await self.parts.get(timeline, arc, episode, number)

    async def update_part(
        self, timeline: str, arc: str, episode: int, number: int, changes: Payload
    ) -> Part:
        return await self.parts.update(timeline, arc, episode, number, changes=changes)

    async def delete_part(self, timeline: str, arc: str, episode: int, number: int) -> None:
        await self.parts.delete(timeline, arc, episode, number)

    # -------- Chapter --------

    async def create_chapter(self, data: Payload) -> Chapter:
        return await self.chapters.create(data)

    async def get_chapters(
        self, timeline: str, arc: str, episode: int, part_number: Optional[int] = None
    ) -> List[Chapter]:
        return await self.chapters.list_by_parent(timeline, arc, episode, part_number=part_number)

    async def get_chapter(self, timeline: str, arc: str, episode: int, number: int) -> Chapter:
        return await self.chapters.get(timeline, arc, episode, number)

    async def update_chapter(
        self, timeline: str, arc: str, episode: int, number: int, changes: Payload
    ) -> Chapter:
        return await self.chapters.update(timeline, arc, episode, number, changes=changes)

    async def delete_chapter(self, timeline: str, arc: str, episode: int, number: int) -> None:
        await self.chapters.delete(timeline, arc, episode, number)


class _OpenTracker:
    """Pending open: awaitable, or usable directly with `async with`."""

    def __init__(self, connect: Callable[[], Awaitable[Tracker]]):
        self._connect = connect
        self._tracker: Optional[Tracker] = None

    def __await__(self) -> Generator[Any, None, Tracker]:
        return self._connect().__await__()

    async def __aenter__(self) -> Tracker:
        self._tracker = await self._connect()
        return self._tracker

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._tracker is not None:
            await self._tracker.close()


__all__ = ["Tracker", "initialize_schema"]
