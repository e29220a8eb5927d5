"""
Per-entity stores for the content hierarchy.

Every entity gets the same five operations (create, list_by_parent, get,
update, delete) from EntityStore, parameterized by the entity's TableSpec
and pydantic models. Rows are addressed by natural key, so no lookup ever
needs a join.

Checks run in this order: validation (nothing touched yet), then parent and
identity pre-checks inside the write transaction (NotFound), with SQLite's
own constraints as the final backstop (ConstraintViolation).
"""

import datetime as dt
import logging
import sqlite3
from typing import Any, Dict, Generic, List, Mapping, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel

from tracker.data.db import Database, Transaction
from tracker.data.models import (
    Arc,
    ArcUpdate,
    Chapter,
    ChapterUpdate,
    Episode,
    EpisodeUpdate,
    NewArc,
    NewChapter,
    NewEpisode,
    NewPart,
    NewTimeline,
    Part,
    PartUpdate,
    Timeline,
    TimelineUpdate,
)
from tracker.data.schema import ARC, CHAPTER, EPISODE, PART, TABLES, TIMELINE, ForeignKeySpec, TableSpec
from tracker.data.validation import parse
from tracker.errors import ConstraintViolation, NotFound

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)
Payload = Union[BaseModel, Mapping[str, Any]]
Handle = Union[Database, Transaction]


def _to_column(value: Any) -> Any:
    if isinstance(value, dt.date):
        return value.isoformat()
    return value


class EntityStore(Generic[R]):
    """CRUD over one hierarchy table."""

    spec: TableSpec
    record_cls: Type[R]
    create_cls: Type[BaseModel]
    update_cls: Type[BaseModel]

    def __init__(self, db: Database):
        self.db = db

    # -------- helpers --------

    @property
    def entity(self) -> str:
        return self.spec.entity

    @staticmethod
    def _where(columns: Sequence[str]) -> str:
        return " AND ".join(f"{column} = ?" for column in columns)

    def _order_by(self) -> str:
        if "number" in self.spec.key:
            return "number ASC"
        if "number" in self.spec.columns:
            # Arc: number is not unique, ties fall back to the key
            return "number ASC, " + ", ".join(f"{c} ASC" for c in self.spec.key)
        return ", ".join(f"{c} ASC" for c in self.spec.key)

    def _identity(self, key: Sequence[Any]) -> Dict[str, Any]:
        return dict(zip(self.spec.key, key))

    def _check_arity(self, values: Sequence[Any], expected: Sequence[str]) -> None:
        if len(values) != len(expected):
            raise TypeError(
                f"{self.entity} expects {len(expected)} identity values "
                f"({', '.join(expected)}), got {len(values)}"
            )

    def _to_record(self, row: Any) -> R:
        return self.record_cls.model_validate(dict(row))

    async def _fetch(self, handle: Handle, key: Sequence[Any]) -> Optional[Any]:
        return await handle.fetch_one(
            f"SELECT * FROM {self.spec.table} WHERE {self._where(self.spec.key)}",
            [_to_column(v) for v in key],
        )

    async def _require_parent(self, txn: Transaction, fk: ForeignKeySpec, row: Mapping[str, Any]) -> None:
        values = [row[column] for column in fk.columns]
        if any(value is None for value in values):
            # Only the optional Chapter -> Part edge can be unset
            return
        found = await txn.fetch_one(
            f"SELECT 1 FROM {fk.parent_table} WHERE {self._where(fk.parent_columns)}",
            values,
        )
        if found is None:
            parent = TABLES[fk.parent_table]
            raise NotFound(parent.entity, dict(zip(fk.parent_columns, values)))

    # -------- operations --------

    async def create(self, data: Payload) -> R:
        """Validate, check the parent path, insert, and return the stored row."""
        record = parse(self.create_cls, data, self.entity)
        row = {column: _to_column(value) for column, value in record.model_dump().items()}
        key = [row[column] for column in self.spec.key]
        columns = self.spec.columns

        try:
            async with self.db.transaction() as txn:
                for fk in self.spec.foreign_keys:
                    await self._require_parent(txn, fk, row)
                await txn.execute(
                    f"INSERT INTO {self.spec.table} ({', '.join(columns)}) "
                    f"VALUES ({', '.join(['?'] * len(columns))})",
                    [row[column] for column in columns],
                )
                stored = await self._fetch(txn, key)
        except sqlite3.IntegrityError as e:
            raise ConstraintViolation(self.entity, str(e)) from e

        logger.debug(f"[HierarchyStore] Created {self.entity} {self._identity(key)}")
        return self._to_record(stored)

    async def list_by_parent(self, *parent: Any) -> List[R]:
        """Children of one parent, ascending by number. Empty if the parent is gone."""
        self._check_arity(parent, self.spec.parent_key)
        query = f"SELECT * FROM {self.spec.table}"
        if parent:
            query += f" WHERE {self._where(self.spec.parent_key)}"
        query += f" ORDER BY {self._order_by()}"
        rows = await self.db.fetch_all(query, [_to_column(v) for v in parent])
        return [self._to_record(row) for row in rows]

    async def get(self, *key: Any) -> R:
        self._check_arity(key, self.spec.key)
        row = await self._fetch(self.db, key)
        if row is None:
            raise NotFound(self.entity, self._identity(key))
        return self._to_record(row)

    async def update(self, *key: Any, changes: Payload) -> R:
        """
        Apply a partial update and return the refreshed row.

        Omitted fields keep their stored values. Changing a key column
        renames the row; ON UPDATE CASCADE carries the new key into every
        descendant.
        """
        self._check_arity(key, self.spec.key)
        update = parse(self.update_cls, changes, self.entity)
        fields = {column: _to_column(value) for column, value in update.changes().items()}

        try:
            async with self.db.transaction() as txn:
                current = await self._fetch(txn, key)
                if current is None:
                    raise NotFound(self.entity, self._identity(key))
                if not fields:
                    return self._to_record(current)

                merged = {**dict(current), **fields}
                for fk in self.spec.foreign_keys:
                    if any(column in fields for column in fk.columns):
                        await self._require_parent(txn, fk, merged)

                assignments = ", ".join(f"{column} = ?" for column in fields)
                await txn.execute(
                    f"UPDATE {self.spec.table} "
                    f"SET {assignments}, updated_at = CURRENT_TIMESTAMP "
                    f"WHERE {self._where(self.spec.key)}",
                    [*fields.values(), *[_to_column(v) for v in key]],
                )
                stored = await self._fetch(txn, [merged[column] for column in self.spec.key])
        except sqlite3.IntegrityError as e:
            raise ConstraintViolation(self.entity, str(e)) from e

        logger.debug(f"[HierarchyStore] Updated {self.entity} {self._identity(key)}: {sorted(fields)}")
        return self._to_record(stored)

    async def delete(self, *key: Any) -> None:
        """Delete one row; the store cascades the delete to every descendant."""
        self._check_arity(key, self.spec.key)
        deleted = await self.db.execute(
            f"DELETE FROM {self.spec.table} WHERE {self._where(self.spec.key)}",
            [_to_column(v) for v in key],
        )
        if deleted == 0:
            raise NotFound(self.entity, self._identity(key))
        logger.debug(f"[HierarchyStore] Deleted {self.entity} {self._identity(key)}")


class TimelineStore(EntityStore[Timeline]):
    spec = TIMELINE
    record_cls = Timeline
    create_cls = NewTimeline
    update_cls = TimelineUpdate


class ArcStore(EntityStore[Arc]):
    spec = ARC
    record_cls = Arc
    create_cls = NewArc
    update_cls = ArcUpdate


class EpisodeStore(EntityStore[Episode]):
    spec = EPISODE
    record_cls = Episode
    create_cls = NewEpisode
    update_cls = EpisodeUpdate


class PartStore(EntityStore[Part]):
    spec = PART
    record_cls = Part
    create_cls = NewPart
    update_cls = PartUpdate


class ChapterStore(EntityStore[Chapter]):
    spec = CHAPTER
    record_cls = Chapter
    create_cls = NewChapter
    update_cls = ChapterUpdate

    async def list_by_parent(self, *parent: Any, part_number: Optional[int] = None) -> List[Chapter]:
        """Chapters of an episode, optionally only those inside one part."""
        if part_number is None:
            return await super().list_by_parent(*parent)
        self._check_arity(parent, self.spec.parent_key)
        rows = await self.db.fetch_all(
            f"SELECT * FROM {self.spec.table} "
            f"WHERE {self._where(self.spec.parent_key)} AND part_number = ? "
            f"ORDER BY {self._order_by()}",
            [*parent, part_number],
        )
        return [self._to_record(row) for row in rows]


__all__ = [
    "ArcStore",
    "ChapterStore",
    "EntityStore",
    "EpisodeStore",
    "PartStore",
    "TimelineStore",
]
