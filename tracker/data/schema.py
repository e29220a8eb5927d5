"""
Hierarchy schema model: table metadata and cascade invariant checks.

The five content tables form a chain in which every child copies its
parent's full natural key:

    timeline(name)
      arc(timeline_name, name)
        episode(timeline_name, arc_name, number)
          part(timeline_name, arc_name, episode_number, number)
          chapter(timeline_name, arc_name, episode_number, number)
              -> part via (..., part_number), nullable

The DDL lives in the migrations; this module describes the schema as it
stands after the latest migration, drives the entity stores, and verifies
that a live database actually enforces the cascade model.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from tracker.errors import SchemaError

logger = logging.getLogger(__name__)

TIMESTAMP_COLUMNS = ("created_at", "updated_at")


class QueryHandle(Protocol):
    """Anything that can run read queries: a Database or a Transaction."""

    async def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[Any]: ...


@dataclass(frozen=True)
class ForeignKeySpec:
    columns: Tuple[str, ...]
    parent_table: str
    parent_columns: Tuple[str, ...]
    optional: bool = False


@dataclass(frozen=True)
class TableSpec:
    entity: str
    table: str
    key: Tuple[str, ...]
    # Writable columns, key included, in insert order
    columns: Tuple[str, ...]
    nullable: Tuple[str, ...] = ()
    foreign_keys: Tuple[ForeignKeySpec, ...] = ()

    @property
    def parent_fk(self) -> Optional[ForeignKeySpec]:
        """The mandatory edge to the parent level (None for the root)."""
        for fk in self.foreign_keys:
            if not fk.optional:
                return fk
        return None

    @property
    def parent_key(self) -> Tuple[str, ...]:
        fk = self.parent_fk
        return fk.columns if fk else ()

    @property
    def all_columns(self) -> Tuple[str, ...]:
        return self.columns + TIMESTAMP_COLUMNS


TIMELINE = TableSpec(
    entity="Timeline",
    table="timeline",
    key=("name",),
    columns=("name", "description"),
    nullable=("description",),
)

ARC = TableSpec(
    entity="Arc",
    table="arc",
    key=("timeline_name", "name"),
    columns=("timeline_name", "name", "number", "description"),
    nullable=("description",),
    foreign_keys=(
        ForeignKeySpec(("timeline_name",), "timeline", ("name",)),
    ),
)

EPISODE = TableSpec(
    entity="Episode",
    table="episode",
    key=("timeline_name", "arc_name", "number"),
    columns=("timeline_name", "arc_name", "number", "slug", "title", "description"),
    nullable=("description",),
    foreign_keys=(
        ForeignKeySpec(("timeline_name", "arc_name"), "arc", ("timeline_name", "name")),
    ),
)

PART = TableSpec(
    entity="Part",
    table="part",
    key=("timeline_name", "arc_name", "episode_number", "number"),
    columns=(
        "timeline_name", "arc_name", "episode_number", "number",
        "slug", "title", "description",
    ),
    nullable=("description",),
    foreign_keys=(
        ForeignKeySpec(
            ("timeline_name", "arc_name", "episode_number"),
            "episode",
            ("timeline_name", "arc_name", "number"),
        ),
    ),
)

CHAPTER = TableSpec(
    entity="Chapter",
    table="chapter",
    key=("timeline_name", "arc_name", "episode_number", "number"),
    columns=(
        "timeline_name", "arc_name", "episode_number", "part_number", "number",
        "pov", "title", "date", "summary", "location", "outfit", "kink",
        "words", "characters", "characters_no_spaces", "paragraphs", "sentences",
        "reading_time_minutes",
    ),
    nullable=("part_number", "outfit", "kink"),
    foreign_keys=(
        ForeignKeySpec(
            ("timeline_name", "arc_name", "episode_number"),
            "episode",
            ("timeline_name", "arc_name", "number"),
        ),
        ForeignKeySpec(
            ("timeline_name", "arc_name", "episode_number", "part_number"),
            "part",
            ("timeline_name", "arc_name", "episode_number", "number"),
            optional=True,
        ),
    ),
)

# Root first; deleting a row removes rows of every later table beneath it
HIERARCHY: Tuple[TableSpec, ...] = (TIMELINE, ARC, EPISODE, PART, CHAPTER)
TABLES: Dict[str, TableSpec] = {spec.table: spec for spec in HIERARCHY}


@dataclass
class _LiveForeignKey:
    parent_table: str
    on_delete: str
    columns: List[str] = field(default_factory=list)


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


async def _live_foreign_keys(handle: QueryHandle, table: str) -> List[_LiveForeignKey]:
    rows = await handle.fetch_all(f"PRAGMA foreign_key_list({_quote(table)})")
    grouped: Dict[int, _LiveForeignKey] = {}
    ordered = sorted(rows, key=lambda r: (r["id"], r["seq"]))
    for row in ordered:
        fk = grouped.setdefault(
            row["id"], _LiveForeignKey(parent_table=row["table"], on_delete=row["on_delete"])
        )
        fk.columns.append(row["from"])
    return list(grouped.values())


async def _live_indexes(handle: QueryHandle, table: str) -> List[List[str]]:
    indexes = []
    for index in await handle.fetch_all(f"PRAGMA index_list({_quote(table)})"):
        info = await handle.fetch_all(f"PRAGMA index_info({_quote(index['name'])})")
        indexes.append([r["name"] for r in sorted(info, key=lambda r: r["seqno"])])
    return indexes


async def verify_schema(handle: QueryHandle) -> None:
    """
    Check the live database against the hierarchy model.

    Every table must exist with its columns, every parent edge must be a
    foreign key declaring ON DELETE CASCADE, and every foreign key's columns
    must lead some index. Raises SchemaError listing all problems found.
    """
    problems: List[str] = []

    existing = {
        row["name"]
        for row in await handle.fetch_all("SELECT name FROM sqlite_master WHERE type = 'table'")
    }

    for spec in HIERARCHY:
        if spec.table not in existing:
            problems.append(f"{spec.table}: table missing")
            continue

        live_columns = {
            row["name"] for row in await handle.fetch_all(f"PRAGMA table_info({_quote(spec.table)})")
        }
        for column in spec.all_columns:
            if column not in live_columns:
                problems.append(f"{spec.table}.{column}: column missing")

        live_fks = await _live_foreign_keys(handle, spec.table)
        indexes = await _live_indexes(handle, spec.table)

        for expected in spec.foreign_keys:
            match = next(
                (
                    fk for fk in live_fks
                    if fk.parent_table == expected.parent_table
                    and tuple(fk.columns) == expected.columns
                ),
                None,
            )
            label = f"{spec.table}({', '.join(expected.columns)}) -> {expected.parent_table}"
            if match is None:
                problems.append(f"{label}: foreign key missing")
                continue
            if match.on_delete.upper() != "CASCADE":
                problems.append(f"{label}: ON DELETE {match.on_delete}, expected CASCADE")
            width = len(expected.columns)
            if not any(tuple(cols[:width]) == expected.columns for cols in indexes):
                problems.append(f"{label}: no index on foreign key columns")

    if problems:
        for problem in problems:
            logger.error(f"[Schema] {problem}")
        raise SchemaError(problems)

    logger.debug("[Schema] Hierarchy verified")


async def check_integrity(handle: QueryHandle) -> List[Dict[str, Any]]:
    """Rows whose parent is missing, per PRAGMA foreign_key_check. Empty when healthy."""
    rows = await handle.fetch_all("PRAGMA foreign_key_check")
    return [
        {"table": row[0], "rowid": row[1], "parent": row[2], "fk_id": row[3]}
        for row in rows
    ]


async def hierarchy_counts(handle: QueryHandle) -> Dict[str, int]:
    """Row count per hierarchy table."""
    counts: Dict[str, int] = defaultdict(int)
    for spec in HIERARCHY:
        rows = await handle.fetch_all(f"SELECT COUNT(*) FROM {spec.table}")
        counts[spec.table] = rows[0][0]
    return dict(counts)


__all__ = [
    "ARC",
    "CHAPTER",
    "EPISODE",
    "HIERARCHY",
    "PART",
    "TABLES",
    "TIMELINE",
    "ForeignKeySpec",
    "TableSpec",
    "check_integrity",
    "hierarchy_counts",
    "verify_schema",
]
