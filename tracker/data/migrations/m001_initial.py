"""
001 - Initial hierarchy schema.

Creates the five content tables keyed by natural composite keys. Each child
references its parent's full key with ON DELETE CASCADE (deletes fan out
through the database, never through application code) and ON UPDATE CASCADE
(renaming an ancestor rewrites the copied key columns in every descendant).

Chapter is created with an `excerpt` column; 002 renames it to `summary`.
"""

from tracker.data.db import Transaction
from tracker.data.migrations.migration_runner import Migration

_TIMESTAMPS = """
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
"""

STATEMENTS = [
    f"""
    CREATE TABLE timeline (
        name TEXT NOT NULL PRIMARY KEY,
        description TEXT,
        {_TIMESTAMPS}
    )
    """,
    f"""
    CREATE TABLE arc (
        timeline_name TEXT NOT NULL,
        name TEXT NOT NULL,
        number INTEGER NOT NULL,
        description TEXT,
        {_TIMESTAMPS},
        PRIMARY KEY (timeline_name, name),
        FOREIGN KEY (timeline_name) REFERENCES timeline (name)
            ON DELETE CASCADE ON UPDATE CASCADE
    )
    """,
    f"""
    CREATE TABLE episode (
        timeline_name TEXT NOT NULL,
        arc_name TEXT NOT NULL,
        number INTEGER NOT NULL,
        slug TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        {_TIMESTAMPS},
        PRIMARY KEY (timeline_name, arc_name, number),
        FOREIGN KEY (timeline_name, arc_name) REFERENCES arc (timeline_name, name)
            ON DELETE CASCADE ON UPDATE CASCADE
    )
    """,
    f"""
    CREATE TABLE part (
        timeline_name TEXT NOT NULL,
        arc_name TEXT NOT NULL,
        episode_number INTEGER NOT NULL,
        number INTEGER NOT NULL,
        slug TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        {_TIMESTAMPS},
        PRIMARY KEY (timeline_name, arc_name, episode_number, number),
        FOREIGN KEY (timeline_name, arc_name, episode_number)
            REFERENCES episode (timeline_name, arc_name, number)
            ON DELETE CASCADE ON UPDATE CASCADE
    )
    """,
    # part_number is the one optional edge: while NULL, SQLite skips the
    # composite FK; once set, deleting the Part deletes the Chapter.
    f"""
    CREATE TABLE chapter (
        timeline_name TEXT NOT NULL,
        arc_name TEXT NOT NULL,
        episode_number INTEGER NOT NULL,
        part_number INTEGER,
        number INTEGER NOT NULL,
        pov TEXT NOT NULL,
        title TEXT NOT NULL,
        date TEXT NOT NULL,
        excerpt TEXT NOT NULL,
        location TEXT NOT NULL,
        outfit TEXT,
        kink TEXT,
        words INTEGER NOT NULL DEFAULT 0,
        characters INTEGER NOT NULL DEFAULT 0,
        characters_no_spaces INTEGER NOT NULL DEFAULT 0,
        paragraphs INTEGER NOT NULL DEFAULT 0,
        sentences INTEGER NOT NULL DEFAULT 0,
        reading_time_minutes INTEGER NOT NULL DEFAULT 0,
        {_TIMESTAMPS},
        PRIMARY KEY (timeline_name, arc_name, episode_number, number),
        FOREIGN KEY (timeline_name, arc_name, episode_number)
            REFERENCES episode (timeline_name, arc_name, number)
            ON DELETE CASCADE ON UPDATE CASCADE,
        FOREIGN KEY (timeline_name, arc_name, episode_number, part_number)
            REFERENCES part (timeline_name, arc_name, episode_number, number)
            ON DELETE CASCADE ON UPDATE CASCADE
    )
    """,
    # Listing filters by parent key and sorts by number. Episode, Part and
    # Chapter primary keys already have that shape; Arc's key ends in name.
    "CREATE INDEX idx_arc_timeline_number ON arc (timeline_name, number)",
    """
    CREATE INDEX idx_chapter_part
    ON chapter (timeline_name, arc_name, episode_number, part_number)
    """,
]


async def up(txn: Transaction) -> None:
    for statement in STATEMENTS:
        await txn.execute(statement)


async def down(txn: Transaction) -> None:
    # Children first so no drop has to cascade
    for table in ("chapter", "part", "episode", "arc", "timeline"):
        await txn.execute(f"DROP TABLE IF EXISTS {table}")


MIGRATION = Migration(version=1, name="initial", apply=up, revert=down)
