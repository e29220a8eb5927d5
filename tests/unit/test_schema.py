import pytest
import pytest_asyncio

from tracker.data.db import Database
from tracker.data.migrations import MigrationRunner
from tracker.data.schema import ARC, CHAPTER, HIERARCHY, TIMELINE, check_integrity, hierarchy_counts, verify_schema
from tracker.errors import ErrorCode, SchemaError


@pytest_asyncio.fixture
async def db():
    async with Database(":memory:") as database:
        await MigrationRunner(database).run()
        yield database


def test_table_specs_describe_the_chain():
    assert [spec.table for spec in HIERARCHY] == ["timeline", "arc", "episode", "part", "chapter"]
    assert TIMELINE.parent_fk is None
    assert ARC.parent_key == ("timeline_name",)
    assert CHAPTER.parent_key == ("timeline_name", "arc_name", "episode_number")
    assert CHAPTER.all_columns[-2:] == ("created_at", "updated_at")


@pytest.mark.asyncio
async def test_migrated_schema_verifies(db):
    await verify_schema(db)


@pytest.mark.asyncio
async def test_empty_database_fails_verification():
    async with Database(":memory:") as empty:
        with pytest.raises(SchemaError) as exc_info:
            await verify_schema(empty)

    error = exc_info.value
    assert error.code == ErrorCode.SCHEMA_INVALID
    assert len(error.problems) == len(HIERARCHY)
    assert all(p.endswith("table missing") for p in error.problems)


@pytest.mark.asyncio
async def test_non_cascading_foreign_key_is_reported(db):
    await db.execute("DROP TABLE chapter")
    await db.execute("DROP TABLE part")
    await db.execute("DROP TABLE episode")
    await db.execute("DROP TABLE arc")
    await db.execute(
        """
        CREATE TABLE arc (
            timeline_name TEXT NOT NULL,
            name TEXT NOT NULL,
            number INTEGER NOT NULL,
            description TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (timeline_name, name),
            FOREIGN KEY (timeline_name) REFERENCES timeline (name)
        )
        """
    )

    with pytest.raises(SchemaError) as exc_info:
        await verify_schema(db)

    problems = exc_info.value.problems
    assert "arc(timeline_name) -> timeline: ON DELETE NO ACTION, expected CASCADE" in problems
    assert "episode: table missing" in problems


@pytest.mark.asyncio
async def test_unindexed_foreign_key_is_reported(db):
    await db.execute("DROP INDEX idx_chapter_part")

    with pytest.raises(SchemaError) as exc_info:
        await verify_schema(db)

    assert exc_info.value.problems == [
        "chapter(timeline_name, arc_name, episode_number, part_number) -> part: "
        "no index on foreign key columns"
    ]


@pytest.mark.asyncio
async def test_missing_column_is_reported(db):
    await MigrationRunner(db).rollback_to(1, allow_irreversible=True)

    with pytest.raises(SchemaError) as exc_info:
        await verify_schema(db)

    assert exc_info.value.problems == ["chapter.summary: column missing"]


@pytest.mark.asyncio
async def test_check_integrity_finds_orphans(db):
    assert await check_integrity(db) == []

    await db.execute("PRAGMA foreign_keys=OFF")
    await db.execute("INSERT INTO arc (timeline_name, name, number, description) VALUES ('ghost', 'a', 1, '')")
    await db.execute("PRAGMA foreign_keys=ON")

    orphans = await check_integrity(db)
    assert len(orphans) == 1
    assert orphans[0]["table"] == "arc"
    assert orphans[0]["parent"] == "timeline"


@pytest.mark.asyncio
async def test_hierarchy_counts(db):
    await db.execute("INSERT INTO timeline (name, description) VALUES ('main', '')")
    counts = await hierarchy_counts(db)
    assert counts == {"timeline": 1, "arc": 0, "episode": 0, "part": 0, "chapter": 0}
