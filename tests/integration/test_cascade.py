"""
Integration tests for hierarchy cascades.

Deleting any level must remove everything beneath it, and renaming an
ancestor must carry the new key into every descendant, all without
leaving orphaned rows.
"""

import pytest

from tracker import NotFound


async def _populate(tracker, chapter_payload, timeline="main"):
    """Two arcs, each with an episode, one part and three chapters (two in the part)."""
    await tracker.create_timeline({"name": timeline, "description": ""})
    for number, arc in enumerate(("prologue", "finale"), start=1):
        await tracker.create_arc({"timeline_name": timeline, "name": arc, "number": number, "description": ""})
        await tracker.create_episode(
            {
                "timeline_name": timeline,
                "arc_name": arc,
                "number": 1,
                "slug": f"{arc}-one",
                "title": "One",
                "description": "",
            }
        )
        await tracker.create_part(
            {
                "timeline_name": timeline,
                "arc_name": arc,
                "episode_number": 1,
                "number": 1,
                "slug": "part-one",
                "title": "Part One",
                "description": "",
            }
        )
        for chapter in (1, 2, 3):
            await tracker.create_chapter(
                chapter_payload(
                    chapter,
                    timeline_name=timeline,
                    arc_name=arc,
                    part_number=1 if chapter < 3 else None,
                )
            )


@pytest.mark.asyncio
async def test_timeline_delete_leaves_no_orphans(tracker, chapter_payload):
    await _populate(tracker, chapter_payload, "main")
    await _populate(tracker, chapter_payload, "alt")

    await tracker.delete_timeline("main")

    counts = await tracker.counts()
    assert counts == {"timeline": 1, "arc": 2, "episode": 2, "part": 2, "chapter": 6}
    for table in ("arc", "episode", "part", "chapter"):
        rows = await tracker.db.fetch_all(f"SELECT 1 FROM {table} WHERE timeline_name = 'main'")
        assert rows == []
    assert await tracker.check_integrity() == []


@pytest.mark.asyncio
async def test_arc_delete_scenario(tracker, chapter_payload):
    await _populate(tracker, chapter_payload)

    await tracker.delete_arc("main", "prologue")

    with pytest.raises(NotFound):
        await tracker.get_arc("main", "prologue")
    with pytest.raises(NotFound):
        await tracker.get_episode("main", "prologue", 1)
    with pytest.raises(NotFound):
        await tracker.get_chapter("main", "prologue", 1, 1)
    assert await tracker.get_chapters("main", "prologue", 1) == []

    # The sibling arc is untouched
    assert [a.name for a in await tracker.get_arcs("main")] == ["finale"]
    assert len(await tracker.get_chapters("main", "finale", 1)) == 3


@pytest.mark.asyncio
async def test_episode_delete_removes_parts_and_chapters(tracker, chapter_payload):
    await _populate(tracker, chapter_payload)

    await tracker.delete_episode("main", "finale", 1)

    assert await tracker.get_parts("main", "finale", 1) == []
    assert await tracker.get_chapters("main", "finale", 1) == []
    assert len(await tracker.get_chapters("main", "prologue", 1)) == 3


@pytest.mark.asyncio
async def test_part_delete_cascades_to_its_chapters_only(tracker, chapter_payload):
    await _populate(tracker, chapter_payload)

    await tracker.delete_part("main", "prologue", 1, 1)

    remaining = await tracker.get_chapters("main", "prologue", 1)
    assert [c.number for c in remaining] == [3]
    assert remaining[0].part_number is None


@pytest.mark.asyncio
async def test_timeline_rename_cascades(tracker, chapter_payload):
    await _populate(tracker, chapter_payload)

    renamed = await tracker.update_timeline("main", {"name": "canon"})

    assert renamed.name == "canon"
    with pytest.raises(NotFound):
        await tracker.get_timeline("main")
    assert [a.name for a in await tracker.get_arcs("canon")] == ["prologue", "finale"]
    chapters = await tracker.get_chapters("canon", "prologue", 1, part_number=1)
    assert [c.timeline_name for c in chapters] == ["canon", "canon"]
    assert await tracker.check_integrity() == []


@pytest.mark.asyncio
async def test_arc_rename_cascades(tracker, chapter_payload):
    await _populate(tracker, chapter_payload)

    await tracker.update_arc("main", "prologue", {"name": "overture", "number": 0})

    assert [a.name for a in await tracker.get_arcs("main")] == ["overture", "finale"]
    assert len(await tracker.get_parts("main", "overture", 1)) == 1
    assert len(await tracker.get_chapters("main", "overture", 1)) == 3
    assert await tracker.get_chapters("main", "prologue", 1) == []


@pytest.mark.asyncio
async def test_episode_renumber_cascades(tracker, chapter_payload):
    await _populate(tracker, chapter_payload)

    moved = await tracker.update_episode("main", "finale", 1, {"number": 7})

    assert moved.number == 7
    parts = await tracker.get_parts("main", "finale", 7)
    assert [(p.episode_number, p.number) for p in parts] == [(7, 1)]
    assert len(await tracker.get_chapters("main", "finale", 7, part_number=1)) == 2


@pytest.mark.asyncio
async def test_part_renumber_moves_its_chapters(tracker, chapter_payload):
    await _populate(tracker, chapter_payload)

    await tracker.update_part("main", "prologue", 1, 1, {"number": 5})

    chapters = await tracker.get_chapters("main", "prologue", 1, part_number=5)
    assert [(c.number, c.part_number) for c in chapters] == [(1, 5), (2, 5)]
    assert await tracker.get_chapters("main", "prologue", 1, part_number=1) == []
