"""
Unit tests for the input/record models and the parse helper.

Verifies:
1. Required fields, bounds and slug format are enforced.
2. Update payloads distinguish "omitted" from "cleared".
3. Chapter dates are normalized to calendar dates.
"""

import datetime as dt

import pytest
from pydantic import ValidationError

from tracker.data.models import ArcUpdate, ChapterUpdate, NewArc, NewChapter, NewEpisode, TimelineUpdate
from tracker.data.validation import parse
from tracker.errors import ErrorCode, ValidationFailure


def _chapter(**overrides):
    data = {
        "timeline_name": "main",
        "arc_name": "prologue",
        "episode_number": 1,
        "number": 1,
        "pov": "Alice",
        "title": "Arrival",
        "date": "2024-01-01",
        "summary": "She arrives.",
        "location": "Harbor",
    }
    data.update(overrides)
    return data


def test_new_chapter_defaults():
    chapter = NewChapter.model_validate(_chapter())
    assert chapter.part_number is None
    assert chapter.outfit is None
    assert chapter.kink is None
    assert chapter.words == 0
    assert chapter.reading_time_minutes == 0
    assert chapter.date == dt.date(2024, 1, 1)


@pytest.mark.parametrize(
    "raw",
    ["2024-03-05T14:22:00Z", "2024-03-05T14:22:00", "2024-03-05 14:22:00", dt.datetime(2024, 3, 5, 14, 22), "2024-03-05"],
)
def test_chapter_date_is_truncated_to_calendar_date(raw):
    chapter = NewChapter.model_validate(_chapter(date=raw))
    assert chapter.date == dt.date(2024, 3, 5)


def test_negative_number_rejected():
    with pytest.raises(ValidationError):
        NewArc.model_validate({"timeline_name": "main", "name": "a", "number": -1, "description": ""})


def test_unknown_fields_rejected():
    with pytest.raises(ValidationError):
        NewArc.model_validate(
            {"timeline_name": "main", "name": "a", "number": 1, "description": "", "created_at": "x"}
        )


@pytest.mark.parametrize("slug", ["Upper", "two  spaces", "-leading", "trailing-", ""])
def test_bad_slug_rejected(slug):
    with pytest.raises(ValidationError):
        NewEpisode.model_validate(
            {
                "timeline_name": "main",
                "arc_name": "prologue",
                "number": 1,
                "slug": slug,
                "title": "T",
                "description": "",
            }
        )


def test_update_changes_only_include_set_fields():
    update = ArcUpdate.model_validate({"description": "new"})
    assert update.changes() == {"description": "new"}


def test_update_rejects_null_for_required_column():
    with pytest.raises(ValidationError):
        TimelineUpdate.model_validate({"name": None})


def test_description_is_optional_and_clearable():
    assert NewArc.model_validate({"timeline_name": "main", "name": "a", "number": 1}).description is None
    assert ArcUpdate.model_validate({"description": None}).changes() == {"description": None}


def test_chapter_update_allows_clearing_optional_columns():
    update = ChapterUpdate.model_validate({"outfit": None, "part_number": None})
    assert update.changes() == {"outfit": None, "part_number": None}


def test_parse_reports_every_offending_field():
    with pytest.raises(ValidationFailure) as exc_info:
        parse(NewChapter, _chapter(pov=None, number=-3), "Chapter")

    error = exc_info.value
    assert error.code == ErrorCode.VALIDATION_FAILED
    fields = {e["field"] for e in error.errors}
    assert {"pov", "number"} <= fields
    assert isinstance(error.__cause__, ValidationError)
    assert error.to_dict()["details"]["entity"] == "Chapter"


def test_parse_passes_model_instances_through():
    arc = NewArc(timeline_name="main", name="a", number=2, description="")
    assert parse(NewArc, arc, "Arc") is arc
