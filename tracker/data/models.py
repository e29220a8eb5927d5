"""
Typed records for the content hierarchy.

Three shapes per entity:
- New*     : everything needed to create a row, parent path included
- *Update  : partial payload; only fields the caller sets are written
- records  : a row as read back, with store-assigned timestamps

Input models forbid unknown fields, so timestamps (and anything else the
store owns) can never be supplied by a caller.
"""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Any, ClassVar, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


def _to_calendar_date(value: Any) -> Any:
    # Dates are stored as YYYY-MM-DD; ISO timestamps ("T" or space separated)
    # lose their time part
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10 and value[10] in ("T", " "):
        return value[:10]
    return value


Name = Annotated[str, Field(min_length=1, max_length=200)]
Number = Annotated[int, Field(ge=0)]
Count = Annotated[int, Field(ge=0)]
Slug = Annotated[str, Field(min_length=1, max_length=200, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")]


class _Input(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _Update(_Input):
    """
    Partial update payload.

    Omitted fields stay untouched. Passing None explicitly is only allowed
    for columns listed in nullable_fields, where it clears the value.
    """

    nullable_fields: ClassVar[FrozenSet[str]] = frozenset()

    @field_validator("*")
    @classmethod
    def reject_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None and info.field_name not in cls.nullable_fields:
            raise ValueError("may not be null")
        return value

    def changes(self) -> Dict[str, Any]:
        """Only the fields the caller actually set."""
        return self.model_dump(exclude_unset=True)


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)

    created_at: str
    updated_at: str


# -------- Timeline --------

class NewTimeline(_Input):
    name: Name
    description: Optional[str] = None


class TimelineUpdate(_Update):
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset({"description"})

    name: Optional[Name] = None
    description: Optional[str] = None


class Timeline(_Record):
    name: str
    description: Optional[str] = None


# -------- Arc --------

class NewArc(_Input):
    timeline_name: Name
    name: Name
    number: Number
    description: Optional[str] = None


class ArcUpdate(_Update):
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset({"description"})

    name: Optional[Name] = None
    number: Optional[Number] = None
    description: Optional[str] = None


class Arc(_Record):
    timeline_name: str
    name: str
    number: int
    description: Optional[str] = None


# -------- Episode --------

class NewEpisode(_Input):
    timeline_name: Name
    arc_name: Name
    number: Number
    slug: Slug
    title: Name
    description: Optional[str] = None


class EpisodeUpdate(_Update):
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset({"description"})

    number: Optional[Number] = None
    slug: Optional[Slug] = None
    title: Optional[Name] = None
    description: Optional[str] = None


class Episode(_Record):
    timeline_name: str
    arc_name: str
    number: int
    slug: str
    title: str
    description: Optional[str] = None


# -------- Part --------

class NewPart(_Input):
    timeline_name: Name
    arc_name: Name
    episode_number: Number
    number: Number
    slug: Slug
    title: Name
    description: Optional[str] = None


class PartUpdate(_Update):
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset({"description"})

    number: Optional[Number] = None
    slug: Optional[Slug] = None
    title: Optional[Name] = None
    description: Optional[str] = None


class Part(_Record):
    timeline_name: str
    arc_name: str
    episode_number: int
    number: int
    slug: str
    title: str
    description: Optional[str] = None


# -------- Chapter --------

class NewChapter(_Input):
    timeline_name: Name
    arc_name: Name
    episode_number: Number
    part_number: Optional[Number] = None
    number: Number
    pov: str
    title: Name
    date: dt.date
    summary: str
    location: str
    outfit: Optional[str] = None
    kink: Optional[str] = None
    words: Count = 0
    characters: Count = 0
    characters_no_spaces: Count = 0
    paragraphs: Count = 0
    sentences: Count = 0
    reading_time_minutes: Count = 0

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, value: Any) -> Any:
        return _to_calendar_date(value)


class ChapterUpdate(_Update):
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset({"part_number", "outfit", "kink"})

    part_number: Optional[Number] = None
    number: Optional[Number] = None
    pov: Optional[str] = None
    title: Optional[Name] = None
    date: Optional[dt.date] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    outfit: Optional[str] = None
    kink: Optional[str] = None
    words: Optional[Count] = None
    characters: Optional[Count] = None
    characters_no_spaces: Optional[Count] = None
    paragraphs: Optional[Count] = None
    sentences: Optional[Count] = None
    reading_time_minutes: Optional[Count] = None

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, value: Any) -> Any:
        return _to_calendar_date(value)


class Chapter(_Record):
    timeline_name: str
    arc_name: str
    episode_number: int
    part_number: Optional[int] = None
    number: int
    pov: str
    title: str
    date: dt.date
    summary: str
    location: str
    outfit: Optional[str] = None
    kink: Optional[str] = None
    words: int
    characters: int
    characters_no_spaces: int
    paragraphs: int
    sentences: int
    reading_time_minutes: int


__all__ = [
    "Arc",
    "ArcUpdate",
    "Chapter",
    "ChapterUpdate",
    "Episode",
    "EpisodeUpdate",
    "NewArc",
    "NewChapter",
    "NewEpisode",
    "NewPart",
    "NewTimeline",
    "Part",
    "PartUpdate",
    "Timeline",
    "TimelineUpdate",
]
