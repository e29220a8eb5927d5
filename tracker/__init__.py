# ============================================================================
# tracker/__init__.py
# Story Tracker - Data Access Layer for the Content Hierarchy
# ============================================================================
#
# PURPOSE:
# Stores a five-level storytelling hierarchy in an embedded SQLite database:
#
#   Timeline -> Arc -> Episode -> Part -> Chapter
#
# Part is optional between Episode and Chapter. Every level is addressed by
# human-readable names/numbers (natural composite keys), and deleting any
# level removes everything below it through the database's own cascades.
#
# ENTRY POINT:
#   from tracker import Tracker
#
#   async with Tracker.open("story.db") as tracker:
#       await tracker.initialize_schema()
#       await tracker.create_timeline({"name": "main", "description": "..."})
#
# ============================================================================

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
from tracker.errors import (
    ConfigurationError,
    ConstraintViolation,
    ErrorCode,
    MigrationError,
    NotFound,
    SchemaError,
    StoreClosedError,
    TrackerError,
    ValidationFailure,
)
from tracker.tracker import Tracker

__all__ = [
    "Tracker",
    # Records and inputs
    "Timeline",
    "NewTimeline",
    "TimelineUpdate",
    "Arc",
    "NewArc",
    "ArcUpdate",
    "Episode",
    "NewEpisode",
    "EpisodeUpdate",
    "Part",
    "NewPart",
    "PartUpdate",
    "Chapter",
    "NewChapter",
    "ChapterUpdate",
    # Errors
    "ErrorCode",
    "TrackerError",
    "ValidationFailure",
    "NotFound",
    "ConstraintViolation",
    "MigrationError",
    "SchemaError",
    "ConfigurationError",
    "StoreClosedError",
]
