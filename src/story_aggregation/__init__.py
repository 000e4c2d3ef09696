"""
Story Aggregation

Story documents with rolled-up comment counts, their lifecycle, and the
merge of several stories into one.
"""

from .models import (
    RelatedCommentCounts,
    Story,
    StoryMergeResult,
    StoryMode,
    Tenant,
)
from .services import StoryMergeService, StoryRepository, StoryService

__all__ = [
    "RelatedCommentCounts",
    "Story",
    "StoryMergeResult",
    "StoryMode",
    "StoryMergeService",
    "StoryRepository",
    "StoryService",
    "Tenant",
]
