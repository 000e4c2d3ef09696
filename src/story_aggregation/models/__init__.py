"""
Story Aggregation Models

Pydantic models for story documents, their inputs, and service results.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Re-export count and tenant models
from .counts import (
    CommentModerationCountsPerQueue,
    CommentModerationQueueCounts,
    CommentStatus,
    RelatedCommentCounts,
)
from .tenant import (
    GATED_STORY_MODES,
    FeatureFlag,
    LiveConfiguration,
    ScrapingConfiguration,
    Site,
    StoryMode,
    Tenant,
    TenantLiveConfiguration,
    TenantStorySettings,
    User,
)


class StoryMetadata(BaseModel):
    """Page metadata, either supplied on create or scraped."""

    title: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    section: Optional[str] = None
    published_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None


class StorySettings(BaseModel):
    """Per-story overrides of tenant settings."""

    mode: Optional[StoryMode] = None
    live: Optional[LiveConfiguration] = None
    expert_ids: List[str] = Field(default_factory=list)


class Story(BaseModel):
    """A story document."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    url: str
    site_id: Optional[str] = None
    metadata: Optional[StoryMetadata] = None
    scraped_at: Optional[datetime] = None
    settings: StorySettings = Field(default_factory=StorySettings)
    comment_counts: RelatedCommentCounts = Field(default_factory=RelatedCommentCounts)
    is_closed: bool = False
    closed_at: Optional[datetime] = None
    last_commented_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class FindStoryInput(BaseModel):
    id: Optional[str] = None
    url: Optional[str] = None


class FindOrCreateStoryInput(BaseModel):
    """Lookup keys for find-or-create; a URL is needed to create."""

    id: Optional[str] = None
    url: Optional[str] = None
    mode: Optional[StoryMode] = None


class CreateStoryInput(BaseModel):
    """Fields for explicitly creating a story."""

    mode: Optional[StoryMode] = None
    metadata: Optional[StoryMetadata] = None
    closed_at: Optional[datetime] = None


class UpdateStoryInput(BaseModel):
    """Fields for updating a story (all optional)."""

    url: Optional[str] = None
    metadata: Optional[StoryMetadata] = None
    closed_at: Optional[datetime] = None


class UpdateStorySettingsInput(BaseModel):
    """Settings overrides to apply (all optional)."""

    mode: Optional[StoryMode] = None
    live: Optional[LiveConfiguration] = None


class FindOrCreateResult(BaseModel):
    story: Optional[Story] = None
    was_upserted: bool = False


class StoryMergeResult(BaseModel):
    """Outcome of a merge, with per-step affected counts for reconciliation."""

    story: Story
    updated_comments: int = 0
    updated_actions: int = 0
    deleted_stories: int = 0


class ScrapeTask(BaseModel):
    """Job payload handed to the scraper queue."""

    story_id: str
    story_url: str
    tenant_id: str


class StoryCreatedEvent(BaseModel):
    """Published once when a story document is first created."""

    story_id: str
    story_url: str
    site_id: Optional[str] = None


__all__ = [
    "GATED_STORY_MODES",
    "CommentModerationCountsPerQueue",
    "CommentModerationQueueCounts",
    "CommentStatus",
    "CreateStoryInput",
    "FeatureFlag",
    "FindOrCreateResult",
    "FindOrCreateStoryInput",
    "FindStoryInput",
    "LiveConfiguration",
    "RelatedCommentCounts",
    "ScrapeTask",
    "ScrapingConfiguration",
    "Site",
    "Story",
    "StoryCreatedEvent",
    "StoryMergeResult",
    "StoryMetadata",
    "StoryMode",
    "StorySettings",
    "Tenant",
    "TenantLiveConfiguration",
    "TenantStorySettings",
    "UpdateStoryInput",
    "UpdateStorySettingsInput",
    "User",
]
