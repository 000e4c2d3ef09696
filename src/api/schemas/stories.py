"""
Stories API Schemas

Request and response bodies for the story endpoints.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from src.story_aggregation.models import Story, StoryMetadata, StoryMode


class CreateStoryRequest(BaseModel):
    """Explicit story creation."""

    id: str = Field(description="Client-assigned story identifier")
    url: str = Field(description="Canonical story URL; must belong to a registered site")
    mode: Optional[StoryMode] = None
    metadata: Optional[StoryMetadata] = None
    closed_at: Optional[datetime] = None


class SetStoryModeRequest(BaseModel):
    mode: StoryMode


class MergeStoriesRequest(BaseModel):
    destination_id: str
    source_ids: List[str] = Field(description="Stories folded into the destination and deleted")


class StoryPayload(BaseModel):
    """Result of a story mutation, tagged with its correlation token."""

    story: Story
    client_mutation_id: str


class MergeStoriesPayload(BaseModel):
    story: Story
    updated_comments: int
    updated_actions: int
    deleted_stories: int
    client_mutation_id: str


class LiveStatusResponse(BaseModel):
    story_id: str
    enabled: bool


class SectionsResponse(BaseModel):
    sections: Optional[List[str]] = None
