"""
Tenant Models

Resolved tenant context attached to every request, plus the tenant-owned
records the story services consult (sites, users).
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FeatureFlag(str, Enum):
    """Tenant feature flags consulted by the story services."""

    ENABLE_QA = "ENABLE_QA"
    ENABLE_RATINGS_AND_REVIEWS = "ENABLE_RATINGS_AND_REVIEWS"
    SECTIONS = "SECTIONS"


class StoryMode(str, Enum):
    """Operating mode of a story."""

    COMMENTS = "COMMENTS"
    QA = "QA"
    RATINGS_AND_REVIEWS = "RATINGS_AND_REVIEWS"


# Modes that require the tenant to hold a feature flag
GATED_STORY_MODES = {
    StoryMode.QA: FeatureFlag.ENABLE_QA,
    StoryMode.RATINGS_AND_REVIEWS: FeatureFlag.ENABLE_RATINGS_AND_REVIEWS,
}


class LiveConfiguration(BaseModel):
    """Live update settings (tenant-wide or per story)."""

    enabled: Optional[bool] = None


class ScrapingConfiguration(BaseModel):
    enabled: bool = True


class TenantStorySettings(BaseModel):
    """Tenant-wide defaults for stories."""

    scraping: ScrapingConfiguration = Field(default_factory=ScrapingConfiguration)
    mode: Optional[StoryMode] = None


class TenantLiveConfiguration(BaseModel):
    enabled: bool = True


class Tenant(BaseModel):
    """A resolved tenant."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    domain: str
    feature_flags: List[str] = Field(default_factory=list)
    live: TenantLiveConfiguration = Field(default_factory=TenantLiveConfiguration)
    stories: TenantStorySettings = Field(default_factory=TenantStorySettings)

    def has_feature_flag(self, flag: FeatureFlag) -> bool:
        return flag.value in self.feature_flags


class Site(BaseModel):
    """A registered property whose URLs may host stories."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    name: str
    allowed_origins: List[str] = Field(default_factory=list)


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    username: Optional[str] = None
