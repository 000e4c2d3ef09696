"""
Story Aggregation Services

Service layer over the story documents.
"""

from .events import EventBroker, log_event_handler
from .live import SettingsLiveSource, StoryLiveSource, is_live_enabled
from .merge_service import StoryMergeService
from .scraper import ScraperQueue, StoryScraper, extract_metadata
from .site_service import SiteService
from .story_repository import StoryRepository
from .story_service import (
    StoryService,
    ensure_feature_flag,
    resolve_story_mode,
    validate_story_mode,
)
from .tenant_service import TenantService
from .user_service import UserService

__all__ = [
    "EventBroker",
    "ScraperQueue",
    "SettingsLiveSource",
    "SiteService",
    "StoryLiveSource",
    "StoryMergeService",
    "StoryRepository",
    "StoryScraper",
    "StoryService",
    "TenantService",
    "UserService",
    "ensure_feature_flag",
    "extract_metadata",
    "is_live_enabled",
    "log_event_handler",
    "resolve_story_mode",
    "validate_story_mode",
]
