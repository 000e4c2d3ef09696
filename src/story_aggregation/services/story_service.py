"""
Story Service

Story lifecycle: creation (with URL/site validation and scraping), updates,
mode changes, open/close, removal and expert assignment. Persistence is
delegated to StoryRepository; count math to the counts module.
"""

import logging
from datetime import datetime
from typing import List, Optional

from src.logging_utils import bind_logger

from ..config import Config
from ..counts import calculate_total_comment_count
from ..errors import (
    FeatureFlagRequiredError,
    StoryHasCommentsError,
    StoryIDRequiredError,
    StoryURLInvalidError,
    UserNotFoundError,
)
from ..models import (
    GATED_STORY_MODES,
    CreateStoryInput,
    FeatureFlag,
    FindOrCreateStoryInput,
    ScrapeTask,
    Site,
    Story,
    StoryCreatedEvent,
    StoryMode,
    StorySettings,
    Tenant,
    UpdateStoryInput,
    UpdateStorySettingsInput,
)
from .events import EventBroker
from .live import LiveSource, is_live_enabled
from .scraper import ScraperQueue, StoryScraper
from .site_service import SiteService
from .story_repository import StoryRepository
from .user_service import UserService

logger = logging.getLogger(__name__)

STORY_CREATED = "STORY_CREATED"


def ensure_feature_flag(tenant: Tenant, flag: FeatureFlag) -> None:
    if not tenant.has_feature_flag(flag):
        raise FeatureFlagRequiredError(flag.value)


def validate_story_mode(tenant: Tenant, mode: StoryMode) -> None:
    """Gated modes need the tenant to hold the matching feature flag."""
    flag = GATED_STORY_MODES.get(mode)
    if flag is not None:
        ensure_feature_flag(tenant, flag)


def resolve_story_mode(settings: StorySettings, tenant: Tenant) -> StoryMode:
    """
    The mode a story actually runs in.

    Story override first, then the tenant default, then COMMENTS. A gated
    mode whose flag the tenant no longer holds falls back to COMMENTS.
    """
    mode = settings.mode or tenant.stories.mode or StoryMode.COMMENTS
    flag = GATED_STORY_MODES.get(mode)
    if flag is not None and not tenant.has_feature_flag(flag):
        return StoryMode.COMMENTS
    return mode


class StoryService:
    """
    Orchestrates story lifecycle operations for one request.

    Responsibilities:
    - Validate URLs against registered sites and modes against feature flags
    - Create stories (find-or-create and explicit) and trigger scraping
    - Publish StoryCreated events without letting failures escape
    - Guard removal of stories that still have comments
    """

    def __init__(
        self,
        db_connection,
        config: Optional[Config] = None,
        broker: Optional[EventBroker] = None,
        repository: Optional[StoryRepository] = None,
        sites: Optional[SiteService] = None,
        users: Optional[UserService] = None,
        scraper_queue: Optional[ScraperQueue] = None,
        scraper: Optional[StoryScraper] = None,
    ):
        self.db = db_connection
        self.config = config or Config()
        self.broker = broker
        self.repository = repository or StoryRepository(db_connection)
        self.sites = sites or SiteService(db_connection)
        self.users = users or UserService(db_connection)
        self.scraper_queue = scraper_queue or ScraperQueue(db_connection)
        self.scraper = scraper or StoryScraper(
            self.repository,
            timeout=self.config.scraper_timeout,
            user_agent=self.config.scraper_user_agent,
        )

    def find(
        self,
        tenant: Tenant,
        story_id: Optional[str] = None,
        url: Optional[str] = None,
    ) -> Optional[Story]:
        return self.repository.find(tenant.id, story_id=story_id, url=url)

    def find_or_create(
        self,
        tenant: Tenant,
        story_input: FindOrCreateStoryInput,
        now: datetime,
    ) -> Optional[Story]:
        """
        Find a story, creating it on first sight.

        Scraping is only queued here, so the returned story may not have
        metadata yet.
        """
        if story_input.mode:
            validate_story_mode(tenant, story_input.mode)

        site_id = None
        if story_input.url:
            site = self._require_site(tenant, story_input.url)
            site_id = site.id

        result = self.repository.find_or_create(tenant.id, story_input, site_id, now)
        story = result.story
        if not story:
            return None

        if result.was_upserted:
            self._publish_story_created(story, story.site_id)

        if tenant.stories.scraping.enabled and not story.metadata and not story.scraped_at:
            self.scraper_queue.add(
                ScrapeTask(story_id=story.id, story_url=story.url, tenant_id=tenant.id)
            )

        return story

    def create(
        self,
        tenant: Tenant,
        story_id: str,
        story_url: str,
        story_input: CreateStoryInput,
        now: datetime,
    ) -> Story:
        """Create a story explicitly; scrapes synchronously when no metadata is given."""
        if story_input.mode:
            validate_story_mode(tenant, story_input.mode)

        if not story_id:
            raise StoryIDRequiredError()

        if not story_url:
            raise StoryURLInvalidError(story_url, tenant.domain)

        site = self._require_site(tenant, story_url)

        scraped_at = now if story_input.metadata else None
        story = self.repository.create(
            tenant.id, story_id, story_url, story_input, site.id, now, scraped_at=scraped_at
        )

        if not story_input.metadata and tenant.stories.scraping.enabled:
            scraped = self.scraper.scrape(tenant.id, story.id, story_url)
            if scraped:
                story = scraped

        self._publish_story_created(story, site.id)
        return story

    def update(
        self,
        tenant: Tenant,
        story_id: str,
        updates: UpdateStoryInput,
        now: datetime,
    ) -> Optional[Story]:
        if updates.url:
            self._require_site(tenant, updates.url)
        return self.repository.update(tenant.id, story_id, updates, now)

    def update_settings(
        self,
        tenant: Tenant,
        story_id: str,
        updates: UpdateStorySettingsInput,
        now: datetime,
    ) -> Optional[Story]:
        if updates.mode:
            validate_story_mode(tenant, updates.mode)
        return self.repository.update_settings(tenant.id, story_id, updates, now)

    def update_story_mode(
        self,
        tenant: Tenant,
        story_id: str,
        mode: StoryMode,
        now: datetime,
    ) -> Optional[Story]:
        # Any mode may follow any other; only the feature flag gates it.
        validate_story_mode(tenant, mode)
        return self.repository.set_mode(tenant.id, story_id, mode, now)

    def open(self, tenant: Tenant, story_id: str, now: datetime) -> Optional[Story]:
        return self.repository.open(tenant.id, story_id, now)

    def close(self, tenant: Tenant, story_id: str, now: datetime) -> Optional[Story]:
        return self.repository.close(tenant.id, story_id, now)

    def remove(
        self,
        tenant: Tenant,
        story_id: str,
        include_comments: bool = False,
    ) -> Optional[Story]:
        """
        Remove a story.

        Without `include_comments`, a story that still has comments is
        refused. With it, actions go first, then comments, then the story.
        """
        log = bind_logger(logger, story_id=story_id, include_comments=include_comments)
        log.debug("starting to remove story")

        story = self.repository.retrieve(tenant.id, story_id)
        if not story:
            log.warning("attempted to remove story that wasn't found")
            return None

        if include_comments:
            removed_actions = self.repository.remove_story_actions(tenant.id, story.id)
            log.debug(f"removed {removed_actions} actions while deleting story")

            removed_comments = self.repository.remove_story_comments(tenant.id, story.id)
            log.debug(f"removed {removed_comments} comments while deleting story")
        elif calculate_total_comment_count(story.comment_counts.status) > 0:
            log.warning(
                "attempted to remove story that has linked comments "
                "without consent for deleting comments"
            )
            raise StoryHasCommentsError(story.id)

        removed_story = self.repository.remove_story(tenant.id, story.id)
        if not removed_story:
            log.warning("story was already removed")
            return None

        log.debug("removed story")
        return removed_story

    def add_expert(self, tenant: Tenant, story_id: str, user_id: str) -> Optional[Story]:
        self._require_user(tenant, user_id)
        return self.repository.add_expert(tenant.id, story_id, user_id)

    def remove_expert(self, tenant: Tenant, story_id: str, user_id: str) -> Optional[Story]:
        self._require_user(tenant, user_id)
        return self.repository.remove_expert(tenant.id, story_id, user_id)

    def retrieve_sections(self, tenant: Tenant) -> Optional[List[str]]:
        """Distinct story sections, or None when the tenant lacks the SECTIONS flag."""
        if not tenant.has_feature_flag(FeatureFlag.SECTIONS):
            return None
        return self.repository.retrieve_sections(tenant.id)

    def is_live_enabled(self, tenant: Tenant, source: LiveSource, now: datetime) -> bool:
        return is_live_enabled(self.config, tenant, source, now)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require_site(self, tenant: Tenant, url: str) -> Site:
        site = self.sites.find_by_url(tenant.id, url)
        if not site:
            raise StoryURLInvalidError(url, tenant.domain)
        return site

    def _require_user(self, tenant: Tenant, user_id: str) -> None:
        if not self.users.retrieve(tenant.id, user_id):
            raise UserNotFoundError(user_id)

    def _publish_story_created(self, story: Story, site_id: Optional[str]) -> None:
        if self.broker is None:
            logger.debug(f"no event broker, skipping {STORY_CREATED} for {story.id}")
            return

        event = StoryCreatedEvent(story_id=story.id, story_url=story.url, site_id=site_id)
        try:
            self.broker.publish(STORY_CREATED, event)
        except Exception:
            logger.error("could not publish story created event", exc_info=True)
