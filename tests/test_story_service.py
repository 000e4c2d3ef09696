"""
Story Service Tests

Lifecycle orchestration with every collaborator mocked.
Run with: pytest tests/test_story_service.py -v
"""

from unittest.mock import Mock

import pytest

from src.story_aggregation.config import Config
from src.story_aggregation.errors import (
    FeatureFlagRequiredError,
    StoryHasCommentsError,
    StoryIDRequiredError,
    StoryURLInvalidError,
    UserNotFoundError,
)
from src.story_aggregation.models import (
    CreateStoryInput,
    FeatureFlag,
    FindOrCreateResult,
    FindOrCreateStoryInput,
    LiveConfiguration,
    ScrapeTask,
    Site,
    StoryCreatedEvent,
    StoryMetadata,
    StoryMode,
    StorySettings,
    Tenant,
    TenantStorySettings,
    UpdateStoryInput,
    UpdateStorySettingsInput,
    User,
)
from src.story_aggregation.services import (
    EventBroker,
    ScraperQueue,
    SiteService,
    StoryRepository,
    StoryScraper,
    StoryService,
    UserService,
    resolve_story_mode,
    validate_story_mode,
)
from src.story_aggregation.services.story_service import STORY_CREATED


SITE = Site(
    id="site-1",
    tenant_id="tenant-1",
    name="News",
    allowed_origins=["https://news.example.com"],
)


@pytest.fixture
def repository():
    return Mock(spec=StoryRepository)


@pytest.fixture
def sites():
    sites = Mock(spec=SiteService)
    sites.find_by_url.return_value = SITE
    return sites


@pytest.fixture
def users():
    return Mock(spec=UserService)


@pytest.fixture
def scraper_queue():
    return Mock(spec=ScraperQueue)


@pytest.fixture
def scraper():
    return Mock(spec=StoryScraper)


@pytest.fixture
def broker():
    return Mock(spec=EventBroker)


@pytest.fixture
def service(repository, sites, users, scraper_queue, scraper, broker):
    return StoryService(
        Mock(),
        config=Config(),
        broker=broker,
        repository=repository,
        sites=sites,
        users=users,
        scraper_queue=scraper_queue,
        scraper=scraper,
    )


class TestResolveStoryMode:
    def test_defaults_to_comments(self, tenant):
        assert resolve_story_mode(StorySettings(), tenant) == StoryMode.COMMENTS

    def test_tenant_default_applies(self):
        tenant = Tenant(
            id="t", domain="d", feature_flags=["ENABLE_QA"],
            stories=TenantStorySettings(mode=StoryMode.QA),
        )
        assert resolve_story_mode(StorySettings(), tenant) == StoryMode.QA

    def test_story_override_wins(self):
        tenant = Tenant(
            id="t", domain="d", feature_flags=["ENABLE_QA"],
            stories=TenantStorySettings(mode=StoryMode.QA),
        )
        settings = StorySettings(mode=StoryMode.COMMENTS)
        assert resolve_story_mode(settings, tenant) == StoryMode.COMMENTS

    def test_gated_mode_without_flag_falls_back(self, tenant):
        settings = StorySettings(mode=StoryMode.RATINGS_AND_REVIEWS)
        assert resolve_story_mode(settings, tenant) == StoryMode.COMMENTS


class TestValidateStoryMode:
    def test_comments_needs_no_flag(self, tenant):
        validate_story_mode(tenant, StoryMode.COMMENTS)

    def test_gated_mode_requires_flag(self, tenant):
        with pytest.raises(FeatureFlagRequiredError) as exc_info:
            validate_story_mode(tenant, StoryMode.QA)
        assert exc_info.value.flag == "ENABLE_QA"

    def test_gated_mode_with_flag(self):
        tenant = Tenant(id="t", domain="d", feature_flags=["ENABLE_RATINGS_AND_REVIEWS"])
        validate_story_mode(tenant, StoryMode.RATINGS_AND_REVIEWS)


class TestFindOrCreate:
    def test_new_story_publishes_and_queues_scrape(
        self, service, repository, broker, scraper_queue, tenant, now, make_story
    ):
        story = make_story()
        repository.find_or_create.return_value = FindOrCreateResult(
            story=story, was_upserted=True
        )

        result = service.find_or_create(
            tenant, FindOrCreateStoryInput(id=story.id, url=story.url), now
        )

        assert result == story
        repository.find_or_create.assert_called_once()
        assert repository.find_or_create.call_args[0][2] == "site-1"
        broker.publish.assert_called_once_with(
            STORY_CREATED,
            StoryCreatedEvent(story_id=story.id, story_url=story.url, site_id="site-1"),
        )
        scraper_queue.add.assert_called_once_with(
            ScrapeTask(story_id=story.id, story_url=story.url, tenant_id="tenant-1")
        )

    def test_existing_story_not_published(
        self, service, repository, broker, scraper_queue, tenant, now, make_story
    ):
        story = make_story(metadata=StoryMetadata(title="Known"), scraped_at=now)
        repository.find_or_create.return_value = FindOrCreateResult(
            story=story, was_upserted=False
        )

        service.find_or_create(tenant, FindOrCreateStoryInput(url=story.url), now)

        broker.publish.assert_not_called()
        scraper_queue.add.assert_not_called()

    def test_unscraped_existing_story_is_queued_again(
        self, service, repository, scraper_queue, tenant, now, make_story
    ):
        repository.find_or_create.return_value = FindOrCreateResult(
            story=make_story(), was_upserted=False
        )

        service.find_or_create(tenant, FindOrCreateStoryInput(id="story-1"), now)

        scraper_queue.add.assert_called_once()

    def test_scraping_disabled(self, service, repository, scraper_queue, now, make_story):
        tenant = Tenant(
            id="tenant-1",
            domain="news.example.com",
            stories=TenantStorySettings(scraping={"enabled": False}),
        )
        repository.find_or_create.return_value = FindOrCreateResult(
            story=make_story(), was_upserted=True
        )

        service.find_or_create(tenant, FindOrCreateStoryInput(url="https://news.example.com/a"), now)

        scraper_queue.add.assert_not_called()

    def test_url_outside_sites_rejected(self, service, repository, sites, tenant, now):
        sites.find_by_url.return_value = None

        with pytest.raises(StoryURLInvalidError):
            service.find_or_create(
                tenant, FindOrCreateStoryInput(url="https://elsewhere.example.org/a"), now
            )
        repository.find_or_create.assert_not_called()

    def test_id_only_skips_site_lookup(self, service, repository, sites, tenant, now):
        repository.find_or_create.return_value = FindOrCreateResult(story=None)

        result = service.find_or_create(tenant, FindOrCreateStoryInput(id="missing"), now)

        assert result is None
        sites.find_by_url.assert_not_called()

    def test_gated_mode_rejected(self, service, repository, tenant, now):
        with pytest.raises(FeatureFlagRequiredError):
            service.find_or_create(
                tenant,
                FindOrCreateStoryInput(url="https://news.example.com/a", mode=StoryMode.QA),
                now,
            )
        repository.find_or_create.assert_not_called()

    def test_publish_failure_is_swallowed(
        self, service, repository, broker, tenant, now, make_story
    ):
        story = make_story()
        repository.find_or_create.return_value = FindOrCreateResult(
            story=story, was_upserted=True
        )
        broker.publish.side_effect = RuntimeError("background tasks unavailable")

        result = service.find_or_create(tenant, FindOrCreateStoryInput(url=story.url), now)

        assert result == story

    def test_without_broker(self, repository, sites, users, scraper_queue, scraper, tenant, now, make_story):
        service = StoryService(
            Mock(), repository=repository, sites=sites, users=users,
            scraper_queue=scraper_queue, scraper=scraper,
        )
        story = make_story()
        repository.find_or_create.return_value = FindOrCreateResult(
            story=story, was_upserted=True
        )

        assert service.find_or_create(tenant, FindOrCreateStoryInput(url=story.url), now) == story


class TestCreate:
    def test_requires_id(self, service, tenant, now):
        with pytest.raises(StoryIDRequiredError):
            service.create(tenant, "", "https://news.example.com/a", CreateStoryInput(), now)

    def test_requires_url(self, service, tenant, now):
        with pytest.raises(StoryURLInvalidError):
            service.create(tenant, "story-1", "", CreateStoryInput(), now)

    def test_mode_checked_before_id(self, service, tenant, now):
        with pytest.raises(FeatureFlagRequiredError):
            service.create(tenant, "", "", CreateStoryInput(mode=StoryMode.QA), now)

    def test_with_metadata_skips_scrape(
        self, service, repository, scraper, broker, tenant, now, make_story
    ):
        story = make_story(metadata=StoryMetadata(title="Given"))
        repository.create.return_value = story
        story_input = CreateStoryInput(metadata=StoryMetadata(title="Given"))

        result = service.create(tenant, "story-1", story.url, story_input, now)

        assert result == story
        repository.create.assert_called_once_with(
            "tenant-1", "story-1", story.url, story_input, "site-1", now, scraped_at=now
        )
        scraper.scrape.assert_not_called()
        broker.publish.assert_called_once()

    def test_without_metadata_scrapes_synchronously(
        self, service, repository, scraper, tenant, now, make_story
    ):
        created = make_story()
        scraped = make_story(metadata=StoryMetadata(title="Scraped"), scraped_at=now)
        repository.create.return_value = created
        scraper.scrape.return_value = scraped

        result = service.create(tenant, "story-1", created.url, CreateStoryInput(), now)

        assert result == scraped
        scraper.scrape.assert_called_once_with("tenant-1", "story-1", created.url)
        assert repository.create.call_args.kwargs["scraped_at"] is None

    def test_scrape_returning_nothing_keeps_created(
        self, service, repository, scraper, tenant, now, make_story
    ):
        created = make_story()
        repository.create.return_value = created
        scraper.scrape.return_value = None

        result = service.create(tenant, "story-1", created.url, CreateStoryInput(), now)

        assert result == created


class TestUpdates:
    def test_update_validates_new_url(self, service, repository, sites, tenant, now):
        sites.find_by_url.return_value = None

        with pytest.raises(StoryURLInvalidError):
            service.update(tenant, "story-1", UpdateStoryInput(url="https://bad.example/x"), now)
        repository.update.assert_not_called()

    def test_update_without_url(self, service, repository, sites, tenant, now, make_story):
        repository.update.return_value = make_story()
        updates = UpdateStoryInput(metadata=StoryMetadata(title="New"))

        service.update(tenant, "story-1", updates, now)

        sites.find_by_url.assert_not_called()
        repository.update.assert_called_once_with("tenant-1", "story-1", updates, now)

    def test_update_settings_gated_mode(self, service, repository, tenant, now):
        with pytest.raises(FeatureFlagRequiredError):
            service.update_settings(
                tenant, "story-1", UpdateStorySettingsInput(mode=StoryMode.QA), now
            )
        repository.update_settings.assert_not_called()

    def test_update_settings_live_only(self, service, repository, tenant, now):
        updates = UpdateStorySettingsInput(live=LiveConfiguration(enabled=False))

        service.update_settings(tenant, "story-1", updates, now)

        repository.update_settings.assert_called_once_with("tenant-1", "story-1", updates, now)

    def test_update_story_mode(self, service, repository, now):
        tenant = Tenant(id="tenant-1", domain="d", feature_flags=["ENABLE_QA"])

        service.update_story_mode(tenant, "story-1", StoryMode.QA, now)

        repository.set_mode.assert_called_once_with("tenant-1", "story-1", StoryMode.QA, now)

    def test_open_and_close_pass_through(self, service, repository, tenant, now):
        service.close(tenant, "story-1", now)
        service.open(tenant, "story-1", now)

        repository.close.assert_called_once_with("tenant-1", "story-1", now)
        repository.open.assert_called_once_with("tenant-1", "story-1", now)

    def test_open_missing_story(self, service, repository, tenant, now):
        repository.open.return_value = None

        assert service.open(tenant, "missing", now) is None


class TestRemove:
    def test_missing_story(self, service, repository, tenant):
        repository.retrieve.return_value = None

        assert service.remove(tenant, "missing") is None
        repository.remove_story.assert_not_called()

    def test_refused_when_story_has_comments(self, service, repository, tenant, make_story):
        repository.retrieve.return_value = make_story(approved=2)

        with pytest.raises(StoryHasCommentsError):
            service.remove(tenant, "story-1")

        repository.remove_story.assert_not_called()
        repository.remove_story_comments.assert_not_called()

    def test_empty_story_removed(self, service, repository, tenant, make_story):
        story = make_story()
        repository.retrieve.return_value = story
        repository.remove_story.return_value = story

        assert service.remove(tenant, "story-1") == story
        repository.remove_story_actions.assert_not_called()

    def test_cascade_order(self, service, repository, tenant, make_story):
        story = make_story(approved=5)
        repository.retrieve.return_value = story
        repository.remove_story.return_value = story
        calls = Mock()
        calls.attach_mock(repository.remove_story_actions, "actions")
        calls.attach_mock(repository.remove_story_comments, "comments")
        calls.attach_mock(repository.remove_story, "story")

        service.remove(tenant, "story-1", include_comments=True)

        assert [c[0] for c in calls.mock_calls] == ["actions", "comments", "story"]

    def test_story_vanished_before_delete(self, service, repository, tenant, make_story):
        repository.retrieve.return_value = make_story()
        repository.remove_story.return_value = None

        assert service.remove(tenant, "story-1") is None


class TestExperts:
    def test_add_expert(self, service, repository, users, tenant):
        users.retrieve.return_value = User(id="user-9", tenant_id="tenant-1", username="ed")

        service.add_expert(tenant, "story-1", "user-9")

        repository.add_expert.assert_called_once_with("tenant-1", "story-1", "user-9")

    def test_unknown_user(self, service, repository, users, tenant):
        users.retrieve.return_value = None

        with pytest.raises(UserNotFoundError):
            service.remove_expert(tenant, "story-1", "ghost")
        repository.remove_expert.assert_not_called()


class TestSections:
    def test_requires_sections_flag(self, service, repository, tenant):
        assert service.retrieve_sections(tenant) is None
        repository.retrieve_sections.assert_not_called()

    def test_lists_sections(self, service, repository):
        tenant = Tenant(id="tenant-1", domain="d", feature_flags=[FeatureFlag.SECTIONS.value])
        repository.retrieve_sections.return_value = ["Politics"]

        assert service.retrieve_sections(tenant) == ["Politics"]
