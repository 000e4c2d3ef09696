"""
Story Aggregation Errors

Every error raised by the story services carries a stable machine code and
the HTTP status the API should answer with.
"""

from enum import Enum
from typing import Optional


class StoryError(Exception):
    """Base class for story service errors."""

    code = "STORY_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StoryURLInvalidError(StoryError):
    """Story URL missing or not inside any registered site."""

    code = "STORY_URL_INVALID"
    status_code = 400

    def __init__(self, story_url: Optional[str], tenant_domain: str):
        super().__init__(
            f"story url {story_url!r} is not permitted for tenant {tenant_domain}"
        )
        self.story_url = story_url
        self.tenant_domain = tenant_domain


class StoryIDRequiredError(StoryError):
    code = "STORY_ID_REQUIRED"
    status_code = 400

    def __init__(self):
        super().__init__("story id is required")


class FeatureFlagRequiredError(StoryError):
    code = "FEATURE_FLAG_REQUIRED"
    status_code = 403

    def __init__(self, flag: str):
        super().__init__(f"feature flag {flag} is required")
        self.flag = flag


class UserNotFoundError(StoryError):
    code = "USER_NOT_FOUND"
    status_code = 404

    def __init__(self, user_id: str):
        super().__init__(f"user {user_id} not found")
        self.user_id = user_id


class TenantNotFoundError(StoryError):
    code = "TENANT_NOT_FOUND"
    status_code = 404

    def __init__(self, hostname: str):
        super().__init__(f"tenant not found for {hostname}")
        self.hostname = hostname


class StoryNotFoundError(StoryError):
    """Story missing, or vanished between read and write."""

    code = "STORY_NOT_FOUND"
    status_code = 404

    def __init__(self, story_id: str):
        super().__init__(f"story {story_id} not found")
        self.story_id = story_id


class StoryHasCommentsError(StoryError):
    """Removal refused: the story still has comments and no consent was given."""

    code = "STORY_HAS_COMMENTS"
    status_code = 409

    def __init__(self, story_id: str):
        super().__init__(f"story {story_id} has comments, cannot remove")
        self.story_id = story_id


class MergeValidationReason(str, Enum):
    NO_SOURCES = "NO_SOURCES"
    DUPLICATE_IDS = "DUPLICATE_IDS"
    STORIES_NOT_FOUND = "STORIES_NOT_FOUND"
    DIFFERENT_SITES = "DIFFERENT_SITES"
    NOT_COMMENTS_MODE = "NOT_COMMENTS_MODE"


class MergeValidationError(StoryError):
    """A merge request was rejected before anything was mutated."""

    code = "MERGE_VALIDATION_FAILED"
    status_code = 400

    def __init__(self, reason: MergeValidationReason, detail: str):
        super().__init__(detail)
        self.reason = reason


class DuplicateStoryError(StoryError):
    code = "DUPLICATE_STORY"
    status_code = 409

    def __init__(self, story_id: str, story_url: str):
        super().__init__(f"story {story_id} or url {story_url!r} already exists")
        self.story_id = story_id
        self.story_url = story_url
