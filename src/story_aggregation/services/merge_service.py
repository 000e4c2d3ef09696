"""
Story Merge Service

Consolidates several source stories into one destination story: comments
and actions are reparented, counts are rebuilt from the sources, and the
sources are deleted.

Every check runs before anything is written. The writes then run inside
the caller's transaction with every referenced story row locked, so a
failure part way through rolls the whole merge back and concurrent count
updates on those stories wait for the merge instead of being lost.
"""

import logging
from typing import List, Sequence

from src.logging_utils import bind_logger

from ..counts import calculate_total_comment_count, merge_related_counts
from ..errors import MergeValidationError, MergeValidationReason, StoryNotFoundError
from ..models import Story, StoryMergeResult, StoryMode, Tenant
from .story_repository import StoryRepository
from .story_service import resolve_story_mode

logger = logging.getLogger(__name__)


class StoryMergeService:
    """Merges stories within a single tenant."""

    def __init__(self, db_connection, repository: StoryRepository = None):
        self.db = db_connection
        self.repository = repository or StoryRepository(db_connection)

    def merge(
        self,
        tenant: Tenant,
        destination_id: str,
        source_ids: Sequence[str],
    ) -> StoryMergeResult:
        """
        Merge `source_ids` into `destination_id`.

        The destination's counts are replaced by the sum of the sources'
        counts; its own previous counts are not added in. The destination
        is expected to be a fresh placeholder story.

        Raises:
            MergeValidationError: the request is invalid; nothing was written
            StoryNotFoundError: the destination vanished before its counts
                could be written
        """
        source_ids = list(source_ids)
        log = bind_logger(logger, destination_id=destination_id, source_ids=source_ids)

        stories = self._validate(tenant, destination_id, source_ids, log)
        destination, sources = stories[0], stories[1:]

        updated_comments = self.repository.merge_comment_stories(
            tenant.id, destination_id, source_ids
        )
        log.debug(f"updated {updated_comments} comments while merging stories")

        updated_actions = self.repository.merge_story_actions(
            tenant.id, destination_id, source_ids
        )
        log.debug(f"updated {updated_actions} actions while merging stories")

        if calculate_total_comment_count(destination.comment_counts.status) > 0:
            log.warning("destination story had comment counts, they will be replaced")

        comment_counts = merge_related_counts(*(s.comment_counts for s in sources))

        destination_story = self.repository.update_counts(
            tenant.id, destination_id, comment_counts
        )
        if not destination_story:
            log.warning("destination story cannot be updated with new comment counts")
            raise StoryNotFoundError(destination_id)

        log.debug(
            f"updated destination story with new comment counts "
            f"{destination_story.comment_counts.model_dump_json()}"
        )

        deleted_stories = self.repository.remove_stories(tenant.id, source_ids)
        log.debug(f"deleted {deleted_stories} source stories")
        if deleted_stories != len(source_ids):
            log.warning(
                f"expected to delete {len(source_ids)} source stories, "
                f"deleted {deleted_stories}"
            )

        return StoryMergeResult(
            story=destination_story,
            updated_comments=updated_comments,
            updated_actions=updated_actions,
            deleted_stories=deleted_stories,
        )

    def _validate(
        self,
        tenant: Tenant,
        destination_id: str,
        source_ids: List[str],
        log,
    ) -> List[Story]:
        """Run every pre-condition in order; returns [destination, *sources]."""
        if not source_ids:
            log.warning("cannot merge from 0 stories")
            raise MergeValidationError(
                MergeValidationReason.NO_SOURCES, "cannot merge from 0 stories"
            )

        story_ids = [destination_id, *source_ids]
        if len(set(story_ids)) != len(story_ids):
            raise MergeValidationError(
                MergeValidationReason.DUPLICATE_IDS,
                "cannot merge from/to the same story ID",
            )

        stories = self.repository.retrieve_many(tenant.id, story_ids, for_update=True)
        missing = [sid for sid, story in zip(story_ids, stories) if story is None]
        if missing:
            raise MergeValidationError(
                MergeValidationReason.STORIES_NOT_FOUND,
                f"cannot find all the stories: missing {missing}",
            )

        if len({story.site_id for story in stories}) > 1:
            raise MergeValidationError(
                MergeValidationReason.DIFFERENT_SITES,
                "cannot merge stories on different sites",
            )

        if any(
            resolve_story_mode(story.settings, tenant) != StoryMode.COMMENTS
            for story in stories
        ):
            raise MergeValidationError(
                MergeValidationReason.NOT_COMMENTS_MODE,
                "cannot merge stories not in comments mode",
            )

        return stories
