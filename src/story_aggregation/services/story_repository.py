"""
Story Repository

Tenant-scoped persistence for story documents and the comment/action
rows that point at them. Each story is one row whose metadata, settings
and comment counts live in JSONB columns.

Single-row writes return the post-update story, or None when the row
vanished between read and write. Bulk writes return the affected count.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import List, Optional, Sequence

from psycopg2 import errors as pg_errors

from ..errors import DuplicateStoryError
from ..models import (
    CreateStoryInput,
    FindOrCreateResult,
    FindOrCreateStoryInput,
    RelatedCommentCounts,
    Story,
    StoryMetadata,
    StoryMode,
    StorySettings,
    UpdateStoryInput,
    UpdateStorySettingsInput,
)

logger = logging.getLogger(__name__)

STORY_COLUMNS = """
    tenant_id, id, url, site_id, metadata, scraped_at, settings, expert_ids,
    comment_counts, is_closed, closed_at, last_commented_at,
    created_at, updated_at
"""


def _parse_json(raw_data) -> Optional[dict]:
    """JSONB arrives as a dict from RealDictCursor, or as text from older drivers."""
    if raw_data is None:
        return None
    if isinstance(raw_data, str):
        return json.loads(raw_data)
    return raw_data


def _dump_model(model) -> Optional[str]:
    if model is None:
        return None
    return json.dumps(model.model_dump(mode="json", exclude_none=True))


def _dump_settings(settings: StorySettings) -> str:
    # expert_ids live in their own array column
    return json.dumps(
        settings.model_dump(mode="json", exclude_none=True, exclude={"expert_ids"})
    )


class StoryRepository:
    """
    CRUD and bulk operations on stories, always within one tenant.

    The caller owns the transaction: nothing here commits.
    """

    def __init__(self, db_connection):
        self.db = db_connection

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def retrieve(self, tenant_id: str, story_id: str) -> Optional[Story]:
        with self.db.cursor() as cur:
            cur.execute(f"""
                SELECT {STORY_COLUMNS}
                FROM stories
                WHERE tenant_id = %s AND id = %s
            """, (tenant_id, story_id))
            row = cur.fetchone()
            return self._row_to_story(row) if row else None

    def find(
        self,
        tenant_id: str,
        story_id: Optional[str] = None,
        url: Optional[str] = None,
    ) -> Optional[Story]:
        """Find a story by id if given, otherwise by URL."""
        if story_id:
            return self.retrieve(tenant_id, story_id)
        if url:
            with self.db.cursor() as cur:
                cur.execute(f"""
                    SELECT {STORY_COLUMNS}
                    FROM stories
                    WHERE tenant_id = %s AND url = %s
                """, (tenant_id, url))
                row = cur.fetchone()
                return self._row_to_story(row) if row else None
        return None

    def retrieve_many(
        self,
        tenant_id: str,
        story_ids: Sequence[str],
        for_update: bool = False,
    ) -> List[Optional[Story]]:
        """
        Fetch stories in one query, aligned with `story_ids`.

        Missing ids come back as None. With `for_update`, the rows stay
        locked until the surrounding transaction ends.
        """
        # Rows are locked in id order so overlapping merges cannot deadlock
        lock_clause = "FOR UPDATE" if for_update else ""
        with self.db.cursor() as cur:
            cur.execute(f"""
                SELECT {STORY_COLUMNS}
                FROM stories
                WHERE tenant_id = %s AND id = ANY(%s)
                ORDER BY id
                {lock_clause}
            """, (tenant_id, list(story_ids)))
            rows = cur.fetchall()

        by_id = {row["id"]: self._row_to_story(row) for row in rows}
        return [by_id.get(story_id) for story_id in story_ids]

    def retrieve_sections(self, tenant_id: str) -> List[str]:
        with self.db.cursor() as cur:
            cur.execute("""
                SELECT DISTINCT metadata->>'section' AS section
                FROM stories
                WHERE tenant_id = %s AND metadata->>'section' IS NOT NULL
                ORDER BY section
            """, (tenant_id,))
            return [row["section"] for row in cur.fetchall()]

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def find_or_create(
        self,
        tenant_id: str,
        story_input: FindOrCreateStoryInput,
        site_id: Optional[str],
        now: datetime,
    ) -> FindOrCreateResult:
        """
        Upsert a story keyed by id (when given with a URL) or by URL.

        The insert relies on the unique (tenant_id, id) and (tenant_id, url)
        indexes, so concurrent callers for the same story cannot create
        duplicates: the loser of the race reads the winner's row.
        """
        if not story_input.url:
            # Without a URL we can only look the story up.
            story = self.find(tenant_id, story_id=story_input.id)
            return FindOrCreateResult(story=story, was_upserted=False)

        story_id = story_input.id or str(uuid.uuid4())
        settings = StorySettings(mode=story_input.mode)

        with self.db.cursor() as cur:
            cur.execute(f"""
                INSERT INTO stories (
                    tenant_id, id, url, site_id, settings, comment_counts,
                    created_at, updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT DO NOTHING
                RETURNING {STORY_COLUMNS}
            """, (
                tenant_id,
                story_id,
                story_input.url,
                site_id,
                _dump_settings(settings),
                _dump_model(RelatedCommentCounts()),
                now,
                now,
            ))
            row = cur.fetchone()

        if row:
            return FindOrCreateResult(story=self._row_to_story(row), was_upserted=True)

        if story_input.id:
            story = self.retrieve(tenant_id, story_input.id)
        else:
            story = self.find(tenant_id, url=story_input.url)

        if not story:
            logger.warning(
                f"find_or_create conflicted but found no story "
                f"(tenant={tenant_id}, id={story_input.id}, url={story_input.url})"
            )
        return FindOrCreateResult(story=story, was_upserted=False)

    def create(
        self,
        tenant_id: str,
        story_id: str,
        url: str,
        story_input: CreateStoryInput,
        site_id: str,
        now: datetime,
        scraped_at: Optional[datetime] = None,
    ) -> Story:
        settings = StorySettings(mode=story_input.mode)
        try:
            with self.db.cursor() as cur:
                cur.execute(f"""
                    INSERT INTO stories (
                        tenant_id, id, url, site_id, metadata, scraped_at,
                        settings, comment_counts, is_closed, closed_at,
                        created_at, updated_at
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {STORY_COLUMNS}
                """, (
                    tenant_id,
                    story_id,
                    url,
                    site_id,
                    _dump_model(story_input.metadata),
                    scraped_at,
                    _dump_settings(settings),
                    _dump_model(RelatedCommentCounts()),
                    story_input.closed_at is not None,
                    story_input.closed_at,
                    now,
                    now,
                ))
                row = cur.fetchone()
        except pg_errors.UniqueViolation as e:
            raise DuplicateStoryError(story_id, url) from e
        return self._row_to_story(row)

    # -------------------------------------------------------------------------
    # Single-document updates
    # -------------------------------------------------------------------------

    def update(
        self,
        tenant_id: str,
        story_id: str,
        updates: UpdateStoryInput,
        now: datetime,
    ) -> Optional[Story]:
        """Update story fields. Only provided fields change."""
        update_fields = ["updated_at = %s"]
        values = [now]

        if updates.url is not None:
            update_fields.append("url = %s")
            values.append(updates.url)
        if updates.metadata is not None:
            update_fields.append("metadata = %s")
            values.append(_dump_model(updates.metadata))
        if updates.closed_at is not None:
            update_fields.append("closed_at = %s")
            values.append(updates.closed_at)

        return self._update_returning(
            tenant_id, story_id, ", ".join(update_fields), values
        )

    def update_settings(
        self,
        tenant_id: str,
        story_id: str,
        updates: UpdateStorySettingsInput,
        now: datetime,
    ) -> Optional[Story]:
        patch = json.dumps(updates.model_dump(mode="json", exclude_none=True))
        return self._update_returning(
            tenant_id,
            story_id,
            "settings = COALESCE(settings, '{}'::jsonb) || %s::jsonb, updated_at = %s",
            [patch, now],
        )

    def set_mode(
        self,
        tenant_id: str,
        story_id: str,
        mode: StoryMode,
        now: datetime,
    ) -> Optional[Story]:
        return self._update_returning(
            tenant_id,
            story_id,
            "settings = jsonb_set(COALESCE(settings, '{}'::jsonb), '{mode}', to_jsonb(%s::text)), "
            "updated_at = %s",
            [mode.value, now],
        )

    def open(self, tenant_id: str, story_id: str, now: datetime) -> Optional[Story]:
        return self._update_returning(
            tenant_id,
            story_id,
            "is_closed = FALSE, closed_at = NULL, updated_at = %s",
            [now],
        )

    def close(self, tenant_id: str, story_id: str, now: datetime) -> Optional[Story]:
        return self._update_returning(
            tenant_id,
            story_id,
            "is_closed = TRUE, closed_at = %s, updated_at = %s",
            [now, now],
        )

    def update_counts(
        self,
        tenant_id: str,
        story_id: str,
        counts: RelatedCommentCounts,
    ) -> Optional[Story]:
        """Replace the embedded comment counts with an already-merged value."""
        return self._update_returning(
            tenant_id, story_id, "comment_counts = %s", [_dump_model(counts)]
        )

    def update_scraped_metadata(
        self,
        tenant_id: str,
        story_id: str,
        metadata: StoryMetadata,
        scraped_at: datetime,
    ) -> Optional[Story]:
        return self._update_returning(
            tenant_id,
            story_id,
            "metadata = %s, scraped_at = %s, updated_at = %s",
            [_dump_model(metadata), scraped_at, scraped_at],
        )

    def add_expert(self, tenant_id: str, story_id: str, user_id: str) -> Optional[Story]:
        # array_remove first keeps the list free of duplicates
        return self._update_returning(
            tenant_id,
            story_id,
            "expert_ids = array_append(array_remove(COALESCE(expert_ids, '{}'), %s), %s)",
            [user_id, user_id],
        )

    def remove_expert(self, tenant_id: str, story_id: str, user_id: str) -> Optional[Story]:
        return self._update_returning(
            tenant_id,
            story_id,
            "expert_ids = array_remove(COALESCE(expert_ids, '{}'), %s)",
            [user_id],
        )

    # -------------------------------------------------------------------------
    # Reparenting and deletes
    # -------------------------------------------------------------------------

    def merge_comment_stories(
        self, tenant_id: str, destination_id: str, source_ids: Sequence[str]
    ) -> int:
        """Point every comment on a source story at the destination."""
        with self.db.cursor() as cur:
            cur.execute("""
                UPDATE comments
                SET story_id = %s
                WHERE tenant_id = %s AND story_id = ANY(%s)
            """, (destination_id, tenant_id, list(source_ids)))
            return cur.rowcount

    def merge_story_actions(
        self, tenant_id: str, destination_id: str, source_ids: Sequence[str]
    ) -> int:
        """Point every comment action on a source story at the destination."""
        with self.db.cursor() as cur:
            cur.execute("""
                UPDATE comment_actions
                SET story_id = %s
                WHERE tenant_id = %s AND story_id = ANY(%s)
            """, (destination_id, tenant_id, list(source_ids)))
            return cur.rowcount

    def remove_story(self, tenant_id: str, story_id: str) -> Optional[Story]:
        with self.db.cursor() as cur:
            cur.execute(f"""
                DELETE FROM stories
                WHERE tenant_id = %s AND id = %s
                RETURNING {STORY_COLUMNS}
            """, (tenant_id, story_id))
            row = cur.fetchone()
            return self._row_to_story(row) if row else None

    def remove_stories(self, tenant_id: str, story_ids: Sequence[str]) -> int:
        with self.db.cursor() as cur:
            cur.execute("""
                DELETE FROM stories
                WHERE tenant_id = %s AND id = ANY(%s)
            """, (tenant_id, list(story_ids)))
            return cur.rowcount

    def remove_story_comments(self, tenant_id: str, story_id: str) -> int:
        with self.db.cursor() as cur:
            cur.execute("""
                DELETE FROM comments
                WHERE tenant_id = %s AND story_id = %s
            """, (tenant_id, story_id))
            return cur.rowcount

    def remove_story_actions(self, tenant_id: str, story_id: str) -> int:
        with self.db.cursor() as cur:
            cur.execute("""
                DELETE FROM comment_actions
                WHERE tenant_id = %s AND story_id = %s
            """, (tenant_id, story_id))
            return cur.rowcount

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _update_returning(
        self,
        tenant_id: str,
        story_id: str,
        set_clause: str,
        values: list,
    ) -> Optional[Story]:
        with self.db.cursor() as cur:
            cur.execute(f"""
                UPDATE stories
                SET {set_clause}
                WHERE tenant_id = %s AND id = %s
                RETURNING {STORY_COLUMNS}
            """, list(values) + [tenant_id, story_id])
            row = cur.fetchone()

        if not row:
            logger.debug(f"story {story_id} not found for update (tenant={tenant_id})")
            return None
        return self._row_to_story(row)

    def _row_to_story(self, row: dict) -> Story:
        """Convert database row to Story model."""
        metadata = _parse_json(row.get("metadata"))
        settings = _parse_json(row.get("settings")) or {}
        counts = _parse_json(row.get("comment_counts")) or {}

        return Story(
            id=row["id"],
            tenant_id=row["tenant_id"],
            url=row["url"],
            site_id=row.get("site_id"),
            metadata=StoryMetadata(**metadata) if metadata else None,
            scraped_at=row.get("scraped_at"),
            settings=StorySettings(
                **{**settings, "expert_ids": row.get("expert_ids") or []}
            ),
            comment_counts=RelatedCommentCounts(**counts),
            is_closed=bool(row.get("is_closed")),
            closed_at=row.get("closed_at"),
            last_commented_at=row.get("last_commented_at"),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )
