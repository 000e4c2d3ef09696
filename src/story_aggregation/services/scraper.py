"""
Story Scraper

Two entry points for populating story metadata:

- ScraperQueue.add() records a one-shot job for the out-of-process worker
  (used by find-or-create, which must not block on the page fetch).
- StoryScraper.scrape() fetches the page now and stores what it finds
  (used by explicit create).

Only the page title and the OpenGraph/article meta tags are read.
"""

import html
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Optional

import requests

from ..models import ScrapeTask, Story, StoryMetadata
from .story_repository import StoryRepository

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "StoryScraper/1.0"

META_TAG_PATTERN = re.compile(r"<meta\s+[^>]*>", re.IGNORECASE)
META_ATTR_PATTERN = re.compile(r'(\w[\w:-]*)\s*=\s*"([^"]*)"|(\w[\w:-]*)\s*=\s*\'([^\']*)\'')
TITLE_PATTERN = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)

# meta property/name -> StoryMetadata field, first match wins
META_FIELDS = {
    "og:title": "title",
    "og:description": "description",
    "description": "description",
    "og:image": "image",
    "author": "author",
    "article:author": "author",
    "article:section": "section",
    "article:published_time": "published_at",
    "article:modified_time": "modified_at",
}


def _parse_meta_tags(page: str) -> Dict[str, str]:
    tags: Dict[str, str] = {}
    for tag in META_TAG_PATTERN.findall(page):
        attrs = {}
        for match in META_ATTR_PATTERN.finditer(tag):
            key = (match.group(1) or match.group(3)).lower()
            attrs[key] = match.group(2) if match.group(1) else match.group(4)
        name = (attrs.get("property") or attrs.get("name") or "").lower()
        content = attrs.get("content")
        if name and content and name not in tags:
            tags[name] = html.unescape(content.strip())
    return tags


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        if value.endswith("Z"):
            value = value.replace("Z", "+00:00")
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug(f"unparseable meta datetime {value!r}")
        return None


def extract_metadata(page: str) -> StoryMetadata:
    """Build StoryMetadata from a page's <title> and meta tags."""
    tags = _parse_meta_tags(page)
    fields: Dict[str, Optional[str]] = {}
    for name, field in META_FIELDS.items():
        if name in tags and not fields.get(field):
            fields[field] = tags[name]

    if not fields.get("title"):
        title_match = TITLE_PATTERN.search(page)
        if title_match:
            fields["title"] = html.unescape(title_match.group(1).strip())

    return StoryMetadata(
        title=fields.get("title"),
        author=fields.get("author"),
        description=fields.get("description"),
        image=fields.get("image"),
        section=fields.get("section"),
        published_at=_parse_datetime(fields.get("published_at")),
        modified_at=_parse_datetime(fields.get("modified_at")),
    )


class ScraperQueue:
    """Enqueue scrape jobs for the background worker. Jobs are never retried here."""

    def __init__(self, db_connection):
        self.db = db_connection

    def add(self, task: ScrapeTask) -> int:
        with self.db.cursor() as cur:
            cur.execute("""
                INSERT INTO scraper_jobs (tenant_id, story_id, story_url)
                VALUES (%s, %s, %s)
                RETURNING id
            """, (task.tenant_id, task.story_id, task.story_url))
            job_id = cur.fetchone()["id"]

        logger.info(f"queued scrape job {job_id} for story {task.story_id}")
        return job_id


class StoryScraper:
    """Fetch a story page synchronously and persist its metadata."""

    def __init__(
        self,
        repository: StoryRepository,
        timeout: float = 10,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.repository = repository
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml",
        })

    def fetch_metadata(self, story_url: str) -> Optional[StoryMetadata]:
        try:
            response = self.session.get(story_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Scrape failed for {story_url}: {e}")
            return None
        return extract_metadata(response.text)

    def scrape(self, tenant_id: str, story_id: str, story_url: str) -> Optional[Story]:
        """
        Scrape `story_url` and store the result on the story.

        Returns the updated story, the unchanged story when the page could
        not be fetched, or None when the story no longer exists.
        """
        metadata = self.fetch_metadata(story_url)
        if metadata is None:
            return self.repository.retrieve(tenant_id, story_id)

        return self.repository.update_scraped_metadata(
            tenant_id, story_id, metadata, datetime.now(timezone.utc)
        )
