"""
Site Service

Resolves a story URL to the registered site whose allowed origins cover it.
"""

import logging
from typing import Optional
from urllib.parse import urlsplit

from ..models import Site

logger = logging.getLogger(__name__)


def get_origin(url: str) -> Optional[str]:
    """Return `scheme://host[:port]` for an absolute http(s) URL, else None."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}".lower()


class SiteService:
    """Read-only lookups against the tenant's registered sites."""

    def __init__(self, db_connection):
        self.db = db_connection

    def find_by_url(self, tenant_id: str, url: str) -> Optional[Site]:
        """Find the site allowed to host `url`, or None."""
        origin = get_origin(url)
        if not origin:
            logger.debug(f"url {url!r} has no usable origin")
            return None

        with self.db.cursor() as cur:
            cur.execute("""
                SELECT id, tenant_id, name, allowed_origins
                FROM sites
                WHERE tenant_id = %s AND %s = ANY(allowed_origins)
                ORDER BY created_at ASC
                LIMIT 1
            """, (tenant_id, origin))
            row = cur.fetchone()

        if not row:
            return None
        return Site(
            id=row["id"],
            tenant_id=row["tenant_id"],
            name=row["name"],
            allowed_origins=row["allowed_origins"] or [],
        )
