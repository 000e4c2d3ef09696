"""
Tenant Service

Loads the tenant that owns a request hostname. Only the API layer calls
this; the story services always receive an already-resolved Tenant.
"""

import json
import logging
from typing import Optional

from ..models import Tenant

logger = logging.getLogger(__name__)


class TenantService:
    def __init__(self, db_connection):
        self.db = db_connection

    def retrieve_by_domain(self, domain: str) -> Optional[Tenant]:
        with self.db.cursor() as cur:
            cur.execute("""
                SELECT id, domain, feature_flags, live, stories
                FROM tenants
                WHERE domain = %s
            """, (domain.lower(),))
            row = cur.fetchone()

        if not row:
            logger.info(f"no tenant for domain {domain}")
            return None

        live = row.get("live")
        stories = row.get("stories")
        return Tenant(
            id=row["id"],
            domain=row["domain"],
            feature_flags=row.get("feature_flags") or [],
            live=json.loads(live) if isinstance(live, str) else (live or {}),
            stories=json.loads(stories) if isinstance(stories, str) else (stories or {}),
        )
