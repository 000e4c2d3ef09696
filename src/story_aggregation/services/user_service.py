"""User lookups needed before changing a story's experts."""

from typing import Optional

from ..models import User


class UserService:
    def __init__(self, db_connection):
        self.db = db_connection

    def retrieve(self, tenant_id: str, user_id: str) -> Optional[User]:
        with self.db.cursor() as cur:
            cur.execute("""
                SELECT id, tenant_id, username
                FROM users
                WHERE tenant_id = %s AND id = %s
            """, (tenant_id, user_id))
            row = cur.fetchone()
            return User(**row) if row else None
