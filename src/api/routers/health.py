"""
Health Check Endpoints

Liveness and database readiness checks for load balancers.
"""

import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.api.deps import get_db


router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: datetime


class DatabaseHealthResponse(BaseModel):
    """Database connectivity and schema check response."""
    connected: bool
    stories_table: bool = False
    latency_ms: Optional[float] = None
    error: Optional[str] = None


@router.get("/health", response_model=HealthResponse)
def health_check():
    """
    Returns 200 OK if the API is running. Does not touch the database.
    """
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc))


@router.get("/health/db", response_model=DatabaseHealthResponse)
def database_health_check(db=Depends(get_db)):
    """
    Verify the database is reachable and the stories table exists.
    """
    try:
        start = time.time()
        with db.cursor() as cur:
            cur.execute("SELECT to_regclass('public.stories') IS NOT NULL AS present")
            row = cur.fetchone()
        latency = (time.time() - start) * 1000  # Convert to ms

        return DatabaseHealthResponse(
            connected=True,
            stories_table=bool(row and row["present"]),
            latency_ms=round(latency, 2),
        )
    except Exception as e:
        return DatabaseHealthResponse(connected=False, error=str(e))
