"""
FastAPI Dependency Injection

Provides the database connection, configuration, event broker, request
context and resolved tenant shared by the story endpoints.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Generator

import psycopg2
from fastapi import BackgroundTasks, Depends, Request
from psycopg2.extras import RealDictCursor

from src.db.connection import get_connection_string
from src.story_aggregation.config import Config, load_config
from src.story_aggregation.errors import TenantNotFoundError
from src.story_aggregation.models import Tenant
from src.story_aggregation.services import EventBroker, TenantService, log_event_handler


def get_db() -> Generator:
    """
    FastAPI dependency for database connections.

    Yields a database connection with RealDictCursor for dict-style row access.
    The whole request is one transaction: commits on success, rolls back on
    error, and always closes the connection.
    """
    conn = psycopg2.connect(
        get_connection_string(),
        cursor_factory=RealDictCursor
    )
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Process-wide configuration, read from the environment once."""
    return load_config()


def get_event_broker(background_tasks: BackgroundTasks) -> EventBroker:
    """Event broker that delivers after the response, on this request's background tasks."""
    return EventBroker(background_tasks, handlers=[log_event_handler])


@dataclass(frozen=True)
class RequestContext:
    """Per-request trace id and the single `now` used for the whole request."""

    trace_id: str
    now: datetime


def get_request_context(request: Request) -> RequestContext:
    trace_id = getattr(request.state, "trace_id", None)
    now = getattr(request.state, "now", None) or datetime.now(timezone.utc)
    return RequestContext(trace_id=trace_id or "", now=now)


def get_tenant(request: Request, db=Depends(get_db)) -> Tenant:
    """Resolve the tenant that owns the request hostname."""
    hostname = request.url.hostname or ""
    tenant = TenantService(db).retrieve_by_domain(hostname)
    if not tenant:
        raise TenantNotFoundError(hostname)
    return tenant
