"""PostgreSQL database connection and schema setup."""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import psycopg2
from psycopg2.extras import RealDictCursor

from src.story_aggregation.config import load_config


def get_connection_string() -> str:
    """Get database connection string from environment."""
    return load_config().database_url


@contextmanager
def get_connection() -> Generator:
    """
    Get a database connection context manager.

    Everything done on the connection is one transaction: committed when
    the block exits normally, rolled back on any exception.
    """
    conn = psycopg2.connect(get_connection_string(), cursor_factory=RealDictCursor)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db() -> None:
    """Initialize database schema."""
    schema_path = Path(__file__).parent / "schema.sql"
    with open(schema_path) as f:
        schema_sql = f.read()

    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(schema_sql)
