"""Database module for the story aggregation service."""

from .connection import get_connection, get_connection_string, init_db

__all__ = [
    "get_connection",
    "get_connection_string",
    "init_db",
]
