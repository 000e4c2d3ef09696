"""
Transaction handling of the database helpers.
"""

from unittest.mock import MagicMock, patch

import pytest

from src.api.deps import get_db
from src.db.connection import get_connection, get_connection_string


def test_connection_string_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://db:5432/stories_test")

    assert get_connection_string() == "postgresql://db:5432/stories_test"


@patch("src.db.connection.psycopg2.connect")
def test_commits_on_success(mock_connect):
    conn = MagicMock()
    mock_connect.return_value = conn

    with get_connection() as c:
        assert c is conn

    conn.commit.assert_called_once()
    conn.rollback.assert_not_called()
    conn.close.assert_called_once()


@patch("src.db.connection.psycopg2.connect")
def test_rolls_back_on_error(mock_connect):
    conn = MagicMock()
    mock_connect.return_value = conn

    with pytest.raises(RuntimeError):
        with get_connection():
            raise RuntimeError("merge failed half way")

    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    conn.close.assert_called_once()


@patch("src.api.deps.psycopg2.connect")
def test_request_dependency_is_one_transaction(mock_connect):
    conn = MagicMock()
    mock_connect.return_value = conn

    gen = get_db()
    assert next(gen) is conn
    with pytest.raises(ValueError):
        gen.throw(ValueError("request failed"))

    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    conn.close.assert_called_once()
