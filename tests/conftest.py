"""
Pytest configuration for story aggregation tests.

Test Tier System:
- fast (default): Pure unit tests, all I/O mocked
- medium: API TestClient tests with mocked dependencies
- slow: Tests that need a real PostgreSQL database

Run tiers:
- pytest                          # Fast + Medium (default)
- pytest -m fast                  # Fast only (quick feedback)
- pytest -m medium                # Medium only
- pytest --override-ini="addopts=" -v   # Full suite (all tiers)

Note: Unmarked tests are auto-assigned to 'fast' tier.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, Mock

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.story_aggregation.models import (
    RelatedCommentCounts,
    Story,
    StorySettings,
    Tenant,
)


# =============================================================================
# Tier Auto-Assignment
# =============================================================================

def pytest_collection_modifyitems(config, items):
    """
    Automatically assign tier markers to unmarked tests.

    Tests are fast by default unless explicitly marked as medium or slow.
    Tests marked @pytest.mark.integration without a tier default to medium.
    """
    for item in items:
        has_tier = (
            list(item.iter_markers(name='fast')) or
            list(item.iter_markers(name='medium')) or
            list(item.iter_markers(name='slow'))
        )
        if has_tier:
            continue

        if list(item.iter_markers(name='skip')):
            continue

        if list(item.iter_markers(name='integration')):
            item.add_marker(pytest.mark.medium)
            continue

        item.add_marker(pytest.mark.fast)


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def now():
    """Fixed request time."""
    return datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def tenant():
    """Tenant with scraping on and no gated features."""
    return Tenant(id="tenant-1", domain="news.example.com")


@pytest.fixture
def mock_db():
    """Create a mock database connection and its cursor."""
    db = Mock()
    cursor = MagicMock()
    db.cursor.return_value.__enter__ = Mock(return_value=cursor)
    db.cursor.return_value.__exit__ = Mock(return_value=False)
    return db, cursor


@pytest.fixture
def make_story(now):
    """Factory for Story models with sensible defaults."""

    def _make(story_id="story-1", approved=0, site_id="site-1", **overrides):
        counts = RelatedCommentCounts(status={"APPROVED": approved})
        fields = dict(
            id=story_id,
            tenant_id="tenant-1",
            url=f"https://news.example.com/{story_id}",
            site_id=site_id,
            settings=StorySettings(),
            comment_counts=counts,
            created_at=now,
        )
        fields.update(overrides)
        return Story(**fields)

    return _make
