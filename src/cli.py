#!/usr/bin/env python
"""
Story Aggregation CLI - operator commands.

Usage:
    python -m src.cli init-db                                # Create tables
    python -m src.cli merge -t example.com DEST SRC1 SRC2    # Merge stories
    python -m src.cli remove -t example.com STORY_ID         # Remove a story
    python -m src.cli live -t example.com STORY_ID           # Live update status
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.db.connection import get_connection, init_db
from src.logging_utils import configure_safe_logging
from src.story_aggregation.config import load_config
from src.story_aggregation.errors import StoryError, TenantNotFoundError
from src.story_aggregation.services import (
    StoryLiveSource,
    StoryMergeService,
    StoryService,
    TenantService,
)

logger = logging.getLogger(__name__)


def _tenant(conn, domain: str):
    tenant = TenantService(conn).retrieve_by_domain(domain)
    if not tenant:
        raise TenantNotFoundError(domain)
    return tenant


def cmd_init_db(args):
    """Create the schema."""
    init_db()
    print("Schema created.")


def cmd_merge(args):
    """Merge source stories into a destination story."""
    with get_connection() as conn:
        tenant = _tenant(conn, args.tenant)
        result = StoryMergeService(conn).merge(tenant, args.destination, args.sources)

    counts = result.story.comment_counts
    print(f"\nMerged {len(args.sources)} stories into {result.story.id}")
    print("-" * 50)
    print(f"{'Comments moved':<25} {result.updated_comments}")
    print(f"{'Actions moved':<25} {result.updated_actions}")
    print(f"{'Source stories deleted':<25} {result.deleted_stories}")
    print(f"{'Moderation queue total':<25} {counts.moderation_queue.total}")
    for status, count in counts.status.items():
        print(f"  {status:<23} {count}")
    print()


def cmd_remove(args):
    """Remove a story, optionally with its comments."""
    with get_connection() as conn:
        tenant = _tenant(conn, args.tenant)
        story = StoryService(conn, config=load_config()).remove(
            tenant, args.story_id, include_comments=args.include_comments
        )

    if not story:
        print(f"Story {args.story_id} not found.")
        return
    print(f"Removed story {story.id} ({story.url})")


def cmd_live(args):
    """Show whether live updates are enabled for a story."""
    with get_connection() as conn:
        tenant = _tenant(conn, args.tenant)
        service = StoryService(conn, config=load_config())
        story = service.find(tenant, story_id=args.story_id)
        if not story:
            print(f"Story {args.story_id} not found.")
            return
        enabled = service.is_live_enabled(
            tenant, StoryLiveSource(story), datetime.now(timezone.utc)
        )

    print(f"Live updates for {story.id}: {'enabled' if enabled else 'disabled'}")


def main():
    parser = argparse.ArgumentParser(
        description="Story Aggregation CLI - operator commands",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m src.cli init-db
  python -m src.cli merge -t news.example.com story-1 story-2 story-3
  python -m src.cli remove -t news.example.com story-9 --include-comments
  python -m src.cli live -t news.example.com story-1
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command")

    p_init = subparsers.add_parser("init-db", help="Create database tables")
    p_init.set_defaults(func=cmd_init_db)

    p_merge = subparsers.add_parser("merge", help="Merge stories into one")
    p_merge.add_argument("-t", "--tenant", required=True, help="Tenant domain")
    p_merge.add_argument("destination", help="Destination story ID")
    p_merge.add_argument("sources", nargs="+", help="Source story IDs")
    p_merge.set_defaults(func=cmd_merge)

    p_remove = subparsers.add_parser("remove", help="Remove a story")
    p_remove.add_argument("-t", "--tenant", required=True, help="Tenant domain")
    p_remove.add_argument("story_id", help="Story ID")
    p_remove.add_argument(
        "--include-comments", action="store_true", help="Also delete comments and actions"
    )
    p_remove.set_defaults(func=cmd_remove)

    p_live = subparsers.add_parser("live", help="Show live update status")
    p_live.add_argument("-t", "--tenant", required=True, help="Tenant domain")
    p_live.add_argument("story_id", help="Story ID")
    p_live.set_defaults(func=cmd_live)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    configure_safe_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        args.func(args)
    except StoryError as e:
        print(f"Error ({e.code}): {e.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
