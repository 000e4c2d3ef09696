"""
Comment Count Aggregation

Pure functions that build empty count structures and merge any number of
them. Merging is coordinate-wise summation over the union of keys, so the
result never depends on argument order or grouping.
"""

from typing import Dict, Mapping

from .models import (
    CommentModerationCountsPerQueue,
    CommentModerationQueueCounts,
    CommentStatus,
    RelatedCommentCounts,
)


def create_empty_moderation_counts_per_queue() -> CommentModerationCountsPerQueue:
    return CommentModerationCountsPerQueue(unmoderated=0, reported=0, pending=0)


def create_empty_moderation_queue_counts() -> CommentModerationQueueCounts:
    return CommentModerationQueueCounts(
        total=0,
        queues=create_empty_moderation_counts_per_queue(),
    )


def create_empty_status_counts() -> Dict[str, int]:
    return {status.value: 0 for status in CommentStatus}


def create_empty_related_counts() -> RelatedCommentCounts:
    return RelatedCommentCounts(
        action={},
        status=create_empty_status_counts(),
        moderation_queue=create_empty_moderation_queue_counts(),
    )


def _sum_maps(*counts: Mapping[str, int]) -> Dict[str, int]:
    merged: Dict[str, int] = {}
    for count in counts:
        for key, value in count.items():
            merged[key] = merged.get(key, 0) + value
    return merged


def merge_status_counts(*counts: Mapping[str, int]) -> Dict[str, int]:
    """Sum status counts; every status key is present in the result."""
    return _sum_maps(create_empty_status_counts(), *counts)


def merge_moderation_queue_counts(
    *counts: CommentModerationQueueCounts,
) -> CommentModerationQueueCounts:
    """Sum the queue totals and each queue's count."""
    # Built in one go so the total/queue check runs on the result
    return CommentModerationQueueCounts(
        total=sum(c.total for c in counts),
        queues=CommentModerationCountsPerQueue(
            unmoderated=sum(c.queues.unmoderated for c in counts),
            reported=sum(c.queues.reported for c in counts),
            pending=sum(c.queues.pending for c in counts),
        ),
    )


def merge_action_counts(*counts: Mapping[str, int]) -> Dict[str, int]:
    """Sum sparse action counts over the union of action types."""
    return _sum_maps(*counts)


def merge_related_counts(*counts: RelatedCommentCounts) -> RelatedCommentCounts:
    return RelatedCommentCounts(
        status=merge_status_counts(*(c.status for c in counts)),
        moderation_queue=merge_moderation_queue_counts(
            *(c.moderation_queue for c in counts)
        ),
        action=merge_action_counts(*(c.action for c in counts)),
    )


def calculate_total_comment_count(status: Mapping[str, int]) -> int:
    """Total comments across every status."""
    return sum(status.get(s.value, 0) for s in CommentStatus)
