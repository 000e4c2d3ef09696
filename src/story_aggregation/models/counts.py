"""
Comment Count Models

Rolled-up comment counts embedded on every story document.
"""

from enum import Enum
from typing import Dict

from pydantic import BaseModel, Field, StrictInt, field_validator, model_validator


class CommentStatus(str, Enum):
    """Moderation status of a comment."""

    APPROVED = "APPROVED"
    NONE = "NONE"
    PREMOD = "PREMOD"
    REJECTED = "REJECTED"
    SYSTEM_WITHHELD = "SYSTEM_WITHHELD"


class CommentModerationCountsPerQueue(BaseModel):
    """Comments waiting in each moderation queue (queues overlap)."""

    unmoderated: int = Field(default=0, ge=0)
    reported: int = Field(default=0, ge=0)
    pending: int = Field(default=0, ge=0)


class CommentModerationQueueCounts(BaseModel):
    """Unresolved moderation workload plus the per-queue breakdown."""

    total: int = Field(default=0, ge=0)
    queues: CommentModerationCountsPerQueue = Field(
        default_factory=CommentModerationCountsPerQueue
    )

    @model_validator(mode="after")
    def _check_total_covers_queues(self) -> "CommentModerationQueueCounts":
        queued = self.queues.unmoderated + self.queues.reported + self.queues.pending
        if self.total < queued:
            raise ValueError(
                f"moderation queue total {self.total} is less than the queued sum {queued}"
            )
        return self


class RelatedCommentCounts(BaseModel):
    """
    Counts stored on a story.

    `status` always carries every CommentStatus key. `action` is sparse:
    a missing action type means zero.
    """

    status: Dict[str, StrictInt] = Field(
        default_factory=lambda: {s.value: 0 for s in CommentStatus}
    )
    moderation_queue: CommentModerationQueueCounts = Field(
        default_factory=CommentModerationQueueCounts
    )
    action: Dict[str, StrictInt] = Field(default_factory=dict)

    @field_validator("status")
    @classmethod
    def _fill_status_keys(cls, value: Dict[str, int]) -> Dict[str, int]:
        unknown = set(value) - {s.value for s in CommentStatus}
        if unknown:
            raise ValueError(f"unknown comment status keys: {sorted(unknown)}")
        filled = {s.value: value.get(s.value, 0) for s in CommentStatus}
        if any(v < 0 for v in filled.values()):
            raise ValueError("status counts must be non-negative")
        return filled

    @field_validator("action")
    @classmethod
    def _check_action_counts(cls, value: Dict[str, int]) -> Dict[str, int]:
        if any(v < 0 for v in value.values()):
            raise ValueError("action counts must be non-negative")
        return value
