"""
Live update eligibility.

The caller says what it is asking about: a whole story (whose activity
and overrides matter) or a bare live-settings object. `now` is always
supplied by the caller.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Union

from ..config import Config
from ..models import LiveConfiguration, Story, Tenant


@dataclass(frozen=True)
class StoryLiveSource:
    story: Story


@dataclass(frozen=True)
class SettingsLiveSource:
    settings: LiveConfiguration


LiveSource = Union[StoryLiveSource, SettingsLiveSource]


def is_live_enabled(
    config: Config,
    tenant: Tenant,
    source: LiveSource,
    now: datetime,
) -> bool:
    """Decide whether real-time updates are on for a story or settings object."""
    if config.disable_live_updates:
        return False

    if isinstance(source, StoryLiveSource):
        story = source.story
        timeout = config.disable_live_updates_timeout
        if timeout > 0:
            last_activity = story.last_commented_at or story.created_at
            if last_activity + timedelta(milliseconds=timeout) <= now:
                # Dormant: nothing posted within the timeout.
                return False

        if story.settings.live is None:
            return tenant.live.enabled
        settings = story.settings.live
    else:
        settings = source.settings

    if settings.enabled is None:
        return tenant.live.enabled
    return settings.enabled
