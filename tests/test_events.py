"""
Event broker tests.
"""

import asyncio
import logging

import pytest
from fastapi import BackgroundTasks

from src.api.deps import get_event_broker
from src.story_aggregation.models import StoryCreatedEvent
from src.story_aggregation.services import EventBroker, log_event_handler


@pytest.fixture
def event():
    return StoryCreatedEvent(
        story_id="story-1", story_url="https://news.example.com/story-1", site_id="site-1"
    )


@pytest.fixture
def background_tasks():
    return BackgroundTasks()


def _run(background_tasks):
    """Run scheduled tasks the way Starlette does after sending the response."""
    asyncio.run(background_tasks())


class TestEventBroker:
    def test_publish_only_schedules(self, background_tasks, event):
        received = []
        broker = EventBroker(background_tasks, handlers=[lambda name, e: received.append(name)])

        broker.publish("STORY_CREATED", event)

        assert received == []
        assert len(background_tasks.tasks) == 1

    def test_delivers_to_handlers(self, background_tasks, event):
        received = []
        broker = EventBroker(background_tasks)
        broker.subscribe(lambda name, e: received.append((name, e)))

        broker.publish("STORY_CREATED", event)
        _run(background_tasks)

        assert received == [("STORY_CREATED", event)]

    def test_failing_handler_does_not_stop_others(self, background_tasks, event, caplog):
        received = []

        def explode(name, e):
            raise RuntimeError("handler down")

        broker = EventBroker(
            background_tasks, handlers=[explode, lambda name, e: received.append(name)]
        )

        with caplog.at_level(logging.ERROR):
            broker.publish("STORY_CREATED", event)
            _run(background_tasks)

        assert received == ["STORY_CREATED"]
        assert "event handler failed for STORY_CREATED" in caplog.text

    def test_no_handlers(self, background_tasks, event):
        EventBroker(background_tasks).publish("STORY_CREATED", event)

        _run(background_tasks)


def test_request_broker_logs_events(background_tasks, event, caplog):
    broker = get_event_broker(background_tasks)

    with caplog.at_level(logging.INFO):
        broker.publish("STORY_CREATED", event)
        _run(background_tasks)

    assert broker.background_tasks is background_tasks
    assert "event STORY_CREATED" in caplog.text


def test_log_event_handler(event, caplog):
    with caplog.at_level(logging.INFO):
        log_event_handler("STORY_CREATED", event)

    assert "event STORY_CREATED" in caplog.text
    assert "story-1" in caplog.text
