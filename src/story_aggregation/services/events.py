"""
Story Event Broker

Outbound channel for story events. `publish` schedules delivery on the
request's FastAPI BackgroundTasks and returns immediately; the handlers
run after the response has been sent. Handler failures are logged and
never reach the code that published the event.
"""

import logging
from typing import Callable, List, Optional

from fastapi import BackgroundTasks
from pydantic import BaseModel

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, BaseModel], None]


class EventBroker:
    """Fire-and-forget publisher bound to one request's background tasks."""

    def __init__(
        self,
        background_tasks: BackgroundTasks,
        handlers: Optional[List[EventHandler]] = None,
    ):
        self.background_tasks = background_tasks
        self._handlers: List[EventHandler] = list(handlers or [])

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def publish(self, name: str, event: BaseModel) -> None:
        """Schedule `event` for delivery once the response is out."""
        # Sync callables run in Starlette's threadpool, off the event loop
        self.background_tasks.add_task(self._deliver, name, event)

    def _deliver(self, name: str, event: BaseModel) -> None:
        for handler in self._handlers:
            try:
                handler(name, event)
            except Exception:
                logger.error(f"event handler failed for {name}", exc_info=True)


def log_event_handler(name: str, event: BaseModel) -> None:
    """Default subscriber: record every published event."""
    logger.info(f"event {name}: {event.model_dump_json()}")
