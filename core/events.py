"""
In-process event bus for post-commit side effects.

A write path commits its primary change first and then publishes an event.
Each subscriber runs inside its own error boundary:
- Fan-out to every handler registered for the event name
- Handlers run one after another on the caller's session
- A failing handler is logged and recorded, never raised to the publisher
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class TrackerEvent(str, Enum):
    """Event names published by the tracker."""
    TASK_STATUS_CHANGED = "task.status_changed"
    TASK_COMPLETED = "task.completed"


@dataclass
class Event:
    """A published event."""
    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class HandlerOutcome:
    """Record of one handler invocation."""
    handler: str
    event: str
    success: bool
    error: str | None = None


Handler = Callable[[AsyncSession, Event], Awaitable[Any]]


class EventBus:
    """Dispatches events to subscribed async handlers."""

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = {}

    def subscribe(self, event: str, handler: Handler) -> None:
        self._handlers.setdefault(str(getattr(event, "value", event)), []).append(handler)

    def handlers_for(self, event: str) -> list[Handler]:
        return list(self._handlers.get(str(getattr(event, "value", event)), []))

    async def publish(self, session: AsyncSession, event: Event) -> list[HandlerOutcome]:
        """
        Run every handler subscribed to ``event.name``.
        Failures roll back the handler's own uncommitted work and are logged.
        """
        outcomes: list[HandlerOutcome] = []
        for handler in self.handlers_for(event.name):
            name = getattr(handler, "__qualname__", repr(handler))
            try:
                await handler(session, event)
                outcomes.append(HandlerOutcome(handler=name, event=event.name, success=True))
            except Exception as exc:
                await session.rollback()
                logger.exception(
                    "Handler %s failed for event %s (%s) payload=%s",
                    name, event.name, event.id, event.payload,
                )
                outcomes.append(
                    HandlerOutcome(handler=name, event=event.name, success=False, error=str(exc))
                )
        return outcomes
