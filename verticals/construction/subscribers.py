"""Event subscribers for the construction vertical.

Wires the post-commit side effects of a task status change: project
progress recomputation and, for billable tasks moving into ``done``, the
billing trigger.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.events import Event, EventBus, Handler, TrackerEvent
from verticals.construction.billing import BillingTrigger, build_billing_trigger
from verticals.construction.config import config
from verticals.construction.progress import recompute_project_progress

logger = logging.getLogger(__name__)


async def refresh_progress_on_status_change(session: AsyncSession, event: Event) -> None:
    await recompute_project_progress(session, event.payload["projectId"])


def signal_billing_on_completion(trigger: BillingTrigger) -> Handler:
    """Build a handler that signals ``trigger`` once per move into ``done``."""

    async def handler(session: AsyncSession, event: Event) -> None:
        task = event.payload["task"]
        if event.payload.get("entersDone") and task.get("isBillable"):
            logger.info("Signalling billing for task %s", task["id"])
            await trigger.notify_task_completed(task)

    handler.__qualname__ = "signal_billing_on_completion"
    return handler


def build_event_bus(billing_trigger: BillingTrigger | None = None) -> EventBus:
    bus = EventBus()
    bus.subscribe(TrackerEvent.TASK_STATUS_CHANGED, refresh_progress_on_status_change)
    bus.subscribe(
        TrackerEvent.TASK_STATUS_CHANGED,
        signal_billing_on_completion(billing_trigger or build_billing_trigger(config.billing)),
    )
    return bus
