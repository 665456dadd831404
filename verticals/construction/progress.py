"""Project progress aggregation.

A project's progress is the rounded share of its tasks that are complete.
It is recomputed from scratch every time; there are no running counters.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from patterns.workflow_states import is_completed
from verticals.construction.repository import ProjectRepository, TaskRepository

logger = logging.getLogger(__name__)


def compute_progress(statuses: Iterable[str]) -> int:
    """Percentage (0-100) of ``statuses`` that count as complete.

    Half-way values round up, so 1 of 8 gives 13 and 1 of 200 gives 1.
    """
    statuses = list(statuses)
    if not statuses:
        return 0
    completed = sum(1 for status in statuses if is_completed(status))
    share = Decimal(100 * completed) / Decimal(len(statuses))
    return int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


async def recompute_project_progress(session: AsyncSession, project_id: int) -> int:
    """Recompute and persist ``Project.progress``; returns the new value."""
    statuses = await TaskRepository(session).statuses_for_project(project_id)
    progress = compute_progress(statuses)
    await ProjectRepository(session).set_progress(project_id, progress)
    await session.commit()
    logger.info(
        "Project %s progress set to %d%% (%d tasks)", project_id, progress, len(statuses)
    )
    return progress
