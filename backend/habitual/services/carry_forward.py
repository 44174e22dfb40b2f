"""Move unfinished sticky tasks onto the day being populated."""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional, Set
from uuid import UUID

from habitual.core.dates import local_today
from habitual.observability.tracing import traced
from habitual.services.errors import TaskWriteError
from habitual.services.stores.base import TaskFilter, TaskStore

logger = logging.getLogger(__name__)


@traced("tasks.carry_forward")
def carry_forward(
    store: TaskStore,
    *,
    user_id: UUID,
    target_day: date,
    today: Optional[date] = None,
) -> int:
    """Relocate the user's open sticky tasks due before ``target_day`` onto it.

    Only runs for days that have started (``target_day <= today``). Returns the
    number of tasks moved. A generated task whose activity already has a
    row on ``target_day`` (live or deleted) is retired instead of moved, so each
    sticky activity keeps a single open occurrence.
    """
    today = today or local_today()
    if target_day > today:
        return 0

    stale = store.find_tasks(
        TaskFilter(
            user_id=user_id,
            is_sticky=True,
            is_completed=False,
            is_deleted=False,
            due_before=target_day,
        )
    )
    if not stale:
        return 0

    occupied: Set[UUID] = set()
    activity_ids = {task.activity_id for task in stale if task.activity_id is not None}
    if activity_ids:
        occupied = {
            task.activity_id
            for task in store.find_tasks(
                TaskFilter(
                    user_id=user_id,
                    activity_ids=activity_ids,
                    due_from=target_day,
                    due_before=target_day + timedelta(days=1),
                )
            )
        }

    moved = retired = 0
    # Newest first, so the most recent copy of a generated task is the one that moves.
    for task in sorted(stale, key=lambda item: item.due_date, reverse=True):
        try:
            if task.activity_id is not None and task.activity_id in occupied:
                retired += store.update_tasks(TaskFilter(task_ids=[task.id]), {"is_deleted": True})
                continue
            moved += store.update_tasks(
                TaskFilter(task_ids=[task.id], is_completed=False),
                {"due_date": target_day},
            )
            if task.activity_id is not None:
                occupied.add(task.activity_id)
        except TaskWriteError:
            logger.exception("Failed to carry sticky task %s forward to %s", task.id, target_day)

    if moved or retired:
        logger.info("Carried %s sticky tasks to %s for user %s (%s superseded)", moved, target_day, user_id, retired)
    return moved
