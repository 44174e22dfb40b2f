"""Apply reconcile plans to a task store one row at a time."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from habitual.services.errors import PersistenceConflict, TaskWriteError
from habitual.services.reconciler import ReconcilePlan
from habitual.services.stores.base import TaskFilter, TaskRecord, TaskStore

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of a bulk operation: rows changed and rows that failed and were skipped."""

    affected: int = 0
    failed: int = 0


@dataclass
class ApplyResult:
    created: int = 0
    updated: int = 0
    failed: int = 0
    conflicts: int = 0


def apply_plan(store: TaskStore, plan: ReconcilePlan) -> ApplyResult:
    result = ApplyResult()

    for task in plan.to_create:
        try:
            store.upsert_task(task)
        except PersistenceConflict:
            if _winner_exists(store, task):
                logger.info(
                    "Task for activity %s on %s was created concurrently; keeping the existing row",
                    task.activity_id,
                    task.due_date,
                )
                result.conflicts += 1
            else:
                logger.warning("Upsert conflict for activity %s on %s but no row found", task.activity_id, task.due_date)
                result.failed += 1
            continue
        except TaskWriteError:
            logger.exception("Failed to create task for activity %s on %s", task.activity_id, task.due_date)
            result.failed += 1
            continue
        result.created += 1

    for task in plan.to_update:
        try:
            result.updated += store.update_tasks(
                # Guard against the row being completed or deleted since it was read.
                TaskFilter(task_ids=[task.id], is_completed=False, is_deleted=False),
                {"title": task.title, "description": task.description},
            )
        except TaskWriteError:
            logger.exception("Failed to refresh task %s", task.id)
            result.failed += 1

    return result


def _winner_exists(store: TaskStore, task: TaskRecord) -> bool:
    return bool(
        store.find_tasks(
            TaskFilter(
                user_id=task.user_id,
                activity_ids=[task.activity_id],
                due_from=task.due_date,
                due_before=task.due_date + timedelta(days=1),
            )
        )
    )
