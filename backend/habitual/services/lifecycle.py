"""Subscription and activity lifecycle effects on materialized tasks.

All operations share the same contract: past tasks (and, for rule edits, today's
tasks) are history and are never modified; writes happen row by row and a
failing row is logged and counted instead of aborting the batch. Missing
programs or activities raise NotFoundError before anything is written.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional
from uuid import UUID

from habitual.core.dates import iter_days, local_today
from habitual.observability.metrics import log_batch_metrics
from habitual.observability.tracing import traced
from habitual.services.batch import BatchResult, apply_plan
from habitual.services.day_population import scheduled_occurrences
from habitual.services.errors import TaskWriteError
from habitual.services.reconciler import reconcile
from habitual.services.recurrence import parse_rule
from habitual.services.stores.base import ActivityRecord, ProgramDirectory, TaskFilter, TaskRecord, TaskStore

logger = logging.getLogger(__name__)

# Subscribing materializes today plus the next 29 days; later days are filled lazily.
HORIZON_DAYS = 30


@traced("lifecycle.subscribe")
def on_subscribe(
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    user_id: UUID,
    program_id: UUID,
    today: Optional[date] = None,
) -> BatchResult:
    """Backfill the user's tasks for the program over the fixed horizon."""
    today = today or local_today()
    activities = directory.get_activities_for_program(program_id)
    result = _backfill(store, user_id, activities, today)
    logger.info(
        "Subscribe backfill for user %s program %s: %s tasks written, %s failed",
        user_id,
        program_id,
        result.affected,
        result.failed,
    )
    log_batch_metrics("lifecycle.subscribe", affected=result.affected, failed=result.failed)
    return result


@traced("lifecycle.unsubscribe")
def on_unsubscribe(
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    user_id: UUID,
    program_id: UUID,
    today: Optional[date] = None,
) -> BatchResult:
    """Soft-delete the user's tasks for the program due today or later."""
    today = today or local_today()
    activities = directory.get_activities_for_program(program_id, include_deleted=True)
    if not activities:
        return BatchResult()

    tasks = store.find_tasks(
        TaskFilter(
            user_id=user_id,
            activity_ids=[activity.id for activity in activities],
            due_from=today,
            is_deleted=False,
        )
    )
    result = _soft_delete_each(store, tasks)
    logger.info("Unsubscribe for user %s program %s retired %s tasks", user_id, program_id, result.affected)
    log_batch_metrics("lifecycle.unsubscribe", affected=result.affected, failed=result.failed)
    return result


@traced("lifecycle.activity_edited")
def on_activity_edited(
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    activity_id: UUID,
    new_rule: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    is_sticky: Optional[bool] = None,
    today: Optional[date] = None,
) -> BatchResult:
    """Store a new recurrence rule and correct every task due after today.

    Tasks whose date still matches take the supplied title/description/stickiness;
    tasks whose date no longer matches are removed outright. Raises RuleParseError
    for a malformed rule before anything is written.
    """
    today = today or local_today()
    rule = parse_rule(new_rule)
    directory.update_activity(activity_id, cron=rule.expression, title=title, description=description)

    patch = {
        key: value
        for key, value in (("title", title), ("description", description), ("is_sticky", is_sticky))
        if value is not None
    }
    result = BatchResult()
    future_tasks = store.find_tasks(TaskFilter(activity_ids=[activity_id], due_from=today + timedelta(days=1)))
    for task in future_tasks:
        try:
            if rule.matches(task.due_date):
                if patch:
                    result.affected += store.update_tasks(TaskFilter(task_ids=[task.id]), patch)
            else:
                result.affected += store.delete_tasks(TaskFilter(task_ids=[task.id]))
        except TaskWriteError:
            logger.exception("Failed to apply recurrence edit to task %s", task.id)
            result.failed += 1

    logger.info(
        "Recurrence edit for activity %s (%s) touched %s future tasks",
        activity_id,
        rule.expression,
        result.affected,
    )
    log_batch_metrics("lifecycle.activity_edited", affected=result.affected, failed=result.failed)
    return result


@traced("lifecycle.activity_deleted")
def on_activity_deleted(
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    activity_id: UUID,
    today: Optional[date] = None,
) -> BatchResult:
    """Soft-delete the activity and its tasks due today or later."""
    today = today or local_today()
    directory.update_activity(activity_id, is_deleted=True)
    tasks = store.find_tasks(TaskFilter(activity_ids=[activity_id], due_from=today, is_deleted=False))
    result = _soft_delete_each(store, tasks)
    log_batch_metrics("lifecycle.activity_deleted", affected=result.affected, failed=result.failed)
    return result


@traced("lifecycle.activity_created")
def on_activity_created(
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    activity_id: UUID,
    today: Optional[date] = None,
) -> BatchResult:
    """Backfill a new personal-program activity for its owner.

    Activities added to shared programs reach subscribers on their next population.
    """
    today = today or local_today()
    activity = directory.get_activity(activity_id)
    program = directory.get_program(activity.program_id)
    if not program.is_personal:
        return BatchResult()
    return _backfill(store, program.creator_id, [activity], today)


@traced("lifecycle.program_deleted")
def on_program_deleted(
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    program_id: UUID,
    today: Optional[date] = None,
) -> BatchResult:
    """Retire every subscriber's tasks for the program due today or later."""
    today = today or local_today()
    activities = directory.get_activities_for_program(program_id, include_deleted=True)
    if not activities:
        return BatchResult()
    tasks = store.find_tasks(
        TaskFilter(activity_ids=[activity.id for activity in activities], due_from=today, is_deleted=False)
    )
    result = _soft_delete_each(store, tasks)
    log_batch_metrics("lifecycle.program_deleted", affected=result.affected, failed=result.failed)
    return result


def _backfill(store: TaskStore, user_id: UUID, activities: List[ActivityRecord], today: date) -> BatchResult:
    days = list(iter_days(today, HORIZON_DAYS))
    occurrences = scheduled_occurrences(activities, days)
    if not occurrences:
        return BatchResult()

    existing = store.find_tasks(
        TaskFilter(
            user_id=user_id,
            activity_ids=[activity.id for activity in activities],
            due_from=days[0],
            due_before=days[-1] + timedelta(days=1),
        )
    )
    applied = apply_plan(store, reconcile(user_id, occurrences, existing, today=today))
    return BatchResult(affected=applied.created + applied.updated, failed=applied.failed)


def _soft_delete_each(store: TaskStore, tasks: Iterable[TaskRecord]) -> BatchResult:
    result = BatchResult()
    for task in tasks:
        try:
            result.affected += store.update_tasks(
                TaskFilter(task_ids=[task.id], is_deleted=False),
                {"is_deleted": True},
            )
        except TaskWriteError:
            logger.exception("Failed to soft-delete task %s", task.id)
            result.failed += 1
    return result
