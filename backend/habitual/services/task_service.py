"""User-facing task operations: ad-hoc tasks, completion, edits and deletes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from habitual.db.models.activity import Activity
from habitual.services import lifecycle
from habitual.services.errors import NotFoundError, OperationNotAllowedError
from habitual.services.recurrence import weekly_rule
from habitual.services.stores.base import ProgramDirectory, TaskFilter, TaskRecord, TaskStore
from habitual.services.user_service import ensure_personal_program, get_or_create_user

logger = logging.getLogger(__name__)


@dataclass
class CreatedTask:
    task: Optional[TaskRecord] = None
    activity_id: Optional[UUID] = None
    backfilled: int = 0


def list_day_tasks(store: TaskStore, *, user_id: UUID, day: date) -> List[TaskRecord]:
    tasks = store.find_tasks(
        TaskFilter(user_id=user_id, due_from=day, due_before=day + timedelta(days=1), is_deleted=False)
    )
    return sorted(tasks, key=lambda task: (task.created_at is None, task.created_at))


def create_task(
    db: Session,
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    user_id: UUID,
    title: str,
    due_date: date,
    description: Optional[str] = None,
    priority: str = "medium",
    is_sticky: bool = False,
    recurring_days: Optional[Iterable[int]] = None,
    today: Optional[date] = None,
) -> CreatedTask:
    """Create a one-off task, or a personal recurring task when weekdays are given."""
    get_or_create_user(db, user_id)

    days = list(recurring_days or [])
    if days:
        program = ensure_personal_program(db, user_id)
        activity = Activity(
            program_id=program.id,
            title=title,
            description=description or "Recurring personal task",
            cron=weekly_rule(days),
        )
        db.add(activity)
        db.commit()
        db.refresh(activity)
        result = lifecycle.on_activity_created(store, directory, activity_id=activity.id, today=today)
        logger.info("Created recurring personal activity %s for user %s", activity.id, user_id)
        return CreatedTask(activity_id=activity.id, backfilled=result.affected)

    db.commit()
    task = store.upsert_task(
        TaskRecord(
            user_id=user_id,
            title=title,
            description=description or "",
            due_date=due_date,
            priority=priority,
            is_sticky=is_sticky,
        )
    )
    return CreatedTask(task=task)


def get_owned_task(store: TaskStore, *, user_id: UUID, task_id: UUID) -> TaskRecord:
    task = store.get_task(task_id)
    if task is None or task.is_deleted:
        raise NotFoundError("Task", task_id)
    if task.user_id != user_id:
        raise OperationNotAllowedError("Task does not belong to user")
    return task


def toggle_completion(store: TaskStore, *, user_id: UUID, task_id: UUID) -> TaskRecord:
    """Flip completion; last writer wins."""
    task = get_owned_task(store, user_id=user_id, task_id=task_id)
    completed = not task.is_completed
    store.update_tasks(
        TaskFilter(task_ids=[task_id]),
        {
            "is_completed": completed,
            "completed_at": datetime.now(timezone.utc) if completed else None,
        },
    )
    return store.get_task(task_id)


def delete_task(store: TaskStore, *, user_id: UUID, task_id: UUID) -> bool:
    """Remove a task. Returns True for a soft delete (generated task), False for a hard delete."""
    task = get_owned_task(store, user_id=user_id, task_id=task_id)
    if task.is_generated:
        store.update_tasks(TaskFilter(task_ids=[task_id]), {"is_deleted": True})
        return True
    store.delete_tasks(TaskFilter(task_ids=[task_id]))
    return False


def update_task(
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    user_id: UUID,
    task_id: UUID,
    title: Optional[str] = None,
    description: Optional[str] = None,
    due_date: Optional[date] = None,
    is_sticky: Optional[bool] = None,
    recurring_days: Optional[Iterable[int]] = None,
    today: Optional[date] = None,
) -> TaskRecord:
    """Edit a task; a recurrence change is only allowed for personal-program tasks."""
    task = get_owned_task(store, user_id=user_id, task_id=task_id)

    if recurring_days is not None:
        if not task.is_generated:
            raise OperationNotAllowedError("Only recurring tasks have a recurrence to edit")
        activity = directory.get_activity(task.activity_id)
        program = directory.get_program(activity.program_id)
        if not program.is_personal:
            raise OperationNotAllowedError("Cannot modify recurring settings for program tasks")
        lifecycle.on_activity_edited(
            store,
            directory,
            activity_id=activity.id,
            new_rule=weekly_rule(recurring_days),
            title=title,
            description=description,
            is_sticky=is_sticky,
            today=today,
        )

    patch = {
        key: value
        for key, value in (
            ("title", title),
            ("description", description),
            ("due_date", due_date),
            ("is_sticky", is_sticky),
        )
        if value is not None
    }
    current = store.get_task(task_id)
    if current is None:
        # The recurrence edit removed this (future) occurrence.
        return task
    if patch:
        store.update_tasks(TaskFilter(task_ids=[task_id]), patch)
        current = store.get_task(task_id)
    return current
