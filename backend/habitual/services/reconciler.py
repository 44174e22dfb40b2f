"""Diff scheduled occurrences against already-materialized tasks.

Pure and side-effect free. The rules that protect user state:

* a cell ``(user_id, activity_id, due_date)`` with any existing row is never
  created again, even when that row is soft-deleted;
* completion state of an existing row is never touched;
* title/description follow the activity only while the task is still open
  and not yet past due.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from habitual.services.stores.base import ActivityRecord, TaskKey, TaskRecord


@dataclass(frozen=True)
class Occurrence:
    activity_id: UUID
    program_id: UUID
    title: str
    description: str
    due_date: date

    @classmethod
    def from_activity(cls, activity: ActivityRecord, due_date: date) -> "Occurrence":
        return cls(
            activity_id=activity.id,
            program_id=activity.program_id,
            title=activity.title,
            description=activity.description or "",
            due_date=due_date,
        )


@dataclass
class ReconcilePlan:
    to_create: List[TaskRecord] = field(default_factory=list)
    to_update: List[TaskRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_create and not self.to_update

    @property
    def summary(self) -> Dict[str, int]:
        return {"create": len(self.to_create), "update": len(self.to_update)}


def reconcile(
    user_id: UUID,
    occurrences: Iterable[Occurrence],
    existing_tasks: Iterable[TaskRecord],
    today: Optional[date] = None,
) -> ReconcilePlan:
    """Return the creates and text refreshes needed to materialize ``occurrences``.

    When ``today`` is given, tasks due before it keep their text.
    """
    existing_by_key: Dict[TaskKey, TaskRecord] = {}
    for task in existing_tasks:
        if task.user_id != user_id or task.activity_id is None:
            continue
        current = existing_by_key.get(task.key)
        # A live row wins over a deleted one if the store ever holds both.
        if current is None or (current.is_deleted and not task.is_deleted):
            existing_by_key[task.key] = task

    plan = ReconcilePlan()
    planned: set[TaskKey] = set()
    for occurrence in occurrences:
        key = (user_id, occurrence.activity_id, occurrence.due_date)
        if key in planned:
            continue
        planned.add(key)

        existing = existing_by_key.get(key)
        if existing is None:
            plan.to_create.append(_new_task(user_id, occurrence))
            continue

        if today is not None and existing.due_date < today:
            continue
        refreshed = _refreshed_text(existing, occurrence)
        if refreshed is not None:
            plan.to_update.append(refreshed)

    return plan


def _new_task(user_id: UUID, occurrence: Occurrence) -> TaskRecord:
    return TaskRecord(
        user_id=user_id,
        activity_id=occurrence.activity_id,
        program_id=occurrence.program_id,
        title=occurrence.title,
        description=occurrence.description,
        due_date=occurrence.due_date,
        is_completed=False,
        is_deleted=False,
    )


def _refreshed_text(task: TaskRecord, occurrence: Occurrence) -> Optional[TaskRecord]:
    if task.is_deleted or task.is_completed:
        return None
    if task.title == occurrence.title and (task.description or "") == occurrence.description:
        return None
    return replace(task, title=occurrence.title, description=occurrence.description)
