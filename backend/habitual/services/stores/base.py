"""Store interfaces the task engine is written against.

The engine never touches a database session directly. It receives a
``TaskStore`` and a ``ProgramDirectory`` per operation and only exchanges plain
records with them, so the SQL adapter and the in-memory adapter are
interchangeable.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Collection, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

TaskKey = Tuple[UUID, Optional[UUID], date]

TASK_PATCH_FIELDS = frozenset(
    {
        "title",
        "description",
        "priority",
        "due_date",
        "is_completed",
        "completed_at",
        "is_sticky",
        "is_deleted",
        "updated_at",
    }
)


@dataclass
class TaskRecord:
    user_id: UUID
    title: str
    due_date: date
    activity_id: Optional[UUID] = None
    program_id: Optional[UUID] = None
    description: str = ""
    priority: str = "medium"
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    is_sticky: bool = False
    is_deleted: bool = False
    id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_generated(self) -> bool:
        return self.activity_id is not None

    @property
    def key(self) -> TaskKey:
        return (self.user_id, self.activity_id, self.due_date)


@dataclass(frozen=True)
class ActivityRecord:
    id: UUID
    program_id: UUID
    title: str
    cron: str
    description: str = ""
    is_deleted: bool = False


@dataclass(frozen=True)
class ProgramRecord:
    id: UUID
    creator_id: UUID
    title: str
    is_personal: bool = False
    is_private: bool = False
    is_deleted: bool = False


@dataclass(frozen=True)
class TaskFilter:
    """Conjunction of optional constraints; ``None`` leaves a dimension open.

    ``due_from`` is inclusive and ``due_before`` exclusive, so a single day is
    ``due_from=day, due_before=day + 1``.
    """

    user_id: Optional[UUID] = None
    task_ids: Optional[Collection[UUID]] = None
    activity_ids: Optional[Collection[UUID]] = None
    due_from: Optional[date] = None
    due_before: Optional[date] = None
    is_deleted: Optional[bool] = None
    is_completed: Optional[bool] = None
    is_sticky: Optional[bool] = None

    def matches(self, task: TaskRecord) -> bool:
        if self.user_id is not None and task.user_id != self.user_id:
            return False
        if self.task_ids is not None and task.id not in self.task_ids:
            return False
        if self.activity_ids is not None and task.activity_id not in self.activity_ids:
            return False
        if self.due_from is not None and task.due_date < self.due_from:
            return False
        if self.due_before is not None and task.due_date >= self.due_before:
            return False
        if self.is_deleted is not None and task.is_deleted != self.is_deleted:
            return False
        if self.is_completed is not None and task.is_completed != self.is_completed:
            return False
        if self.is_sticky is not None and task.is_sticky != self.is_sticky:
            return False
        return True


def validate_patch(patch: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(patch) - TASK_PATCH_FIELDS
    if unknown:
        raise ValueError(f"Unsupported task fields in patch: {sorted(unknown)}")
    return dict(patch)


class TaskStore:
    """Persistence contract for materialized tasks."""

    def find_tasks(self, task_filter: TaskFilter) -> List[TaskRecord]:
        raise NotImplementedError

    def get_task(self, task_id: UUID) -> Optional[TaskRecord]:
        raise NotImplementedError

    def upsert_task(self, task: TaskRecord) -> TaskRecord:
        """Insert ``task`` unless its ``(user_id, activity_id, due_date)`` cell is taken.

        Raises PersistenceConflict when another row already owns the cell.
        """
        raise NotImplementedError

    def update_tasks(self, task_filter: TaskFilter, patch: Mapping[str, Any]) -> int:
        raise NotImplementedError

    def delete_tasks(self, task_filter: TaskFilter) -> int:
        raise NotImplementedError


class ProgramDirectory:
    """Read access to programs and activities, plus activity mutations."""

    def get_program(self, program_id: UUID) -> ProgramRecord:
        raise NotImplementedError

    def get_activity(self, activity_id: UUID) -> ActivityRecord:
        raise NotImplementedError

    def get_activities_for_program(self, program_id: UUID, *, include_deleted: bool = False) -> List[ActivityRecord]:
        raise NotImplementedError

    def get_activities_for_user(self, user_id: UUID) -> List[ActivityRecord]:
        """Non-deleted activities of the user's personal program and subscribed programs."""
        raise NotImplementedError

    def update_activity(self, activity_id: UUID, **changes: Any) -> ActivityRecord:
        raise NotImplementedError

    def users_with_subscriptions(self) -> List[UUID]:
        raise NotImplementedError
