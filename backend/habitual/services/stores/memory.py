"""Dict-backed stores.

Documents are kept as records keyed by id, the way a document database would
hold them. Used for local experiments and by the engine tests; behaviour
mirrors the SQL adapter, including the unique task cell.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple
from uuid import UUID, uuid4

from habitual.services.errors import NotFoundError, PersistenceConflict, TaskWriteError
from habitual.services.stores.base import (
    ActivityRecord,
    ProgramDirectory,
    ProgramRecord,
    TaskFilter,
    TaskRecord,
    TaskStore,
    validate_patch,
)

ACTIVITY_FIELDS = {"title", "description", "cron", "is_deleted"}


class InMemoryTaskStore(TaskStore):
    def __init__(self) -> None:
        self._tasks: Dict[UUID, TaskRecord] = {}

    def find_tasks(self, task_filter: TaskFilter) -> List[TaskRecord]:
        found = [replace(task) for task in self._tasks.values() if task_filter.matches(task)]
        return sorted(found, key=lambda task: (task.due_date, task.created_at))

    def get_task(self, task_id: UUID) -> Optional[TaskRecord]:
        task = self._tasks.get(task_id)
        return replace(task) if task else None

    def upsert_task(self, task: TaskRecord) -> TaskRecord:
        if task.activity_id is not None:
            for existing in self._tasks.values():
                if existing.key == task.key:
                    raise PersistenceConflict(task.user_id, task.activity_id, task.due_date)

        now = datetime.now(timezone.utc)
        stored = replace(task, id=task.id or uuid4(), created_at=now, updated_at=now)
        self._tasks[stored.id] = stored
        return replace(stored)

    def update_tasks(self, task_filter: TaskFilter, patch: Mapping[str, Any]) -> int:
        changes = validate_patch(patch)
        changes.setdefault("updated_at", datetime.now(timezone.utc))
        targets = [task for task in self._tasks.values() if task_filter.matches(task)]
        for task in targets:
            updated = replace(task, **changes)
            if updated.activity_id is not None and updated.key != task.key:
                self._ensure_cell_free(updated, ignore=task.id)
            self._tasks[task.id] = updated
        return len(targets)

    def delete_tasks(self, task_filter: TaskFilter) -> int:
        doomed = [task_id for task_id, task in self._tasks.items() if task_filter.matches(task)]
        for task_id in doomed:
            del self._tasks[task_id]
        return len(doomed)

    def _ensure_cell_free(self, task: TaskRecord, *, ignore: UUID) -> None:
        for other in self._tasks.values():
            if other.id != ignore and other.key == task.key:
                raise TaskWriteError(f"Task {ignore} would collide with task {other.id}")


class InMemoryProgramDirectory(ProgramDirectory):
    def __init__(self) -> None:
        self.programs: Dict[UUID, ProgramRecord] = {}
        self.activities: Dict[UUID, ActivityRecord] = {}
        self.subscriptions: Set[Tuple[UUID, UUID]] = set()

    # Seeding helpers -----------------------------------------------------

    def add_program(self, creator_id: UUID, title: str = "Program", *, is_personal: bool = False) -> ProgramRecord:
        program = ProgramRecord(id=uuid4(), creator_id=creator_id, title=title, is_personal=is_personal)
        self.programs[program.id] = program
        return program

    def add_activity(self, program_id: UUID, cron: str, title: str = "Activity", description: str = "") -> ActivityRecord:
        activity = ActivityRecord(id=uuid4(), program_id=program_id, title=title, cron=cron, description=description)
        self.activities[activity.id] = activity
        return activity

    def subscribe(self, user_id: UUID, program_id: UUID) -> None:
        self.subscriptions.add((user_id, program_id))

    def unsubscribe(self, user_id: UUID, program_id: UUID) -> None:
        self.subscriptions.discard((user_id, program_id))

    # ProgramDirectory ----------------------------------------------------

    def get_program(self, program_id: UUID) -> ProgramRecord:
        program = self.programs.get(program_id)
        if program is None or program.is_deleted:
            raise NotFoundError("Program", program_id)
        return program

    def get_activity(self, activity_id: UUID) -> ActivityRecord:
        activity = self.activities.get(activity_id)
        if activity is None or activity.is_deleted:
            raise NotFoundError("Activity", activity_id)
        return activity

    def get_activities_for_program(self, program_id: UUID, *, include_deleted: bool = False) -> List[ActivityRecord]:
        self.get_program(program_id)
        return [
            activity
            for activity in self.activities.values()
            if activity.program_id == program_id and (include_deleted or not activity.is_deleted)
        ]

    def get_activities_for_user(self, user_id: UUID) -> List[ActivityRecord]:
        program_ids = {program_id for uid, program_id in self.subscriptions if uid == user_id}
        program_ids.update(
            program.id for program in self.programs.values() if program.is_personal and program.creator_id == user_id
        )
        return [
            activity
            for activity in self.activities.values()
            if activity.program_id in program_ids
            and not activity.is_deleted
            and not self.programs[activity.program_id].is_deleted
        ]

    def update_activity(self, activity_id: UUID, **changes: Any) -> ActivityRecord:
        unknown = set(changes) - ACTIVITY_FIELDS
        if unknown:
            raise ValueError(f"Unsupported activity fields: {sorted(unknown)}")
        activity = self.get_activity(activity_id)
        updated = replace(activity, **{key: value for key, value in changes.items() if value is not None})
        self.activities[activity_id] = updated
        return updated

    def users_with_subscriptions(self) -> List[UUID]:
        return sorted({user_id for user_id, _ in self.subscriptions}, key=str)
