"""SQLAlchemy-backed stores.

Every write is its own unit of work: it commits on success and rolls back on
failure, so one bad row never takes a bulk engine operation down with it.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from habitual.db.models.activity import Activity
from habitual.db.models.program import Program
from habitual.db.models.subscription import Subscription
from habitual.db.models.task import Task
from habitual.services.errors import (
    NotFoundError,
    PersistenceConflict,
    StoreUnavailableError,
    TaskWriteError,
)
from habitual.services.stores.base import (
    ActivityRecord,
    ProgramDirectory,
    ProgramRecord,
    TaskFilter,
    TaskRecord,
    TaskStore,
    validate_patch,
)

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def task_to_record(task: Task) -> TaskRecord:
    return TaskRecord(
        id=task.id,
        user_id=task.user_id,
        activity_id=task.activity_id,
        program_id=task.program_id,
        title=task.title,
        description=task.description or "",
        priority=task.priority or "medium",
        due_date=task.due_date,
        is_completed=bool(task.is_completed),
        completed_at=task.completed_at,
        is_sticky=bool(task.is_sticky),
        is_deleted=bool(task.is_deleted),
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def activity_to_record(activity: Activity) -> ActivityRecord:
    return ActivityRecord(
        id=activity.id,
        program_id=activity.program_id,
        title=activity.title,
        description=activity.description or "",
        cron=activity.cron,
        is_deleted=bool(activity.is_deleted),
    )


def program_to_record(program: Program) -> ProgramRecord:
    return ProgramRecord(
        id=program.id,
        creator_id=program.creator_id,
        title=program.title,
        is_personal=bool(program.is_personal),
        is_private=bool(program.is_private),
        is_deleted=bool(program.is_deleted),
    )


def _task_conditions(task_filter: TaskFilter) -> list:
    conditions = []
    if task_filter.user_id is not None:
        conditions.append(Task.user_id == task_filter.user_id)
    if task_filter.task_ids is not None:
        conditions.append(Task.id.in_(list(task_filter.task_ids)))
    if task_filter.activity_ids is not None:
        conditions.append(Task.activity_id.in_(list(task_filter.activity_ids)))
    if task_filter.due_from is not None:
        conditions.append(Task.due_date >= task_filter.due_from)
    if task_filter.due_before is not None:
        conditions.append(Task.due_date < task_filter.due_before)
    if task_filter.is_deleted is not None:
        conditions.append(Task.is_deleted.is_(task_filter.is_deleted))
    if task_filter.is_completed is not None:
        conditions.append(Task.is_completed.is_(task_filter.is_completed))
    if task_filter.is_sticky is not None:
        conditions.append(Task.is_sticky.is_(task_filter.is_sticky))
    return conditions


class SqlTaskStore(TaskStore):
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_tasks(self, task_filter: TaskFilter) -> List[TaskRecord]:
        stmt = select(Task).where(*_task_conditions(task_filter)).order_by(Task.due_date, Task.created_at)
        try:
            rows = self.db.execute(stmt).scalars().all()
        except OperationalError as exc:
            raise StoreUnavailableError(str(exc)) from exc
        return [task_to_record(row) for row in rows]

    def get_task(self, task_id: UUID) -> Optional[TaskRecord]:
        try:
            task = self.db.get(Task, task_id)
        except OperationalError as exc:
            raise StoreUnavailableError(str(exc)) from exc
        return task_to_record(task) if task else None

    def upsert_task(self, task: TaskRecord) -> TaskRecord:
        now = datetime.now(timezone.utc)
        values = {
            "id": task.id or uuid4(),
            "user_id": task.user_id,
            "activity_id": task.activity_id,
            "program_id": task.program_id,
            "title": task.title,
            "description": task.description,
            "priority": task.priority,
            "due_date": task.due_date,
            "is_completed": task.is_completed,
            "completed_at": task.completed_at,
            "is_sticky": task.is_sticky,
            "is_deleted": task.is_deleted,
            "created_at": now,
            "updated_at": now,
        }

        insert_factory = _INSERT_BY_DIALECT.get(self.db.get_bind().dialect.name)
        try:
            if insert_factory is None:
                # No native ON CONFLICT; the unique constraint still arbitrates.
                self.db.add(Task(**values))
                self.db.flush()
                inserted = True
            else:
                stmt = (
                    insert_factory(Task)
                    .values(**values)
                    .on_conflict_do_nothing(index_elements=["user_id", "activity_id", "due_date"])
                )
                inserted = self.db.execute(stmt).rowcount == 1
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if task.activity_id is not None and "uq_tasks_user_activity_due" in str(exc.orig):
                raise PersistenceConflict(task.user_id, task.activity_id, task.due_date) from exc
            raise TaskWriteError(str(exc.orig)) from exc
        except OperationalError as exc:
            self.db.rollback()
            raise StoreUnavailableError(str(exc)) from exc
        except DBAPIError as exc:
            self.db.rollback()
            raise TaskWriteError(str(exc.orig)) from exc

        if not inserted:
            raise PersistenceConflict(task.user_id, task.activity_id, task.due_date)

        stored = self.db.get(Task, values["id"])
        return task_to_record(stored)

    def update_tasks(self, task_filter: TaskFilter, patch: Mapping[str, Any]) -> int:
        changes = validate_patch(patch)
        changes.setdefault("updated_at", datetime.now(timezone.utc))
        stmt = (
            update(Task)
            .where(*_task_conditions(task_filter))
            .values(**changes)
            .execution_options(synchronize_session="fetch")
        )
        return self._execute_write(stmt)

    def delete_tasks(self, task_filter: TaskFilter) -> int:
        stmt = delete(Task).where(*_task_conditions(task_filter)).execution_options(synchronize_session="fetch")
        return self._execute_write(stmt)

    def _execute_write(self, stmt) -> int:
        try:
            count = self.db.execute(stmt).rowcount
            self.db.commit()
        except OperationalError as exc:
            self.db.rollback()
            raise StoreUnavailableError(str(exc)) from exc
        except DBAPIError as exc:
            self.db.rollback()
            raise TaskWriteError(str(exc.orig)) from exc
        return count or 0


class SqlProgramDirectory(ProgramDirectory):
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_program(self, program_id: UUID) -> ProgramRecord:
        program = self.db.get(Program, program_id)
        if program is None or program.is_deleted:
            raise NotFoundError("Program", program_id)
        return program_to_record(program)

    def get_activity(self, activity_id: UUID) -> ActivityRecord:
        activity = self.db.get(Activity, activity_id)
        if activity is None or activity.is_deleted:
            raise NotFoundError("Activity", activity_id)
        return activity_to_record(activity)

    def get_activities_for_program(self, program_id: UUID, *, include_deleted: bool = False) -> List[ActivityRecord]:
        self.get_program(program_id)
        stmt = select(Activity).where(Activity.program_id == program_id)
        if not include_deleted:
            stmt = stmt.where(Activity.is_deleted.is_(False))
        rows = self.db.execute(stmt.order_by(Activity.created_at)).scalars().all()
        return [activity_to_record(row) for row in rows]

    def get_activities_for_user(self, user_id: UUID) -> List[ActivityRecord]:
        subscribed = select(Subscription.program_id).where(Subscription.user_id == user_id)
        stmt = (
            select(Activity)
            .join(Program, Program.id == Activity.program_id)
            .where(
                Activity.is_deleted.is_(False),
                Program.is_deleted.is_(False),
                or_(
                    Program.id.in_(subscribed),
                    (Program.creator_id == user_id) & Program.is_personal.is_(True),
                ),
            )
            .order_by(Activity.created_at)
        )
        try:
            rows = self.db.execute(stmt).scalars().all()
        except OperationalError as exc:
            raise StoreUnavailableError(str(exc)) from exc
        return [activity_to_record(row) for row in rows]

    def update_activity(self, activity_id: UUID, **changes: Any) -> ActivityRecord:
        activity = self.db.get(Activity, activity_id)
        if activity is None or activity.is_deleted:
            raise NotFoundError("Activity", activity_id)
        for field in ("title", "description", "cron", "is_deleted"):
            value = changes.pop(field, None)
            if value is not None:
                setattr(activity, field, value)
        if changes:
            raise ValueError(f"Unsupported activity fields: {sorted(changes)}")
        try:
            self.db.add(activity)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(activity)
        return activity_to_record(activity)

    def users_with_subscriptions(self) -> List[UUID]:
        rows = self.db.execute(select(Subscription.user_id).distinct()).all()
        return [row[0] for row in rows]
