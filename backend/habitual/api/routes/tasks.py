"""Task API routes: day population, the day feed and task edits."""
from __future__ import annotations

from datetime import date
from time import perf_counter
from typing import Any, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from habitual.api.errors import to_http_exception
from habitual.api.schemas.task import (
    PopulateRequest,
    PopulateResponse,
    TaskCreateRequest,
    TaskCreateResponse,
    TaskDeleteResponse,
    TaskOwnerRequest,
    TaskSummary,
    TaskUpdateRequest,
)
from habitual.db.deps import get_db, get_program_directory, get_task_store
from habitual.observability.metrics import log_metric
from habitual.observability.tracing import trace
from habitual.services import task_service
from habitual.services.action_log import record_action
from habitual.services.day_population import populate_day
from habitual.services.errors import HabitualError
from habitual.services.stores.sql import SqlProgramDirectory, SqlTaskStore
from habitual.services.user_service import get_or_create_user

router = APIRouter()


@router.post("/tasks/populate", response_model=PopulateResponse, tags=["tasks"])
def populate_tasks(
    payload: PopulateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlTaskStore = Depends(get_task_store),
    directory: SqlProgramDirectory = Depends(get_program_directory),
) -> PopulateResponse:
    """Materialize the user's tasks for one day. Safe to call repeatedly."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/tasks/populate",
        "user_id": str(payload.user_id),
        "day": payload.day.isoformat(),
        "request_id": request_id,
    }

    start = perf_counter()
    try:
        with trace("task.populate", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
            get_or_create_user(db, payload.user_id)
            db.commit()
            result = populate_day(store, directory, user_id=payload.user_id, day=payload.day)
    except HabitualError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise

    latency_ms = (perf_counter() - start) * 1000
    log_metric("task.populate.success", 1, metadata={"user_id": str(payload.user_id)})
    log_metric("task.populate.latency_ms", latency_ms, metadata={"user_id": str(payload.user_id)})

    return PopulateResponse(
        day=payload.day,
        created=result.created,
        updated=result.updated,
        failed=result.failed,
        carried_forward=result.carried_forward,
        request_id=request_id or "",
    )


@router.get("/tasks", response_model=List[TaskSummary], tags=["tasks"])
def list_tasks(
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the tasks"),
    day: date = Query(..., description="Calendar day to list"),
    store: SqlTaskStore = Depends(get_task_store),
) -> List[TaskSummary]:
    """List the user's live tasks for one day."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "task.list",
        metadata={"route": "/tasks", "user_id": str(user_id), "day": day.isoformat()},
        user_id=str(user_id),
        request_id=request_id,
    ):
        tasks = task_service.list_day_tasks(store, user_id=user_id, day=day)

    log_metric("task.list.count", len(tasks), metadata={"user_id": str(user_id)})
    return [TaskSummary.from_record(task) for task in tasks]


@router.post(
    "/tasks",
    response_model=TaskCreateResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["tasks"],
)
def create_task(
    payload: TaskCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlTaskStore = Depends(get_task_store),
    directory: SqlProgramDirectory = Depends(get_program_directory),
) -> TaskCreateResponse:
    """Create a one-off task, or a personal recurring task when ``recurring_days`` is set."""
    request_id = getattr(http_request.state, "request_id", None)
    recurring = bool(payload.recurring_days)

    try:
        with trace(
            "task.create",
            metadata={"route": "/tasks", "user_id": str(payload.user_id), "recurring": recurring},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            created = task_service.create_task(
                db,
                store,
                directory,
                user_id=payload.user_id,
                title=payload.title,
                description=payload.description,
                due_date=payload.due_date,
                priority=payload.priority,
                is_sticky=payload.is_sticky,
                recurring_days=payload.recurring_days,
            )
            record_action(
                db,
                user_id=payload.user_id,
                action_type="recurring_task_created" if recurring else "task_created",
                target_type="activity" if recurring else "task",
                target_id=created.activity_id if recurring else created.task.id,
                request_id=request_id,
                backfilled=created.backfilled,
            )
            db.commit()
    except HabitualError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise

    log_metric("task.create.success", 1, metadata={"user_id": str(payload.user_id), "recurring": recurring})
    return TaskCreateResponse(
        task=TaskSummary.from_record(created.task) if created.task else None,
        activity_id=created.activity_id,
        backfilled=created.backfilled,
        request_id=request_id or "",
    )


@router.patch("/tasks/{task_id}/complete", response_model=TaskSummary, tags=["tasks"])
def toggle_task_completion(
    task_id: UUID,
    payload: TaskOwnerRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlTaskStore = Depends(get_task_store),
) -> TaskSummary:
    """Flip a task between complete and open."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "task.complete",
            metadata={"route": f"/tasks/{task_id}/complete", "task_id": str(task_id)},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            task = task_service.toggle_completion(store, user_id=payload.user_id, task_id=task_id)
            record_action(
                db,
                user_id=payload.user_id,
                action_type="task_completed" if task.is_completed else "task_uncompleted",
                target_type="task",
                target_id=task_id,
                request_id=request_id,
            )
            db.commit()
    except HabitualError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc

    log_metric("task.complete.success", 1, metadata={"task_id": str(task_id), "completed": task.is_completed})
    return TaskSummary.from_record(task)


@router.patch("/tasks/{task_id}", response_model=TaskSummary, tags=["tasks"])
def update_task(
    task_id: UUID,
    payload: TaskUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlTaskStore = Depends(get_task_store),
    directory: SqlProgramDirectory = Depends(get_program_directory),
) -> TaskSummary:
    """Edit a task's text, date or stickiness; personal recurring tasks may also change weekdays."""
    request_id = getattr(http_request.state, "request_id", None)
    if payload.recurring_days is not None and not payload.recurring_days:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="recurring_days must contain at least one weekday",
        )

    try:
        with trace(
            "task.update",
            metadata={"route": f"/tasks/{task_id}", "task_id": str(task_id)},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            task = task_service.update_task(
                store,
                directory,
                user_id=payload.user_id,
                task_id=task_id,
                title=payload.title,
                description=payload.description,
                due_date=payload.due_date,
                is_sticky=payload.is_sticky,
                recurring_days=payload.recurring_days,
            )
            record_action(
                db,
                user_id=payload.user_id,
                action_type="task_updated",
                target_type="task",
                target_id=task_id,
                request_id=request_id,
                recurrence_changed=payload.recurring_days is not None,
            )
            db.commit()
    except HabitualError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc

    log_metric("task.update.success", 1, metadata={"task_id": str(task_id)})
    return TaskSummary.from_record(task)


@router.delete("/tasks/{task_id}", response_model=TaskDeleteResponse, tags=["tasks"])
def delete_task(
    task_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the task"),
    db: Session = Depends(get_db),
    store: SqlTaskStore = Depends(get_task_store),
) -> TaskDeleteResponse:
    """Delete a task. Program-generated tasks are tombstoned so population never recreates them."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "task.delete",
            metadata={"route": f"/tasks/{task_id}", "task_id": str(task_id)},
            user_id=str(user_id),
            request_id=request_id,
        ):
            soft = task_service.delete_task(store, user_id=user_id, task_id=task_id)
            record_action(
                db,
                user_id=user_id,
                action_type="task_deleted",
                target_type="task",
                target_id=task_id,
                request_id=request_id,
                soft_deleted=soft,
            )
            db.commit()
    except HabitualError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc

    log_metric("task.delete.success", 1, metadata={"task_id": str(task_id), "soft": soft})
    return TaskDeleteResponse(id=task_id, soft_deleted=soft, request_id=request_id or "")
