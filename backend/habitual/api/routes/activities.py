"""Activity edit and delete routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from habitual.api.errors import to_http_exception
from habitual.api.schemas.program import ActivityUpdateRequest, LifecycleResponse
from habitual.db.deps import get_db, get_program_directory, get_task_store
from habitual.observability.metrics import log_metric
from habitual.observability.tracing import trace
from habitual.services import program_service
from habitual.services.action_log import record_action
from habitual.services.errors import HabitualError
from habitual.services.stores.sql import SqlProgramDirectory, SqlTaskStore

router = APIRouter()


@router.patch("/activities/{activity_id}", response_model=LifecycleResponse, tags=["activities"])
def update_activity(
    activity_id: UUID,
    payload: ActivityUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlTaskStore = Depends(get_task_store),
    directory: SqlProgramDirectory = Depends(get_program_directory),
) -> LifecycleResponse:
    """Edit an activity; a new rule rewrites every subscriber's future tasks."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "activity.update",
            metadata={"route": f"/activities/{activity_id}", "rule_changed": payload.cron is not None},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            result = program_service.edit_activity(
                db,
                store,
                directory,
                user_id=payload.user_id,
                activity_id=activity_id,
                cron=payload.cron,
                title=payload.title,
                description=payload.description,
            )
            record_action(
                db,
                user_id=payload.user_id,
                action_type="activity_updated",
                target_type="activity",
                target_id=activity_id,
                request_id=request_id,
                cron=payload.cron,
                affected=result.affected,
            )
            db.commit()
    except HabitualError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc

    log_metric("activity.update.success", 1, metadata={"activity_id": str(activity_id)})
    return LifecycleResponse(
        activity_id=activity_id,
        affected=result.affected,
        failed=result.failed,
        request_id=request_id or "",
    )


@router.delete("/activities/{activity_id}", response_model=LifecycleResponse, tags=["activities"])
def delete_activity(
    activity_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="Program creator"),
    db: Session = Depends(get_db),
    store: SqlTaskStore = Depends(get_task_store),
    directory: SqlProgramDirectory = Depends(get_program_directory),
) -> LifecycleResponse:
    """Delete an activity and its future tasks for every subscriber."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "activity.delete",
            metadata={"route": f"/activities/{activity_id}"},
            user_id=str(user_id),
            request_id=request_id,
        ):
            result = program_service.remove_activity(db, store, directory, user_id=user_id, activity_id=activity_id)
            record_action(
                db,
                user_id=user_id,
                action_type="activity_deleted",
                target_type="activity",
                target_id=activity_id,
                request_id=request_id,
                removed=result.affected,
            )
            db.commit()
    except HabitualError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc

    log_metric("activity.delete.success", 1, metadata={"activity_id": str(activity_id)})
    return LifecycleResponse(
        activity_id=activity_id,
        affected=result.affected,
        failed=result.failed,
        request_id=request_id or "",
    )
