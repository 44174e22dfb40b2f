"""Program and subscription API routes."""
from __future__ import annotations

from time import perf_counter
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from habitual.api.errors import to_http_exception
from habitual.api.schemas.program import (
    ActivityCreateRequest,
    ActivityResponse,
    LifecycleResponse,
    ProgramCreateRequest,
    ProgramResponse,
    SubscriptionRequest,
)
from habitual.db.deps import get_db, get_program_directory, get_task_store
from habitual.db.models.program import Program
from habitual.observability.metrics import log_metric
from habitual.observability.tracing import trace
from habitual.services import program_service
from habitual.services.action_log import record_action
from habitual.services.errors import HabitualError
from habitual.services.stores.sql import SqlProgramDirectory, SqlTaskStore
from habitual.services.user_service import ensure_personal_program, get_or_create_user

router = APIRouter()


def _serialize_program(program: Program) -> ProgramResponse:
    return ProgramResponse(
        id=program.id,
        creator_id=program.creator_id,
        title=program.title,
        description=program.description,
        category=program.category,
        is_personal=bool(program.is_personal),
        is_private=bool(program.is_private),
    )


@router.post(
    "/programs",
    response_model=ProgramResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["programs"],
)
def create_program(
    payload: ProgramCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ProgramResponse:
    """Create a shared program owned by the caller."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "program.create",
            metadata={"route": "/programs", "user_id": str(payload.user_id)},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            program = program_service.create_program(
                db,
                creator_id=payload.user_id,
                title=payload.title.strip(),
                description=payload.description,
                category=payload.category,
                is_private=payload.is_private,
            )
            record_action(
                db,
                user_id=payload.user_id,
                action_type="program_created",
                target_type="program",
                target_id=program.id,
                request_id=request_id,
            )
            db.commit()
    except Exception:
        db.rollback()
        raise

    log_metric("program.create.success", 1, metadata={"user_id": str(payload.user_id)})
    return _serialize_program(program)


@router.get("/programs/personal", response_model=ProgramResponse, tags=["programs"])
def get_personal_program(
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the personal program"),
    db: Session = Depends(get_db),
) -> ProgramResponse:
    """Return the user's personal program, creating it on first use."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace("program.personal", metadata={"route": "/programs/personal"}, user_id=str(user_id), request_id=request_id):
        get_or_create_user(db, user_id)
        program = ensure_personal_program(db, user_id)
        db.commit()
    return _serialize_program(program)


@router.post("/programs/{program_id}/subscribe", response_model=LifecycleResponse, tags=["programs"])
def subscribe(
    program_id: UUID,
    payload: SubscriptionRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlTaskStore = Depends(get_task_store),
    directory: SqlProgramDirectory = Depends(get_program_directory),
) -> LifecycleResponse:
    """Subscribe the user and backfill their tasks for the program."""
    request_id = getattr(http_request.state, "request_id", None)
    start = perf_counter()
    try:
        with trace(
            "program.subscribe",
            metadata={"route": f"/programs/{program_id}/subscribe", "program_id": str(program_id)},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            _, result = program_service.subscribe(
                db, store, directory, user_id=payload.user_id, program_id=program_id
            )
            record_action(
                db,
                user_id=payload.user_id,
                action_type="program_subscribed",
                target_type="program",
                target_id=program_id,
                request_id=request_id,
                backfilled=result.affected,
                failed=result.failed,
            )
            db.commit()
    except HabitualError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc

    log_metric("program.subscribe.latency_ms", (perf_counter() - start) * 1000, metadata={"program_id": str(program_id)})
    return LifecycleResponse(
        program_id=program_id,
        affected=result.affected,
        failed=result.failed,
        request_id=request_id or "",
    )


@router.delete("/programs/{program_id}/subscribe", response_model=LifecycleResponse, tags=["programs"])
def unsubscribe(
    program_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="Subscribed user"),
    db: Session = Depends(get_db),
    store: SqlTaskStore = Depends(get_task_store),
    directory: SqlProgramDirectory = Depends(get_program_directory),
) -> LifecycleResponse:
    """Unsubscribe the user and retire their future tasks for the program."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "program.unsubscribe",
            metadata={"route": f"/programs/{program_id}/subscribe", "program_id": str(program_id)},
            user_id=str(user_id),
            request_id=request_id,
        ):
            result = program_service.unsubscribe(db, store, directory, user_id=user_id, program_id=program_id)
            record_action(
                db,
                user_id=user_id,
                action_type="program_unsubscribed",
                target_type="program",
                target_id=program_id,
                request_id=request_id,
                retired=result.affected,
            )
            db.commit()
    except HabitualError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc

    return LifecycleResponse(
        program_id=program_id,
        affected=result.affected,
        failed=result.failed,
        request_id=request_id or "",
    )


@router.delete("/programs/{program_id}", response_model=LifecycleResponse, tags=["programs"])
def delete_program(
    program_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="Program creator"),
    db: Session = Depends(get_db),
    store: SqlTaskStore = Depends(get_task_store),
    directory: SqlProgramDirectory = Depends(get_program_directory),
) -> LifecycleResponse:
    """Delete a shared program and retire every subscriber's future tasks."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "program.delete",
            metadata={"route": f"/programs/{program_id}", "program_id": str(program_id)},
            user_id=str(user_id),
            request_id=request_id,
        ):
            result = program_service.delete_program(db, store, directory, user_id=user_id, program_id=program_id)
            record_action(
                db,
                user_id=user_id,
                action_type="program_deleted",
                target_type="program",
                target_id=program_id,
                request_id=request_id,
                retired=result.affected,
            )
            db.commit()
    except HabitualError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc

    log_metric("program.delete.success", 1, metadata={"program_id": str(program_id)})
    return LifecycleResponse(
        program_id=program_id,
        affected=result.affected,
        failed=result.failed,
        request_id=request_id or "",
    )


@router.post(
    "/programs/{program_id}/activities",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["activities"],
)
def create_activity(
    program_id: UUID,
    payload: ActivityCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    store: SqlTaskStore = Depends(get_task_store),
    directory: SqlProgramDirectory = Depends(get_program_directory),
) -> ActivityResponse:
    """Add a recurring activity to a program the caller owns."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "activity.create",
            metadata={"route": f"/programs/{program_id}/activities", "program_id": str(program_id)},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            activity, result = program_service.add_activity(
                db,
                store,
                directory,
                user_id=payload.user_id,
                program_id=program_id,
                title=payload.title.strip(),
                cron=payload.cron,
                description=payload.description,
            )
            record_action(
                db,
                user_id=payload.user_id,
                action_type="activity_created",
                target_type="activity",
                target_id=activity.id,
                request_id=request_id,
                cron=activity.cron,
            )
            db.commit()
    except HabitualError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc

    log_metric("activity.create.success", 1, metadata={"program_id": str(program_id)})
    return ActivityResponse(
        id=activity.id,
        program_id=activity.program_id,
        title=activity.title,
        description=activity.description or "",
        cron=activity.cron,
        backfilled=result.affected,
        request_id=request_id or "",
    )
