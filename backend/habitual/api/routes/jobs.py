"""Operational endpoints for the daily population job."""
from __future__ import annotations

from time import perf_counter

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from habitual.api.schemas.jobs import JobRunRequest, JobRunResponse
from habitual.core.config import settings
from habitual.db.deps import get_db
from habitual.observability.metrics import log_metric
from habitual.observability.tracing import trace
from habitual.services.job_runner import run_daily_population_for_all_users

router = APIRouter()


@router.get("/jobs", tags=["jobs"])
def get_jobs_config(request: Request) -> dict:
    request_id = getattr(request.state, "request_id", None)
    with trace("jobs.config", metadata={"request_id": request_id}, request_id=request_id):
        data = {
            "scheduler_enabled": settings.scheduler_enabled,
            "schedule": {
                "timezone": settings.scheduler_timezone,
                "daily_time": f"{settings.daily_job_hour:02d}:{settings.daily_job_minute:02d}",
            },
        }
    return {**data, "request_id": request_id or ""}


@router.post("/jobs/run-now", response_model=JobRunResponse, tags=["jobs"])
def run_job_now(
    request: Request,
    payload: JobRunRequest,
    db: Session = Depends(get_db),
) -> JobRunResponse:
    if not settings.debug:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Run-now only allowed in debug mode")

    request_id = getattr(request.state, "request_id", None)
    metadata = {"job": "daily_population", "request_id": request_id}
    start = perf_counter()
    with trace("jobs.run_now", metadata=metadata, request_id=request_id):
        result = run_daily_population_for_all_users(
            db,
            user_ids=[payload.user_id] if payload.user_id else None,
            today=payload.day,
        )

    latency_ms = (perf_counter() - start) * 1000
    log_metric("jobs.run_now.success", 1, metadata={"job": "daily_population"})
    log_metric("jobs.run_now.latency_ms", latency_ms, metadata={"job": "daily_population"})

    return JobRunResponse(
        job="daily_population",
        users_processed=result.users_processed,
        tasks_created=result.tasks_created,
        users_failed=result.users_failed,
        request_id=request_id or "",
    )
