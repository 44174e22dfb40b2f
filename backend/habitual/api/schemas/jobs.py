"""Schemas for job operations endpoints."""
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class JobRunRequest(BaseModel):
    user_id: Optional[UUID] = None
    day: Optional[date] = None


class JobRunResponse(BaseModel):
    job: str
    users_processed: int
    tasks_created: int
    users_failed: int
    request_id: str
