"""Schemas for task endpoints."""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from habitual.services.stores.base import TaskRecord


class TaskSummary(BaseModel):
    id: UUID
    user_id: UUID
    activity_id: Optional[UUID]
    program_id: Optional[UUID]
    title: str
    description: str
    priority: str
    due_date: date
    is_completed: bool
    completed_at: Optional[datetime]
    is_sticky: bool
    source: Literal["program", "manual"]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_record(cls, task: TaskRecord) -> "TaskSummary":
        return cls(
            id=task.id,
            user_id=task.user_id,
            activity_id=task.activity_id,
            program_id=task.program_id,
            title=task.title,
            description=task.description,
            priority=task.priority,
            due_date=task.due_date,
            is_completed=task.is_completed,
            completed_at=task.completed_at,
            is_sticky=task.is_sticky,
            source="program" if task.is_generated else "manual",
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class PopulateRequest(BaseModel):
    user_id: UUID
    day: date


class PopulateResponse(BaseModel):
    day: date
    created: int
    updated: int
    failed: int
    carried_forward: int
    request_id: str


class WeekdayList(BaseModel):
    recurring_days: Optional[List[int]] = Field(default=None, description="Weekdays, 0=Sunday..6=Saturday")

    @field_validator("recurring_days")
    @classmethod
    def validate_weekdays(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is None:
            return value
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("recurring_days entries must be between 0 (Sunday) and 6 (Saturday)")
        return value


class TaskCreateRequest(WeekdayList):
    user_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    due_date: date
    priority: Literal["low", "medium", "high"] = "medium"
    is_sticky: bool = False

    @field_validator("title")
    @classmethod
    def trim_title(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Task title is required")
        return cleaned


class TaskCreateResponse(BaseModel):
    task: Optional[TaskSummary]
    activity_id: Optional[UUID]
    backfilled: int
    request_id: str


class TaskUpdateRequest(WeekdayList):
    user_id: UUID
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    due_date: Optional[date] = None
    is_sticky: Optional[bool] = None


class TaskOwnerRequest(BaseModel):
    user_id: UUID


class TaskDeleteResponse(BaseModel):
    id: UUID
    soft_deleted: bool
    request_id: str
