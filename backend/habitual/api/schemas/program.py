"""Schemas for program, subscription and activity endpoints."""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ProgramCreateRequest(BaseModel):
    user_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    category: Optional[str] = Field(default=None, max_length=100)
    is_private: bool = False


class ProgramResponse(BaseModel):
    id: UUID
    creator_id: UUID
    title: str
    description: Optional[str]
    category: Optional[str]
    is_personal: bool
    is_private: bool


class SubscriptionRequest(BaseModel):
    user_id: UUID


class LifecycleResponse(BaseModel):
    program_id: Optional[UUID] = None
    activity_id: Optional[UUID] = None
    affected: int
    failed: int
    request_id: str


class ActivityCreateRequest(BaseModel):
    user_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    cron: str = Field(..., min_length=1, max_length=255)


class ActivityUpdateRequest(BaseModel):
    user_id: UUID
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    cron: Optional[str] = Field(default=None, min_length=1, max_length=255)


class ActivityResponse(BaseModel):
    id: UUID
    program_id: UUID
    title: str
    description: str
    cron: str
    backfilled: int
    request_id: str
