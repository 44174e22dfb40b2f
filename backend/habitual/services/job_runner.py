"""Batch runner that populates today's tasks for every subscribed user."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from habitual.core.dates import local_today
from habitual.services.day_population import PopulateResult, populate_day
from habitual.services.stores.sql import SqlProgramDirectory, SqlTaskStore

logger = logging.getLogger(__name__)


@dataclass
class JobRunResult:
    users_processed: int
    tasks_created: int
    users_failed: int = 0


def run_daily_population_for_user(db: Session, user_id: UUID, *, today: Optional[date] = None) -> PopulateResult:
    today = today or local_today()
    return populate_day(SqlTaskStore(db), SqlProgramDirectory(db), user_id=user_id, day=today, today=today)


def run_daily_population_for_all_users(
    db: Session,
    *,
    user_ids: Optional[Iterable[UUID]] = None,
    today: Optional[date] = None,
) -> JobRunResult:
    today = today or local_today()
    ids = _normalize_user_ids(user_ids, db)
    users_processed = 0
    tasks_created = 0
    failed = 0
    for uid in ids:
        try:
            result = run_daily_population_for_user(db, uid, today=today)
        except Exception:
            db.rollback()
            logger.exception("Daily population failed for user %s", uid)
            failed += 1
            continue
        users_processed += 1
        tasks_created += result.created
    logger.info(
        "Daily population for %s: users=%s, created=%s, failed=%s",
        today,
        users_processed,
        tasks_created,
        failed,
    )
    return JobRunResult(users_processed=users_processed, tasks_created=tasks_created, users_failed=failed)


def _normalize_user_ids(user_ids: Optional[Iterable[UUID]], db: Session) -> List[UUID]:
    if user_ids is None:
        return SqlProgramDirectory(db).users_with_subscriptions()
    return list(dict.fromkeys(user_ids))
