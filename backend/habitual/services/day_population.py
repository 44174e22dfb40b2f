"""Materialize a user's tasks for one calendar day."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional
from uuid import UUID

from habitual.core.dates import local_today, parse_day
from habitual.observability.metrics import log_metric
from habitual.observability.tracing import traced
from habitual.services.batch import apply_plan
from habitual.services.carry_forward import carry_forward
from habitual.services.errors import RuleParseError
from habitual.services.reconciler import Occurrence, reconcile
from habitual.services.recurrence import parse_rule
from habitual.services.stores.base import ActivityRecord, ProgramDirectory, TaskFilter, TaskStore

logger = logging.getLogger(__name__)


@dataclass
class PopulateResult:
    created: int
    updated: int = 0
    failed: int = 0
    carried_forward: int = 0


def scheduled_occurrences(activities: Iterable[ActivityRecord], days: Iterable[date]) -> List[Occurrence]:
    """Evaluate every activity against every day; malformed rules are skipped."""
    days = list(days)
    occurrences: List[Occurrence] = []
    for activity in activities:
        try:
            rule = parse_rule(activity.cron)
        except RuleParseError as exc:
            logger.warning("Skipping activity %s with unusable recurrence: %s", activity.id, exc)
            continue
        occurrences.extend(Occurrence.from_activity(activity, day) for day in days if rule.matches(day))
    return occurrences


@traced("tasks.populate_day")
def populate_day(
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    user_id: UUID,
    day: date | str,
    today: Optional[date] = None,
) -> PopulateResult:
    """Carry sticky tasks forward, then create the day's missing generated tasks.

    Safe to call repeatedly: a second call for the same day creates nothing.
    """
    day = parse_day(day)
    today = today or local_today()

    carried = carry_forward(store, user_id=user_id, target_day=day, today=today) if day <= today else 0

    activities = directory.get_activities_for_user(user_id)
    occurrences = scheduled_occurrences(activities, [day])
    if not occurrences:
        logger.debug("No activities fire on %s for user %s", day, user_id)
        return PopulateResult(created=0, carried_forward=carried)

    existing = store.find_tasks(TaskFilter(user_id=user_id, due_from=day, due_before=day + timedelta(days=1)))
    plan = reconcile(user_id, occurrences, existing, today=today)
    applied = apply_plan(store, plan)

    logger.info(
        "Populated %s for user %s: %s created, %s refreshed, %s failed, %s carried forward",
        day,
        user_id,
        applied.created,
        applied.updated,
        applied.failed,
        carried,
    )
    log_metric("tasks.populate.created", applied.created, metadata={"user_id": str(user_id), "day": day.isoformat()})
    if applied.failed:
        log_metric("tasks.populate.failed", applied.failed, metadata={"user_id": str(user_id)})

    return PopulateResult(
        created=applied.created,
        updated=applied.updated,
        failed=applied.failed,
        carried_forward=carried,
    )
