"""Program, subscription and activity management wired to the task lifecycle."""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from habitual.db.models.activity import Activity
from habitual.db.models.program import Program
from habitual.db.models.subscription import Subscription
from habitual.services import lifecycle
from habitual.services.batch import BatchResult
from habitual.services.errors import AlreadySubscribedError, NotFoundError, OperationNotAllowedError
from habitual.services.recurrence import parse_rule
from habitual.services.stores.base import ProgramDirectory, TaskStore
from habitual.services.user_service import get_or_create_user

logger = logging.getLogger(__name__)


def create_program(
    db: Session,
    *,
    creator_id: UUID,
    title: str,
    description: Optional[str] = None,
    category: Optional[str] = None,
    is_private: bool = False,
) -> Program:
    get_or_create_user(db, creator_id)
    program = Program(
        creator_id=creator_id,
        title=title,
        description=description,
        category=category,
        is_private=is_private,
        is_personal=False,
    )
    db.add(program)
    db.commit()
    db.refresh(program)
    return program


def get_live_program(db: Session, program_id: UUID) -> Program:
    program = db.get(Program, program_id)
    if program is None or program.is_deleted:
        raise NotFoundError("Program", program_id)
    return program


def subscribe(
    db: Session,
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    user_id: UUID,
    program_id: UUID,
    today: Optional[date] = None,
) -> Tuple[Program, BatchResult]:
    """Create the subscription, then backfill the user's tasks for the horizon."""
    get_or_create_user(db, user_id)
    program = get_live_program(db, program_id)

    existing = (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.program_id == program_id)
        .first()
    )
    if existing:
        raise AlreadySubscribedError(f"User {user_id} is already subscribed to program {program_id}")

    db.add(Subscription(user_id=user_id, program_id=program_id))
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AlreadySubscribedError(f"User {user_id} is already subscribed to program {program_id}") from exc

    result = lifecycle.on_subscribe(store, directory, user_id=user_id, program_id=program_id, today=today)
    return program, result


def unsubscribe(
    db: Session,
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    user_id: UUID,
    program_id: UUID,
    today: Optional[date] = None,
) -> BatchResult:
    """Drop the subscription and retire the user's future tasks for the program."""
    program = get_live_program(db, program_id)
    if program.is_personal:
        raise OperationNotAllowedError("The personal program cannot be unsubscribed")

    subscription = (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.program_id == program_id)
        .first()
    )
    if subscription is None:
        raise NotFoundError("Subscription", program_id)

    db.delete(subscription)
    db.commit()
    return lifecycle.on_unsubscribe(store, directory, user_id=user_id, program_id=program_id, today=today)


def delete_program(
    db: Session,
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    user_id: UUID,
    program_id: UUID,
    today: Optional[date] = None,
) -> BatchResult:
    """Soft-delete a shared program owned by ``user_id`` and retire every subscriber's future tasks."""
    program = get_live_program(db, program_id)
    if program.creator_id != user_id:
        raise OperationNotAllowedError("You can only delete your own programs")
    if program.is_personal:
        raise OperationNotAllowedError("Cannot delete personal program")

    result = lifecycle.on_program_deleted(store, directory, program_id=program_id, today=today)

    program = db.get(Program, program_id)
    program.is_deleted = True
    db.query(Subscription).filter(Subscription.program_id == program_id).delete(synchronize_session=False)
    db.add(program)
    db.commit()
    logger.info("Program %s deleted by %s; %s future tasks retired", program_id, user_id, result.affected)
    return result


def add_activity(
    db: Session,
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    user_id: UUID,
    program_id: UUID,
    title: str,
    cron: str,
    description: Optional[str] = None,
    today: Optional[date] = None,
) -> Tuple[Activity, BatchResult]:
    """Add an activity to a program owned by ``user_id``. Raises RuleParseError for a bad rule."""
    program = get_live_program(db, program_id)
    if program.creator_id != user_id:
        raise OperationNotAllowedError("Program not found or you do not have permission")
    rule = parse_rule(cron)

    activity = Activity(program_id=program_id, title=title, description=description or "", cron=rule.expression)
    db.add(activity)
    db.commit()
    db.refresh(activity)

    result = lifecycle.on_activity_created(store, directory, activity_id=activity.id, today=today)
    return activity, result


def edit_activity(
    db: Session,
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    user_id: UUID,
    activity_id: UUID,
    cron: Optional[str] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    today: Optional[date] = None,
) -> BatchResult:
    activity = _owned_activity(db, user_id, activity_id)
    if cron is None:
        directory.update_activity(activity.id, title=title, description=description)
        return BatchResult()
    return lifecycle.on_activity_edited(
        store,
        directory,
        activity_id=activity.id,
        new_rule=cron,
        title=title,
        description=description,
        today=today,
    )


def remove_activity(
    db: Session,
    store: TaskStore,
    directory: ProgramDirectory,
    *,
    user_id: UUID,
    activity_id: UUID,
    today: Optional[date] = None,
) -> BatchResult:
    activity = _owned_activity(db, user_id, activity_id)
    return lifecycle.on_activity_deleted(store, directory, activity_id=activity.id, today=today)


def _owned_activity(db: Session, user_id: UUID, activity_id: UUID) -> Activity:
    activity = db.get(Activity, activity_id)
    if activity is None or activity.is_deleted:
        raise NotFoundError("Activity", activity_id)
    if activity.program.creator_id != user_id:
        raise OperationNotAllowedError("You do not have permission to modify this activity")
    return activity
