"""Helpers for working with users and their personal program."""
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from habitual.core.config import settings
from habitual.db.models.program import Program
from habitual.db.models.subscription import Subscription
from habitual.db.models.user import User

logger = logging.getLogger(__name__)


def get_or_create_user(db: Session, user_id: UUID) -> User:
    """Fetch an existing user or create a new row (with its personal program) safely."""
    user = db.get(User, user_id)
    if user:
        return user

    user = User(id=user_id)
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        existing = db.get(User, user_id)
        if existing:
            return existing
        raise

    ensure_personal_program(db, user_id)
    return user


def ensure_personal_program(db: Session, user_id: UUID) -> Program:
    """Return the user's personal program, creating it and its subscription on first use."""
    program = (
        db.query(Program)
        .filter(Program.creator_id == user_id, Program.is_personal.is_(True))
        .order_by(Program.created_at.asc())
        .first()
    )
    if program:
        return program

    program = Program(
        creator_id=user_id,
        title=settings.personal_program_title,
        description="Your personal recurring tasks",
        category="Personal",
        is_personal=True,
        is_private=True,
    )
    db.add(program)
    db.flush()
    db.add(Subscription(user_id=user_id, program_id=program.id))
    db.flush()
    logger.info("Created personal program %s for user %s", program.id, user_id)
    return program
