"""FastAPI dependencies for database access."""
from __future__ import annotations

from typing import Iterator

from fastapi import Depends
from sqlalchemy.orm import Session

from habitual.db.session import SessionLocal
from habitual.services.stores.sql import SqlProgramDirectory, SqlTaskStore


def get_db() -> Iterator[Session]:
    """Yield a request-scoped session and always close it."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_task_store(db: Session = Depends(get_db)) -> SqlTaskStore:
    """Task store bound to the request's session."""
    return SqlTaskStore(db)


def get_program_directory(db: Session = Depends(get_db)) -> SqlProgramDirectory:
    return SqlProgramDirectory(db)
