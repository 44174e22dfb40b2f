from __future__ import annotations

from datetime import date
from uuid import uuid4

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from habitual.db.models.activity import Activity
from habitual.db.models.program import Program
from habitual.db.models.subscription import Subscription
from habitual.db.models.task import Task
from habitual.db.models.user import User
from habitual.services import job_runner
from habitual.services.job_runner import run_daily_population_for_all_users, run_daily_population_for_user

DAY = date(2024, 1, 1)


def _session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_fk(conn, record):  # pragma: no cover
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    for model in (User, Program, Activity, Subscription, Task):
        model.__table__.create(bind=engine)
    return TestingSession


def _seed_subscribers(db_session, count=2):
    session = db_session()
    try:
        owner_id = uuid4()
        session.add(User(id=owner_id))
        session.flush()
        program = Program(creator_id=owner_id, title="Daily habits")
        session.add(program)
        session.flush()
        session.add(Activity(program_id=program.id, title="Water plants", cron="0 8 * * *"))
        user_ids = []
        for _ in range(count):
            user_id = uuid4()
            session.add(User(id=user_id))
            session.flush()
            session.add(Subscription(user_id=user_id, program_id=program.id))
            user_ids.append(user_id)
        session.commit()
        return user_ids
    finally:
        session.close()


def test_daily_population_runs_for_every_subscriber_once():
    db_session = _session()
    user_ids = _seed_subscribers(db_session)

    session = db_session()
    try:
        first = run_daily_population_for_all_users(session, today=DAY)
        second = run_daily_population_for_all_users(session, today=DAY)
        tasks = session.query(Task).all()
    finally:
        session.close()

    assert first.users_processed == 2
    assert first.tasks_created == 2
    assert second.tasks_created == 0
    assert {task.user_id for task in tasks} == set(user_ids)
    assert {task.due_date for task in tasks} == {DAY}


def test_daily_population_for_single_user():
    db_session = _session()
    user_ids = _seed_subscribers(db_session, count=1)

    session = db_session()
    try:
        result = run_daily_population_for_user(session, user_ids[0], today=DAY)
    finally:
        session.close()

    assert result.created == 1


def test_daily_population_skips_failing_users(monkeypatch):
    db_session = _session()
    user_ids = _seed_subscribers(db_session)
    broken = user_ids[0]
    original = job_runner.run_daily_population_for_user

    def flaky(db, user_id, *, today=None):
        if user_id == broken:
            raise RuntimeError("boom")
        return original(db, user_id, today=today)

    monkeypatch.setattr(job_runner, "run_daily_population_for_user", flaky)

    session = db_session()
    try:
        result = run_daily_population_for_all_users(session, user_ids=user_ids, today=DAY)
    finally:
        session.close()

    assert result.users_processed == 1
    assert result.users_failed == 1
    assert result.tasks_created == 1
