from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from habitual.db.models.activity import Activity
from habitual.db.models.program import Program
from habitual.db.models.subscription import Subscription
from habitual.db.models.task import Task
from habitual.db.models.user import User
from habitual.services.day_population import populate_day
from habitual.services.errors import PersistenceConflict, TaskWriteError
from habitual.services.stores.base import TaskFilter, TaskRecord
from habitual.services.stores.sql import SqlProgramDirectory, SqlTaskStore

DAY = date(2024, 1, 1)


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - sqlite setup
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    for model in (User, Program, Activity, Subscription, Task):
        model.__table__.create(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _seed(session, cron="0 0 * * *"):
    user_id, owner_id = uuid4(), uuid4()
    session.add_all([User(id=user_id), User(id=owner_id)])
    session.flush()
    program = Program(creator_id=owner_id, title="Shared")
    session.add(program)
    session.flush()
    activity = Activity(program_id=program.id, title="Stretch", cron=cron)
    session.add(activity)
    session.add(Subscription(user_id=user_id, program_id=program.id))
    session.commit()
    return user_id, owner_id, program, activity


def _generated(user_id, activity, due_date=DAY) -> TaskRecord:
    return TaskRecord(
        user_id=user_id,
        activity_id=activity.id,
        program_id=activity.program_id,
        title=activity.title,
        due_date=due_date,
    )


def test_upsert_rejects_a_taken_cell(db_session) -> None:
    user_id, _, _, activity = _seed(db_session)
    store = SqlTaskStore(db_session)

    created = store.upsert_task(_generated(user_id, activity))
    with pytest.raises(PersistenceConflict):
        store.upsert_task(_generated(user_id, activity))

    assert created.id is not None
    assert created.is_generated
    assert len(store.find_tasks(TaskFilter(user_id=user_id))) == 1


def test_ad_hoc_tasks_never_conflict(db_session) -> None:
    user_id, _, _, _ = _seed(db_session)
    store = SqlTaskStore(db_session)

    store.upsert_task(TaskRecord(user_id=user_id, title="Groceries", due_date=DAY))
    store.upsert_task(TaskRecord(user_id=user_id, title="Groceries", due_date=DAY))

    assert len(store.find_tasks(TaskFilter(user_id=user_id, due_from=DAY, due_before=date(2024, 1, 2)))) == 2


def test_moving_into_a_taken_cell_is_a_write_error(db_session) -> None:
    user_id, _, _, activity = _seed(db_session)
    store = SqlTaskStore(db_session)
    store.upsert_task(_generated(user_id, activity, DAY))
    later = store.upsert_task(_generated(user_id, activity, date(2024, 1, 2)))

    with pytest.raises(TaskWriteError):
        store.update_tasks(TaskFilter(task_ids=[later.id]), {"due_date": DAY})

    assert store.get_task(later.id).due_date == date(2024, 1, 2)


def test_update_and_delete_report_row_counts(db_session) -> None:
    user_id, _, _, activity = _seed(db_session)
    store = SqlTaskStore(db_session)
    task = store.upsert_task(_generated(user_id, activity))

    assert store.update_tasks(TaskFilter(task_ids=[task.id], is_completed=False), {"is_completed": True}) == 1
    assert store.update_tasks(TaskFilter(task_ids=[task.id], is_completed=False), {"title": "x"}) == 0
    assert store.delete_tasks(TaskFilter(task_ids=[task.id])) == 1
    assert store.get_task(task.id) is None


def test_unknown_patch_fields_are_rejected(db_session) -> None:
    store = SqlTaskStore(db_session)
    with pytest.raises(ValueError):
        store.update_tasks(TaskFilter(task_ids=[uuid4()]), {"user_id": uuid4()})


def test_directory_lists_subscribed_and_personal_activities(db_session) -> None:
    user_id, owner_id, program, activity = _seed(db_session)
    personal = Program(creator_id=user_id, title="Personal Tasks", is_personal=True)
    db_session.add(personal)
    db_session.flush()
    personal_activity = Activity(program_id=personal.id, title="Floss", cron="0 12 * * *")
    retired = Activity(program_id=program.id, title="Old", cron="0 0 * * *", is_deleted=True)
    db_session.add_all([personal_activity, retired])
    db_session.commit()
    directory = SqlProgramDirectory(db_session)

    ids = {record.id for record in directory.get_activities_for_user(user_id)}

    assert ids == {activity.id, personal_activity.id}
    assert directory.get_activities_for_user(owner_id) == []
    assert set(directory.users_with_subscriptions()) == {user_id}


def test_populate_day_against_sql_is_idempotent(db_session) -> None:
    user_id, _, _, _ = _seed(db_session)
    store, directory = SqlTaskStore(db_session), SqlProgramDirectory(db_session)

    first = populate_day(store, directory, user_id=user_id, day=DAY, today=DAY)
    second = populate_day(store, directory, user_id=user_id, day=DAY, today=DAY)

    assert (first.created, second.created) == (1, 0)
    assert len(store.find_tasks(TaskFilter(user_id=user_id))) == 1
