from __future__ import annotations

from datetime import date, timedelta
from uuid import uuid4

import pytest

from habitual.services import lifecycle
from habitual.services.day_population import populate_day
from habitual.services.errors import NotFoundError, RuleParseError, StoreUnavailableError, TaskWriteError
from habitual.services.stores.base import TaskFilter
from habitual.services.stores.memory import InMemoryProgramDirectory, InMemoryTaskStore

TODAY = date(2024, 1, 1)


class FlakyTaskStore(InMemoryTaskStore):
    """Fails to write tasks due on the given days."""

    def __init__(self, failing_days):
        super().__init__()
        self.failing_days = set(failing_days)

    def upsert_task(self, task):
        if task.due_date in self.failing_days:
            raise TaskWriteError(f"disk full on {task.due_date}")
        return super().upsert_task(task)


class DownTaskStore(InMemoryTaskStore):
    def find_tasks(self, task_filter):
        raise StoreUnavailableError("connection refused")


@pytest.fixture()
def directory():
    return InMemoryProgramDirectory()


def _live(store, **criteria):
    return store.find_tasks(TaskFilter(is_deleted=False, **criteria))


def test_subscribe_backfills_exactly_the_horizon(directory) -> None:
    store = InMemoryTaskStore()
    user_id = uuid4()
    program = directory.add_program(uuid4())
    directory.add_activity(program.id, "0 6 * * *")

    result = lifecycle.on_subscribe(store, directory, user_id=user_id, program_id=program.id, today=TODAY)

    assert lifecycle.HORIZON_DAYS == 30
    assert result.affected == 30
    assert result.failed == 0
    days = [task.due_date for task in _live(store, user_id=user_id)]
    assert days[0] == TODAY
    assert days[-1] == TODAY + timedelta(days=29)


def test_subscribe_only_materializes_matching_days_and_is_idempotent(directory) -> None:
    store = InMemoryTaskStore()
    user_id = uuid4()
    program = directory.add_program(uuid4())
    directory.add_activity(program.id, "0 6 * * 1")

    first = lifecycle.on_subscribe(store, directory, user_id=user_id, program_id=program.id, today=TODAY)
    second = lifecycle.on_subscribe(store, directory, user_id=user_id, program_id=program.id, today=TODAY)

    assert first.affected == 5
    assert second.affected == 0
    assert [task.due_date.day for task in _live(store, user_id=user_id)] == [1, 8, 15, 22, 29]


def test_subscribe_counts_failed_rows_and_keeps_going(directory) -> None:
    store = FlakyTaskStore({date(2024, 1, 10)})
    program = directory.add_program(uuid4())
    directory.add_activity(program.id, "0 0 * * *")

    result = lifecycle.on_subscribe(store, directory, user_id=uuid4(), program_id=program.id, today=TODAY)

    assert result.affected == 29
    assert result.failed == 1


def test_unavailable_store_propagates(directory) -> None:
    program = directory.add_program(uuid4())
    directory.add_activity(program.id, "0 0 * * *")

    with pytest.raises(StoreUnavailableError):
        lifecycle.on_subscribe(DownTaskStore(), directory, user_id=uuid4(), program_id=program.id, today=TODAY)


def test_subscribe_to_missing_program_raises(directory) -> None:
    with pytest.raises(NotFoundError):
        lifecycle.on_subscribe(InMemoryTaskStore(), directory, user_id=uuid4(), program_id=uuid4(), today=TODAY)


def test_unsubscribe_retires_today_and_later_only(directory) -> None:
    store = InMemoryTaskStore()
    user_id = uuid4()
    program = directory.add_program(uuid4())
    directory.add_activity(program.id, "0 0 * * *")
    lifecycle.on_subscribe(store, directory, user_id=user_id, program_id=program.id, today=TODAY)

    later = date(2024, 1, 10)
    result = lifecycle.on_unsubscribe(store, directory, user_id=user_id, program_id=program.id, today=later)

    assert result.affected == 21
    remaining = _live(store, user_id=user_id)
    assert len(remaining) == 9
    assert all(task.due_date < later for task in remaining)


def test_unsubscribe_leaves_other_subscribers_alone(directory) -> None:
    store = InMemoryTaskStore()
    leaving, staying = uuid4(), uuid4()
    program = directory.add_program(uuid4())
    directory.add_activity(program.id, "0 0 * * *")
    for user_id in (leaving, staying):
        lifecycle.on_subscribe(store, directory, user_id=user_id, program_id=program.id, today=TODAY)

    lifecycle.on_unsubscribe(store, directory, user_id=leaving, program_id=program.id, today=TODAY)

    assert _live(store, user_id=leaving) == []
    assert len(_live(store, user_id=staying)) == 30


def test_rule_edit_rewrites_future_tasks_and_keeps_today(directory) -> None:
    store = InMemoryTaskStore()
    user_id = uuid4()
    program = directory.add_program(uuid4())
    activity = directory.add_activity(program.id, "0 0 * * *", "Run")
    lifecycle.on_subscribe(store, directory, user_id=user_id, program_id=program.id, today=TODAY)

    result = lifecycle.on_activity_edited(
        store,
        directory,
        activity_id=activity.id,
        new_rule="0 0 * * 1",
        title="Long run",
        today=TODAY,
    )

    assert result.affected == 29
    tasks = _live(store, user_id=user_id)
    assert [task.due_date.day for task in tasks] == [1, 8, 15, 22, 29]
    assert tasks[0].title == "Run"
    assert {task.title for task in tasks[1:]} == {"Long run"}
    assert directory.get_activity(activity.id).cron == "0 0 * * 1"


def test_rule_edit_lets_newly_matching_days_gain_tasks_on_population(directory) -> None:
    store = InMemoryTaskStore()
    user_id = uuid4()
    program = directory.add_program(uuid4())
    directory.subscribe(user_id, program.id)
    activity = directory.add_activity(program.id, "0 0 * * 1", "Run")
    lifecycle.on_subscribe(store, directory, user_id=user_id, program_id=program.id, today=TODAY)
    tuesday = date(2024, 1, 9)
    assert _live(store, user_id=user_id, due_from=tuesday, due_before=tuesday + timedelta(days=1)) == []

    lifecycle.on_activity_edited(store, directory, activity_id=activity.id, new_rule="0 0 * * 1,2", today=TODAY)
    result = populate_day(store, directory, user_id=user_id, day=tuesday, today=TODAY)

    assert result.created == 1
    created = _live(store, user_id=user_id, due_from=tuesday, due_before=tuesday + timedelta(days=1))
    assert [task.title for task in created] == ["Run"]


def test_rule_edit_applies_stickiness(directory) -> None:
    store = InMemoryTaskStore()
    user_id = uuid4()
    program = directory.add_program(uuid4())
    activity = directory.add_activity(program.id, "0 0 * * *")
    lifecycle.on_subscribe(store, directory, user_id=user_id, program_id=program.id, today=TODAY)

    lifecycle.on_activity_edited(
        store, directory, activity_id=activity.id, new_rule="0 0 * * *", is_sticky=True, today=TODAY
    )

    flags = {task.due_date: task.is_sticky for task in _live(store, user_id=user_id)}
    assert flags[TODAY] is False
    assert all(flags[day] for day in flags if day > TODAY)


def test_rule_edit_with_bad_rule_changes_nothing(directory) -> None:
    store = InMemoryTaskStore()
    program = directory.add_program(uuid4())
    activity = directory.add_activity(program.id, "0 0 * * *")

    with pytest.raises(RuleParseError):
        lifecycle.on_activity_edited(store, directory, activity_id=activity.id, new_rule="every day", today=TODAY)

    assert directory.get_activity(activity.id).cron == "0 0 * * *"


def test_activity_delete_retires_future_tasks(directory) -> None:
    store = InMemoryTaskStore()
    user_id = uuid4()
    program = directory.add_program(uuid4())
    activity = directory.add_activity(program.id, "0 0 * * *")
    lifecycle.on_subscribe(store, directory, user_id=user_id, program_id=program.id, today=TODAY)

    result = lifecycle.on_activity_deleted(store, directory, activity_id=activity.id, today=date(2024, 1, 10))

    assert result.affected == 21
    assert len(_live(store, user_id=user_id)) == 9
    with pytest.raises(NotFoundError):
        directory.get_activity(activity.id)


def test_activity_created_backfills_personal_programs_only(directory) -> None:
    store = InMemoryTaskStore()
    user_id = uuid4()
    personal = directory.add_program(user_id, "Personal Tasks", is_personal=True)
    shared = directory.add_program(user_id, "Shared")
    personal_activity = directory.add_activity(personal.id, "0 12 * * *")
    shared_activity = directory.add_activity(shared.id, "0 12 * * *")

    personal_result = lifecycle.on_activity_created(store, directory, activity_id=personal_activity.id, today=TODAY)
    shared_result = lifecycle.on_activity_created(store, directory, activity_id=shared_activity.id, today=TODAY)

    assert personal_result.affected == 30
    assert shared_result.affected == 0
    assert {task.activity_id for task in _live(store, user_id=user_id)} == {personal_activity.id}


def test_program_delete_retires_every_subscriber(directory) -> None:
    store = InMemoryTaskStore()
    program = directory.add_program(uuid4())
    directory.add_activity(program.id, "0 0 * * *")
    users = [uuid4(), uuid4()]
    for user_id in users:
        lifecycle.on_subscribe(store, directory, user_id=user_id, program_id=program.id, today=TODAY)

    result = lifecycle.on_program_deleted(store, directory, program_id=program.id, today=TODAY)

    assert result.affected == 60
    assert _live(store) == []
