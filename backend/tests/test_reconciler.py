from __future__ import annotations

from datetime import date
from uuid import uuid4

from habitual.services.reconciler import Occurrence, reconcile
from habitual.services.stores.base import TaskRecord

DAY = date(2024, 1, 1)


def _occurrence(activity_id, program_id, title="Stretch", description="", due_date=DAY) -> Occurrence:
    return Occurrence(
        activity_id=activity_id,
        program_id=program_id,
        title=title,
        description=description,
        due_date=due_date,
    )


def _task(user_id, activity_id, **overrides) -> TaskRecord:
    values = dict(id=uuid4(), user_id=user_id, activity_id=activity_id, title="Stretch", due_date=DAY)
    values.update(overrides)
    return TaskRecord(**values)


def test_missing_cells_are_created() -> None:
    user_id, activity_id, program_id = uuid4(), uuid4(), uuid4()

    plan = reconcile(user_id, [_occurrence(activity_id, program_id)], [])

    assert plan.summary == {"create": 1, "update": 0}
    created = plan.to_create[0]
    assert created.key == (user_id, activity_id, DAY)
    assert created.program_id == program_id
    assert created.is_completed is False


def test_deleted_cell_is_never_recreated() -> None:
    user_id, activity_id = uuid4(), uuid4()
    deleted = _task(user_id, activity_id, is_deleted=True, title="Old")

    plan = reconcile(user_id, [_occurrence(activity_id, uuid4(), title="New")], [deleted])

    assert plan.is_empty


def test_open_task_text_follows_activity_but_completed_task_does_not() -> None:
    user_id = uuid4()
    open_activity, done_activity = uuid4(), uuid4()
    open_task = _task(user_id, open_activity, title="Old")
    done_task = _task(user_id, done_activity, title="Old", is_completed=True)

    plan = reconcile(
        user_id,
        [_occurrence(open_activity, uuid4(), title="New"), _occurrence(done_activity, uuid4(), title="New")],
        [open_task, done_task],
    )

    assert plan.to_create == []
    assert [task.id for task in plan.to_update] == [open_task.id]
    assert plan.to_update[0].title == "New"
    assert open_task.title == "Old"


def test_past_due_task_keeps_its_text() -> None:
    user_id, activity_id = uuid4(), uuid4()
    past_task = _task(user_id, activity_id, title="Old")

    plan = reconcile(
        user_id,
        [_occurrence(activity_id, uuid4(), title="New")],
        [past_task],
        today=date(2024, 1, 2),
    )

    assert plan.is_empty


def test_unchanged_task_needs_nothing() -> None:
    user_id, activity_id = uuid4(), uuid4()
    plan = reconcile(user_id, [_occurrence(activity_id, uuid4())], [_task(user_id, activity_id)])
    assert plan.is_empty


def test_duplicate_occurrences_collapse() -> None:
    user_id, activity_id, program_id = uuid4(), uuid4(), uuid4()
    occurrence = _occurrence(activity_id, program_id)

    plan = reconcile(user_id, [occurrence, occurrence], [])

    assert len(plan.to_create) == 1


def test_other_users_and_ad_hoc_tasks_are_ignored() -> None:
    user_id, activity_id = uuid4(), uuid4()
    foreign = _task(uuid4(), activity_id)
    ad_hoc = _task(user_id, None)

    plan = reconcile(user_id, [_occurrence(activity_id, uuid4())], [foreign, ad_hoc])

    assert len(plan.to_create) == 1
