"""Exceptions raised by the task engine and its stores."""
from __future__ import annotations

from uuid import UUID


class HabitualError(Exception):
    """Base class for engine errors."""


class RuleParseError(HabitualError, ValueError):
    """A recurrence expression could not be parsed."""

    def __init__(self, expression: str, reason: str) -> None:
        super().__init__(f"Invalid recurrence {expression!r}: {reason}")
        self.expression = expression
        self.reason = reason


class NotFoundError(HabitualError):
    """A program, activity or task does not exist (or is soft-deleted)."""

    def __init__(self, kind: str, entity_id: UUID | str) -> None:
        super().__init__(f"{kind} {entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


class OperationNotAllowedError(HabitualError):
    """The caller may not perform this operation on the target."""


class AlreadySubscribedError(HabitualError):
    """The user already holds a subscription to the program."""


class PersistenceConflict(HabitualError):
    """Another writer already materialized the task for this cell."""

    def __init__(self, user_id: UUID, activity_id: UUID | None, due_date) -> None:
        super().__init__(f"Task already exists for user={user_id} activity={activity_id} due={due_date}")
        self.user_id = user_id
        self.activity_id = activity_id
        self.due_date = due_date


class TaskWriteError(HabitualError):
    """A single task row could not be written; bulk callers skip it."""


class StoreUnavailableError(HabitualError):
    """The backing store cannot be reached; never swallowed by the engine."""
