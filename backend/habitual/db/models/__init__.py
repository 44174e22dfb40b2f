"""ORM models exposed for metadata discovery."""
from habitual.db.models.action_log import ActionLog
from habitual.db.models.activity import Activity
from habitual.db.models.program import Program
from habitual.db.models.subscription import Subscription
from habitual.db.models.task import Task
from habitual.db.models.user import User

__all__ = [
    "ActionLog",
    "Activity",
    "Program",
    "Subscription",
    "Task",
    "User",
]
