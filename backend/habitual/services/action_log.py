"""Append-only audit entries for user-visible task and program mutations."""
from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from habitual.db.models.action_log import ActionLog


def record_action(
    db: Session,
    *,
    user_id: UUID,
    action_type: str,
    target_type: str,
    target_id: Optional[UUID],
    request_id: Optional[str] = None,
    **metadata: Any,
) -> ActionLog:
    """Stage an ActionLog row on the session; the caller commits."""
    payload: Dict[str, Any] = {key: _jsonable(value) for key, value in metadata.items() if value is not None}
    if request_id:
        payload["request_id"] = request_id
    log = ActionLog(
        user_id=user_id,
        action_type=action_type,
        target_type=target_type,
        target_id=target_id,
        metadata_json=payload,
    )
    db.add(log)
    return log


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value
