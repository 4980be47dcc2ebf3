# Overview: Service-layer operations for the activity log; appends actor activity after business commits.

"""
Activity Log Service

record_activity() is called only after the business transaction has
committed. It runs its own short transaction and never raises: a failed
audit write is logged and the caller's result stands.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ActivityLog
from orderledger.time_utils import utcnow


def record_activity(actor, action_type: str, entity_type: str, entity_id: int | None, details: dict | None = None):
    """
    Append one ActivityLog row for the actor.

    Returns the row, or None when the write failed.
    """
    try:
        entry = ActivityLog(
            actor_user_id=getattr(actor, "user_id", None),
            actor_role=_role_value(actor),
            action_type=action_type,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
            created_at=utcnow(),
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning(
            "Failed to record activity %s on %s %s", action_type, entity_type, entity_id, exc_info=True
        )
        return None


def list_activity(entity_type: str | None = None, entity_id: int | None = None, limit: int = 100) -> list[ActivityLog]:
    query = db.session.query(ActivityLog)
    if entity_type is not None:
        query = query.filter(ActivityLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(ActivityLog.entity_id == entity_id)
    return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()


def _role_value(actor):
    role = getattr(actor, "role", None)
    return getattr(role, "value", role)
